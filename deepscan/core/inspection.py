import hashlib

from ..config import Config
from ..data.schemas import FileRef


def sha256_hex(file: FileRef) -> str:
    return hashlib.sha256(file.read()).hexdigest()


def read_head(file: FileRef, n: int = Config.HEAD_PREVIEW_BYTES) -> bytes:
    """First *n* bytes of the file, for a quick header look."""
    return file.read()[:n]


def to_hex(data: bytes) -> str:
    return " ".join(f"{b:02X}" for b in data)


def to_ascii(data: bytes) -> str:
    # printable ASCII 32-126, everything else shown as '.'
    return "".join(chr(b) if 32 <= b <= 126 else "." for b in data)


def preview(file: FileRef, n: int = Config.HEAD_PREVIEW_BYTES) -> dict:
    head = read_head(file, n)
    return {
        'file_name': file.name,
        'sha256': sha256_hex(file),
        'head_bytes': len(head),
        'hex': to_hex(head),
        'ascii': to_ascii(head),
    }
