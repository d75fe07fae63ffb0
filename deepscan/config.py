import os


def _env_float(name: str, default):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


class Config:
    # Logging
    LOG_LEVEL = os.getenv("DEEPSCAN_LOG_LEVEL", "INFO")

    # Analysis provider (local Ollama server)
    OLLAMA_HOST = os.getenv("DEEPSCAN_OLLAMA_HOST", "http://localhost:11434")
    OLLAMA_MODEL = os.getenv("DEEPSCAN_OLLAMA_MODEL", "mistral-nemo")
    MAX_TEXT_CHARS = 20000
    # num_predict per scan depth, the provider "effort" hint
    DEPTH_PREDICT_BUDGET = {
        'quick': 512,
        'balanced': 1024,
        'deep': 4096,
    }
    # None = wait forever, same as the dashboard this engine was built for
    ANALYSIS_TIMEOUT = _env_float("DEEPSCAN_ANALYSIS_TIMEOUT", None)

    # Vulnerability correlation (NVD CVE 2.0)
    NVD_API_URL = os.getenv("DEEPSCAN_NVD_API_URL", "https://services.nvd.nist.gov/rest/json/cves/2.0")
    NVD_DETAIL_URL = "https://nvd.nist.gov/vuln/detail/"
    NVD_API_KEY = os.getenv("DEEPSCAN_NVD_API_KEY")
    REFERENCE_LIMIT = 3
    REQUEST_TIMEOUT = _env_float("DEEPSCAN_REQUEST_TIMEOUT", 10.0)

    # Scan timing
    PREPROCESS_DELAY = _env_float("DEEPSCAN_PREPROCESS_DELAY", 1.0)
    TICK_INTERVAL = 0.5
    DEPTH_BASE_ETA = {
        'quick': 5,
        'balanced': 15,
        'deep': 45,
    }
    LARGE_FILE_BYTES = 2 * 1024 * 1024

    # Simulated progress
    PROGRESS_CEILING = 90.0
    PROGRESS_RATE = 0.05
    ETA_STEP = 0.5
    ETA_FLOOR = 2.0

    # Notifications
    NOTIFICATION_TTL = 5.0

    # Inspection
    HEAD_PREVIEW_BYTES = 512

    @classmethod
    def initial_eta(cls, scan_depth: str, file_size: int) -> float:
        """Base duration for the depth, doubled for files over 2 MiB."""
        base = cls.DEPTH_BASE_ETA.get(scan_depth, cls.DEPTH_BASE_ETA['balanced'])
        if file_size > cls.LARGE_FILE_BYTES:
            return base * 2
        return base
