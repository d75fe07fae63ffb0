import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import ollama
import requests

from ..config import Config
from ..data.schemas import FileRef, ScanOptions, ScanResult
from ..errors import CorrelationError, ProviderError

logger = logging.getLogger(__name__)

CVE_ID_PATTERN = re.compile(r"CVE-\d{4}-\d{4,}", re.IGNORECASE)

VERDICT_SCHEMA = {
    "type": "object",
    "properties": {
        "threatLevel": {"type": "string", "enum": ["SAFE", "SUSPICIOUS", "MALICIOUS", "UNKNOWN"]},
        "summary": {"type": "string"},
        "vulnerabilities": {"type": "array", "items": {"type": "string"}},
        "confidenceScore": {"type": "number"},
        "technicalDetails": {"type": "string"},
    },
    "required": ["threatLevel", "summary", "vulnerabilities", "confidenceScore", "technicalDetails"],
}

DEPTH_CONTEXT = {
    'deep': "PERFORM A DEEP, COMPREHENSIVE ANALYSIS. Scrutinize every pattern, obfuscation technique and anomaly.",
    'balanced': "Perform a standard security check focusing on known patterns and heuristic anomalies.",
    'quick': "Perform a high-speed, superficial check for obvious threats only.",
}


class AnalysisProvider(ABC):
    """External service that produces verdicts and vulnerability references."""

    @abstractmethod
    async def analyze(self, file: FileRef, options: ScanOptions) -> ScanResult:
        """Return a verdict for *file*. Raise ProviderError on failure."""
        ...

    @abstractmethod
    async def lookup_references(self, query: str) -> List[str]:
        """Return reference URIs for *query*. Raise CorrelationError on failure."""
        ...


def sensitivity_context(threshold: float) -> str:
    if threshold > 80:
        return "HIGH SENSITIVITY MODE: Flag even minor deviations or potential risks as SUSPICIOUS or MALICIOUS."
    if threshold < 30:
        return "LOW SENSITIVITY MODE: Only flag clear, high-confidence threats."
    return "STANDARD SENSITIVITY MODE."


def build_prompt(file: FileRef, options: ScanOptions, text_content: str = None) -> str:
    lines = [DEPTH_CONTEXT[options.scan_depth], sensitivity_context(options.sensitivity_threshold)]
    if options.enable_heuristics:
        lines.append("- Heuristic analysis: look for suspicious behaviour patterns and zero-day indicators.")
    if options.enable_signatures:
        lines.append("- Signature matching: compare against known malicious code structures.")
    config_block = "\n".join(lines)

    if text_content is None:
        return (
            f"Analyze this image for security threats.\n{config_block}\n"
            "Check for steganography indicators, embedded malicious text, screenshots of "
            "vulnerable code or systems, and exposed sensitive data. Return a JSON response."
        )
    return (
        "Analyze the following file content for security vulnerabilities, malware, malicious "
        f"patterns, logic bombs or known CVEs.\nFile Name: {file.name}\n\n"
        f"CONFIGURATION:\n{config_block}\n\n"
        f"CONTENT START:\n{text_content}\nCONTENT END\n\n"
        "Act as a senior security researcher. Return a JSON response."
    )


class OllamaProvider(AnalysisProvider):
    """Verdicts from a local Ollama model, references from the NVD CVE API."""

    def __init__(self, model_name: str = None, host: str = None, session: requests.Session = None):
        self.model_name = model_name or Config.OLLAMA_MODEL
        self.client = ollama.AsyncClient(host=host or Config.OLLAMA_HOST)
        self.session = session or requests.Session()

    def _build_message(self, file: FileRef, options: ScanOptions) -> Dict[str, Any]:
        data = file.read()
        if file.is_image:
            return {"role": "user", "content": build_prompt(file, options), "images": [data]}
        text = data.decode('utf-8', errors='replace')[:Config.MAX_TEXT_CHARS]
        return {"role": "user", "content": build_prompt(file, options, text)}

    async def analyze(self, file: FileRef, options: ScanOptions) -> ScanResult:
        message = self._build_message(file, options)
        budget = Config.DEPTH_PREDICT_BUDGET.get(options.scan_depth, Config.DEPTH_PREDICT_BUDGET['balanced'])

        try:
            response = await self.client.chat(
                model=self.model_name,
                messages=[message],
                format=VERDICT_SCHEMA,
                options={"num_predict": budget, "temperature": 0},
            )
        except Exception as e:
            raise ProviderError(f"Failed to reach analysis model: {e}") from e

        content = response['message']['content'] or "{}"
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Malformed verdict from model: {e}") from e
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected verdict payload: {type(data).__name__}")

        try:
            return ScanResult.from_dict(data, file_name=file.name)
        except (TypeError, ValueError) as e:
            raise ProviderError(f"Invalid verdict fields from model: {e}") from e

    def _search_nvd(self, query: str) -> List[str]:
        match = CVE_ID_PATTERN.search(query)
        if match:
            params = {"cveId": match.group(0).upper()}
        else:
            params = {"keywordSearch": query, "resultsPerPage": Config.REFERENCE_LIMIT}
        headers = {"apiKey": Config.NVD_API_KEY} if Config.NVD_API_KEY else {}

        resp = self.session.get(Config.NVD_API_URL, params=params, headers=headers, timeout=Config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()

        links = []
        for entry in payload.get('vulnerabilities', []):
            cve_id = entry.get('cve', {}).get('id')
            if cve_id:
                links.append(f"{Config.NVD_DETAIL_URL}{cve_id}")
        return links[:Config.REFERENCE_LIMIT]

    async def lookup_references(self, query: str) -> List[str]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._search_nvd, query)
        except Exception as e:
            raise CorrelationError(f"Reference lookup failed for {query!r}: {e}") from e
