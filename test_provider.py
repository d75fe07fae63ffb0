import asyncio
import json
import unittest
from unittest.mock import patch, MagicMock, AsyncMock

import requests

from deepscan.core.provider import OllamaProvider, build_prompt, sensitivity_context
from deepscan.data.schemas import FileRef, ScanOptions, ThreatLevel
from deepscan.errors import CorrelationError, ProviderError


def _verdict(**overrides):
    data = {
        'threatLevel': 'MALICIOUS',
        'summary': 'Obfuscated reverse shell.',
        'vulnerabilities': ['Remote code execution via eval'],
        'confidenceScore': 140,
        'technicalDetails': 'base64 blob decoded and passed to eval()',
    }
    data.update(overrides)
    return {'message': {'content': json.dumps(data)}}


class TestOllamaProvider(unittest.TestCase):
    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_analyze_text_file(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.chat = AsyncMock(return_value=_verdict())
        mock_client_cls.return_value = mock_client

        provider = OllamaProvider(model_name="test-model")
        file = FileRef.from_bytes("payload.js", b"eval(atob('ZWNobw=='))", "text/javascript")
        result = asyncio.run(provider.analyze(file, ScanOptions(scan_depth='deep')))

        self.assertEqual(result.file_name, "payload.js")
        self.assertEqual(result.threat_level, ThreatLevel.MALICIOUS)
        self.assertEqual(result.confidence_score, 100)  # clamped
        self.assertIsNone(result.cve_matches)

        kwargs = mock_client.chat.call_args.kwargs
        self.assertEqual(kwargs['model'], "test-model")
        self.assertEqual(kwargs['options']['num_predict'], 4096)
        message = kwargs['messages'][0]
        self.assertIn("payload.js", message['content'])
        self.assertIn("eval(atob", message['content'])
        self.assertNotIn('images', message)

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_analyze_image_sends_bytes(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client.chat = AsyncMock(return_value=_verdict(threatLevel='safe', vulnerabilities=[]))
        mock_client_cls.return_value = mock_client

        provider = OllamaProvider()
        file = FileRef.from_bytes("shot.png", b"\x89PNG\r\n", "image/png")
        result = asyncio.run(provider.analyze(file, ScanOptions()))

        self.assertEqual(result.threat_level, ThreatLevel.SAFE)
        message = mock_client.chat.call_args.kwargs['messages'][0]
        self.assertEqual(message['images'], [b"\x89PNG\r\n"])

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_analyze_failures_raise_provider_error(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client_cls.return_value = mock_client
        provider = OllamaProvider()
        file = FileRef.from_bytes("a.txt", b"hello")

        mock_client.chat = AsyncMock(side_effect=ConnectionError("refused"))
        with self.assertRaises(ProviderError):
            asyncio.run(provider.analyze(file, ScanOptions()))

        mock_client.chat = AsyncMock(return_value={'message': {'content': 'not json'}})
        with self.assertRaises(ProviderError):
            asyncio.run(provider.analyze(file, ScanOptions()))

        mock_client.chat = AsyncMock(return_value={'message': {'content': '[1, 2]'}})
        with self.assertRaises(ProviderError):
            asyncio.run(provider.analyze(file, ScanOptions()))

        bad_score = '{"threatLevel": "SAFE", "confidenceScore": "high", "summary": null}'
        mock_client.chat = AsyncMock(return_value={'message': {'content': bad_score}})
        with self.assertRaises(ProviderError):
            asyncio.run(provider.analyze(file, ScanOptions()))

        bad_score = '{"threatLevel": "SAFE", "confidenceScore": {"value": 80}}'
        mock_client.chat = AsyncMock(return_value={'message': {'content': bad_score}})
        with self.assertRaises(ProviderError):
            asyncio.run(provider.analyze(file, ScanOptions()))

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_analyze_null_summary_is_empty(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client_cls.return_value = mock_client
        content = '{"threatLevel": "SAFE", "confidenceScore": 90, "summary": null, "technicalDetails": null}'
        mock_client.chat = AsyncMock(return_value={'message': {'content': content}})

        result = asyncio.run(OllamaProvider().analyze(FileRef.from_bytes("a.txt", b"hi"), ScanOptions()))

        self.assertEqual(result.summary, "")
        self.assertEqual(result.technical_details, "")
        self.assertEqual(result.confidence_score, 90.0)

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_lookup_references_keyword_search(self, _mock_client_cls):
        session = MagicMock()
        response = MagicMock()
        response.json.return_value = {'vulnerabilities': [
            {'cve': {'id': 'CVE-2021-44228'}},
            {'cve': {'id': 'CVE-2021-45046'}},
            {'cve': {}},
        ]}
        session.get.return_value = response

        provider = OllamaProvider(session=session)
        links = asyncio.run(provider.lookup_references("log4j jndi lookup"))

        self.assertEqual(links, [
            "https://nvd.nist.gov/vuln/detail/CVE-2021-44228",
            "https://nvd.nist.gov/vuln/detail/CVE-2021-45046",
        ])
        params = session.get.call_args.kwargs['params']
        self.assertEqual(params['keywordSearch'], "log4j jndi lookup")
        self.assertEqual(params['resultsPerPage'], 3)

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_lookup_references_by_cve_id(self, _mock_client_cls):
        session = MagicMock()
        session.get.return_value.json.return_value = {'vulnerabilities': [{'cve': {'id': 'CVE-2017-0144'}}]}

        provider = OllamaProvider(session=session)
        links = asyncio.run(provider.lookup_references("EternalBlue cve-2017-0144 SMBv1"))

        self.assertEqual(links, ["https://nvd.nist.gov/vuln/detail/CVE-2017-0144"])
        self.assertEqual(session.get.call_args.kwargs['params'], {'cveId': 'CVE-2017-0144'})

    @patch('deepscan.core.provider.ollama.AsyncClient')
    def test_lookup_failure_raises_correlation_error(self, _mock_client_cls):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("offline")

        provider = OllamaProvider(session=session)
        with self.assertRaises(CorrelationError):
            asyncio.run(provider.lookup_references("anything"))


class TestPrompt(unittest.TestCase):
    def test_sensitivity_bands(self):
        self.assertIn("HIGH", sensitivity_context(81))
        self.assertIn("LOW", sensitivity_context(29))
        self.assertEqual(sensitivity_context(50), "STANDARD SENSITIVITY MODE.")

    def test_capability_hints(self):
        file = FileRef.from_bytes("x.py", b"")
        both = build_prompt(file, ScanOptions(), "print(1)")
        self.assertIn("Heuristic analysis", both)
        self.assertIn("Signature matching", both)

        neither = build_prompt(file, ScanOptions(enable_heuristics=False, enable_signatures=False), "print(1)")
        self.assertNotIn("Heuristic analysis", neither)
        self.assertNotIn("Signature matching", neither)


if __name__ == '__main__':
    unittest.main()
