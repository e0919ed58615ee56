import json
import unittest
from unittest.mock import MagicMock

import requests

from harvester.errors import FetchError, DecodeError
from harvester.fetcher import RecordFetcher, decode_records
from harvester.identity import Identity


class TestDecodeRecords(unittest.TestCase):

    def test_values_in_insertion_order(self):
        """Scenario: keys are discarded, record order follows the payload."""
        body = '{"results": {"b": {"id": 2}, "a": {"id": 1}}}'
        self.assertEqual(decode_records(body), [{"id": 2}, {"id": 1}])

    def test_empty_results(self):
        self.assertEqual(decode_records('{"results": {}}'), [])

    def test_malformed_payloads(self):
        for body in ("{not json", "[1, 2]", '{"data": {}}', '{"results": [1, 2]}', None):
            with self.assertRaises(DecodeError, msg=repr(body)):
                decode_records(body)


class TestRecordFetcher(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.fetcher = RecordFetcher(session=self.session, timeout=5)

    def _respond(self, status_code, payload):
        response = MagicMock()
        response.status_code = status_code
        response.text = payload if isinstance(payload, str) else json.dumps(payload)
        self.session.get.return_value = response

    def test_fetch_with_identity(self):
        self._respond(200, {"results": {"x": {"name": "A"}, "y": {"name": "B"}}})
        identity = Identity(user_agent="UA/1.0", proxy_url="http://p1:8000")

        records = self.fetcher.fetch_records("https://example.com/p.json", identity)

        self.assertEqual(records, [{"name": "A"}, {"name": "B"}])
        kwargs = self.session.get.call_args.kwargs
        self.assertEqual(kwargs["timeout"], 5)
        self.assertEqual(kwargs["headers"]["User-Agent"], "UA/1.0")
        self.assertEqual(kwargs["proxies"], {"http": "http://p1:8000", "https": "http://p1:8000"})

    def test_fetch_without_proxy(self):
        self._respond(200, {"results": {}})
        self.fetcher.fetch_records("https://example.com/p.json", Identity(user_agent="UA", proxy_url=None))
        self.assertIsNone(self.session.get.call_args.kwargs["proxies"])

    def test_non_2xx_is_fetch_error(self):
        self._respond(503, "Service Unavailable")
        with self.assertRaises(FetchError) as cm:
            self.fetcher.fetch_records("https://example.com/p.json")
        self.assertEqual(cm.exception.status_code, 503)

    def test_network_errors_are_fetch_errors(self):
        for exc in (requests.exceptions.ConnectionError("refused"), requests.exceptions.Timeout("slow")):
            self.session.get.side_effect = exc
            with self.assertRaises(FetchError):
                self.fetcher.fetch_records("https://example.com/p.json")

    def test_bad_payload_is_decode_error(self):
        self._respond(200, "<html>blocked</html>")
        with self.assertRaises(DecodeError):
            self.fetcher.fetch_records("https://example.com/p.json")


if __name__ == "__main__":
    unittest.main()
