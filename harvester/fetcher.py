"""
JSON record download for the crawler.
Fetches the data-download URL found on a rendered page and decodes its record set.
"""

import json
import time
from typing import List, Optional

import requests

from harvester.core import REQUEST_TIMEOUT, logger
from harvester.errors import FetchError, DecodeError
from harvester.identity import Identity


def decode_records(body: str) -> List[dict]:
    """
    Payload shape: {"results": {<any key>: <record>, ...}}.
    Keys are discarded; values keep the payload's insertion order.
    """
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed JSON payload: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
    results = payload.get("results")
    if not isinstance(results, dict):
        raise DecodeError("Payload has no `results` mapping")
    return list(results.values())


class RecordFetcher:

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = REQUEST_TIMEOUT):
        self._session = session or requests.Session()
        self._timeout = timeout

    def fetch_records(self, json_url: str, identity: Optional[Identity] = None) -> List[dict]:
        """
        Download and decode one record set.
        Raises FetchError (network failure, timeout, non-2xx) or DecodeError (malformed payload).
        """
        headers = {"Accept": "application/json"}
        proxies = None
        if identity is not None:
            headers["User-Agent"] = identity.user_agent
            if identity.proxy_url:
                proxies = {"http": identity.proxy_url, "https": identity.proxy_url}

        start_time = time.time()
        try:
            r = self._session.get(
                json_url,
                timeout=self._timeout,
                headers=headers,
                proxies=proxies,
                allow_redirects=True,
            )
        except requests.exceptions.Timeout as e:
            raise FetchError(f"Timed out fetching {json_url}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request to {json_url} failed: {e}") from e

        fetch_time_ms = int((time.time() - start_time) * 1000)
        if not 200 <= r.status_code < 300:
            raise FetchError(f"{json_url} returned HTTP {r.status_code}", status_code=r.status_code)

        records = decode_records(r.text)
        logger.info(f"Fetched {len(records)} record(s) from {json_url} in {fetch_time_ms} ms",
                    extra={'context': 'fetcher'})
        return records

    def close(self):
        self._session.close()
