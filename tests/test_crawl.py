"""
Crawl loop scenarios: pagination, de-duplication, retries and dead-lettering.
Browser and network are replaced by in-memory fakes.
"""

import random
import unittest
from unittest.mock import MagicMock

from frontier.models import RequestState
from frontier.normalizer import normalize_url
from frontier.orchestrator import Frontier
from harvester.config import parse_input
from harvester.crawl import CrawlLoop, create_debug_record
from harvester.errors import RenderTimeout, FetchError, DecodeError, RetriesExhausted
from harvester.sink import MemoryDatasetSink, DEBUG_KEY
from rendering.models import RenderedPage

BASE = "https://example.com/players"


def listing_html(page_no, next_page=None, with_json=True):
    parts = ["<html><body>"]
    if with_json:
        parts.append(f'<a download href="/data/{page_no}.json">JSON</a>')
    if next_page is not None:
        parts.append(f'<a rel="next" href="?page={next_page}">Next</a>')
    parts.append("</body></html>")
    return "".join(parts)


class FakeRenderer:
    """Serves canned HTML by URL; a list value is consumed one outcome per call."""

    def __init__(self, pages):
        self.pages = {normalize_url(url): outcome for url, outcome in pages.items()}
        self.calls = []

    def render(self, url, identity):
        self.calls.append(url)
        outcome = self.pages[url]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        return RenderedPage(url=url, final_url=url, html=outcome)


class FakeFetcher:
    def __init__(self, payloads):
        self.payloads = payloads
        self.calls = []

    def fetch_records(self, json_url, identity=None):
        self.calls.append(json_url)
        outcome = self.payloads[json_url]
        if isinstance(outcome, list) and outcome and isinstance(outcome[0], Exception):
            error = outcome.pop(0)
            raise error
        return list(outcome)


def records_for(page_no):
    return [{"name": f"p{page_no}-gk", "position": "GK"}, {"name": f"p{page_no}-fw", "position": "FW"}]


class CrawlTestCase(unittest.TestCase):

    def build(self, pages, payloads, **input_overrides):
        raw = {"startUrls": [{"url": f"{BASE}?page=1"}]}
        raw.update(input_overrides)
        self.config = parse_input(raw)
        self.frontier = Frontier(max_request_retries=self.config.budget.max_request_retries, clock=lambda: 0.0)
        self.renderer = FakeRenderer(pages)
        self.fetcher = FakeFetcher(payloads)
        self.sink = MemoryDatasetSink()
        self.sleep = MagicMock()
        return CrawlLoop(self.config, self.frontier, self.renderer, self.sink, fetcher=self.fetcher,
                         sleep=self.sleep, clock=lambda: 0.0, rng=random.Random(3))


class TestPagination(CrawlTestCase):

    def test_follows_chain_until_no_next_link(self):
        loop = self.build(
            pages={f"{BASE}?page=1": listing_html(1, 2), f"{BASE}?page=2": listing_html(2, 3),
                   f"{BASE}?page=3": listing_html(3)},
            payloads={f"https://example.com/data/{n}.json": records_for(n) for n in (1, 2, 3)},
            playersFilter={"position": "GK"},
        )
        stats = loop.run()

        self.assertEqual(stats.done, 3)
        self.assertEqual(stats.dead_lettered, 0)
        self.assertEqual([r["name"] for r in self.sink.records], ["p1-gk", "p2-gk", "p3-gk"])
        self.assertEqual(stats.records_rejected, 3)
        self.assertEqual(self.renderer.calls, [f"{BASE}?page=1", f"{BASE}?page=2", f"{BASE}?page=3"])
        self.assertTrue(self.frontier.is_empty())

    def test_cyclic_next_link_terminates(self):
        loop = self.build(
            pages={f"{BASE}?page=1": listing_html(1, 2), f"{BASE}?page=2": listing_html(2, 1)},
            payloads={f"https://example.com/data/{n}.json": records_for(n) for n in (1, 2)},
        )
        stats = loop.run()

        self.assertEqual(stats.done, 2)
        self.assertEqual(stats.next_links_duplicate, 1)
        self.assertEqual(len(self.sink.records), 4)

    def test_page_without_json_link_still_paginates(self):
        loop = self.build(
            pages={f"{BASE}?page=1": listing_html(1, 2, with_json=False), f"{BASE}?page=2": listing_html(2)},
            payloads={"https://example.com/data/2.json": records_for(2)},
        )
        stats = loop.run()

        self.assertEqual(stats.done, 2)
        self.assertEqual(stats.pages_without_json, 1)
        self.assertEqual(self.fetcher.calls, ["https://example.com/data/2.json"])

    def test_malformed_next_link_does_not_lose_records(self):
        html = '<a download href="/data/1.json">JSON</a><a rel="next" href="http://[bad/x">Next</a>'
        loop = self.build(pages={f"{BASE}?page=1": html},
                          payloads={"https://example.com/data/1.json": records_for(1)},
                          maxRequestRetries=2)
        stats = loop.run()

        self.assertEqual(stats.done, 1)
        self.assertEqual(stats.dead_lettered, 0)
        self.assertEqual(len(self.sink.records), 2)
        self.assertEqual(self.sink.debug_records, [])
        self.assertEqual(len(self.renderer.calls), 1)

    def test_settle_delay_between_render_and_extraction(self):
        loop = self.build(pages={f"{BASE}?page=1": listing_html(1)},
                          payloads={"https://example.com/data/1.json": []})
        loop.run()

        self.sleep.assert_called_once()
        delay = self.sleep.call_args.args[0]
        self.assertGreaterEqual(delay, 1.0)
        self.assertLessEqual(delay, 6.0)

    def test_request_budget_stops_dequeuing(self):
        pages = {f"{BASE}?page={n}": listing_html(n, n + 1) for n in range(1, 6)}
        loop = self.build(pages=pages,
                          payloads={f"https://example.com/data/{n}.json": [] for n in range(1, 6)},
                          maxRequestsPerCrawl=2)
        stats = loop.run()

        self.assertEqual(stats.done, 2)
        self.assertEqual(len(self.renderer.calls), 2)
        self.assertFalse(self.frontier.is_empty())

    def test_duplicate_start_urls_seed_once(self):
        loop = self.build(pages={f"{BASE}?page=1": listing_html(1)},
                          payloads={"https://example.com/data/1.json": []},
                          startUrls=[f"{BASE}?page=1", f"https://www.example.com/players/?page=1"])
        self.assertEqual(loop.seed(), 1)


class TestFailureHandling(CrawlTestCase):

    def test_dead_letter_after_retries_exhausted(self):
        """Scenario: two retries allowed, three consecutive failures, exactly one debug record."""
        loop = self.build(pages={f"{BASE}?page=1": [RenderTimeout("navigation timed out")]},
                          payloads={}, maxRequestRetries=2)
        stats = loop.run()

        self.assertEqual(len(self.renderer.calls), 3)
        self.assertEqual(stats.failed_attempts, 3)
        self.assertEqual(stats.dead_lettered, 1)
        self.assertEqual(stats.done, 0)
        self.assertEqual(len(self.sink.debug_records), 1)

        debug = self.sink.debug_records[0]
        self.assertEqual(debug["url"], f"{BASE}?page=1")
        self.assertEqual(debug["retryCount"], 2)
        self.assertEqual(len(debug["errorMessages"]), 3)
        self.assertEqual(self.frontier.get_stats()["dead_lettered"], 1)

    def test_fetch_error_is_retried(self):
        json_url = "https://example.com/data/1.json"
        loop = self.build(pages={f"{BASE}?page=1": listing_html(1)},
                          payloads={json_url: [FetchError("HTTP 502", status_code=502), *records_for(1)]})
        stats = loop.run()

        self.assertEqual(stats.failed_attempts, 1)
        self.assertEqual(stats.done, 1)
        self.assertEqual(self.fetcher.calls, [json_url, json_url])
        # Records are emitted once, from the successful attempt only
        self.assertEqual(len(self.sink.records), 2)
        # Retry waited out its backoff before re-rendering
        self.assertIn(2.0, [c.args[0] for c in self.sleep.call_args_list])

    def test_decode_error_does_not_stop_other_branches(self):
        loop = self.build(
            pages={f"{BASE}?page=1": listing_html(1), "https://example.com/other": listing_html(9)},
            payloads={"https://example.com/data/1.json": [DecodeError("bad"), DecodeError("bad")],
                      "https://example.com/data/9.json": records_for(9)},
            startUrls=[f"{BASE}?page=1", "https://example.com/other"],
            maxRequestRetries=1,
        )
        stats = loop.run()

        self.assertEqual(stats.dead_lettered, 1)
        self.assertEqual(stats.done, 1)
        self.assertEqual([r["name"] for r in self.sink.records], ["p9-gk", "p9-fw"])

    def test_unexpected_error_is_contained(self):
        loop = self.build(pages={f"{BASE}?page=1": [ValueError("bug"), listing_html(1)]},
                          payloads={"https://example.com/data/1.json": records_for(1)})
        stats = loop.run()

        self.assertEqual(stats.failed_attempts, 1)
        self.assertEqual(stats.done, 1)

    def test_debug_record_shape(self):
        self.build(pages={}, payloads={})
        self.frontier.enqueue(f"{BASE}?page=7")
        request = self.frontier.dequeue()
        record = create_debug_record(RetriesExhausted(request))
        self.assertEqual(set(record), {DEBUG_KEY})
        self.assertEqual(record[DEBUG_KEY]["retryCount"], 0)
        self.assertEqual(request.state, RequestState.RENDERING)


if __name__ == "__main__":
    unittest.main()
