"""
FILE DESCRIPTION: Crawl orchestration for paginated listing sites.
KEY FUNCTIONS/CLASSES: CrawlLoop, CrawlStats, create_debug_record
"""

import random
import time
from dataclasses import dataclass, field
from typing import Optional

from extraction.filters import filter_records
from extraction.links import find_json_source_link, find_next_page_link, JSON_LINK_SELECTORS, NEXT_LINK_SELECTORS
from frontier.models import CrawlRequest, RequestState, EnqueueResult, RequeueResult
from frontier.orchestrator import Frontier
from harvester.config import CrawlConfig
from harvester.core import SETTLE_DELAY_RANGE, logger
from harvester.errors import RetriesExhausted, RetryableError
from harvester.fetcher import RecordFetcher
from harvester.identity import IdentityManager
from harvester.sink import DatasetSink, DEBUG_KEY


@dataclass
class CrawlStats:
    done: int = 0
    dead_lettered: int = 0
    failed_attempts: int = 0
    records_emitted: int = 0
    records_rejected: int = 0
    pages_without_json: int = 0
    next_links_enqueued: int = 0
    next_links_duplicate: int = 0
    next_links_invalid: int = 0
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def finished_requests(self) -> int:
        return self.done + self.dead_lettered

    @property
    def duration(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at


def create_debug_record(exhausted: RetriesExhausted) -> dict:
    """Diagnostics written once for a dead-lettered request."""
    request = exhausted.request
    return {
        DEBUG_KEY: {
            "uniqueKey": request.unique_key,
            "url": request.url,
            "method": "GET",
            "retryCount": request.retry_count,
            "errorMessages": list(request.error_messages),
        }
    }


class CrawlLoop:
    """
    FLOW: Seeds the frontier -> Dequeues one request at a time -> Renders it with a fresh identity ->
    Waits a random settle delay -> Extracts the JSON and next-page links -> Downloads, filters and emits
    records -> Enqueues the next page -> Marks the request done.
    Any per-request failure becomes a retry or a dead-letter; the loop itself never dies on one.
    """

    def __init__(self, config: CrawlConfig, frontier: Frontier, renderer, sink: DatasetSink,
                 fetcher: Optional[RecordFetcher] = None, identity_manager: Optional[IdentityManager] = None,
                 sleep=None, clock=None, rng: Optional[random.Random] = None):
        self.config = config
        self.frontier = frontier
        self.renderer = renderer
        self.sink = sink
        self.fetcher = fetcher or RecordFetcher()
        self.identity_manager = identity_manager or IdentityManager(config.proxy, headless=config.headless)
        self._sleep = sleep or time.sleep
        self._clock = clock or time.time
        self._rng = rng or random.Random()
        self._json_selectors = config.json_link_selectors or JSON_LINK_SELECTORS
        self._next_selectors = config.next_link_selectors or NEXT_LINK_SELECTORS
        self.stats = CrawlStats(started_at=self._clock())

    def log(self, level, msg, exc_info=False):
        getattr(logger, level)(msg, extra={'context': 'crawl'}, exc_info=exc_info)

    def seed(self) -> int:
        accepted = 0
        for url in self.config.start_urls:
            if self.frontier.enqueue(url) == EnqueueResult.ACCEPTED:
                accepted += 1
        self.log("info", f"Seeded frontier with {accepted} of {len(self.config.start_urls)} start URL(s)")
        return accepted

    def budget_exhausted(self) -> bool:
        return self.stats.finished_requests >= self.config.budget.max_requests_per_crawl

    def run(self) -> CrawlStats:
        self.seed()

        while True:
            if self.budget_exhausted():
                self.log("info", f"Request budget reached ({self.config.budget.max_requests_per_crawl}); stopping")
                break

            request = self.frontier.dequeue()
            if request is None:
                self.log("info", "Frontier empty; pagination exhausted")
                break

            self._wait_for_backoff(request)
            self.process(request)

        self.stats.finished_at = self._clock()
        self.log(
            "info",
            f"Crawl finished: done={self.stats.done} dead_lettered={self.stats.dead_lettered} "
            f"failed_attempts={self.stats.failed_attempts} records={self.stats.records_emitted} "
            f"rejected={self.stats.records_rejected} duration={self.stats.duration:.1f}s",
        )
        return self.stats

    def _wait_for_backoff(self, request: CrawlRequest) -> None:
        if request.next_attempt_at is None:
            return
        remaining = request.next_attempt_at - self._clock()
        if remaining > 0:
            self.log("info", f"Backing off {remaining:.1f}s before retry {request.retry_count} of {request.url}")
            self._sleep(remaining)

    def process(self, request: CrawlRequest) -> None:
        """Runs one request to DONE, or converts its failure into a retry/dead-letter decision."""
        try:
            self._handle_request(request)
        except Exception as e:
            self._handle_failure(request, e)

    def _handle_request(self, request: CrawlRequest) -> None:
        identity = self.identity_manager.choose()
        self.log("info", f"Rendering {request.url} (attempt {request.retry_count + 1}, proxy={'yes' if identity.proxy_url else 'no'})")

        page = self.renderer.render(request.url, identity)

        # Throttle the request rate to the target site
        self._sleep(self._rng.uniform(*SETTLE_DELAY_RANGE))

        request = self.frontier.transition(request, RequestState.EXTRACTING)

        accepted = []
        json_url = find_json_source_link(page, self._json_selectors)
        if json_url:
            records = self.fetcher.fetch_records(json_url, identity)
            accepted = filter_records(records, self.config.players_filter)
            self.stats.records_rejected += len(records) - len(accepted)
        else:
            self.stats.pages_without_json += 1
            self.log("info", f"No JSON source link on {request.url}")

        next_url = find_next_page_link(page, self._next_selectors)

        self.sink.push_many(accepted)
        self.stats.records_emitted += len(accepted)

        if next_url:
            result = self.frontier.enqueue(next_url)
            if result == EnqueueResult.ACCEPTED:
                self.stats.next_links_enqueued += 1
            elif result == EnqueueResult.INVALID:
                self.stats.next_links_invalid += 1
            else:
                self.stats.next_links_duplicate += 1
                self.log("info", f"Next page {next_url} already seen; not following")
        else:
            self.log("info", f"No next page link on {request.url}")

        self.frontier.mark_done(request)
        self.stats.done += 1
        self.log("info", f"Done {request.url}: {len(accepted)} record(s) accepted")

    def _handle_failure(self, request: CrawlRequest, error: Exception) -> None:
        self.stats.failed_attempts += 1
        retryable = isinstance(error, RetryableError)
        self.log(
            "warning",
            f"Request {request.url} failed (retry_count={request.retry_count}, "
            f"{'retryable' if retryable else 'unexpected'}): {type(error).__name__}: {error}",
            exc_info=not retryable,
        )

        result, failed = self.frontier.requeue_with_backoff(request, error)
        if result == RequeueResult.ACCEPTED:
            return

        dead = self.frontier.mark_dead_lettered(failed)
        self.stats.dead_lettered += 1
        exhausted = RetriesExhausted(dead)
        self.log("error", str(exhausted))
        try:
            self.sink.push(create_debug_record(exhausted))
        except Exception:
            self.log("error", f"Failed to write debug record for {dead.url}", exc_info=True)
