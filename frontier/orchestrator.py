import dataclasses
import threading
import time
from typing import Optional

from frontier.models import CrawlRequest, RequestState, EnqueueResult, RequeueResult
from frontier.normalizer import normalize_url, compute_unique_key
from frontier.storage import RequestStore, InMemoryRequestStore
from harvester.core import BACKOFF_BASE_SECONDS, BACKOFF_MAX_SECONDS, logger


def compute_backoff(retry_count: int, base: float = BACKOFF_BASE_SECONDS, cap: float = BACKOFF_MAX_SECONDS) -> float:
    """Exponential delay before the `retry_count`-th retry (1-based)."""
    if retry_count <= 0:
        return 0.0
    return min(base * 2 ** (retry_count - 1), cap)


class Frontier:
    """
    De-duplicated FIFO of pending CrawlRequests plus retry bookkeeping.
    Every mutation runs under one lock so the unique_key invariant holds
    even if more workers are added later.
    """

    def __init__(self, store: Optional[RequestStore] = None, max_request_retries: int = 3,
                 clock=time.time, backoff_base: float = BACKOFF_BASE_SECONDS,
                 backoff_max: float = BACKOFF_MAX_SECONDS):
        self._store = store if store is not None else InMemoryRequestStore()
        self._max_request_retries = max_request_retries
        self._clock = clock
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._lock = threading.Lock()

    @property
    def max_request_retries(self) -> int:
        return self._max_request_retries

    def enqueue(self, url: str) -> EnqueueResult:
        """
        Deduplication Rule: a unique_key seen in any state (pending, in flight,
        done, dead-lettered) is rejected. This is what stops cyclic pagination.
        """
        try:
            normalized = normalize_url(url)
        except ValueError as e:
            logger.warning(f"enqueue: rejected unparseable URL {url!r}: {e}", extra={'context': 'frontier'})
            return EnqueueResult.INVALID
        request = CrawlRequest(url=normalized, unique_key=compute_unique_key(normalized))

        with self._lock:
            created = self._store.create_if_absent(request)

        if not created:
            logger.debug(f"enqueue: skipped (already seen): {normalized}", extra={'context': 'frontier'})
            return EnqueueResult.DUPLICATE

        logger.info(f"enqueue: queued {normalized}", extra={'context': 'frontier'})
        return EnqueueResult.ACCEPTED

    def dequeue(self) -> Optional[CrawlRequest]:
        """
        PENDING -> RENDERING transition on the head of the queue.
        Returns None when nothing is pending.
        """
        with self._lock:
            request = self._store.pop_next()
            if request is None:
                return None
            request = dataclasses.replace(request, state=RequestState.RENDERING)
            self._store.update(request)
        return request

    def transition(self, request: CrawlRequest, state: RequestState) -> CrawlRequest:
        """Record a non-terminal state change for an in-flight request."""
        updated = dataclasses.replace(request, state=state)
        with self._lock:
            self._store.update(updated)
        return updated

    def requeue_with_backoff(self, request: CrawlRequest, error: Optional[BaseException] = None):
        """
        FAILED -> PENDING when budget remains, else reports EXHAUSTED.
        Returns (RequeueResult, CrawlRequest); the request carries the new retry history.
        """
        message = f"{type(error).__name__}: {error}" if error is not None else "unknown error"
        history = request.error_messages + (message,)

        with self._lock:
            if request.retry_count + 1 > self._max_request_retries:
                failed = dataclasses.replace(request, state=RequestState.FAILED, error_messages=history)
                self._store.update(failed)
                return RequeueResult.EXHAUSTED, failed

            retry_count = request.retry_count + 1
            retried = dataclasses.replace(
                request,
                state=RequestState.PENDING,
                retry_count=retry_count,
                error_messages=history,
                next_attempt_at=self._clock() + compute_backoff(retry_count, self._backoff_base, self._backoff_max),
            )
            self._store.append(retried)

        logger.info(
            f"requeue: {retried.url} retry {retry_count}/{self._max_request_retries}",
            extra={'context': 'frontier'},
        )
        return RequeueResult.ACCEPTED, retried

    def mark_done(self, request: CrawlRequest) -> CrawlRequest:
        done = dataclasses.replace(request, state=RequestState.DONE, next_attempt_at=None)
        with self._lock:
            self._store.update(done)
        return done

    def mark_dead_lettered(self, request: CrawlRequest) -> CrawlRequest:
        """
        FAILED -> DEAD_LETTERED. Idempotent: a request already dead-lettered is returned as stored,
        so the terminal transition happens exactly once.
        """
        with self._lock:
            current = self._store.get(request.unique_key)
            if current is not None and current.state == RequestState.DEAD_LETTERED:
                return current
            dead = dataclasses.replace(request, state=RequestState.DEAD_LETTERED, next_attempt_at=None)
            self._store.update(dead)
        return dead

    def is_empty(self) -> bool:
        with self._lock:
            return self._store.pending_count() == 0

    def get_stats(self):
        with self._lock:
            counts = self._store.counts_by_state()
            pending = self._store.pending_count()
        return {
            "pending": pending,
            "done": counts.get(RequestState.DONE, 0),
            "dead_lettered": counts.get(RequestState.DEAD_LETTERED, 0),
            "seen": sum(counts.values()),
        }
