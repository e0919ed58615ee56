from abc import ABC, abstractmethod
from collections import deque, Counter
from typing import Dict, Optional
from frontier.models import CrawlRequest, RequestState

class RequestStore(ABC):
    """
    Abstract interface for frontier request storage.
    Holds every request ever seen (keyed by unique_key) plus the FIFO order of pending ones.
    Callers serialize access; implementations need not lock.
    """

    @abstractmethod
    def create_if_absent(self, request: CrawlRequest) -> bool:
        """
        Store the request and append it to the pending tail ONLY if its unique_key is unseen.
        Returns True if created, False if the key already exists in any state.
        """
        pass

    @abstractmethod
    def append(self, request: CrawlRequest) -> None:
        """Replace an existing request and append it to the pending tail (retry re-entry)."""
        pass

    @abstractmethod
    def pop_next(self) -> Optional[CrawlRequest]:
        """Remove and return the request at the head of the pending order, or None."""
        pass

    @abstractmethod
    def update(self, request: CrawlRequest) -> None:
        """Replace the stored copy of an existing request without touching the order."""
        pass

    @abstractmethod
    def get(self, unique_key: str) -> Optional[CrawlRequest]:
        pass

    @abstractmethod
    def pending_count(self) -> int:
        pass

    @abstractmethod
    def counts_by_state(self) -> Dict[RequestState, int]:
        pass


class InMemoryRequestStore(RequestStore):
    """Process-local store; state is lost when the crawl ends."""

    def __init__(self):
        self._requests: Dict[str, CrawlRequest] = {}
        self._order = deque()

    def create_if_absent(self, request: CrawlRequest) -> bool:
        if request.unique_key in self._requests:
            return False
        self._requests[request.unique_key] = request
        self._order.append(request.unique_key)
        return True

    def append(self, request: CrawlRequest) -> None:
        if request.unique_key not in self._requests:
            raise KeyError(request.unique_key)
        self._requests[request.unique_key] = request
        self._order.append(request.unique_key)

    def pop_next(self) -> Optional[CrawlRequest]:
        if not self._order:
            return None
        return self._requests[self._order.popleft()]

    def update(self, request: CrawlRequest) -> None:
        if request.unique_key not in self._requests:
            raise KeyError(request.unique_key)
        self._requests[request.unique_key] = request

    def get(self, unique_key: str) -> Optional[CrawlRequest]:
        return self._requests.get(unique_key)

    def pending_count(self) -> int:
        return len(self._order)

    def counts_by_state(self) -> Dict[RequestState, int]:
        return dict(Counter(r.state for r in self._requests.values()))
