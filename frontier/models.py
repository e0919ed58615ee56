from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple

class RequestState(Enum):
    PENDING = "PENDING"
    RENDERING = "RENDERING"
    EXTRACTING = "EXTRACTING"
    DONE = "DONE"
    FAILED = "FAILED"
    DEAD_LETTERED = "DEAD_LETTERED"

TERMINAL_STATES = frozenset({RequestState.DONE, RequestState.DEAD_LETTERED})

class EnqueueResult(Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    # URL could not be parsed; nothing was queued
    INVALID = "invalid"

class RequeueResult(Enum):
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"

@dataclass(frozen=True)
class CrawlRequest:
    """
    One unit of crawl work owned by the Frontier.
    Invariants: unique_key is derived from the normalized url and is the primary key;
    retry_count never decreases.
    """
    url: str
    unique_key: str
    retry_count: int = 0
    state: RequestState = RequestState.PENDING
    error_messages: Tuple[str, ...] = field(default_factory=tuple)
    # Epoch seconds before which the request should not be processed again
    next_attempt_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES
