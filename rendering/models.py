from dataclasses import dataclass

@dataclass(frozen=True)
class RenderedPage:
    """
    DOM snapshot of one rendered listing page.
    INVARIANT: This object is TRANSIENT. It is consumed by the link extractors
    within the same crawl step and never persisted.
    """
    url: str
    final_url: str
    html: str
    status_code: int = 200
