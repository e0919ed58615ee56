class HarvesterError(Exception):
    """Base harvester exception."""
    pass

class ConfigError(HarvesterError):
    """Raised at startup when the crawl input is missing or invalid. Fatal."""
    pass

class RetryableError(HarvesterError):
    """Failure scoped to one CrawlRequest; the request may be retried."""
    pass

class RenderTimeout(RetryableError):
    """Raised when navigation exceeds the configured timeout."""
    pass

class NavigationError(RetryableError):
    """Raised on browser/navigation failures other than timeouts."""
    pass

class FetchError(RetryableError):
    """Raised when the JSON download fails (network error or non-2xx status)."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code

class DecodeError(RetryableError):
    """Raised when the JSON payload is malformed or lacks a `results` mapping."""
    pass

class RetriesExhausted(HarvesterError):
    """Terminal for a single CrawlRequest; recorded as a DebugRecord, never aborts the crawl."""

    def __init__(self, request):
        super().__init__(f"Retries exhausted for {request.url} after {request.retry_count} retries")
        self.request = request
