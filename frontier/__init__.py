from frontier.models import CrawlRequest, RequestState, EnqueueResult, RequeueResult
from frontier.normalizer import normalize_url, compute_unique_key
from frontier.storage import RequestStore, InMemoryRequestStore
from frontier.sqlite_storage import SQLiteRequestStore
from frontier.orchestrator import Frontier, compute_backoff
