"""
Crawl input parsing.
The input document is read once at startup and turned into an immutable CrawlConfig
that is handed to every component's constructor.
"""

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from frontier.normalizer import normalize_url
from harvester.core import DEFAULT_MAX_REQUEST_RETRIES, DEFAULT_MAX_REQUESTS_PER_CRAWL, logger
from harvester.errors import ConfigError


@dataclass(frozen=True)
class ProxyConfig:
    use_managed_proxy: bool = False
    proxy_urls: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CrawlBudget:
    max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES
    max_requests_per_crawl: int = DEFAULT_MAX_REQUESTS_PER_CRAWL


@dataclass(frozen=True)
class CrawlConfig:
    """
    Immutable crawl configuration.
    Invariant: start_urls are normalized and non-empty.
    """
    start_urls: Tuple[str, ...]
    budget: CrawlBudget = field(default_factory=CrawlBudget)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    headless: bool = True
    live_view: bool = False
    players_filter: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    json_link_selectors: Optional[Tuple[str, ...]] = None
    next_link_selectors: Optional[Tuple[str, ...]] = None


def _freeze(value):
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _read_bool(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Attribute {key} must be a boolean, got {value!r}.")
    return value


def _read_int(raw: Dict[str, Any], key: str, default: int, minimum: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"Attribute {key} must be an integer >= {minimum}, got {value!r}.")
    return value


def _read_selectors(raw: Dict[str, Any], key: str) -> Optional[Tuple[str, ...]]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(s, str) and s.strip() for s in value):
        raise ConfigError(f"Attribute {key} must be a list of CSS selectors.")
    return tuple(value)


def _read_start_urls(raw: Dict[str, Any]) -> Tuple[str, ...]:
    sources = raw.get("startUrls")
    if not sources:
        raise ConfigError("Attribute startUrls missing in input.")
    if not isinstance(sources, list):
        raise ConfigError("Attribute startUrls must be a list.")

    urls = []
    for source in sources:
        url = source.get("url") if isinstance(source, dict) else source
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"Invalid start URL entry: {source!r}")
        try:
            urls.append(normalize_url(url))
        except ValueError as e:
            raise ConfigError(f"Invalid start URL {url!r}: {e}") from e
    return tuple(urls)


def _read_proxy(raw: Dict[str, Any]) -> ProxyConfig:
    proxy_raw = raw.get("proxyConfiguration") or {}
    if not isinstance(proxy_raw, dict):
        raise ConfigError("Attribute proxyConfiguration must be an object.")

    # `useApifyProxy` is the key older input documents carry
    use_managed = proxy_raw.get("useManagedProxy", proxy_raw.get("useApifyProxy", False))
    proxy_urls = proxy_raw.get("proxyUrls") or []
    if not isinstance(proxy_urls, list) or not all(isinstance(p, str) for p in proxy_urls):
        raise ConfigError("Attribute proxyConfiguration.proxyUrls must be a list of strings.")

    return ProxyConfig(
        use_managed_proxy=bool(use_managed),
        proxy_urls=tuple(p for p in proxy_urls if p.strip()),
    )


def parse_input(raw: Dict[str, Any]) -> CrawlConfig:
    """
    FLOW: Validates startUrls (fatal when absent) -> Normalizes them -> Applies defaults
    for budget/rendering options -> Freezes the filter criteria.
    """
    if not isinstance(raw, dict):
        raise ConfigError("Input must be a JSON object.")

    players_filter = raw.get("playersFilter") or {}
    if not isinstance(players_filter, dict):
        raise ConfigError("Attribute playersFilter must be an object.")

    config = CrawlConfig(
        start_urls=_read_start_urls(raw),
        budget=CrawlBudget(
            max_request_retries=_read_int(raw, "maxRequestRetries", DEFAULT_MAX_REQUEST_RETRIES, 0),
            max_requests_per_crawl=_read_int(raw, "maxRequestsPerCrawl", DEFAULT_MAX_REQUESTS_PER_CRAWL, 1),
        ),
        proxy=_read_proxy(raw),
        headless=_read_bool(raw, "headless", True),
        live_view=_read_bool(raw, "liveView", False),
        players_filter=_freeze(copy.deepcopy(players_filter)),
        json_link_selectors=_read_selectors(raw, "jsonLinkSelectors"),
        next_link_selectors=_read_selectors(raw, "nextLinkSelectors"),
    )
    logger.info(
        f"Loaded input: {len(config.start_urls)} start URL(s), "
        f"maxRequestRetries={config.budget.max_request_retries}, "
        f"maxRequestsPerCrawl={config.budget.max_requests_per_crawl}, "
        f"managedProxy={config.proxy.use_managed_proxy}, proxyPool={len(config.proxy.proxy_urls)}",
        extra={'context': 'config'},
    )
    return config


def load_config(path) -> CrawlConfig:
    """Read and parse the input document at `path`."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Input file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Input file {path} is not valid JSON: {e}") from e
    return parse_input(raw)
