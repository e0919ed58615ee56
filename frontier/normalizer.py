# URL canonicalization for frontier identity.
# Input: raw URL as found in the input document or on a rendered page
# Output: canonical URL string; normalize_url(normalize_url(u)) == normalize_url(u)

import hashlib
import re
from urllib.parse import urlparse, urlunparse, quote_plus, unquote_plus

import tldextract

# Offline extractor: bundled public suffix snapshot only, never fetched at runtime
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

_SLASH_RUN_RE = re.compile(r"/{2,}")
_TRACKING_PARAM_RE = re.compile(r"^utm_\w+", re.IGNORECASE)
_DEFAULT_PORTS = {"http": "80", "https": "443"}


def _canonical_netloc(scheme: str, netloc: str) -> str:
    netloc = netloc.lower()
    userinfo = ""
    if "@" in netloc:
        userinfo, netloc = netloc.rsplit("@", 1)
        userinfo += "@"

    host, port = netloc, ""
    # Skip IPv6 literals like [::1]:8080 when splitting the port
    if ":" in netloc and not netloc.endswith("]"):
        host, port = netloc.rsplit(":", 1)
    if port and _DEFAULT_PORTS.get(scheme) == port:
        port = ""

    # Only a bare www label in front of the registrable domain is dropped
    ext = _EXTRACT(host)
    if ext.subdomain == "www" and ext.domain and ext.suffix:
        host = host[len("www."):]

    return f"{userinfo}{host}{':' + port if port else ''}"


def _split_query(query: str):
    # A bare key (`?flag`) keeps value None so it is not rewritten to `flag=`
    for part in query.split("&"):
        if not part:
            continue
        if "=" in part:
            key, value = part.split("=", 1)
            yield unquote_plus(key), unquote_plus(value)
        else:
            yield unquote_plus(part), None


def _canonical_query(query: str) -> str:
    if not query:
        return ""
    pairs = [(k, v) for k, v in _split_query(query) if not _TRACKING_PARAM_RE.match(k)]
    pairs.sort(key=lambda kv: (kv[0], kv[1] is not None, kv[1] or ""))
    return "&".join(
        quote_plus(k) if v is None else f"{quote_plus(k)}={quote_plus(v)}"
        for k, v in pairs
    )


def normalize_url(url: str) -> str:
    """
    Canonical form for frontier identity:
    - scheme defaults to http, scheme and host lowercased
    - leading www. and default ports removed
    - duplicate and trailing slashes removed (root path is empty)
    - utm_* parameters dropped, remaining query sorted
    - fragment dropped
    Raises ValueError for URLs urllib cannot parse (e.g. a broken IPv6 host).
    """
    if not url:
        return ""

    url = url.strip()
    if url.startswith("//"):
        url = "http:" + url
    elif "://" not in url:
        url = "http://" + url

    p = urlparse(url)
    scheme = (p.scheme or "http").lower()
    netloc = _canonical_netloc(scheme, p.netloc)

    path = _SLASH_RUN_RE.sub("/", p.path or "").rstrip("/")

    return urlunparse((
        scheme,
        netloc,
        path,
        p.params,
        _canonical_query(p.query),
        "",
    ))


def compute_unique_key(url: str) -> str:
    """De-duplication identity: SHA-256 of the normalized URL."""
    sha = hashlib.sha256()
    sha.update(normalize_url(url).encode("utf-8"))
    return sha.hexdigest()
