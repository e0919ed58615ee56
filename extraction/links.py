"""
Link extraction from a rendered listing page.
Locates the JSON data-download link and the pagination "next" link.
Both lookups are read-only; None is a normal result, not an error.
"""

from typing import Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from harvester.core import logger
from rendering.models import RenderedPage

# Tried in order; the first usable href wins
JSON_LINK_SELECTORS = (
    'a[download][href$=".json"]',
    'a[href$=".json"]',
    'a[href*=".json?"]',
    'link[type="application/json"][href]',
)

NEXT_LINK_SELECTORS = (
    'link[rel~="next"][href]',
    'a[rel~="next"][href]',
    '.pagination .next a[href]',
    'a.next[href]',
    'li.next a[href]',
)


def _usable_href(href: str) -> bool:
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return False
    try:
        scheme = urlparse(href).scheme.lower()
    except ValueError:
        # e.g. "http://[bad/x": an unparseable host is never followed
        return False
    return scheme not in ("javascript", "mailto", "tel", "data")


def _first_link(page: RenderedPage, selectors: Sequence[str]) -> Optional[str]:
    soup = BeautifulSoup(page.html or "", "html.parser")
    base_url = page.final_url or page.url
    for selector in selectors:
        for tag in soup.select(selector):
            href = tag.get("href")
            if not _usable_href(href):
                continue
            try:
                return urljoin(base_url, href.strip())
            except ValueError:
                logger.debug(f"Skipping unresolvable href {href!r} on {base_url}", extra={'context': 'extraction'})
    return None


def find_json_source_link(page: RenderedPage, selectors: Sequence[str] = JSON_LINK_SELECTORS) -> Optional[str]:
    return _first_link(page, selectors)


def find_next_page_link(page: RenderedPage, selectors: Sequence[str] = NEXT_LINK_SELECTORS) -> Optional[str]:
    """None signals the end of pagination for this branch."""
    return _first_link(page, selectors)
