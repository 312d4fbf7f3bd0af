"""
Paginator - decides whether to fetch another results page and where it is
"""

import logging
import re
from typing import Callable, List, Optional
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

NEXT_TEXT_SYNONYMS = {"next", "next page", "next »", "next ›", "next >", "›", "»", ">", ">>"}


def with_page_param(url: str, page: int) -> str:
    """Return `url` with its `page` query parameter set to `page`."""
    parsed = urlparse(url)
    params = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "page"]
    params.append(("page", str(page)))
    return urlunparse(parsed._replace(query=urlencode(params, quote_via=quote)))


def _is_disabled(element: Tag) -> bool:
    aria_disabled = (element.get("aria-disabled") or "").lower()
    if aria_disabled in ("true", "disabled") or element.has_attr("disabled"):
        return True
    classes = element.get("class") or []
    return any(cls.lower() == "disabled" for cls in classes)


def _resolve(element: Optional[Tag], current_url: str) -> Optional[str]:
    if element is None or _is_disabled(element):
        return None
    href = (element.get("href") or "").strip()
    if not href or href.startswith(("#", "javascript:")):
        return None
    return urljoin(current_url, href)


def _rel_next(soup: BeautifulSoup, current_url: str) -> Optional[str]:
    for element in soup.find_all(["a", "link"], href=True):
        rel = element.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "next" in [value.lower() for value in rel]:
            url = _resolve(element, current_url)
            if url:
                return url
    return None


def _next_text_link(soup: BeautifulSoup, current_url: str) -> Optional[str]:
    for anchor in soup.find_all("a", href=True):
        label = re.sub(r"\s+", " ", anchor.get_text(" ")).strip().lower()
        aria_label = (anchor.get("aria-label") or "").strip().lower()
        if label in NEXT_TEXT_SYNONYMS or aria_label in ("next", "next page"):
            url = _resolve(anchor, current_url)
            if url:
                return url
    return None


def next_page(html: str, current_url: str, page_no: int, saved_count: int,
              results_wanted: int, max_pages: int) -> Optional[str]:
    """
    URL of the page after `page_no`, or None when pagination should stop.

    Stops once the results budget or the page ceiling is reached. Otherwise
    prefers a rel="next" link, then a link labelled like "Next", then the
    current URL with `page` set to page_no + 1. A candidate that resolves to
    the current URL is skipped so a site ignoring the parameter cannot loop.
    """
    if saved_count >= results_wanted:
        logger.debug("Results budget reached (%s/%s); not paginating", saved_count, results_wanted)
        return None
    if page_no >= max_pages:
        logger.debug("Page ceiling reached (%s/%s); not paginating", page_no, max_pages)
        return None

    soup = BeautifulSoup(html or "", "html.parser")
    strategies: List[Callable[[], Optional[str]]] = [
        lambda: _rel_next(soup, current_url),
        lambda: _next_text_link(soup, current_url),
        lambda: with_page_param(current_url, page_no + 1),
    ]
    for strategy in strategies:
        candidate = strategy()
        if candidate and candidate != current_url:
            return candidate

    logger.info("No distinct next page found after page %s of %s", page_no, current_url)
    return None
