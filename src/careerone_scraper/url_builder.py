"""
URL Builder - resolves the seed URLs a run starts from
"""

import logging
import re
from typing import Iterable, List, Optional, Union
from urllib.parse import quote, urlencode, urlparse

from careerone_scraper.errors import ConfigurationError

logger = logging.getLogger(__name__)

BASE_URL = "https://www.careerone.com.au"
SEARCH_PATH_TEMPLATE = "/jobs/in-{slug}"
WHOLE_REGION_SLUG = "australia"


def location_slug(location: Optional[str]) -> str:
    """Turn a free-text location into the path slug the site expects."""
    text = (location or "").strip().lower()
    text = re.sub(r"\s+", "-", text)
    text = re.sub(r"[^a-z0-9-]", "", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text or WHOLE_REGION_SLUG


def build_search_url(keyword: Optional[str] = None, location: Optional[str] = None,
                     category: Optional[str] = None) -> str:
    """Build the search-results URL for a keyword/location/category triple"""
    url = BASE_URL + SEARCH_PATH_TEMPLATE.format(slug=location_slug(location))

    params = []
    keyword = (keyword or "").strip()
    category = (category or "").strip()
    if keyword:
        params.append(("keywords", keyword))
    if category:
        params.append(("category", category))
    if params:
        url = f"{url}?{urlencode(params, quote_via=quote)}"
    return url


def _is_absolute_http(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _clean_url(value: Union[str, dict, None]) -> Optional[str]:
    """Accept a plain string or an `{"url": ...}` request object."""
    if isinstance(value, dict):
        value = value.get("url")
    if not isinstance(value, str):
        return None
    url = value.strip()
    if not url:
        return None
    if not _is_absolute_http(url):
        logger.warning("Ignoring malformed start URL: %r", url)
        return None
    return url


def _dedupe_urls(values: Iterable[Union[str, dict]]) -> List[str]:
    urls: List[str] = []
    for value in values:
        url = _clean_url(value)
        if url and url not in urls:
            urls.append(url)
    return urls


def _given(value: Union[str, dict, None]) -> bool:
    """True when an input carries any non-blank URL text, usable or not."""
    if isinstance(value, dict):
        value = value.get("url")
    return isinstance(value, str) and bool(value.strip())


def resolve_seed_urls(url: Optional[str] = None, start_url: Optional[str] = None,
                      start_urls: Optional[list] = None, keyword: Optional[str] = None,
                      location: Optional[str] = None, category: Optional[str] = None) -> List[str]:
    """
    Resolve seed URLs by priority.

    A direct `url` wins over `start_url`, which wins over the `start_urls`
    list, which wins over a URL synthesized from keyword/location/category.
    Blank inputs count as absent. Synthesis only happens when no explicit
    URL text was given; explicit inputs that are all malformed are a
    configuration error.
    """
    direct = _clean_url(url)
    if direct:
        return [direct]

    single = _clean_url(start_url)
    if single:
        return [single]

    if start_urls:
        listed = _dedupe_urls(start_urls)
        if listed:
            return listed

    if not any(_given(value) for value in [url, start_url, *(start_urls or [])]):
        return [build_search_url(keyword, location, category)]

    raise ConfigurationError("No start URL could be resolved from the run input")
