"""
Listing Extractor - finds job detail links and inline jobs on a results page
"""

import json
import logging
import re
from typing import Any, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from careerone_scraper.json_walk import get_path
from careerone_scraper.models import JobRecord, Listings
from careerone_scraper.url_builder import BASE_URL

logger = logging.getLogger(__name__)

DETAIL_PATH_PATTERN = re.compile(r"/jobview/")

# Where the search page's client state keeps its job array, most specific first.
STATE_JOB_PATHS = [
    ("props", "pageProps", "searchResults", "jobs"),
    ("props", "pageProps", "initialState", "search", "jobs"),
    ("props", "pageProps", "jobs"),
    ("search", "jobs"),
    ("searchResults", "jobs"),
    ("state", "search", "results"),
    ("data", "search", "jobs"),
]

STATE_ASSIGNMENT_PATTERN = re.compile(
    r"window\.(?:__INITIAL_STATE__|__NUXT__|__APP_STATE__)\s*=\s*(\{.*?\})\s*;?\s*(?:</script>|$)",
    re.DOTALL,
)


def canonical_detail_url(href: Optional[str], page_url: str = BASE_URL) -> Optional[str]:
    """Absolute detail URL with query string and fragment removed."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("javascript:", "mailto:", "#")):
        return None
    absolute = urljoin(page_url, href)
    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https"):
        return None
    if not DETAIL_PATH_PATTERN.search(parsed.path):
        return None
    return urlunparse((parsed.scheme, parsed.netloc, parsed.path, "", "", ""))


def extract_detail_links(soup: BeautifulSoup, page_url: str) -> List[str]:
    """Detail links in first-seen order, each once."""
    urls: List[str] = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        url = canonical_detail_url(anchor.get("href"), page_url)
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


# === Embedded application state ===

def load_embedded_state(soup: BeautifulSoup) -> Optional[Any]:
    """Parse the client-side state blob, if the page ships one."""
    script = soup.find("script", id="__NEXT_DATA__")
    if script is not None:
        raw = script.string or script.get_text() or ""
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("__NEXT_DATA__ present but not valid JSON")

    for script in soup.find_all("script"):
        raw = script.string or ""
        if "window.__" not in raw:
            continue
        match = STATE_ASSIGNMENT_PATTERN.search(raw)
        if not match:
            continue
        try:
            return json.loads(match.group(1))
        except ValueError:
            logger.debug("Embedded state assignment is not plain JSON")
    return None


def find_state_jobs(state: Any) -> List[dict]:
    for path in STATE_JOB_PATHS:
        jobs = get_path(state, path)
        if isinstance(jobs, list) and jobs and any(isinstance(job, dict) for job in jobs):
            return [job for job in jobs if isinstance(job, dict)]
    return []


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        for key in ("name", "label", "title", "display", "text"):
            if isinstance(value.get(key), str):
                return _text(value[key])
        return None
    if isinstance(value, list):
        parts = [_text(item) for item in value]
        joined = ", ".join(part for part in parts if part)
        return joined or None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None


def _first(job: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = _text(job.get(key))
        if value:
            return value
    return None


def state_job_url(job: dict, page_url: str) -> Optional[str]:
    for key in ("url", "job_url", "jobUrl", "link", "href", "seo_url", "slug"):
        url = canonical_detail_url(job.get(key) if isinstance(job.get(key), str) else None, page_url)
        if url:
            return url
    job_id = job.get("id") or job.get("job_id") or job.get("jobId")
    if job_id:
        return f"{BASE_URL}/jobview/{job_id}"
    return None


def state_job_to_record(job: dict, page_url: str) -> Optional[JobRecord]:
    url = state_job_url(job, page_url)
    if not url:
        return None
    return JobRecord(
        url=url,
        title=_first(job, "job_title", "title", "name"),
        company=_first(job, "company_name", "advertiser", "company", "hiringOrganization"),
        location=_first(job, "location_label", "job_location", "location", "suburb"),
        salary=_first(job, "pay_range", "salary_label", "salary"),
        job_type=_first(job, "job_type", "work_type", "employment_type"),
        date_posted=_first(job, "listed_date", "posted_date", "date_posted", "datePosted", "created_at"),
    )


def extract_state_records(soup: BeautifulSoup, page_url: str) -> List[JobRecord]:
    state = load_embedded_state(soup)
    if state is None:
        return []
    records: List[JobRecord] = []
    seen = set()
    for job in find_state_jobs(state):
        record = state_job_to_record(job, page_url)
        if record and record.url not in seen:
            seen.add(record.url)
            records.append(record)
    return records


def extract_listings(html: str, page_url: str, use_embedded_state: bool = True) -> Listings:
    """
    Find the jobs on a results page.

    Embedded state is tried first when enabled because it carries partial
    records without visiting detail pages; link scanning is the fallback.
    A page that matches neither yields empty Listings.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    if use_embedded_state:
        records = extract_state_records(soup, page_url)
        if records:
            logger.debug("Embedded state yielded %s jobs on %s", len(records), page_url)
            return Listings(inline_records=records)

    urls = extract_detail_links(soup, page_url)
    if not urls:
        logger.debug("No detail links found on %s", page_url)
    return Listings(detail_urls=urls)
