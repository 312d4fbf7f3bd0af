"""
Static pages, config builders and fake fetchers shared by the test modules.
"""

import json
import threading
from typing import Callable, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

from careerone_scraper.config_loader import ConfigLoader
from careerone_scraper.errors import FetchError
from careerone_scraper.fetcher import FetchedPage

BASE = "https://www.careerone.com.au"


def make_config(input_overrides: Optional[dict] = None, **sections) -> ConfigLoader:
    data = {
        "input": {
            "keyword": "data analyst",
            "location": "Melbourne",
            "results_wanted": 100,
            "max_pages": 5,
            "collectDetails": True,
            "dedupe": True,
        },
        "crawler": {
            "fetcher": "http",
            "max_concurrency": 3,
            "embedded_state": True,
            "max_empty_pages": 1,
        },
        "browser": {"min_delay": 0, "max_delay": 0, "max_retries": 2},
        "output": {"markdown": False, "use_timestamp": False},
    }
    data["input"].update(input_overrides or {})
    for name, values in sections.items():
        data.setdefault(name, {}).update(values)
    return ConfigLoader.from_dict(data)


def detail_url(n: int) -> str:
    return f"{BASE}/jobview/data-analyst-{n}/{1000 + n}"


def results_html(numbers: List[int], next_href: Optional[str] = None) -> str:
    links = "\n".join(
        f'<div class="card"><a href="/jobview/data-analyst-{n}/{1000 + n}?ref=search">Data Analyst {n}</a></div>'
        for n in numbers
    )
    nav = f'<nav><a rel="next" href="{next_href}">NEXT</a></nav>' if next_href else ""
    return f"<html><head><title>Jobs</title></head><body><main>{links}</main>{nav}</body></html>"


def detail_html(n: int, salary: bool = True) -> str:
    posting = {
        "@context": "https://schema.org",
        "@type": "JobPosting",
        "title": f"Data Analyst {n}",
        "hiringOrganization": {"@type": "Organization", "name": f"Company {n}"},
        "jobLocation": {
            "@type": "Place",
            "address": {"addressLocality": "Melbourne", "addressRegion": "VIC", "addressCountry": "AU"},
        },
        "datePosted": "2024-05-01",
        "employmentType": "FULL_TIME",
        "description": "<p>Analyse data and build dashboards for the team.</p>",
    }
    if salary:
        posting["baseSalary"] = {
            "@type": "MonetaryAmount",
            "currency": "AUD",
            "value": {"@type": "QuantitativeValue", "minValue": 80000, "maxValue": 100000, "unitText": "YEAR"},
        }
    return (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(posting)}</script>'
        f"</head><body><h1>Data Analyst {n}</h1></body></html>"
    )


def page_number(url: str) -> int:
    values = parse_qs(urlparse(url).query).get("page")
    return int(values[0]) if values else 1


PageSource = Union[Dict[str, str], Callable[[str], Optional[str]]]


class FakeFetcher:
    """Serves canned HTML and records every URL it was asked for."""

    def __init__(self, pages: PageSource, log: Optional[list] = None):
        self.pages = pages
        self.calls = log if log is not None else []
        self.blocked_retries = 0
        self.closed = False

    def _lookup(self, url: str) -> Optional[str]:
        if callable(self.pages):
            return self.pages(url)
        return self.pages.get(url)

    def fetch(self, url: str, wait_for: Optional[str] = None) -> FetchedPage:
        self.calls.append(url)
        html = self._lookup(url)
        if html is None:
            raise FetchError(url, "HTTP 404")
        return FetchedPage(url=url, html=html, status=200)

    def close(self) -> None:
        self.closed = True


class FakeFetcherFactory:
    """Builds one FakeFetcher per worker thread, all sharing one call log."""

    def __init__(self, pages: PageSource):
        self.pages = pages
        self.calls: List[str] = []
        self.created: List[FakeFetcher] = []
        self._lock = threading.Lock()

    def __call__(self) -> FakeFetcher:
        fetcher = FakeFetcher(self.pages, log=self.calls)
        with self._lock:
            self.created.append(fetcher)
        return fetcher

    def detail_calls(self) -> List[str]:
        return [url for url in self.calls if "/jobview/" in url]

    def listing_calls(self) -> List[str]:
        return [url for url in self.calls if "/jobview/" not in url]
