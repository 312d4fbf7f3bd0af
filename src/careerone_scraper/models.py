"""
Data models for the CareerOne scraper
Defines structure for job records, listings pages, queries and run results
"""

from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from pydantic import BaseModel, Field

SOURCE_NAME = "careerone.com.au"

EXTRACTED_FIELDS = (
    "title",
    "company",
    "location",
    "salary",
    "job_type",
    "date_posted",
    "description_html",
    "description_text",
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    """A single job listing. Only `url` is guaranteed to be set."""

    url: str
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = None
    date_posted: Optional[str] = None
    description_html: Optional[str] = None
    description_text: Optional[str] = None

    # Request context
    keyword: Optional[str] = None
    search_location: Optional[str] = None
    category: Optional[str] = None
    source: str = SOURCE_NAME
    scraped_at: datetime = Field(default_factory=_utc_now)

    def __str__(self) -> str:
        title = self.title or "Untitled"
        if self.company:
            return f"{title} at {self.company}"
        return title

    def missing_fields(self) -> List[str]:
        return [name for name in EXTRACTED_FIELDS if not getattr(self, name)]

    def merge_missing(self, other: "JobRecord") -> "JobRecord":
        """Fill fields that are empty here with values from `other`."""
        for name in EXTRACTED_FIELDS:
            if not getattr(self, name) and getattr(other, name):
                setattr(self, name, getattr(other, name))
        return self

    def with_context(self, query: "SearchQuery") -> "JobRecord":
        self.keyword = query.keyword or None
        self.search_location = query.location or None
        self.category = query.category or None
        return self

    def to_output(self) -> Dict[str, Any]:
        """Serialize for the dataset. Empty fields are omitted, not nulled."""
        payload = self.model_dump(mode="json", exclude_none=True)
        return {k: v for k, v in payload.items() if v != ""}


class Listings(BaseModel):
    """What a results page yields: detail links and/or inline records."""

    detail_urls: List[str] = Field(default_factory=list)
    inline_records: List[JobRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.detail_urls and not self.inline_records

    def all_urls(self) -> List[str]:
        urls = [record.url for record in self.inline_records]
        for url in self.detail_urls:
            if url not in urls:
                urls.append(url)
        return urls


class SearchQuery(BaseModel):
    """Search context attached to every record of a run"""

    keyword: str = ""
    location: str = ""
    category: str = ""

    def __str__(self) -> str:
        label = f"'{self.keyword}'" if self.keyword else "all jobs"
        label += f" in {self.location or 'Australia'}"
        if self.category:
            label += f" ({self.category})"
        return label


class RunResults(BaseModel):
    """Container for everything a run produced"""

    query: SearchQuery
    seeds: List[str]
    records: List[JobRecord]
    total_records: int = 0
    timestamp: datetime = Field(default_factory=_utc_now)
