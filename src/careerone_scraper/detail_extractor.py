"""
Detail Extractor - builds a JobRecord from a job detail page

Extraction runs as an ordered cascade of strategies. Each strategy reads the
parsed page and returns whatever fields it found; a field is only taken from
a strategy when every earlier strategy left it empty.
"""

import html as html_lib
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from bs4 import BeautifulSoup, Tag

from careerone_scraper.json_walk import find_first
from careerone_scraper.models import EXTRACTED_FIELDS, JobRecord

logger = logging.getLogger(__name__)

DESCRIPTION_MIN_CHARS = 30
DESCRIPTION_MAX_ELEMENTS = 80
SIBLING_MIN_CHARS = 50
SIBLING_MAX_ELEMENTS = 20

DESCRIPTION_CONTAINER_SELECTORS = [
    "[data-testid='job-description']",
    "#job-description",
    ".job-description",
    "[class*='JobDescription']",
    "[class*='job-description']",
    "[class*='jobDescription']",
]
DESCRIPTION_FALLBACK_SELECTORS = ["[role='main']", "main", "article", "body"]
JOB_TYPE_SELECTORS = [
    "[data-testid*='job-type']",
    "[data-testid*='work-type']",
    "[class*='job-type']",
    "[class*='jobType']",
    "[class*='work-type']",
]

DATE_POSTED_PATTERNS = [
    re.compile(r"Date posted[:\s]*([^\n]+)", re.IGNORECASE),
    re.compile(r"Posted[:\s]*([^\n]+)", re.IGNORECASE),
]
SALARY_TEXT_PATTERN = re.compile(
    r"([$£€])\s?(\d[\d,]*(?:\.\d+)?)"
    r"(?:\s*(?:-|–|to)\s*[$£€]?\s?(\d[\d,]*(?:\.\d+)?))?"
    r"\s*(?:an?|per|/)?\s*(hour|hr|year|yr|annum|month|week|day)\b",
    re.IGNORECASE,
)

CURRENCY_SYMBOLS = {
    "AUD": "$",
    "USD": "$",
    "NZD": "$",
    "CAD": "$",
    "GBP": "£",
    "EUR": "€",
}

JOB_TYPE_MAP = {
    "full-time": "Full-time",
    "fulltime": "Full-time",
    "part-time": "Part-time",
    "parttime": "Part-time",
    "contract": "Contract",
    "contractor": "Contract",
    "temporary": "Temporary",
    "temp": "Temporary",
    "casual": "Casual",
    "intern": "Internship",
    "internship": "Internship",
    "seasonal": "Seasonal",
    "apprenticeship": "Apprenticeship",
    "volunteer": "Volunteer",
}

Fields = Dict[str, Optional[str]]


@dataclass
class DetailPage:
    """A detail page parsed once and shared by every strategy."""
    url: str
    soup: BeautifulSoup

    @property
    def text(self) -> str:
        body = self.soup.body or self.soup
        return body.get_text("\n")


# === Text helpers ===

def clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    return text or None


def html_to_text(markup: Optional[str]) -> Optional[str]:
    """Strip all markup and collapse whitespace runs to single spaces."""
    if not markup:
        return None
    soup = BeautifulSoup(markup, "html.parser")
    return clean_text(soup.get_text(" "))


def _element_text(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    return clean_text(element.get_text(" "))


# === Normalizers ===

def normalize_salary_unit(unit: Optional[str]) -> Optional[str]:
    if not unit:
        return None
    unit_lower = unit.strip().lower()
    if unit_lower in ("yr", "year", "annum", "annual", "yearly"):
        return "year"
    if unit_lower in ("hr", "hour", "hourly"):
        return "hour"
    if unit_lower in ("month", "monthly"):
        return "month"
    if unit_lower in ("week", "weekly"):
        return "week"
    if unit_lower in ("day", "daily"):
        return "day"
    return unit_lower


def _format_amount(value: Any, symbol: str) -> Optional[str]:
    try:
        number = float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return None
    if number.is_integer():
        return f"{symbol}{int(number):,}"
    return f"{symbol}{number:,.2f}"


def format_salary(currency: Optional[str], min_value: Any = None, max_value: Any = None,
                  unit: Optional[str] = None) -> Optional[str]:
    """e.g. ("AUD", 80000, 100000, "YEAR") -> "$80,000 - $100,000 per year"."""
    code = (currency or "").strip().upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} " if code else "$")

    min_text = _format_amount(min_value, symbol) if min_value not in (None, "") else None
    max_text = _format_amount(max_value, symbol) if max_value not in (None, "") else None
    if min_text and max_text and min_text != max_text:
        salary = f"{min_text} - {max_text}"
    else:
        salary = min_text or max_text
    if not salary:
        return None

    unit_norm = normalize_salary_unit(unit)
    if unit_norm:
        salary = f"{salary} per {unit_norm}"
    return salary


def normalize_job_type(value: Any) -> Optional[str]:
    if isinstance(value, list):
        labels: List[str] = []
        for entry in value:
            label = normalize_job_type(entry)
            if label and label not in labels:
                labels.append(label)
        return ", ".join(labels) or None
    if not value:
        return None
    normalized = str(value).strip().replace("_", "-").replace(" ", "-").lower()
    if normalized in JOB_TYPE_MAP:
        return JOB_TYPE_MAP[normalized]
    return clean_text(normalized.replace("-", " ").title())


# === Strategy 1: JSON-LD JobPosting ===

def is_job_posting(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    node_type = node.get("@type")
    types = node_type if isinstance(node_type, list) else [node_type]
    for entry in types:
        if not isinstance(entry, str):
            continue
        if entry == "JobPosting" or "jobposting" in entry.lower():
            return True
    return False


def load_json_ld_blocks(soup: BeautifulSoup) -> List[Any]:
    blocks = []
    for script in soup.find_all("script", type=re.compile(r"application/ld\+json", re.I)):
        raw = (script.string or script.get_text() or "").strip()
        if not raw:
            continue
        try:
            blocks.append(json.loads(raw))
        except ValueError:
            # Some sites leave raw control characters inside strings
            try:
                blocks.append(json.loads(raw, strict=False))
            except ValueError:
                logger.debug("Skipping unparseable JSON-LD block")
    return blocks


def find_job_posting(soup: BeautifulSoup) -> Optional[dict]:
    for block in load_json_ld_blocks(soup):
        posting = find_first(block, is_job_posting)
        if posting is not None:
            return posting
    return None


def _name_of(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, dict):
        return clean_text(value.get("name") or value.get("legalName"))
    if isinstance(value, list):
        for entry in value:
            name = _name_of(entry)
            if name:
                return name
    return None


def format_address(location: Any) -> Optional[str]:
    if isinstance(location, list):
        for entry in location:
            formatted = format_address(entry)
            if formatted:
                return formatted
        return None
    if isinstance(location, str):
        return clean_text(location)
    if not isinstance(location, dict):
        return None

    address = location.get("address", location)
    if isinstance(address, str):
        return clean_text(address)
    if not isinstance(address, dict):
        return None

    parts = []
    for key in ("streetAddress", "addressLocality", "addressRegion", "postalCode", "addressCountry"):
        value = address.get(key)
        text = _name_of(value) if isinstance(value, dict) else clean_text(value)
        if text:
            parts.append(text)
    return ", ".join(parts) or None


def format_base_salary(base_salary: Any) -> Optional[str]:
    if base_salary is None:
        return None
    if isinstance(base_salary, (str, int, float)):
        if isinstance(base_salary, str):
            return clean_text(base_salary)
        return format_salary(None, base_salary)
    if isinstance(base_salary, list):
        for entry in base_salary:
            formatted = format_base_salary(entry)
            if formatted:
                return formatted
        return None
    if not isinstance(base_salary, dict):
        return None

    currency = base_salary.get("currency")
    value = base_salary.get("value")
    unit = base_salary.get("unitText")
    if isinstance(value, dict):
        currency = value.get("currency") or currency
        unit = value.get("unitText") or unit
        min_value = value.get("minValue")
        max_value = value.get("maxValue")
        if min_value is None and max_value is None:
            min_value = value.get("value")
        return format_salary(currency, min_value, max_value, unit)
    if isinstance(value, str) and not re.search(r"\d", value):
        return clean_text(value)
    if value is not None:
        return format_salary(currency, value, None, unit)
    return format_salary(currency, base_salary.get("minValue"), base_salary.get("maxValue"), unit)


def _description_markup(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    markup = value.strip()
    if "<" not in markup and "&lt;" in markup:
        markup = html_lib.unescape(markup)
    return markup


def extract_from_json_ld(page: DetailPage) -> Fields:
    posting = find_job_posting(page.soup)
    if posting is None:
        return {}
    return {
        "title": clean_text(posting.get("title") or posting.get("name")),
        "company": _name_of(posting.get("hiringOrganization")),
        "location": format_address(posting.get("jobLocation")),
        "salary": format_base_salary(posting.get("baseSalary")),
        "job_type": normalize_job_type(posting.get("employmentType")),
        "date_posted": clean_text(posting.get("datePosted")),
        "description_html": _description_markup(posting.get("description")),
    }


# === Strategy 2: site markup by structural position ===

def extract_from_markup(page: DetailPage) -> Fields:
    soup = page.soup
    heading_links = soup.select("h2 a")
    fields: Fields = {
        "title": _element_text(soup.find("h1")),
        "company": _element_text(heading_links[0]) if heading_links else None,
        "location": _element_text(heading_links[1]) if len(heading_links) > 1 else None,
    }

    for selector in DESCRIPTION_CONTAINER_SELECTORS:
        container = soup.select_one(selector)
        if container is not None and _element_text(container):
            fields["description_html"] = container.decode_contents().strip()
            break

    for selector in JOB_TYPE_SELECTORS:
        job_type = normalize_job_type(_element_text(soup.select_one(selector)))
        if job_type:
            fields["job_type"] = job_type
            break

    return fields


def extract_heading_siblings(page: DetailPage) -> Fields:
    """Blocks that follow the company heading carry the job body."""
    heading = page.soup.find("h2")
    if heading is None:
        return {}
    chunks = []
    for sibling in heading.find_next_siblings():
        text = _element_text(sibling)
        if text and len(text) > SIBLING_MIN_CHARS:
            chunks.append(str(sibling))
        if len(chunks) >= SIBLING_MAX_ELEMENTS:
            break
    return {"description_html": "<br>".join(chunks) or None}


# === Strategy 3: text heuristics ===

def extract_from_text(page: DetailPage) -> Fields:
    text = page.text
    fields: Fields = {}

    for pattern in DATE_POSTED_PATTERNS:
        match = pattern.search(text)
        if match:
            date_posted = clean_text(match.group(1))
            if date_posted:
                fields["date_posted"] = date_posted
                break

    match = SALARY_TEXT_PATTERN.search(text)
    if match:
        symbol, min_raw, max_raw, unit = match.groups()
        currency = {"£": "GBP", "€": "EUR"}.get(symbol)
        fields["salary"] = format_salary(currency, min_raw, max_raw, unit)

    return fields


# === Strategy 4: generic description fallback ===

def _inside_any(element: Tag, collected_ids: Set[int]) -> bool:
    # bs4 compares tags by markup, so containment is checked by identity
    return any(id(parent) in collected_ids for parent in element.parents)


def extract_description_fallback(page: DetailPage) -> Fields:
    for selector in DESCRIPTION_FALLBACK_SELECTORS:
        container = page.soup.select_one(selector)
        if container is None:
            continue
        collected: List[Tag] = []
        collected_ids: Set[int] = set()
        for element in container.find_all(["p", "li", "div"]):
            if _inside_any(element, collected_ids):
                continue
            text = _element_text(element)
            if not text or len(text) <= DESCRIPTION_MIN_CHARS:
                continue
            collected.append(element)
            collected_ids.add(id(element))
            if len(collected) >= DESCRIPTION_MAX_ELEMENTS:
                break
        if collected:
            return {"description_html": "\n".join(str(element) for element in collected)}
    return {}


STRATEGIES: List[Callable[[DetailPage], Fields]] = [
    extract_from_json_ld,
    extract_from_markup,
    extract_heading_siblings,
    extract_from_text,
    extract_description_fallback,
]


def extract_detail(html: str, url: str,
                   strategies: Optional[List[Callable[[DetailPage], Fields]]] = None) -> JobRecord:
    """Build a record for `url`; missing fields stay None, nothing raises for absence."""
    page = DetailPage(url=url, soup=BeautifulSoup(html or "", "html.parser"))
    found: Fields = {}

    for strategy in strategies or STRATEGIES:
        if all(found.get(name) for name in EXTRACTED_FIELDS if name != "description_text"):
            break
        try:
            fields = strategy(page)
        except Exception as exc:
            logger.debug("Strategy %s failed on %s: %s", strategy.__name__, url, exc)
            continue
        for name, value in fields.items():
            if value and not found.get(name):
                found[name] = value

    found["description_text"] = html_to_text(found.get("description_html"))
    return JobRecord(url=url, **{k: v for k, v in found.items() if k in EXTRACTED_FIELDS})
