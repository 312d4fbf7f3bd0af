"""
Tests for detail-page extraction.

Covers the JSON-LD path, markup fallbacks, salary/job type normalization
and the generic description fallback.
"""

import json

import pytest

from careerone_scraper.detail_extractor import (
    DESCRIPTION_MAX_ELEMENTS,
    extract_detail,
    format_address,
    format_base_salary,
    format_salary,
    html_to_text,
    is_job_posting,
    normalize_job_type,
)
from helpers import detail_url

URL = detail_url(1)


def json_ld_page(payload) -> str:
    return (
        f'<html><head><script type="application/ld+json">{json.dumps(payload)}</script></head>'
        "<body><h1>Ignored heading</h1></body></html>"
    )


@pytest.mark.unit
class TestNormalizers:
    """Test salary, job type and address normalization."""

    def test_salary_range(self):
        assert format_salary("AUD", 80000, 100000, "YEAR") == "$80,000 - $100,000 per year"

    def test_salary_single_value_hourly(self):
        assert format_salary("AUD", 35.5, None, "HOUR") == "$35.50 per hour"

    def test_salary_same_min_and_max(self):
        assert format_salary("GBP", 50000, 50000, "annum") == "£50,000 per year"

    def test_salary_unknown_currency_uses_code(self):
        assert format_salary("JPY", 5000000) == "JPY 5,000,000"

    def test_salary_nothing_usable(self):
        assert format_salary("AUD", None, None, "YEAR") is None
        assert format_salary("AUD", "competitive") is None

    def test_base_salary_variants(self):
        nested = {"currency": "AUD", "value": {"minValue": 80000, "maxValue": 100000, "unitText": "YEAR"}}
        assert format_base_salary(nested) == "$80,000 - $100,000 per year"
        assert format_base_salary({"currency": "AUD", "value": 45, "unitText": "HOUR"}) == "$45 per hour"
        assert format_base_salary("Competitive package") == "Competitive package"
        assert format_base_salary([None, {"value": {"value": 70000}}]) == "$70,000"
        assert format_base_salary(None) is None

    def test_job_type(self):
        assert normalize_job_type("FULL_TIME") == "Full-time"
        assert normalize_job_type("part time") == "Part-time"
        assert normalize_job_type(["FULL_TIME", "CONTRACTOR"]) == "Full-time, Contract"
        assert normalize_job_type("OTHER") == "Other"
        assert normalize_job_type(None) is None

    def test_address_parts_joined(self):
        location = {
            "@type": "Place",
            "address": {
                "streetAddress": "1 Collins St",
                "addressLocality": "Melbourne",
                "addressRegion": "VIC",
                "postalCode": "3000",
                "addressCountry": {"@type": "Country", "name": "AU"},
            },
        }
        assert format_address(location) == "1 Collins St, Melbourne, VIC, 3000, AU"
        assert format_address([{}, {"address": "Remote"}]) == "Remote"

    def test_is_job_posting(self):
        assert is_job_posting({"@type": "JobPosting"})
        assert is_job_posting({"@type": ["Thing", "schema:JobPosting"]})
        assert not is_job_posting({"@type": "Organization"})
        assert not is_job_posting(["JobPosting"])

    def test_html_to_text(self):
        assert html_to_text("<p>Hello <b>world</b></p>\n\n<ul><li>one</li></ul>") == "Hello world one"
        assert html_to_text("") is None


@pytest.mark.scraper
@pytest.mark.unit
class TestExtractDetail:
    """Test the full extraction cascade."""

    def test_json_ld_page(self, sample_detail_html):
        record = extract_detail(sample_detail_html, URL)

        assert record.url == URL
        assert record.title == "Data Analyst 1"
        assert record.company == "Company 1"
        assert record.location == "Melbourne, VIC, AU"
        assert record.salary == "$80,000 - $100,000 per year"
        assert record.job_type == "Full-time"
        assert record.date_posted == "2024-05-01"
        assert record.description_html == "<p>Analyse data and build dashboards for the team.</p>"
        assert record.description_text == "Analyse data and build dashboards for the team."

    def test_job_posting_nested_in_graph(self):
        payload = {"@context": "https://schema.org", "@graph": [
            {"@type": "WebPage", "name": "Job"},
            {"@type": "JobPosting", "title": "Chef", "hiringOrganization": "Harbour Bistro"},
        ]}
        record = extract_detail(json_ld_page(payload), URL)
        assert record.title == "Chef"
        assert record.company == "Harbour Bistro"

    def test_escaped_description_unescaped(self):
        payload = {"@type": "JobPosting", "title": "Chef", "description": "&lt;p&gt;Cook great food&lt;/p&gt;"}
        record = extract_detail(json_ld_page(payload), URL)
        assert record.description_html == "<p>Cook great food</p>"
        assert record.description_text == "Cook great food"

    def test_markup_fallback_without_json_ld(self):
        html = """
        <html><body>
          <h1> Warehouse Operator </h1>
          <h2><a href="/company/1">Logistics Co</a> <a href="/jobs/in-geelong">Geelong VIC</a></h2>
          <span class="job-type-badge">Casual</span>
          <div data-testid="job-description"><p>Pick and pack orders across two shifts.</p></div>
          <p>Posted: 3 days ago</p>
          <p>Pay $32 - $36 per hour plus penalties</p>
        </body></html>
        """
        record = extract_detail(html, URL)

        assert record.title == "Warehouse Operator"
        assert record.company == "Logistics Co"
        assert record.location == "Geelong VIC"
        assert record.job_type == "Casual"
        assert record.description_html == "<p>Pick and pack orders across two shifts.</p>"
        assert record.date_posted == "3 days ago"
        assert record.salary == "$32 - $36 per hour"

    def test_json_ld_values_take_precedence(self):
        payload = {"@type": "JobPosting", "title": "From JSON-LD"}
        record = extract_detail(json_ld_page(payload), URL)
        assert record.title == "From JSON-LD"

    def test_description_fallback_thresholds(self):
        long_text = "This paragraph is easily longer than thirty characters."
        html = f"""
        <html><body><main>
          <p>Too short.</p>
          <div><p>{long_text}</p></div>
          <li>Another item that is comfortably beyond the minimum.</li>
        </main></body></html>
        """
        record = extract_detail(html, URL)

        assert "Too short." not in record.description_html
        assert long_text in record.description_text
        assert "Another item" in record.description_text
        # the wrapping div is collected once; its child paragraph is not repeated
        assert record.description_text.count(long_text) == 1

    def test_description_fallback_keeps_identical_blocks(self):
        block = "<div><p>Same responsibilities copied into every section.</p></div>"
        html = f"<html><body><main>{block * 3}</main></body></html>"
        record = extract_detail(html, URL)

        assert record.description_html.count("<div>") == 3
        assert record.description_html.count("<p>") == 3

    def test_description_fallback_caps_large_pages(self):
        block = "<section><div><p>Same responsibilities copied into every section.</p></div></section>"
        html = f"<html><body><main>{block * 500}</main></body></html>"
        record = extract_detail(html, URL)

        assert record.description_html.count("<div>") == DESCRIPTION_MAX_ELEMENTS
        assert record.description_html.count("<p>") == DESCRIPTION_MAX_ELEMENTS

    def test_minimal_page_yields_url_only(self):
        record = extract_detail("<html><body></body></html>", URL)
        assert record.url == URL
        assert record.missing_fields() == [
            "title", "company", "location", "salary", "job_type",
            "date_posted", "description_html", "description_text",
        ]

    def test_failing_strategy_is_skipped(self):
        def broken(page):
            raise RuntimeError("boom")

        def title_only(page):
            return {"title": "Fallback title"}

        record = extract_detail("<html></html>", URL, strategies=[broken, title_only])
        assert record.title == "Fallback title"
