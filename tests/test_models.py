"""
Tests for the record and listing models.
"""

import pytest

from careerone_scraper.models import JobRecord, Listings, SearchQuery

URL = "https://www.careerone.com.au/jobview/chef/42"


@pytest.mark.unit
class TestJobRecord:
    """Test JobRecord helpers."""

    def test_only_url_required(self):
        record = JobRecord(url=URL)
        assert record.title is None
        assert record.source == "careerone.com.au"
        assert str(record) == "Untitled"

    def test_str_with_company(self):
        assert str(JobRecord(url=URL, title="Chef", company="Bistro")) == "Chef at Bistro"

    def test_merge_missing_keeps_existing_values(self):
        record = JobRecord(url=URL, title="Chef")
        inline = JobRecord(url=URL, title="Other title", salary="$30 per hour")

        record.merge_missing(inline)

        assert record.title == "Chef"
        assert record.salary == "$30 per hour"

    def test_with_context(self):
        record = JobRecord(url=URL).with_context(SearchQuery(keyword="chef", location=""))
        assert record.keyword == "chef"
        assert record.search_location is None
        assert record.category is None

    def test_to_output_omits_absent_fields(self):
        payload = JobRecord(url=URL, title="Chef", company="").to_output()
        assert set(payload) == {"url", "title", "source", "scraped_at"}
        assert isinstance(payload["scraped_at"], str)


@pytest.mark.unit
class TestListings:
    """Test Listings helpers."""

    def test_all_urls_inline_first_without_repeats(self):
        listings = Listings(
            detail_urls=["b", "a", "c"],
            inline_records=[JobRecord(url="a")],
        )
        assert listings.all_urls() == ["a", "b", "c"]
        assert not listings.is_empty

    def test_empty(self):
        assert Listings().is_empty


@pytest.mark.unit
class TestSearchQuery:
    """Test query labels."""

    def test_labels(self):
        assert str(SearchQuery(keyword="data analyst", location="Melbourne")) == "'data analyst' in Melbourne"
        assert str(SearchQuery()) == "all jobs in Australia"
        assert str(SearchQuery(keyword="nurse", category="Healthcare")) == "'nurse' in Australia (Healthcare)"
