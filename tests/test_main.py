"""
Tests for the command-line entry point.
"""

import json
from unittest.mock import patch

import pytest
import yaml

from careerone_scraper import main as main_module
from careerone_scraper.url_builder import build_search_url
from helpers import FakeFetcher, detail_html, page_number, results_html

SEED = build_search_url("data analyst", "Melbourne")


def write_config(tmp_path, **input_values):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({
        "input": {"keyword": "data analyst", "location": "Melbourne", **input_values},
        "crawler": {"fetcher": "http", "max_concurrency": 2},
        "browser": {"min_delay": 0, "max_delay": 0, "max_retries": 1},
        "output": {"use_timestamp": False, "markdown": True},
        "logging": {"level": "INFO", "log_file": str(tmp_path / "logs" / "run.log")},
    }))
    return path


def site(url):
    if "/jobview/" in url:
        return detail_html(int(url.rsplit("/", 1)[1]) - 1000)
    return results_html([1, 2, 3] if page_number(url) == 1 else [])


@pytest.mark.unit
class TestArgs:
    """Test CLI flag mapping."""

    def test_flags_become_input_overrides(self):
        args = main_module.parse_args([
            "--keyword", "chef", "--start-url", "https://a", "--start-url", "https://b",
            "--results-wanted", "5", "--no-details", "--no-dedupe",
        ])
        overrides = main_module.input_overrides(args)

        assert overrides["keyword"] == "chef"
        assert overrides["startUrls"] == ["https://a", "https://b"]
        assert overrides["results_wanted"] == 5
        assert overrides["collectDetails"] is False
        assert overrides["dedupe"] is False
        assert overrides["location"] is None

    def test_defaults_leave_file_values_alone(self):
        overrides = main_module.input_overrides(main_module.parse_args([]))
        assert "collectDetails" not in overrides
        assert "dedupe" not in overrides


@pytest.mark.scraper
class TestMain:
    """Test end-to-end runs against a fake site."""

    def test_missing_config(self, tmp_path):
        assert main_module.main(["--config", str(tmp_path / "nope.yaml")]) == 1

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({"crawler": {"fetcher": "curl"}}))
        assert main_module.main(["--config", str(path)]) == 1

    def test_unusable_start_urls(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = write_config(tmp_path, startUrls=["not-a-url", "ftp://example.com/jobs"])
        assert main_module.main(["--config", str(path)]) == 1

    def test_full_run(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = write_config(tmp_path, results_wanted=2)

        with patch("careerone_scraper.collector.build_fetcher", lambda config: FakeFetcher(site)):
            assert main_module.main(["--config", str(path)]) == 0

        lines = (tmp_path / "output" / "dataset.jsonl").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert all(json.loads(line)["keyword"] == "data analyst" for line in lines)

        summary = json.loads((tmp_path / "output" / "jobs.json").read_text(encoding="utf-8"))
        assert summary["total_records"] == 2
        assert summary["seeds"] == [SEED]
        assert (tmp_path / "output" / "jobs.md").exists()

        metrics = json.loads((tmp_path / "output" / "run_metrics.json").read_text(encoding="utf-8"))
        assert metrics["counters"]["records_saved"] == 2

    def test_zero_records_is_not_a_failure(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = write_config(tmp_path)

        with patch("careerone_scraper.collector.build_fetcher",
                   lambda config: FakeFetcher(lambda url: results_html([]))):
            assert main_module.main(["--config", str(path)]) == 0

        assert (tmp_path / "output" / "dataset.jsonl").read_text(encoding="utf-8") == ""
        assert not (tmp_path / "output" / "jobs.json").exists()
