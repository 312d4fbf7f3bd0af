#!/usr/bin/env python3

"""
CareerOne Scraper - Main Entry Point
Collects job listings from careerone.com.au search results
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from careerone_scraper.collector import JobCollector
from careerone_scraper.config_loader import ConfigValidationError, load_config
from careerone_scraper.errors import ConfigurationError
from careerone_scraper.output_writer import DatasetSink, OutputWriter
from careerone_scraper.url_builder import resolve_seed_urls


def setup_logging(config) -> None:
    """Configure logging for the application"""
    log_file = config.get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, config.get_log_level(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file}")


def display_config(config, seeds: List[str]) -> None:
    """Display loaded configuration"""
    logger = logging.getLogger(__name__)

    print("\n" + "="*60)
    print("🤖 CAREERONE SCRAPER")
    print("="*60)

    print("\n📋 SEARCH PARAMETERS:")
    print(f"  Search: {config.get_search_query()}")
    print(f"  Results wanted: {config.get_results_wanted()}")
    print(f"  Max pages per start URL: {config.get_max_pages()}")
    print(f"  Collect details: {config.is_collect_details_enabled()}")
    print(f"  Dedupe: {config.is_dedupe_enabled()}")

    print("\n🌐 START URLS:")
    for i, seed in enumerate(seeds, 1):
        print(f"  {i}. {seed}")

    print(f"\n⚙️  FETCHER SETTINGS:")
    print(f"  Variant: {config.get_fetcher_kind()}")
    print(f"  Concurrency: {config.get_max_concurrency()}")
    print(f"  Embedded state: {config.use_embedded_state()}")
    if config.get_fetcher_kind() == "browser":
        print(f"  Headless mode: {config.is_headless()}")
    print(f"  Delay range: {config.get_min_delay()}s - {config.get_max_delay()}s")
    print(f"  Proxy: {'on' if config.get_proxy_configuration() else 'off'}")

    print("\n" + "="*60 + "\n")

    logger.info(f"Config validated: {len(seeds)} start URLs")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CareerOne job scraper")
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to config YAML",
    )
    parser.add_argument("--keyword", help="Search keyword")
    parser.add_argument("--location", help="Search location, e.g. 'Melbourne'")
    parser.add_argument("--category", help="Search category")
    parser.add_argument("--url", help="Single results URL to crawl (overrides everything else)")
    parser.add_argument("--start-url", action="append", dest="start_urls", help="Results URL to crawl (repeatable)")
    parser.add_argument("--results-wanted", type=int, help="Maximum records to save")
    parser.add_argument("--max-pages", type=int, help="Maximum results pages per start URL")
    parser.add_argument("--no-details", action="store_true", help="Save listing URLs without visiting detail pages")
    parser.add_argument("--no-dedupe", action="store_true", help="Allow the same URL to be saved twice")
    parser.add_argument("--fetcher", choices=["browser", "http"], help="Fetcher variant")
    return parser.parse_args(argv)


def input_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto run input keys"""
    overrides: Dict[str, Any] = {
        "keyword": args.keyword,
        "location": args.location,
        "category": args.category,
        "url": args.url,
        "startUrls": args.start_urls,
        "results_wanted": args.results_wanted,
        "max_pages": args.max_pages,
    }
    if args.no_details:
        overrides["collectDetails"] = False
    if args.no_dedupe:
        overrides["dedupe"] = False
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function"""
    print("\n🚀 Starting CareerOne Scraper...")
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config, input_overrides(args))
        if args.fetcher:
            config.config.setdefault("crawler", {})["fetcher"] = args.fetcher
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        print("Make sure config/settings.yaml exists!")
        return 1
    except (ConfigValidationError, ValueError) as e:
        print(f"❌ Error loading config: {e}")
        return 1

    # Setup logging
    setup_logging(config)
    logger = logging.getLogger(__name__)

    # Resolve start URLs
    try:
        seeds = resolve_seed_urls(
            url=config.get_direct_url(),
            start_url=config.get_start_url(),
            start_urls=config.get_start_urls(),
            keyword=config.get_keyword(),
            location=config.get_location(),
            category=config.get_category(),
        )
    except ConfigurationError as e:
        logger.error("Fatal configuration error: %s", e)
        print(f"❌ {e}")
        return 1

    display_config(config, seeds)

    # Collect jobs
    sink = DatasetSink(config.get_output_path('dataset'))
    collector = JobCollector(config, sink=sink)
    records = collector.collect_all(seeds)

    metrics_path = collector.metrics.write_json(config.get_output_path('metrics'))
    logger.info("Run metrics written: %s", metrics_path)

    if not records:
        print("\n⚠️  No jobs collected. The search may have no results, or the site layout changed.")
        logger.warning("No records were produced: %s", collector.metrics.summary())
        return 0

    # Write output
    writer = OutputWriter(config)
    output_files = writer.write_all(records, config.get_search_query(), seeds)

    # Summary
    print("\n" + "="*60)
    print("✅ JOB COLLECTION COMPLETE")
    print("="*60)
    print(f"\n📊 Results: {len(records)} jobs saved")
    failures = collector.metrics.get("detail_failures")
    if failures:
        print(f"⚠️  {failures} detail pages failed")
    print(f"📁 Files:")
    print(f"   Dataset: {sink.path}")
    for kind, path in output_files.items():
        print(f"   {kind.title()}: {path}")
    print("\n" + "="*60 + "\n")

    logger.info(f"Job collection complete: {len(records)} records saved")
    return 0


if __name__ == "__main__":
    sys.exit(main())
