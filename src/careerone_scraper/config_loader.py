"""
Configuration loader for the CareerOne scraper
Reads and validates settings.yaml
"""

import logging
import math
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from careerone_scraper.models import SearchQuery

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_WANTED = 100
DEFAULT_MAX_PAGES = 20
FETCHER_KINDS = ("browser", "http")


class ConfigValidationError(ValueError):
    """Raised when configuration fails invariant validation."""
    pass


def _validate_non_negative(value: Any, field: str) -> None:
    """Validate that a numeric value is non-negative."""
    if value is not None and float(value) < 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be non-negative, got {value}"
        )


def _validate_positive(value: Any, field: str) -> None:
    """Validate that a numeric value is positive (> 0)."""
    if value is not None and float(value) <= 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be positive (> 0), got {value}"
        )


def _validate_min_max_pair(min_val: Any, max_val: Any, min_field: str, max_field: str) -> None:
    """Validate that min_val <= max_val for a delay/range pair."""
    if min_val is not None and max_val is not None:
        if float(min_val) > float(max_val):
            raise ConfigValidationError(
                f"Invalid config: '{min_field}' ({min_val}) must be <= '{max_field}' ({max_val})"
            )


def _coerce_count(value: Any, default: Optional[int]) -> Optional[int]:
    """Numeric input -> int >= 1; anything non-numeric -> default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return max(1, int(number))


class ConfigLoader:
    """Loads and validates configuration from a YAML file"""

    def __init__(self, config_path: str = "config/settings.yaml", overrides: Optional[Dict[str, Any]] = None):
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self._load()
        if overrides:
            self.apply_input_overrides(overrides)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigLoader":
        """Build a loader from an in-memory dict (used by tests and embedding callers)."""
        loader = cls.__new__(cls)
        loader.config_path = Path("<memory>")
        loader.config = data or {}
        loader._validate_invariants()
        return loader

    def _load(self) -> None:
        """Load config from YAML file"""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
            logger.info(f"✓ Config loaded from {self.config_path}")
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            raise

        self._validate_invariants()

    def _validate_invariants(self) -> None:
        """Validate configuration invariants. Raises ConfigValidationError on failure."""
        if not isinstance(self.config, dict):
            raise ConfigValidationError("Invalid config: top level must be a mapping")

        input_section = self.get('input', {}) or {}
        if not isinstance(input_section, dict):
            raise ConfigValidationError("Invalid config: 'input' must be a mapping")
        start_urls = input_section.get('startUrls')
        if start_urls is not None and not isinstance(start_urls, list):
            raise ConfigValidationError("Invalid config: 'input.startUrls' must be a list")
        proxy = input_section.get('proxyConfiguration')
        if proxy and not isinstance(proxy, dict):
            raise ConfigValidationError("Invalid config: 'input.proxyConfiguration' must be a mapping")

        # Browser delay range
        min_delay = self.get('browser.min_delay')
        max_delay = self.get('browser.max_delay')
        _validate_non_negative(min_delay, 'browser.min_delay')
        _validate_non_negative(max_delay, 'browser.max_delay')
        _validate_min_max_pair(min_delay, max_delay, 'browser.min_delay', 'browser.max_delay')

        # Timeouts (must be positive)
        _validate_positive(self.get('browser.page_timeout'), 'browser.page_timeout')
        _validate_positive(self.get('browser.navigation_timeout'), 'browser.navigation_timeout')
        _validate_positive(self.get('browser.launch_timeout'), 'browser.launch_timeout')
        _validate_positive(self.get('browser.listing_wait_timeout'), 'browser.listing_wait_timeout')
        _validate_positive(self.get('http.timeout'), 'http.timeout')

        # Retries (non-negative)
        _validate_non_negative(self.get('browser.max_retries'), 'browser.max_retries')

        # Crawler
        _validate_positive(self.get('crawler.max_concurrency'), 'crawler.max_concurrency')
        fetcher = self.get('crawler.fetcher')
        if fetcher is not None and str(fetcher).lower() not in FETCHER_KINDS:
            raise ConfigValidationError(
                f"Invalid config: 'crawler.fetcher' must be one of {FETCHER_KINDS}, got {fetcher!r}"
            )

        logger.debug("✓ Config invariants validated")

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot notation (e.g., 'input.keyword')"""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k, default)
            else:
                return default

        return value

    def apply_input_overrides(self, overrides: Dict[str, Any]) -> None:
        """Merge non-None run input values (e.g. from the CLI) over the file."""
        section = self.config.setdefault('input', {})
        for key, value in overrides.items():
            if value is not None:
                section[key] = value
        self._validate_invariants()

    # === Run Input ===

    def get_input(self, key: str, default: Any = None) -> Any:
        value = self.get(f'input.{key}', default)
        return default if value is None else value

    def get_keyword(self) -> str:
        """Get search keyword"""
        return str(self.get_input('keyword', '') or '').strip()

    def get_location(self) -> str:
        """Get search location"""
        return str(self.get_input('location', '') or '').strip()

    def get_category(self) -> str:
        """Get search category"""
        return str(self.get_input('category', '') or '').strip()

    def get_direct_url(self) -> Optional[str]:
        return self.get_input('url')

    def get_start_url(self) -> Optional[str]:
        return self.get_input('startUrl')

    def get_start_urls(self) -> List[Any]:
        return list(self.get_input('startUrls', []) or [])

    def get_results_wanted(self) -> int:
        """Saved-record budget; non-numeric input means unlimited"""
        raw = self.get_input('results_wanted', DEFAULT_RESULTS_WANTED)
        return _coerce_count(raw, 2 ** 53 - 1)

    def get_max_pages(self) -> int:
        """Page ceiling per seed URL"""
        raw = self.get_input('max_pages', DEFAULT_MAX_PAGES)
        return _coerce_count(raw, DEFAULT_MAX_PAGES)

    def is_collect_details_enabled(self) -> bool:
        return bool(self.get_input('collectDetails', True))

    def is_dedupe_enabled(self) -> bool:
        return bool(self.get_input('dedupe', True))

    def get_search_query(self) -> SearchQuery:
        return SearchQuery(
            keyword=self.get_keyword(),
            location=self.get_location(),
            category=self.get_category(),
        )

    # === Crawler Config ===

    def get_fetcher_kind(self) -> str:
        """Get fetcher variant: browser | http"""
        return str(self.get('crawler.fetcher', 'browser')).lower()

    def get_max_concurrency(self) -> int:
        return int(self.get('crawler.max_concurrency', 5))

    def use_embedded_state(self) -> bool:
        """Check if results pages should be read from embedded app state first"""
        return bool(self.get('crawler.embedded_state', True))

    def get_max_empty_pages(self) -> int:
        """Consecutive empty results pages tolerated before a seed is abandoned"""
        return max(int(self.get('crawler.max_empty_pages', 1)), 0)

    # === Browser Config ===

    def is_headless(self) -> bool:
        """Check if browser should run in headless mode"""
        return bool(self.get('browser.headless', True))

    def get_min_delay(self) -> float:
        """Get minimum delay between actions"""
        return float(self.get('browser.min_delay', 0.5))

    def get_max_delay(self) -> float:
        """Get maximum delay between actions"""
        return float(self.get('browser.max_delay', 2.0))

    def get_page_timeout(self) -> int:
        """Get page load timeout in milliseconds"""
        return int(self.get('browser.page_timeout', 30) * 1000)

    def get_navigation_timeout(self) -> int:
        """Get navigation timeout in milliseconds"""
        return int(self.get('browser.navigation_timeout', 45) * 1000)

    def get_launch_timeout(self) -> int:
        """Get browser launch timeout in milliseconds"""
        return int(self.get('browser.launch_timeout', 60) * 1000)

    def get_listing_wait_timeout(self) -> int:
        """Get how long to wait for listing links, in milliseconds"""
        return int(self.get('browser.listing_wait_timeout', 15) * 1000)

    def get_max_retries(self) -> int:
        """Get max retries for a blocked or failed fetch"""
        return int(self.get('browser.max_retries', 3))

    def get_browser_channel(self) -> str:
        """Get Playwright browser channel override"""
        return self.get('browser.channel', '') or ''

    def get_user_agent(self) -> Optional[str]:
        return self.get('browser.user_agent', None) or None

    # === HTTP Config ===

    def get_http_timeout(self) -> float:
        """Get HTTP request timeout in seconds"""
        return float(self.get('http.timeout', 30))

    def get_http_headers(self) -> Dict[str, str]:
        headers = dict(self.get('http.headers', {}) or {})
        user_agent = self.get_user_agent()
        if user_agent:
            headers.setdefault('User-Agent', user_agent)
        return headers

    # === Proxy Config ===

    def get_proxy_configuration(self) -> Optional[Dict[str, Any]]:
        """
        Return proxy settings as {"server", "username", "password"} or None.

        `input.proxyConfiguration` may give a server directly or a `proxyUrls`
        list (first entry wins). Credentials fall back to env vars
        (PROXY_SERVER / PROXY_USER / PROXY_PASS, loaded from .env).
        """
        raw = self.get_input('proxyConfiguration')
        if not raw:
            server = (os.getenv("PROXY_SERVER") or "").strip()
            if not server:
                return None
            raw = {"server": server}
        if raw.get('useApifyProxy') and not raw.get('server') and not raw.get('proxyUrls'):
            logger.warning("Platform proxy requested but not available here; running without proxy")
            return None

        server = (raw.get('server') or '').strip()
        if not server and raw.get('proxyUrls'):
            server = str(raw['proxyUrls'][0]).strip()
        if not server:
            return None

        proxy: Dict[str, Any] = {"server": server if "://" in server else f"http://{server}"}
        username = (raw.get('username') or os.getenv("PROXY_USER") or "").strip()
        password = (raw.get('password') or os.getenv("PROXY_PASS") or "").strip()
        if username:
            proxy["username"] = username
        if password:
            proxy["password"] = password
        return proxy

    # === Output Config ===

    def get_output_path(self, file_type: str = 'json') -> Path:
        """Get output file path with timestamp if enabled"""
        use_timestamp = self.get('output.use_timestamp', True)
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S') if use_timestamp else ''

        defaults = {
            'json': 'output/jobs_{timestamp}.json',
            'markdown': 'output/jobs_{timestamp}.md',
            'dataset': 'output/dataset_{timestamp}.jsonl',
            'metrics': 'output/run_metrics_{timestamp}.json',
        }
        template = self.get(f'output.{file_type}_file', defaults.get(file_type, f'output/jobs.{file_type}'))
        filename = template.replace('{timestamp}', timestamp)
        filename = filename.replace('_.', '.')

        return Path(filename)

    def is_markdown_enabled(self) -> bool:
        return bool(self.get('output.markdown', True))

    # === Logging Config ===

    def get_log_level(self) -> str:
        """Get logging level"""
        return str(self.get('logging.level', 'INFO')).upper()

    def get_log_file(self) -> Path:
        """Get log file path with timestamp"""
        template = self.get('logging.log_file', 'logs/careerone_scraper.log')
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = template.replace('{timestamp}', timestamp)
        return Path(filename)

    def __repr__(self) -> str:
        return f"<Config: keyword={self.get_keyword()!r}, location={self.get_location()!r}>"


# Convenience function
def load_config(config_path: str = "config/settings.yaml",
                overrides: Optional[Dict[str, Any]] = None) -> ConfigLoader:
    """Load configuration from file, reading proxy credentials from .env"""
    load_dotenv(override=False)
    return ConfigLoader(config_path, overrides)
