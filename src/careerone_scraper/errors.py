"""
Error taxonomy for the CareerOne scraper
"""


class ScraperError(Exception):
    """Base class for scraper errors."""


class ConfigurationError(ScraperError):
    """Raised when the run input cannot produce a usable seed URL."""


class FetchError(ScraperError):
    """Raised when a page could not be fetched after retries."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class BlockedError(FetchError):
    """Raised when every retry hit a rate-limit or anti-bot response."""

    def __init__(self, url: str, reason: str):
        super().__init__(url, f"Blocked: {reason}")
        self.reason = reason
