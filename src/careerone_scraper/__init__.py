"""CareerOne job listing scraper."""

__version__ = "0.2.0"
