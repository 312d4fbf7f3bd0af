"""
Shared fixtures for the CareerOne scraper tests.

Everything runs against static HTML served by a fake fetcher, so no browser
or network is needed.
"""

import pytest

from helpers import detail_html, make_config


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def sample_detail_html():
    return detail_html(1)
