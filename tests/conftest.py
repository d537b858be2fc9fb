"""Pytest configuration and fixtures."""

import os

import pytest

from refengine.core.config import get_settings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["REF_ENGINE_ENV"] = "test"
    os.environ["ENTITY_API_BASE_URL"] = "http://catalog.test"
    get_settings.cache_clear()


@pytest.fixture
def catalog():
    """Fresh fake catalog per test."""
    from tests.fakes.fake_catalog import FakeCatalog

    return FakeCatalog()
