"""Pytest configuration for soft-deletable."""

import pytest

from soft_deletable.config import set_config


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line("markers", "cascade: mark test as exercising cascades")


@pytest.fixture(autouse=True)
def reset_config():
    """Every test starts from the environment configuration."""
    set_config(None)
    yield
    set_config(None)
