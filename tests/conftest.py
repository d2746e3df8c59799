"""Shared test fixtures for the camp agent test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("WOO_URL", "https://shop.example.com")
    os.environ.setdefault("WOO_CONSUMER_KEY", "ck_test")
    os.environ.setdefault("WOO_CONSUMER_SECRET", "cs_test")
    os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
    os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_456")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def commerce():
    """A mock WooCommerce client with the real client's interface."""
    from camp_agent.services.commerce_client import CommerceClient

    return MagicMock(spec=CommerceClient)
