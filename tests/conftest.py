"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Gateway settings with fake credentials
- A Stripe provider mock with happy-path defaults
- In-memory payments and payment methods
- One-off and recurring gateways wired to a fixed clock
- A pinned process timezone for local-time billing checks
"""

import os
import time
from unittest.mock import MagicMock

import pytest

# Keep a developer's real environment out of the settings under test
for _key in list(os.environ):
    if _key.startswith("DECOUPLED_STRIPE_"):
        del os.environ[_key]

from decoupled_stripe.config import GatewaySettings
from decoupled_stripe.services.gateway import OneOffGateway, RecurringGateway
from factories import NOW, FakePayment, make_payment, make_provider

# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings() -> GatewaySettings:
    """Settings with fake test-mode credentials."""
    return GatewaySettings(
        _env_file=None,
        secret_key="sk_test_fake_key",
        publishable_key="pk_test_fake_key",
    )


@pytest.fixture
def receipt_settings() -> GatewaySettings:
    """Settings with forced receipt e-mails."""
    return GatewaySettings(
        _env_file=None,
        secret_key="sk_test_fake_key",
        enable_receipt_email=True,
    )


# ============================================================================
# Provider and Gateway Fixtures
# ============================================================================


@pytest.fixture
def provider() -> MagicMock:
    """Stripe provider mock; override return values per test."""
    return make_provider()


@pytest.fixture
def clock():
    """Fixed clock shared by gateway and tests."""
    return lambda: NOW


@pytest.fixture
def one_off_gateway(settings, provider, clock) -> OneOffGateway:
    return OneOffGateway(settings, provider, clock=clock)


@pytest.fixture
def recurring_gateway(settings, provider, clock) -> RecurringGateway:
    return RecurringGateway(settings, provider, clock=clock)


@pytest.fixture
def new_york_local_time(monkeypatch):
    """Run the test with the process timezone set to America/New_York."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


# ============================================================================
# Payment Fixtures
# ============================================================================


@pytest.fixture
def payment() -> FakePayment:
    """New 19.99 USD payment whose payment method holds intent pi_123."""
    return make_payment()
