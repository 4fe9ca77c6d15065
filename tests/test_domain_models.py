"""
Tests for domain and provider models.
"""

from decimal import Decimal

import pytest

from decoupled_stripe.models.domain import (
    OPEN_STATES,
    TERMINAL_STATES,
    BillingAddress,
    PaymentState,
    Price,
)
from decoupled_stripe.models.provider import (
    CustomerAddress,
    CustomerLookup,
    IntentKind,
    LookupOutcome,
    PaymentIntentRequest,
    RemoteCustomer,
    RemoteIntent,
)


class TestPaymentState:
    """Tests for PaymentState."""

    @pytest.mark.parametrize("state", list(TERMINAL_STATES))
    def test_terminal(self, state):
        assert state.is_terminal

    @pytest.mark.parametrize("state", OPEN_STATES)
    def test_open(self, state):
        assert not state.is_terminal

    def test_compares_with_strings(self):
        assert PaymentState.COMPLETED == "completed"


class TestPrice:
    """Tests for Price."""

    def test_coerces_number_to_decimal(self):
        price = Price("19.99", "USD")  # type: ignore[arg-type]
        assert price.number == Decimal("19.99")

    def test_invalid_currency(self):
        with pytest.raises(ValueError, match="Invalid currency code"):
            Price(Decimal("1"), "DOLLAR")


class TestBillingAddress:
    def test_full_name(self):
        assert BillingAddress(given_name="Ada", family_name="Lovelace").full_name == "Ada Lovelace"

    def test_full_name_partial(self):
        assert BillingAddress(family_name="Lovelace").full_name == "Lovelace"
        assert BillingAddress().full_name == ""


class TestRemoteIntent:
    """Tests for RemoteIntent status helpers."""

    @pytest.mark.parametrize(
        "status,cancelable",
        [
            ("requires_payment_method", True),
            ("requires_capture", True),
            ("requires_confirmation", True),
            ("requires_action", True),
            ("processing", False),
            ("succeeded", False),
            ("canceled", False),
        ],
    )
    def test_cancelable(self, status, cancelable):
        intent = RemoteIntent(intent_id="pi_1", kind=IntentKind.PAYMENT, status=status)
        assert intent.cancelable is cancelable

    def test_succeeded_and_canceled(self):
        assert RemoteIntent("pi_1", IntentKind.PAYMENT, "succeeded").succeeded
        assert RemoteIntent("pi_1", IntentKind.PAYMENT, "canceled").canceled


class TestCustomerLookup:
    def test_constructors(self):
        assert CustomerLookup.not_found().outcome is LookupOutcome.NOT_FOUND
        found = CustomerLookup.found(RemoteCustomer(customer_id="cus_1"))
        assert found.outcome is LookupOutcome.FOUND
        assert found.customer.customer_id == "cus_1"
        failed = CustomerLookup.lookup_error("timeout")
        assert failed.outcome is LookupOutcome.LOOKUP_ERROR
        assert failed.customer is None


class TestRequestParams:
    """Field-exact request shapes."""

    def test_address_keeps_empty_lines(self):
        assert CustomerAddress(line1="1 Main St").to_params() == {
            "line1": "1 Main St",
            "line2": "",
            "city": "",
            "country": "",
            "state": "",
        }

    def test_payment_intent_currency_lowercased(self):
        request = PaymentIntentRequest(
            amount_minor=500, currency="JPY", order_id="9", gateway_label="Shop"
        )
        params = request.to_params()
        assert params["currency"] == "jpy"
        assert "customer" not in params
        assert "receipt_email" not in params
