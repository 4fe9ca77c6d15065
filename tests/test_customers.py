"""
Tests for the Customer Registry.
"""

import pytest

from decoupled_stripe.exceptions import PaymentProviderError
from decoupled_stripe.models.domain import BillingAddress
from decoupled_stripe.models.provider import CustomerLookup, CustomerPayload, RemoteCustomer
from decoupled_stripe.services.customers import CustomerRegistry, build_customer_address

ADDRESS = BillingAddress(
    given_name="Ada",
    family_name="Lovelace",
    address_line1="12 St James's Square",
    address_line2="Flat 3",
    locality="London",
    country_code="GB",
    administrative_area="",
    postal_code="SW1Y 4JH",
)


@pytest.fixture
def registry(provider) -> CustomerRegistry:
    return CustomerRegistry(provider, integration_tag="decoupled_stripe")


class TestBuildCustomerAddress:
    """Tests for build_customer_address."""

    def test_maps_fields(self):
        address = build_customer_address(ADDRESS)
        assert address is not None
        assert address.to_params() == {
            "line1": "12 St James's Square",
            "line2": "Flat 3",
            "city": "London",
            "country": "GB",
            "state": "",
            "postal_code": "SW1Y 4JH",
        }

    def test_postal_code_omitted_when_empty(self):
        address = build_customer_address(
            BillingAddress(address_line1="1 Main St", locality="Springfield", country_code="US")
        )
        assert address is not None
        assert "postal_code" not in address.to_params()

    def test_no_address(self):
        assert build_customer_address(None) is None

    def test_no_street_line(self):
        """An address without street lines is not sent at all."""
        assert build_customer_address(BillingAddress(given_name="Ada", country_code="GB")) is None


class TestUpsertCustomer:
    """Tests for CustomerRegistry.upsert_customer."""

    def test_anonymous_payer_makes_no_calls(self, registry, provider):
        """No e-mail means no customer and no provider traffic."""
        assert registry.upsert_customer(None, "Ada Lovelace", ADDRESS) is None
        assert registry.upsert_customer("", "Ada Lovelace", ADDRESS) is None
        assert provider.method_calls == []

    def test_creates_when_not_found(self, registry, provider):
        """A new customer is created with the e-mail, name and address."""
        customer_id = registry.upsert_customer("a@example.com", "Ada Lovelace", ADDRESS)

        assert customer_id == "cus_new"
        provider.find_customer_by_email.assert_called_once_with("a@example.com")
        provider.update_customer.assert_not_called()
        payload = provider.create_customer.call_args.args[0]
        assert payload.to_params() == {
            "name": "Ada Lovelace",
            "email": "a@example.com",
            "metadata": {"decoupled_stripe": 1},
            "address": {
                "line1": "12 St James's Square",
                "line2": "Flat 3",
                "city": "London",
                "country": "GB",
                "state": "",
                "postal_code": "SW1Y 4JH",
            },
        }

    def test_create_without_address(self, registry, provider):
        registry.upsert_customer("a@example.com", "", None)

        params = provider.create_customer.call_args.args[0].to_params()
        assert "address" not in params
        assert params == {
            "name": "",
            "email": "a@example.com",
            "metadata": {"decoupled_stripe": 1},
        }

    def test_updates_existing_customer(self, registry, provider):
        """An existing customer is updated and never duplicated."""
        provider.find_customer_by_email.return_value = CustomerLookup.found(
            RemoteCustomer(customer_id="cus_existing", email="a@example.com")
        )

        customer_id = registry.upsert_customer("a@example.com", "Ada Lovelace", ADDRESS)

        assert customer_id == "cus_existing"
        provider.create_customer.assert_not_called()
        customer_arg, payload = provider.update_customer.call_args.args
        assert customer_arg == "cus_existing"
        assert isinstance(payload, CustomerPayload)
        params = payload.to_params()
        assert "email" not in params
        assert params["name"] == "Ada Lovelace"
        assert params["metadata"] == {"decoupled_stripe": 1}
        assert params["address"]["city"] == "London"

    def test_lookup_error_treated_as_not_found(self, registry, provider):
        """A failed lookup does not block payment method creation."""
        provider.find_customer_by_email.return_value = CustomerLookup.lookup_error(
            "connection reset"
        )

        customer_id = registry.upsert_customer("a@example.com", "Ada Lovelace", None)

        assert customer_id == "cus_new"
        provider.create_customer.assert_called_once()
        provider.update_customer.assert_not_called()

    def test_create_failure_is_raised(self, registry, provider):
        provider.create_customer.side_effect = PaymentProviderError("card_declined")

        with pytest.raises(PaymentProviderError):
            registry.upsert_customer("a@example.com", "Ada Lovelace", None)

    def test_custom_integration_tag(self, provider):
        registry = CustomerRegistry(provider, integration_tag="shop_42")
        registry.upsert_customer("a@example.com", "Ada", None)

        params = provider.create_customer.call_args.args[0].to_params()
        assert params["metadata"] == {"shop_42": 1}


class TestConcurrentUpserts:
    """Upserts take no lock; racing requests are a known gap."""

    def test_racing_lookups_both_create(self, provider):
        """Two requests that both miss the lookup each create a customer."""
        provider.find_customer_by_email.return_value = CustomerLookup.not_found()
        provider.create_customer.side_effect = [
            RemoteCustomer(customer_id="cus_first"),
            RemoteCustomer(customer_id="cus_second"),
        ]
        first = CustomerRegistry(provider, integration_tag="decoupled_stripe")
        second = CustomerRegistry(provider, integration_tag="decoupled_stripe")

        ids = [
            first.upsert_customer("a@example.com", "Ada", None),
            second.upsert_customer("a@example.com", "Ada", None),
        ]

        assert ids == ["cus_first", "cus_second"]
        assert provider.create_customer.call_count == 2
        provider.update_customer.assert_not_called()
