"""
Customer Registry - Find-or-create Stripe customers keyed by e-mail.
"""

from structlog import get_logger

from decoupled_stripe.models.domain import BillingAddress
from decoupled_stripe.models.provider import CustomerAddress, CustomerPayload, LookupOutcome
from decoupled_stripe.services.payment_provider import PaymentProvider

logger = get_logger(__name__)


def build_customer_address(address: BillingAddress | None) -> CustomerAddress | None:
    """Map a billing address to the provider shape; None when there is no street line."""
    if address is None or not (address.address_line1 or address.address_line2):
        return None
    return CustomerAddress(
        line1=address.address_line1,
        line2=address.address_line2,
        city=address.locality,
        country=address.country_code,
        state=address.administrative_area,
        postal_code=address.postal_code,
    )


class CustomerRegistry:
    """
    Upserts provider customers for payers.

    Lookup happens before create, so a single call never produces two
    customers for one e-mail. Concurrent calls for the same e-mail are not
    coordinated.
    """

    def __init__(self, provider: PaymentProvider, integration_tag: str) -> None:
        self.provider = provider
        self.integration_tag = integration_tag

    def upsert_customer(
        self, email: str | None, name: str, address: BillingAddress | None = None
    ) -> str | None:
        """
        Create or update the customer for an e-mail.

        Args:
            email: Payer e-mail; anonymous payers have none
            name: Display name, may be empty
            address: Billing address, if the payer gave one

        Returns:
            The provider customer ID, or None for anonymous payers

        Raises:
            PaymentProviderError: If creating or updating the customer fails
        """
        if not email:
            logger.info("customer_upsert_skipped", reason="anonymous_payer")
            return None

        customer_address = build_customer_address(address)
        lookup = self.provider.find_customer_by_email(email)

        if lookup.outcome is LookupOutcome.LOOKUP_ERROR:
            # A failed lookup must not block the payment; create instead.
            logger.warning("customer_lookup_failed", error=lookup.error)

        if lookup.outcome is LookupOutcome.FOUND and lookup.customer is not None:
            customer_id = lookup.customer.customer_id
            self.provider.update_customer(
                customer_id,
                CustomerPayload(
                    name=name,
                    integration_tag=self.integration_tag,
                    address=customer_address,
                ),
            )
            logger.info("customer_reused", customer_id=customer_id)
            return customer_id

        customer = self.provider.create_customer(
            CustomerPayload(
                name=name,
                integration_tag=self.integration_tag,
                email=email,
                address=customer_address,
            )
        )
        return customer.customer_id
