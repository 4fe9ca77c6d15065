"""
Payment Provider Protocol - The remote operations the gateways rely on.

NO DICTIONARIES - All data uses strongly typed models.
"""

from typing import Protocol

from decoupled_stripe.models.provider import (
    CustomerLookup,
    CustomerPayload,
    PaymentIntentRequest,
    PlanRequest,
    RemoteCustomer,
    RemoteIntent,
    RemotePaymentMethod,
    RemotePlan,
    RemoteSubscription,
    SetupIntentRequest,
    SubscriptionRequest,
)


class PaymentProvider(Protocol):
    """
    Payment provider protocol.

    Every method except find_customer_by_email raises PaymentProviderError
    when the remote call fails. Implementations never cache remote state.
    """

    def find_customer_by_email(self, email: str) -> CustomerLookup:
        """
        Look up the first customer with the given e-mail.

        Returns:
            A lookup result; a failed lookup is reported, not raised
        """
        ...

    def create_customer(self, payload: CustomerPayload) -> RemoteCustomer: ...

    def update_customer(self, customer_id: str, payload: CustomerPayload) -> RemoteCustomer: ...

    def create_payment_intent(self, request: PaymentIntentRequest) -> RemoteIntent: ...

    def retrieve_payment_intent(self, intent_id: str) -> RemoteIntent:
        """
        Fetch a payment intent with its charge data.

        Args:
            intent_id: Provider payment intent ID

        Returns:
            Current intent state, including charges when the intent has any
        """
        ...

    def cancel_payment_intent(self, intent_id: str) -> RemoteIntent: ...

    def create_setup_intent(self, request: SetupIntentRequest) -> RemoteIntent: ...

    def retrieve_setup_intent(self, intent_id: str) -> RemoteIntent: ...

    def cancel_setup_intent(self, intent_id: str) -> RemoteIntent: ...

    def attach_payment_method(
        self, payment_method_id: str, customer_id: str
    ) -> RemotePaymentMethod: ...

    def retrieve_plan(self, plan_id: str) -> RemotePlan: ...

    def create_plan(self, request: PlanRequest) -> RemotePlan: ...

    def create_subscription(self, request: SubscriptionRequest) -> RemoteSubscription: ...
