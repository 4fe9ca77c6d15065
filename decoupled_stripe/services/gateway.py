"""
Gateway façade - The one-off and recurring Stripe gateways the host calls.

Both flavors share customer handling, the intent lifecycle and amount
normalization; they differ in which intent they create and how a succeeded
intent is finalized.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from structlog import get_logger

from decoupled_stripe.config import GatewaySettings
from decoupled_stripe.exceptions import PaymentProviderError
from decoupled_stripe.models.domain import (
    OPEN_STATES,
    Payment,
    PaymentMethod,
    PaymentState,
    Price,
)
from decoupled_stripe.models.provider import IntentKind, SubscriptionRequest
from decoupled_stripe.services.customers import CustomerRegistry
from decoupled_stripe.services.intents import (
    IntentLifecycleManager,
    apply_card_details,
    assert_payment_method,
    assert_payment_state,
    utc_now,
)
from decoupled_stripe.services.payment_provider import PaymentProvider
from decoupled_stripe.services.recurring import RecurringPlanManager, compute_next_billing_start
from decoupled_stripe.services.stripe_provider import StripeProvider

logger = get_logger(__name__)

GatewayFlavor = Literal["one_off", "recurring"]


class StripeGatewayBase(ABC):
    """
    Shared behavior of the decoupled Stripe gateways.

    Payment methods are single-use: the client application confirms each
    intent, so nothing is stored for reuse.
    """

    default_label = "Decoupled Stripe"
    intent_kind = IntentKind.PAYMENT

    def __init__(
        self,
        settings: GatewaySettings,
        provider: PaymentProvider,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.label = settings.gateway_label or self.default_label
        self.customers = CustomerRegistry(provider, settings.integration_tag)
        self.intents = IntentLifecycleManager(provider, self.label, clock=clock)

    @property
    def publishable_key(self) -> str:
        """Key for the client application; never used server-side."""
        return self.settings.publishable_key

    def create_payment_method(
        self, payment_method: PaymentMethod, payment_details: dict[str, Any] | None = None
    ) -> None:
        """
        Register the payer with Stripe and prepare the payment method.

        Anonymous payers get no Stripe customer. The card itself is entered
        client-side, so payment_details carries nothing this gateway reads.

        Raises:
            PaymentProviderError: If the customer could not be created or updated
        """
        owner = payment_method.owner
        email = owner.email if owner is not None else None
        address = payment_method.billing_address
        name = address.full_name if address is not None else ""

        customer_id = self.customers.upsert_customer(email, name, address)

        payment_method.remote_customer_id = customer_id
        payment_method.reusable = False
        payment_method.save()
        logger.info(
            "payment_method_created",
            gateway=self.label,
            has_customer=customer_id is not None,
        )

    def delete_payment_method(self, payment_method: PaymentMethod) -> None:
        """Delete the local payment method. Stripe customers are kept."""
        payment_method.delete()

    def create_payment(self, payment: Payment, capture: bool = True) -> None:
        """
        Prepare a payment for client-side confirmation.

        With capture set this only validates the payment: the intent is
        created by the client-confirmation flow, which calls this method with
        capture=False to obtain the client secret.

        Raises:
            PaymentStateError: If the payment is not new or has no payment method
            DeclineError: If the intent could not be created
        """
        assert_payment_state(payment, (PaymentState.NEW,))
        payment_method = assert_payment_method(payment)
        if capture:
            return
        self._create_intent(payment, payment_method)

    def void_payment(self, payment: Payment) -> None:
        """
        Cancel the payment's intent.

        Raises:
            PaymentGatewayError: If the intent can no longer be cancelled
        """
        self.intents.void(payment, self.intent_kind)

    @abstractmethod
    def _create_intent(self, payment: Payment, payment_method: PaymentMethod) -> None: ...

    @abstractmethod
    def capture_payment(self, payment: Payment, amount: Price | None = None) -> None: ...


class OneOffGateway(StripeGatewayBase):
    """Single charges confirmed client-side and captured automatically by Stripe."""

    default_label = "Decoupled Stripe"
    intent_kind = IntentKind.PAYMENT

    def _create_intent(self, payment: Payment, payment_method: PaymentMethod) -> None:
        receipt_email = payment.order.email if self.settings.enable_receipt_email else None
        self.intents.create_payment_intent(payment, payment_method, receipt_email=receipt_email)

    def capture_payment(self, payment: Payment, amount: Price | None = None) -> None:
        """
        Reconcile the payment with its payment intent.

        Stripe captures automatically, so `amount` is not used.

        Raises:
            DeclineError: Unless the intent succeeded with charge data
        """
        self.intents.capture_payment_intent(payment)


class RecurringGateway(StripeGatewayBase):
    """Monthly subscriptions started from a card saved through a setup intent."""

    default_label = "Decoupled Stripe Recurring"
    intent_kind = IntentKind.SETUP

    def __init__(
        self,
        settings: GatewaySettings,
        provider: PaymentProvider,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(settings, provider, clock=clock)
        self.clock = clock
        self.plans = RecurringPlanManager(
            provider,
            plan_id=settings.recurring_plan_id,
            plan_name=settings.recurring_plan_name,
            integration_tag=settings.integration_tag,
        )

    def _create_intent(self, payment: Payment, payment_method: PaymentMethod) -> None:
        self.intents.create_setup_intent(payment, payment_method)

    def capture_payment(self, payment: Payment, amount: Price | None = None) -> None:
        """
        Start the subscription once the setup intent has succeeded.

        The subscription quantity is the whole-unit payment amount against a
        plan priced at one unit: 20.00 GBP becomes quantity 20.

        Raises:
            DeclineError: Unless the subscription was created
        """
        assert_payment_state(payment, OPEN_STATES)
        payment_method = assert_payment_method(payment)
        intents = self.intents
        intent = intents.retrieve(payment, payment_method, IntentKind.SETUP)

        if intent.canceled:
            intents.decline(
                payment,
                PaymentState.AUTHORIZATION_VOIDED,
                "The recurring payment has been cancelled.",
                reason="cancelled",
            )
        if not intent.succeeded:
            intents.settle_unfinished(payment, payment_method, noun="recurring payment")

        if not intent.customer_id or not intent.payment_method_id:
            intents.decline(
                payment,
                PaymentState.AUTHORIZATION,
                "Couldn't load payment data.",
                reason="missing_payment_method",
            )

        try:
            remote_method = self.provider.attach_payment_method(
                intent.payment_method_id, intent.customer_id
            )
            plan = self.plans.get_or_create_plan(payment.amount.currency_code)
            subscription = self.provider.create_subscription(
                SubscriptionRequest(
                    customer_id=intent.customer_id,
                    plan_id=plan.plan_id,
                    quantity=int(payment.amount.number),
                    trial_end=compute_next_billing_start(
                        self.settings.recurring_start_day, self.clock().astimezone()
                    ),
                    default_payment_method=intent.payment_method_id,
                    metadata={
                        self.settings.integration_tag: 1,
                        "order_id": str(payment.order_id),
                        "payment_gateway": self.label,
                    },
                )
            )
        except PaymentProviderError as exc:
            logger.error(
                "subscription_creation_failed",
                order_id=payment.order_id,
                setup_intent_id=intent.intent_id,
                error=str(exc),
            )
            intents.decline(
                payment, None, "Server could not create the subscription.", reason="provider_error"
            )

        apply_card_details(payment_method, remote_method.card)
        payment_method.remote_id = subscription.subscription_id
        payment_method.save()

        payment.remote_id = intent.intent_id
        intents.transition(payment, PaymentState.COMPLETED)
        logger.info(
            "subscription_started",
            order_id=payment.order_id,
            subscription_id=subscription.subscription_id,
            quantity=int(payment.amount.number),
        )


def build_gateway(
    settings: GatewaySettings,
    flavor: GatewayFlavor = "one_off",
    provider: PaymentProvider | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> StripeGatewayBase:
    """
    Build the gateway for a configured flavor.

    The Stripe client is created here from the settings' secret key and
    shared by every component of the gateway.
    """
    if provider is None:
        provider = StripeProvider.from_settings(settings)
    if flavor == "one_off":
        return OneOffGateway(settings, provider, clock=clock)
    if flavor == "recurring":
        return RecurringGateway(settings, provider, clock=clock)
    raise ValueError(f"Unknown gateway flavor: {flavor}")


__all__ = [
    "GatewayFlavor",
    "OneOffGateway",
    "RecurringGateway",
    "StripeGatewayBase",
    "build_gateway",
]
