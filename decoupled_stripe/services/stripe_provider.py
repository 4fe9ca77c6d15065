"""
Stripe Payment Provider Implementation.

NO DICTIONARIES - Stripe objects are converted to typed models before they
leave this module. The secret key is passed on every request; no global SDK
state is touched.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import stripe
from opentelemetry.trace import Span
from structlog import get_logger

from decoupled_stripe.config import GatewaySettings
from decoupled_stripe.exceptions import PaymentProviderError
from decoupled_stripe.models.provider import (
    CardDetails,
    CustomerLookup,
    CustomerPayload,
    IntentKind,
    PaymentIntentRequest,
    PlanRequest,
    RemoteCharge,
    RemoteCustomer,
    RemoteIntent,
    RemotePaymentMethod,
    RemotePlan,
    RemoteSubscription,
    SetupIntentRequest,
    SubscriptionRequest,
)
from decoupled_stripe.observability.metrics import metrics
from decoupled_stripe.observability.tracing import trace_operation

logger = get_logger(__name__)


def _field(obj: Any, name: str) -> Any:
    """Optional field of a Stripe object; None when Stripe omitted it."""
    return getattr(obj, name, None)


def _card_details(card: Any) -> CardDetails | None:
    """Read brand/last4/expiry from a Stripe card hash, tolerating missing fields."""
    if not card:
        return None
    return CardDetails(
        brand=_field(card, "brand"),
        last4=_field(card, "last4"),
        exp_month=_field(card, "exp_month"),
        exp_year=_field(card, "exp_year"),
    )


def _charges(intent: Any) -> tuple[RemoteCharge, ...]:
    """
    Charges attached to a payment intent.

    Older API versions embed a charges list; newer ones only expose
    latest_charge, which is an object when expanded and an ID otherwise.
    """
    raw: list[Any] = []
    embedded = _field(intent, "charges")
    if embedded and _field(embedded, "data"):
        raw = list(embedded.data)
    else:
        latest = _field(intent, "latest_charge")
        if isinstance(latest, str):
            return (RemoteCharge(charge_id=latest),)
        if latest:
            raw = [latest]

    charges = []
    for charge in raw:
        details = _field(charge, "payment_method_details")
        charges.append(
            RemoteCharge(charge_id=charge.id, card=_card_details(_field(details, "card")))
        )
    return tuple(charges)


def _expandable_id(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return value.id


def _to_intent(intent: Any, kind: IntentKind) -> RemoteIntent:
    return RemoteIntent(
        intent_id=intent.id,
        kind=kind,
        status=intent.status,
        client_secret=_field(intent, "client_secret") or "",
        amount_minor=_field(intent, "amount"),
        currency=_field(intent, "currency"),
        customer_id=_expandable_id(_field(intent, "customer")),
        payment_method_id=_expandable_id(_field(intent, "payment_method")),
        charges=_charges(intent) if kind is IntentKind.PAYMENT else (),
    )


class StripeProvider:
    """
    Stripe payment provider implementation.

    Implements the PaymentProvider protocol for Stripe.
    """

    def __init__(self, api_key: str) -> None:
        """
        Initialize Stripe provider.

        Args:
            api_key: Stripe secret API key
        """
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "StripeProvider":
        return cls(api_key=settings.secret_key)

    @contextmanager
    def _call(self, operation: str, **attributes: Any) -> Iterator[Span]:
        """Trace, time and translate errors for a single Stripe request."""
        started = time.monotonic()
        with trace_operation(f"stripe.{operation}", **attributes) as span:
            try:
                yield span
            except stripe.StripeError as exc:
                metrics.record_provider_call(
                    operation, time.monotonic() - started, error_type=type(exc).__name__
                )
                logger.error(
                    "stripe_request_failed",
                    operation=operation,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    **attributes,
                )
                raise PaymentProviderError(str(exc), operation=operation) from exc
        metrics.record_provider_call(operation, time.monotonic() - started)

    # ========================================================================
    # Customers
    # ========================================================================

    def find_customer_by_email(self, email: str) -> CustomerLookup:
        """
        Look up the first Stripe customer registered with an e-mail.

        E-mails are not unique in Stripe; the first match wins.
        """
        try:
            with self._call("customer.list"):
                result = stripe.Customer.list(api_key=self.api_key, email=email, limit=1)
        except PaymentProviderError as exc:
            return CustomerLookup.lookup_error(exc.message)

        if not result.data:
            return CustomerLookup.not_found()

        customer = result.data[0]
        return CustomerLookup.found(
            RemoteCustomer(customer_id=customer.id, email=_field(customer, "email"))
        )

    def create_customer(self, payload: CustomerPayload) -> RemoteCustomer:
        with self._call("customer.create"):
            customer = stripe.Customer.create(api_key=self.api_key, **payload.to_params())

        logger.info("stripe_customer_created", customer_id=customer.id)
        return RemoteCustomer(customer_id=customer.id, email=_field(customer, "email"))

    def update_customer(self, customer_id: str, payload: CustomerPayload) -> RemoteCustomer:
        with self._call("customer.update", customer_id=customer_id):
            customer = stripe.Customer.modify(
                customer_id, api_key=self.api_key, **payload.to_params()
            )

        logger.info("stripe_customer_updated", customer_id=customer_id)
        return RemoteCustomer(customer_id=customer.id, email=_field(customer, "email"))

    # ========================================================================
    # Payment intents
    # ========================================================================

    def create_payment_intent(self, request: PaymentIntentRequest) -> RemoteIntent:
        """
        Create a Stripe PaymentIntent.

        Args:
            request: Amount, currency and order context for the intent

        Returns:
            The new intent, including the client secret for the client application

        Raises:
            PaymentProviderError: If Stripe API call fails
        """
        logger.info(
            "creating_stripe_payment_intent",
            amount_minor=request.amount_minor,
            currency=request.currency,
            order_id=request.order_id,
        )
        with self._call("payment_intent.create", order_id=request.order_id):
            intent = stripe.PaymentIntent.create(api_key=self.api_key, **request.to_params())

        logger.info(
            "stripe_payment_intent_created",
            payment_intent_id=intent.id,
            status=intent.status,
        )
        return _to_intent(intent, IntentKind.PAYMENT)

    def retrieve_payment_intent(self, intent_id: str) -> RemoteIntent:
        with self._call("payment_intent.retrieve", intent_id=intent_id) as span:
            intent = stripe.PaymentIntent.retrieve(
                intent_id, api_key=self.api_key, expand=["latest_charge"]
            )
            span.set_attribute("status", intent.status)

        logger.info(
            "stripe_payment_intent_retrieved",
            payment_intent_id=intent_id,
            status=intent.status,
        )
        return _to_intent(intent, IntentKind.PAYMENT)

    def cancel_payment_intent(self, intent_id: str) -> RemoteIntent:
        with self._call("payment_intent.cancel", intent_id=intent_id):
            intent = stripe.PaymentIntent.cancel(intent_id, api_key=self.api_key)

        logger.info("stripe_payment_intent_canceled", payment_intent_id=intent_id)
        return _to_intent(intent, IntentKind.PAYMENT)

    # ========================================================================
    # Setup intents
    # ========================================================================

    def create_setup_intent(self, request: SetupIntentRequest) -> RemoteIntent:
        with self._call("setup_intent.create", order_id=request.order_id):
            intent = stripe.SetupIntent.create(api_key=self.api_key, **request.to_params())

        logger.info(
            "stripe_setup_intent_created",
            setup_intent_id=intent.id,
            customer_id=request.customer_id,
        )
        return _to_intent(intent, IntentKind.SETUP)

    def retrieve_setup_intent(self, intent_id: str) -> RemoteIntent:
        with self._call("setup_intent.retrieve", intent_id=intent_id) as span:
            intent = stripe.SetupIntent.retrieve(intent_id, api_key=self.api_key)
            span.set_attribute("status", intent.status)

        logger.info(
            "stripe_setup_intent_retrieved",
            setup_intent_id=intent_id,
            status=intent.status,
        )
        return _to_intent(intent, IntentKind.SETUP)

    def cancel_setup_intent(self, intent_id: str) -> RemoteIntent:
        with self._call("setup_intent.cancel", intent_id=intent_id):
            intent = stripe.SetupIntent.cancel(intent_id, api_key=self.api_key)

        logger.info("stripe_setup_intent_canceled", setup_intent_id=intent_id)
        return _to_intent(intent, IntentKind.SETUP)

    # ========================================================================
    # Recurring billing
    # ========================================================================

    def attach_payment_method(
        self, payment_method_id: str, customer_id: str
    ) -> RemotePaymentMethod:
        with self._call(
            "payment_method.attach", payment_method_id=payment_method_id, customer_id=customer_id
        ):
            payment_method = stripe.PaymentMethod.attach(
                payment_method_id, api_key=self.api_key, customer=customer_id
            )

        return RemotePaymentMethod(
            payment_method_id=payment_method.id,
            card=_card_details(_field(payment_method, "card")),
        )

    def retrieve_plan(self, plan_id: str) -> RemotePlan:
        with self._call("plan.retrieve", plan_id=plan_id):
            plan = stripe.Plan.retrieve(plan_id, api_key=self.api_key)

        return RemotePlan(
            plan_id=plan.id, amount_minor=_field(plan, "amount"), currency=_field(plan, "currency")
        )

    def create_plan(self, request: PlanRequest) -> RemotePlan:
        with self._call("plan.create", plan_id=request.plan_id):
            plan = stripe.Plan.create(api_key=self.api_key, **request.to_params())

        logger.info("stripe_plan_created", plan_id=plan.id, currency=request.currency)
        return RemotePlan(
            plan_id=plan.id, amount_minor=_field(plan, "amount"), currency=_field(plan, "currency")
        )

    def create_subscription(self, request: SubscriptionRequest) -> RemoteSubscription:
        with self._call("subscription.create", customer_id=request.customer_id):
            subscription = stripe.Subscription.create(api_key=self.api_key, **request.to_params())

        logger.info(
            "stripe_subscription_created",
            subscription_id=subscription.id,
            customer_id=request.customer_id,
            trial_end=request.trial_end,
        )
        return RemoteSubscription(
            subscription_id=subscription.id, status=_field(subscription, "status")
        )
