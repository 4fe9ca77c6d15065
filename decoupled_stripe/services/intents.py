"""
Intent Lifecycle Manager - Creates, reads and cancels Stripe intents and
translates their status into local payment state.

Every decline saves the payment's new state before raising, so the record
explains the outcome the caller sees as an error.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import NoReturn

from structlog import get_logger

from decoupled_stripe.exceptions import (
    DeclineError,
    MissingPaymentMethodError,
    PaymentGatewayError,
    PaymentProviderError,
    PaymentStateError,
)
from decoupled_stripe.models.domain import (
    OPEN_STATES,
    TERMINAL_STATES,
    Payment,
    PaymentMethod,
    PaymentState,
)
from decoupled_stripe.models.provider import (
    CardDetails,
    IntentKind,
    IntentStatus,
    PaymentIntentRequest,
    RemoteIntent,
    SetupIntentRequest,
)
from decoupled_stripe.observability.metrics import metrics
from decoupled_stripe.services.amounts import to_minor_units
from decoupled_stripe.services.payment_provider import PaymentProvider

logger = get_logger(__name__)

# Stripe expires unconfirmed intents after a day.
PENDING_EXPIRY = timedelta(hours=24)

# Shown on the payment method until a capture reports the real brand.
PLACEHOLDER_CARD_TYPE = "visa"


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def assert_payment_state(payment: Payment, allowed: tuple[PaymentState, ...]) -> None:
    if payment.state not in {state.value for state in allowed}:
        raise PaymentStateError.unexpected_state(payment.state, allowed)


def assert_payment_method(payment: Payment) -> PaymentMethod:
    payment_method = payment.payment_method
    if payment_method is None:
        raise MissingPaymentMethodError()
    return payment_method


def apply_card_details(payment_method: PaymentMethod, card: CardDetails | None) -> None:
    """Copy reported card fields onto the payment method; missing fields stay unset."""
    if card is None:
        return
    if card.brand is not None:
        payment_method.card_type = card.brand
    if card.last4 is not None:
        payment_method.card_number = card.last4
    if card.exp_month is not None:
        payment_method.card_exp_month = card.exp_month
    if card.exp_year is not None:
        payment_method.card_exp_year = card.exp_year


class IntentLifecycleManager:
    """
    Shared intent handling for the one-off and recurring gateways.

    Remote status is fetched fresh on every capture and void; nothing is
    cached between calls.
    """

    def __init__(
        self,
        provider: PaymentProvider,
        gateway_label: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.provider = provider
        self.gateway_label = gateway_label
        self.clock = clock

    # ========================================================================
    # State changes
    # ========================================================================

    def transition(self, payment: Payment, state: PaymentState) -> None:
        """Set and save a payment's state. Terminal states are never left."""
        current = payment.state
        if current != state.value and current in {s.value for s in TERMINAL_STATES}:
            raise PaymentStateError(
                f"Payment state {current!r} is final and cannot become {state.value!r}",
                state=current,
            )
        payment.state = state.value
        payment.save()
        metrics.record_transition(self.gateway_label, state.value)
        logger.info(
            "payment_state_changed",
            order_id=payment.order_id,
            from_state=current,
            to_state=state.value,
        )

    def decline(
        self, payment: Payment, state: PaymentState | None, message: str, reason: str
    ) -> NoReturn:
        """Save the payment in `state` (if given), then raise a decline."""
        if state is not None:
            self.transition(payment, state)
        metrics.record_decline(self.gateway_label, reason)
        logger.warning(
            "payment_declined",
            order_id=payment.order_id,
            state=payment.state,
            reason=reason,
        )
        raise DeclineError(message, reason=reason)

    def is_expired(self, payment_method: PaymentMethod) -> bool:
        """
        Whether the intent window, counted from the payment method's creation, has passed.

        Naive timestamps from the host are read as local time.
        """
        created_at = payment_method.created_at.astimezone()
        return created_at < self.clock().astimezone() - PENDING_EXPIRY

    def settle_unfinished(
        self, payment: Payment, payment_method: PaymentMethod, noun: str = "payment"
    ) -> NoReturn:
        """
        Record an intent that has not succeeded yet.

        Within the window the payment stays in authorization so a later
        capture can still complete it; after it, the payment is expired.
        """
        if self.is_expired(payment_method):
            self.decline(
                payment,
                PaymentState.AUTHORIZATION_EXPIRED,
                f"The {noun} has expired.",
                reason="expired",
            )
        self.decline(
            payment,
            PaymentState.AUTHORIZATION,
            f"The {noun} is not (yet) succeeded.",
            reason="not_succeeded",
        )

    # ========================================================================
    # Remote intents
    # ========================================================================

    def create_payment_intent(
        self,
        payment: Payment,
        payment_method: PaymentMethod,
        receipt_email: str | None = None,
    ) -> RemoteIntent:
        """
        Create a payment intent for the payment's amount.

        Stores the client secret on the payment and the intent ID on the
        payment method. Nothing is saved if the provider call fails.

        Raises:
            DeclineError: If Stripe could not create the intent
        """
        request = PaymentIntentRequest(
            amount_minor=to_minor_units(payment.amount),
            currency=payment.order.total_price.currency_code,
            order_id=str(payment.order_id),
            gateway_label=self.gateway_label,
            customer_id=payment_method.remote_customer_id,
            receipt_email=receipt_email,
        )
        try:
            intent = self.provider.create_payment_intent(request)
        except PaymentProviderError as exc:
            logger.error("payment_intent_creation_failed", order_id=payment.order_id, error=str(exc))
            self.decline(
                payment, None, "Server could not create payment intent.", reason="create_failed"
            )

        self._store_intent(payment, payment_method, intent)
        payment_method.card_type = PLACEHOLDER_CARD_TYPE
        payment_method.save()
        return intent

    def create_setup_intent(self, payment: Payment, payment_method: PaymentMethod) -> RemoteIntent:
        """
        Create an off-session setup intent for the payment method's customer.

        Raises:
            DeclineError: If there is no customer or Stripe could not create the intent
        """
        if not payment_method.remote_customer_id:
            self.decline(payment, None, "Server could not find a customer.", reason="no_customer")

        request = SetupIntentRequest(
            customer_id=payment_method.remote_customer_id,
            order_id=str(payment.order_id),
            gateway_label=self.gateway_label,
        )
        try:
            intent = self.provider.create_setup_intent(request)
        except PaymentProviderError as exc:
            logger.error("setup_intent_creation_failed", order_id=payment.order_id, error=str(exc))
            self.decline(
                payment, None, "Server could not create setup intent.", reason="create_failed"
            )

        self._store_intent(payment, payment_method, intent)
        payment_method.save()
        return intent

    def _store_intent(
        self, payment: Payment, payment_method: PaymentMethod, intent: RemoteIntent
    ) -> None:
        # The client secret is what the client application needs; the intent
        # ID stays on the payment method for capture and void.
        payment.remote_id = intent.client_secret
        payment.save()
        payment_method.remote_id = intent.intent_id

    def retrieve(self, payment: Payment, payment_method: PaymentMethod, kind: IntentKind) -> RemoteIntent:
        """
        Fetch the current state of the payment method's intent.

        Raises:
            PaymentStateError: If no intent was ever created for the payment method
            DeclineError: If Stripe could not be reached; the payment is not changed
        """
        if not payment_method.remote_id:
            raise PaymentStateError(
                "The payment method has no remote intent to reconcile", state=payment.state
            )
        try:
            if kind is IntentKind.SETUP:
                return self.provider.retrieve_setup_intent(payment_method.remote_id)
            return self.provider.retrieve_payment_intent(payment_method.remote_id)
        except PaymentProviderError as exc:
            logger.error(
                "intent_retrieval_failed",
                order_id=payment.order_id,
                intent_id=payment_method.remote_id,
                error=str(exc),
            )
            self.decline(
                payment, None, "Server could not load the payment status.", reason="provider_error"
            )

    # ========================================================================
    # Capture
    # ========================================================================

    def capture_payment_intent(self, payment: Payment) -> RemoteIntent:
        """
        Reconcile a one-off payment with its payment intent.

        Raises:
            DeclineError: For every outcome except a completed payment
        """
        assert_payment_state(payment, OPEN_STATES)
        payment_method = assert_payment_method(payment)
        intent = self.retrieve(payment, payment_method, IntentKind.PAYMENT)

        logger.info(
            "capturing_payment",
            order_id=payment.order_id,
            intent_id=intent.intent_id,
            status=intent.status,
        )

        if intent.canceled or intent.status == IntentStatus.REQUIRES_PAYMENT_METHOD.value:
            self.decline(
                payment,
                PaymentState.AUTHORIZATION_VOIDED,
                "The payment has been cancelled.",
                reason="cancelled",
            )
        if not intent.succeeded:
            self.settle_unfinished(payment, payment_method)

        if not intent.charges:
            self.decline(
                payment,
                PaymentState.AUTHORIZATION,
                "Couldn't load payment data.",
                reason="missing_charge",
            )

        charge = intent.charges[0]
        apply_card_details(payment_method, charge.card)
        payment_method.remote_id = charge.charge_id
        payment_method.save()

        payment.remote_id = intent.intent_id
        self.transition(payment, PaymentState.COMPLETED)
        return intent

    # ========================================================================
    # Void
    # ========================================================================

    def void(self, payment: Payment, kind: IntentKind) -> RemoteIntent:
        """
        Cancel the payment's intent and void the payment.

        Raises:
            PaymentGatewayError: If the intent is past the point where it can be cancelled
        """
        assert_payment_state(payment, OPEN_STATES)
        payment_method = assert_payment_method(payment)
        intent = self.retrieve(payment, payment_method, kind)

        if not intent.cancelable:
            logger.warning(
                "void_rejected",
                order_id=payment.order_id,
                intent_id=intent.intent_id,
                status=intent.status,
            )
            raise PaymentGatewayError(
                f"The payment cannot be voided: intent status is {intent.status!r}."
            )

        try:
            if kind is IntentKind.SETUP:
                self.provider.cancel_setup_intent(intent.intent_id)
            else:
                self.provider.cancel_payment_intent(intent.intent_id)
        except PaymentProviderError as exc:
            logger.error("intent_cancel_failed", intent_id=intent.intent_id, error=str(exc))
            self.decline(
                payment, None, "Server could not cancel the payment.", reason="provider_error"
            )

        payment.remote_id = intent.intent_id
        self.transition(payment, PaymentState.AUTHORIZATION_VOIDED)
        return intent
