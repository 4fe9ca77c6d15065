"""
Provider Models - Typed requests to and results from the payment provider.

NO DICTIONARIES cross the provider boundary except the final request params,
which each request model renders field-exact with to_params().
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentStatus(str, Enum):
    """Payment/setup intent status vocabulary."""

    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    CANCELED = "canceled"
    SUCCEEDED = "succeeded"


# Intents in these statuses can still be cancelled on the provider side.
CANCELABLE_STATUSES = frozenset(
    {
        IntentStatus.REQUIRES_PAYMENT_METHOD.value,
        IntentStatus.REQUIRES_CAPTURE.value,
        IntentStatus.REQUIRES_CONFIRMATION.value,
        IntentStatus.REQUIRES_ACTION.value,
    }
)


class IntentKind(str, Enum):
    PAYMENT = "payment_intent"
    SETUP = "setup_intent"


class LookupOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    LOOKUP_ERROR = "lookup_error"


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class CardDetails:
    """Card metadata reported by the provider. Any field may be missing."""

    brand: str | None = None
    last4: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None


@dataclass(frozen=True)
class RemoteCharge:
    charge_id: str
    card: CardDetails | None = None


@dataclass(frozen=True)
class RemoteIntent:
    """A payment intent or setup intent as last reported by the provider."""

    intent_id: str
    kind: IntentKind
    status: str
    client_secret: str = ""
    amount_minor: int | None = None
    currency: str | None = None
    customer_id: str | None = None
    payment_method_id: str | None = None
    charges: tuple[RemoteCharge, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == IntentStatus.SUCCEEDED.value

    @property
    def canceled(self) -> bool:
        return self.status == IntentStatus.CANCELED.value

    @property
    def cancelable(self) -> bool:
        return self.status in CANCELABLE_STATUSES


@dataclass(frozen=True)
class RemoteCustomer:
    customer_id: str
    email: str | None = None


@dataclass(frozen=True)
class CustomerLookup:
    """
    Outcome of looking a customer up by e-mail.

    A failed lookup is a value, not an exception: callers decide explicitly
    how to treat it.
    """

    outcome: LookupOutcome
    customer: RemoteCustomer | None = None
    error: str | None = None

    @classmethod
    def found(cls, customer: RemoteCustomer) -> "CustomerLookup":
        return cls(outcome=LookupOutcome.FOUND, customer=customer)

    @classmethod
    def not_found(cls) -> "CustomerLookup":
        return cls(outcome=LookupOutcome.NOT_FOUND)

    @classmethod
    def lookup_error(cls, error: str) -> "CustomerLookup":
        return cls(outcome=LookupOutcome.LOOKUP_ERROR, error=error)


@dataclass(frozen=True)
class RemotePaymentMethod:
    payment_method_id: str
    card: CardDetails | None = None


@dataclass(frozen=True)
class RemotePlan:
    plan_id: str
    amount_minor: int | None = None
    currency: str | None = None


@dataclass(frozen=True)
class RemoteSubscription:
    subscription_id: str
    status: str | None = None


# ============================================================================
# Requests
# ============================================================================


@dataclass(frozen=True)
class CustomerAddress:
    line1: str = ""
    line2: str = ""
    city: str = ""
    country: str = ""
    state: str = ""
    postal_code: str = ""

    def to_params(self) -> dict[str, str]:
        params = {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "country": self.country,
            "state": self.state,
        }
        if self.postal_code:
            params["postal_code"] = self.postal_code
        return params


@dataclass(frozen=True)
class CustomerPayload:
    """Customer create/update request."""

    name: str
    integration_tag: str
    email: str | None = None
    address: CustomerAddress | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "name": self.name,
            "metadata": {self.integration_tag: 1},
        }
        if self.email is not None:
            params["email"] = self.email
        if self.address is not None:
            params["address"] = self.address.to_params()
        return params


@dataclass(frozen=True)
class PaymentIntentRequest:
    amount_minor: int
    currency: str
    order_id: str
    gateway_label: str
    customer_id: str | None = None
    receipt_email: str | None = None

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "amount": self.amount_minor,
            "currency": self.currency.lower(),
            "payment_method_types": ["card"],
            "metadata": {
                "order_id": self.order_id,
                "payment_gateway": self.gateway_label,
            },
            "capture_method": "automatic",
        }
        if self.customer_id:
            params["customer"] = self.customer_id
        if self.receipt_email:
            params["receipt_email"] = self.receipt_email
        return params


@dataclass(frozen=True)
class SetupIntentRequest:
    customer_id: str
    order_id: str
    gateway_label: str

    def to_params(self) -> dict[str, Any]:
        return {
            "customer": self.customer_id,
            "payment_method_types": ["card"],
            "metadata": {
                "order_id": self.order_id,
                "payment_gateway": self.gateway_label,
            },
            "usage": "off_session",
        }


@dataclass(frozen=True)
class PlanRequest:
    plan_id: str
    name: str
    currency: str
    integration_tag: str
    amount_minor: int = 100

    def to_params(self) -> dict[str, Any]:
        return {
            "id": self.plan_id,
            "amount": self.amount_minor,
            "currency": self.currency.lower(),
            "billing_scheme": "per_unit",
            "interval": "month",
            "product": {
                "id": self.plan_id,
                "name": self.name,
                "metadata": {self.integration_tag: 1},
            },
        }


@dataclass(frozen=True)
class SubscriptionRequest:
    customer_id: str
    plan_id: str
    quantity: int
    trial_end: int
    default_payment_method: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_params(self) -> dict[str, Any]:
        return {
            "customer": self.customer_id,
            "trial_end": self.trial_end,
            "items": [{"plan": self.plan_id, "quantity": self.quantity}],
            "metadata": dict(self.metadata),
            # Pinned, otherwise the provider may bill another stored card.
            "default_payment_method": self.default_payment_method,
        }
