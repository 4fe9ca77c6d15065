"""
Domain Models - The slice of the host's order/payment model the gateways use.

The host owns persistence. Payments and payment methods are consumed through
the Protocols below; value objects are immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol


class PaymentState(str, Enum):
    """Local payment state enumeration."""

    NEW = "new"
    AUTHORIZATION = "authorization"
    COMPLETED = "completed"
    AUTHORIZATION_VOIDED = "authorization_voided"
    AUTHORIZATION_EXPIRED = "authorization_expired"

    @property
    def is_terminal(self) -> bool:
        """Terminal states are never left once entered."""
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        PaymentState.COMPLETED,
        PaymentState.AUTHORIZATION_VOIDED,
        PaymentState.AUTHORIZATION_EXPIRED,
    }
)

# States a capture or void may start from.
OPEN_STATES = (PaymentState.NEW, PaymentState.AUTHORIZATION)


@dataclass(frozen=True)
class Price:
    """A decimal amount in a currency."""

    number: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        """Validate price fields."""
        if not isinstance(self.number, Decimal):
            object.__setattr__(self, "number", Decimal(str(self.number)))
        if len(self.currency_code) != 3:
            raise ValueError(f"Invalid currency code: {self.currency_code}")


@dataclass(frozen=True)
class BillingAddress:
    """Postal address taken from the payment method's billing profile."""

    given_name: str = ""
    family_name: str = ""
    address_line1: str = ""
    address_line2: str = ""
    locality: str = ""
    country_code: str = ""
    administrative_area: str = ""
    postal_code: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.family_name}".strip()


class Owner(Protocol):
    email: str | None


class Order(Protocol):
    total_price: Price
    email: str | None


class PaymentMethod(Protocol):
    """Host payment method record."""

    owner: Owner | None
    billing_address: BillingAddress | None
    remote_customer_id: str | None
    remote_id: str | None
    card_type: str | None
    card_number: str | None
    card_exp_month: int | None
    card_exp_year: int | None
    reusable: bool
    created_at: datetime

    def save(self) -> None: ...

    def delete(self) -> None: ...


class Payment(Protocol):
    """Host payment record."""

    amount: Price
    order_id: str
    order: Order
    payment_method: PaymentMethod | None
    remote_id: str | None
    state: str

    def save(self) -> None: ...
