"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from decoupled_stripe.models.domain import PaymentState


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    pass


class DeclineError(GatewayError):
    """
    Raised when a payment did not complete and the payer should be told so.

    The local payment record is saved before this is raised, so its state
    explains the outcome even though the caller sees a failure.
    """

    def __init__(self, message: str, reason: str = "declined") -> None:
        self.message = message
        self.reason = reason
        super().__init__(message)


class PaymentStateError(GatewayError):
    """Raised when an operation is called on a payment in the wrong state."""

    def __init__(self, message: str, state: str | None = None) -> None:
        self.message = message
        self.state = state
        super().__init__(message)

    @classmethod
    def unexpected_state(
        cls, state: str, allowed: tuple[PaymentState, ...]
    ) -> "PaymentStateError":
        allowed_names = ", ".join(s.value for s in allowed)
        return cls(f"Payment state {state!r} is not one of: {allowed_names}", state=state)


class MissingPaymentMethodError(PaymentStateError):
    """Raised when a payment has no payment method to operate on."""

    def __init__(self) -> None:
        super().__init__("The provided payment has no payment method referenced")


class PaymentGatewayError(GatewayError):
    """Raised when the provider-side object does not allow the requested operation."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PaymentProviderError(GatewayError):
    """Raised when a payment provider call fails."""

    def __init__(self, message: str, operation: str = "") -> None:
        self.message = message
        self.operation = operation
        super().__init__(f"Payment provider error: {message}")
