"""
Amount normalization - decimal prices to Stripe's integer minor units.
"""

from decimal import ROUND_HALF_UP, Decimal

from decoupled_stripe.models.domain import Price

# Currencies Stripe charges in whole units.
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def fraction_digits(currency_code: str) -> int:
    return 0 if currency_code.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Price) -> int:
    """
    Convert a price to the integer amount Stripe expects.

    Uses exact decimal arithmetic and rounds half away from zero:
    10.005 USD -> 1001, 500 JPY -> 500.
    """
    scaled = amount.number.scaleb(fraction_digits(amount.currency_code))
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))
