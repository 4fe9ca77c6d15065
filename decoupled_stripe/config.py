"""
Gateway Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Credentials are validated when settings are constructed.
"""

import sys

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from decoupled_stripe import __version__


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class GatewaySettings(BaseSettings):
    """Gateway settings loaded from environment variables or passed explicitly."""

    # Provider credentials
    secret_key: str = ""  # Stripe secret key (sk_test_... or sk_live_...)
    publishable_key: str = ""  # Handed to the client application, never used server-side

    # One-off gateway
    enable_receipt_email: bool = False

    # Recurring gateway
    recurring_start_day: int = Field(default=2, ge=1, le=30)
    recurring_plan_id: str = "decoupled_stripe_monthly"
    recurring_plan_name: str = "Monthly donation"

    # Metadata key marking provider records created by this integration
    integration_tag: str = "decoupled_stripe"
    gateway_label: str | None = None  # Overrides the per-flavor default label

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "decoupled-stripe"
    service_version: str = __version__

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True

    model_config = SettingsConfigDict(
        env_prefix="DECOUPLED_STRIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_credentials(self) -> "GatewaySettings":
        """
        FAIL FAST: Reject settings the gateway cannot work with.

        A gateway without a usable secret key would only fail on the first
        provider call, in the middle of a customer's checkout.
        """
        errors: list[str] = []

        if not self.secret_key:
            errors.append("SECRET_KEY is required but empty or missing")
        elif not self.secret_key.startswith(("sk_", "rk_")):
            errors.append("SECRET_KEY must be a Stripe secret (sk_) or restricted (rk_) key")

        if self.publishable_key and not self.publishable_key.startswith("pk_"):
            errors.append("PUBLISHABLE_KEY must start with pk_")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "GATEWAY CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  - {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


def load_settings(**overrides: object) -> GatewaySettings:
    """Build gateway settings from the environment, with explicit overrides."""
    return GatewaySettings(**overrides)  # type: ignore[arg-type]
