"""
Recurring Plan Manager - The monthly plan behind recurring payments and the
date their billing starts.
"""

import calendar
from datetime import datetime

from structlog import get_logger

from decoupled_stripe.exceptions import PaymentProviderError
from decoupled_stripe.models.provider import PlanRequest, RemotePlan
from decoupled_stripe.services.payment_provider import PaymentProvider

logger = get_logger(__name__)

# Plan price in minor units: one unit of currency. Subscriptions express the
# amount through their quantity.
PLAN_BASE_AMOUNT_MINOR = 100

BILLING_HOUR = 11


def compute_next_billing_start(day_of_month: int, now: datetime) -> int:
    """
    Epoch seconds at which recurring billing should start.

    Billing starts on `day_of_month` of the current month if that day is
    still ahead, otherwise of the next month, at 11:00 in `now`'s timezone
    (local time for naive datetimes). The month shift never skips a month,
    and a day past the end of the target month is clamped to its last day:
    evaluated on Jan 31 with day 31, billing starts Feb 28 (or 29).
    """
    year, month = now.year, now.month
    if now.day >= day_of_month:
        month += 1
        if month > 12:
            year, month = year + 1, 1

    last_day = calendar.monthrange(year, month)[1]
    start = datetime(
        year, month, min(day_of_month, last_day), BILLING_HOUR, 0, tzinfo=now.tzinfo
    )
    return int(start.timestamp())


class RecurringPlanManager:
    """Fetches the configured Stripe plan, creating it on first use."""

    def __init__(
        self, provider: PaymentProvider, plan_id: str, plan_name: str, integration_tag: str
    ) -> None:
        self.provider = provider
        self.plan_id = plan_id
        self.plan_name = plan_name
        self.integration_tag = integration_tag

    def get_or_create_plan(self, currency: str) -> RemotePlan:
        """
        Return the configured plan.

        Any retrieval failure, not only a missing plan, leads to a create
        attempt; a create failure is raised.

        Raises:
            PaymentProviderError: If the plan could not be created
        """
        try:
            return self.provider.retrieve_plan(self.plan_id)
        except PaymentProviderError as exc:
            logger.info("recurring_plan_not_retrieved", plan_id=self.plan_id, error=str(exc))

        return self.provider.create_plan(
            PlanRequest(
                plan_id=self.plan_id,
                name=self.plan_name,
                currency=currency,
                integration_tag=self.integration_tag,
                amount_minor=PLAN_BASE_AMOUNT_MINOR,
            )
        )
