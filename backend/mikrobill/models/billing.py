"""Billing plan, subscription state, charge and sale models."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from mikrobill.constants import CYCLE_LABEL_DAYS, DEFAULT_CYCLE_DAYS


class BillingType(str, Enum):
    """Whether a client pays before or after the service period."""

    PREPAID = "prepaid"
    POSTPAID = "postpaid"


class BillingPlan(BaseModel):
    """A DHCP billing plan from the plan catalogue.

    `cycle_days` is not constrained here so that a zero-length cycle coming from
    the store still prices to zero per day instead of failing validation.
    """

    id: str
    name: str
    price: float = Field(ge=0)
    cycle_days: int
    speed_limit: str | None = None
    currency: str = "USD"
    router_id: str | None = None


class BillingPlanCreate(BaseModel):
    """Request body for creating a DHCP billing plan."""

    router_id: str
    name: str = Field(min_length=1)
    price: float = Field(ge=0)
    cycle_days: int = Field(gt=0)
    speed_limit: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class BillingPlanUpdate(BaseModel):
    """Partial update of a DHCP billing plan."""

    name: str | None = Field(default=None, min_length=1)
    price: float | None = Field(default=None, ge=0)
    cycle_days: int | None = Field(default=None, gt=0)
    speed_limit: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)

    def changes(self) -> dict:
        """Fields to apply. An explicit null only clears `speed_limit`; elsewhere it is ignored."""
        data = self.model_dump(mode="json", exclude_unset=True)
        return {key: value for key, value in data.items() if value is not None or key == "speed_limit"}


class PppoeBillingPlan(BaseModel):
    """PPPoE plan priced per named cycle (Monthly/Quarterly/Yearly)."""

    id: str
    name: str
    price: float = Field(ge=0)
    cycle: str = "Monthly"
    pppoe_profile: str = ""
    currency: str = "USD"

    @property
    def cycle_days(self) -> int:
        return CYCLE_LABEL_DAYS.get(self.cycle, DEFAULT_CYCLE_DAYS)

    def as_billing_plan(self) -> BillingPlan:
        """View this plan as a day-based plan so the charge calculator applies."""
        return BillingPlan(
            id=self.id,
            name=self.name,
            price=self.price,
            cycle_days=self.cycle_days,
            currency=self.currency,
        )


class ClientSubscriptionState(BaseModel):
    """Subscription metadata decoded from a client's comment annotation."""

    due_date: date | None = None
    billing_type: BillingType = BillingType.PREPAID
    plan_name: str | None = None
    # Set by the router API when it resolves an exact expiry; never encoded by us
    due_date_time: datetime | None = None


class ChargeCalculation(BaseModel):
    """Derived price breakdown for one billing cycle."""

    price: float = 0.0
    price_per_day: float = 0.0
    discount: float = 0.0
    total: float = 0.0


class SaleRecord(BaseModel):
    """Immutable ledger entry for one completed billing transaction."""

    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime
    client_name: str
    plan_name: str
    plan_price: float
    discount_amount: float
    final_amount: float
    currency: str
    router_id: str | None = None
    router_name: str = ""
    client_address: str | None = None
    client_contact: str | None = None
    client_email: str | None = None
