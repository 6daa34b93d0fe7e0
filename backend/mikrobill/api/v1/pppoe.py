"""PPPoE payment quote endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from mikrobill.auth import CurrentUser
from mikrobill.models.billing import ChargeCalculation, PppoeBillingPlan
from mikrobill.services.charge_calculator import calculate_charge, effective_service_days
from mikrobill.services.expiry import renewal_expires_at

router = APIRouter(prefix="/pppoe", tags=["pppoe"])


class PppoeQuoteRequest(BaseModel):
    """Payment modal inputs for a PPPoE secret."""

    plan: PppoeBillingPlan
    discount_days: int = 0
    payment_date: datetime | None = Field(default=None, description="Defaults to now (UTC)")


class PppoeQuoteResponse(BaseModel):
    """Amounts and the resulting due date of a PPPoE payment."""

    calculation: ChargeCalculation
    cycle_days: int
    service_days: int
    expires_at: datetime


@router.post("/quote", response_model=PppoeQuoteResponse)
async def pppoe_quote(body: PppoeQuoteRequest, _user: CurrentUser) -> PppoeQuoteResponse:
    """Price a PPPoE renewal; discount days shorten the cycle as well as the price."""
    start = body.payment_date or datetime.now(UTC)
    cycle_days = body.plan.cycle_days
    return PppoeQuoteResponse(
        calculation=calculate_charge(body.plan.as_billing_plan(), body.discount_days),
        cycle_days=cycle_days,
        service_days=effective_service_days(cycle_days, body.discount_days),
        expires_at=renewal_expires_at(start, cycle_days, body.discount_days),
    )
