"""
Deterministic charge calculator for plan renewals.

Pure function: calculate_charge(plan, downtime_days) -> ChargeCalculation.

    price_per_day = price / cycle_days      (0 when cycle_days <= 0)
    discount      = price_per_day * downtime_days
    total         = max(0, price - discount)

No rounding is applied; display code formats currency. `discount` is reported
as computed, only `total` is floored at zero. Negative downtime is not guarded
and raises the total.
"""

from mikrobill.models.billing import BillingPlan, ChargeCalculation


def price_per_day(price: float, cycle_days: int) -> float:
    """Daily rate of a plan; zero for a non-positive cycle length."""
    if cycle_days <= 0:
        return 0.0
    return price / cycle_days


def calculate_charge(plan: BillingPlan | None, downtime_days: int = 0) -> ChargeCalculation:
    """
    Compute the price breakdown for one cycle of `plan`.

    Args:
        plan: Selected plan, or None when nothing is selected yet.
        downtime_days: Days of service interruption credited back.

    Returns:
        ChargeCalculation; all zeros when `plan` is None.
    """
    if plan is None:
        return ChargeCalculation()

    daily = price_per_day(plan.price, plan.cycle_days)
    discount = daily * downtime_days
    return ChargeCalculation(
        price=plan.price,
        price_per_day=daily,
        discount=discount,
        total=max(0.0, plan.price - discount),
    )


def effective_service_days(cycle_days: int, discount_days: int) -> int:
    """Days of service a PPPoE payment buys after discount days are removed."""
    return max(0, cycle_days - discount_days)
