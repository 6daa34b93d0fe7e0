"""Plan preselection for activation forms."""

from collections.abc import Sequence

from mikrobill.models.billing import BillingPlan


def preselect_plan(
    plans: Sequence[BillingPlan], plan_name_hint: str | None = None
) -> BillingPlan | None:
    """
    Pick the plan an activation form should open with.

    First match wins:
      1. a plan whose name equals the decoded plan-name hint exactly
      2. the first plan in catalogue order
      3. None when the catalogue is empty
    """
    if plan_name_hint:
        for plan in plans:
            if plan.name == plan_name_hint:
                return plan
    return plans[0] if plans else None


def find_plan(plans: Sequence[BillingPlan], plan_id: str | None) -> BillingPlan | None:
    """Look a plan up by id in an already-loaded catalogue."""
    if not plan_id:
        return None
    return next((plan for plan in plans if plan.id == plan_id), None)
