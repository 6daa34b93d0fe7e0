"""DHCP billing plan catalogue repositories."""

import uuid
from datetime import UTC, datetime
from typing import Protocol

import structlog

from mikrobill.models.billing import BillingPlan, BillingPlanCreate, BillingPlanUpdate

logger = structlog.get_logger(__name__)


def new_plan_id() -> str:
    return f"dhcp_plan_{uuid.uuid4().hex}"


class PlanRepository(Protocol):
    """Storage contract for the plan catalogue.

    `list_plans` returns plans in catalogue (insertion) order; plan
    preselection relies on that order.
    """

    async def list_plans(self, router_id: str) -> list[BillingPlan]:
        """List a router's plans in catalogue order."""

    async def get_plan(self, plan_id: str) -> BillingPlan | None:
        """Fetch one plan."""

    async def create_plan(self, data: BillingPlanCreate) -> BillingPlan:
        """Persist a new plan."""

    async def update_plan(self, plan_id: str, data: BillingPlanUpdate) -> BillingPlan | None:
        """Apply a partial update. Returns None if the plan does not exist."""

    async def delete_plan(self, plan_id: str) -> bool:
        """Remove a plan. Returns False if it did not exist."""


class InMemoryPlanRepository:
    """In-memory repository used for tests and local fallback."""

    def __init__(self, default_currency: str = "USD") -> None:
        self.default_currency = default_currency
        self.plans: dict[str, BillingPlan] = {}

    async def list_plans(self, router_id: str) -> list[BillingPlan]:
        return [
            plan.model_copy(deep=True)
            for plan in self.plans.values()
            if plan.router_id == router_id
        ]

    async def get_plan(self, plan_id: str) -> BillingPlan | None:
        plan = self.plans.get(plan_id)
        return plan.model_copy(deep=True) if plan else None

    async def create_plan(self, data: BillingPlanCreate) -> BillingPlan:
        plan = BillingPlan(
            id=new_plan_id(),
            router_id=data.router_id,
            name=data.name,
            price=data.price,
            cycle_days=data.cycle_days,
            speed_limit=data.speed_limit,
            currency=data.currency or self.default_currency,
        )
        self.plans[plan.id] = plan
        return plan.model_copy(deep=True)

    async def update_plan(self, plan_id: str, data: BillingPlanUpdate) -> BillingPlan | None:
        existing = self.plans.get(plan_id)
        if existing is None:
            return None
        updated = BillingPlan.model_validate({**existing.model_dump(), **data.changes()})
        self.plans[plan_id] = updated
        return updated.model_copy(deep=True)

    async def delete_plan(self, plan_id: str) -> bool:
        return self.plans.pop(plan_id, None) is not None


class SupabasePlanRepository:
    """Supabase-backed repository for the plan catalogue."""

    def __init__(self, client, table: str, default_currency: str = "USD"):
        self.client = client
        self.table = table
        self.default_currency = default_currency

    def _to_plan(self, row: dict) -> BillingPlan:
        # Older rows were saved without a currency
        row = {**row, "currency": row.get("currency") or self.default_currency}
        return BillingPlan.model_validate(row)

    async def list_plans(self, router_id: str) -> list[BillingPlan]:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("router_id", router_id)
            .order("created_at")
            .execute()
        )
        return [self._to_plan(row) for row in response.data or []]

    async def get_plan(self, plan_id: str) -> BillingPlan | None:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("id", plan_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return self._to_plan(rows[0])

    async def create_plan(self, data: BillingPlanCreate) -> BillingPlan:
        payload = data.model_dump(mode="json")
        payload["id"] = new_plan_id()
        payload["currency"] = data.currency or self.default_currency
        payload["created_at"] = datetime.now(UTC).isoformat()
        response = await self.client.table(self.table).insert(payload).execute()
        rows = response.data or [payload]
        logger.info("billing_plan_created", plan_id=payload["id"], router_id=data.router_id)
        return self._to_plan(rows[0])

    async def update_plan(self, plan_id: str, data: BillingPlanUpdate) -> BillingPlan | None:
        changes = data.changes()
        if not changes:
            return await self.get_plan(plan_id)
        response = (
            await self.client.table(self.table)
            .update(changes)
            .eq("id", plan_id)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return self._to_plan(rows[0])

    async def delete_plan(self, plan_id: str) -> bool:
        response = await self.client.table(self.table).delete().eq("id", plan_id).execute()
        return bool(response.data)
