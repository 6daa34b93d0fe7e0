"""DHCP billing plan catalogue endpoints."""

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, Response

from mikrobill.auth import CurrentUser
from mikrobill.models.billing import BillingPlan, BillingPlanCreate, BillingPlanUpdate
from mikrobill.services.plan_store import PlanRepository

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/dhcp-billing-plans", tags=["plans"])


def _get_plan_repository(request: Request) -> PlanRepository:
    repository = getattr(request.app.state, "plan_repository", None)
    if repository is None:
        raise HTTPException(status_code=503, detail="Plan store unavailable")
    return repository


@router.get("", response_model=list[BillingPlan])
async def list_plans(
    request: Request,
    _user: CurrentUser,
    router_id: str = Query(alias="routerId"),
) -> list[BillingPlan]:
    """List a router's plans in catalogue order."""
    return await _get_plan_repository(request).list_plans(router_id)


@router.post("", response_model=BillingPlan, status_code=201)
async def create_plan(body: BillingPlanCreate, request: Request, _user: CurrentUser) -> BillingPlan:
    """Add a plan to a router's catalogue."""
    plan = await _get_plan_repository(request).create_plan(body)
    logger.info("billing_plan_added", plan_id=plan.id, router_id=plan.router_id)
    return plan


@router.patch("/{plan_id}", response_model=BillingPlan)
async def update_plan(
    plan_id: str, body: BillingPlanUpdate, request: Request, _user: CurrentUser
) -> BillingPlan:
    """Change a plan. Existing sales keep the price they were recorded with."""
    plan = await _get_plan_repository(request).update_plan(plan_id, body)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


@router.delete("/{plan_id}", status_code=204)
async def delete_plan(plan_id: str, request: Request, _user: CurrentUser) -> Response:
    """Remove a plan from the catalogue."""
    deleted = await _get_plan_repository(request).delete_plan(plan_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Plan not found")
    return Response(status_code=204)
