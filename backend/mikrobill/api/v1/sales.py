"""Sale ledger endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from mikrobill.auth import AuthenticatedUser, CurrentUser, require_permission
from mikrobill.models.billing import SaleRecord
from mikrobill.services.sales_ledger import SaleLedger

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sales", tags=["sales"])

SALES_DELETE_PERMISSION = "sales_report:delete"

SalesAdmin = Annotated[AuthenticatedUser, Depends(require_permission(SALES_DELETE_PERMISSION))]


class ClearSalesRequest(BaseModel):
    """Clear every sale of one router."""

    router_id: str = Field(alias="routerId")


class ClearSalesResponse(BaseModel):
    deleted: int


def _get_sale_ledger(request: Request) -> SaleLedger:
    ledger = getattr(request.app.state, "sale_ledger", None)
    if ledger is None:
        raise HTTPException(status_code=503, detail="Sale ledger unavailable")
    return ledger


@router.get("", response_model=list[SaleRecord])
async def list_sales(
    request: Request,
    _user: CurrentUser,
    router_id: str = Query(alias="routerId"),
) -> list[SaleRecord]:
    """List a router's sales, newest first."""
    return await _get_sale_ledger(request).list_sales(router_id)


@router.delete("/{sale_id}", status_code=204)
async def delete_sale(sale_id: str, request: Request, user: SalesAdmin) -> Response:
    """Hard-delete one sale."""
    deleted = await _get_sale_ledger(request).delete_sale(sale_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Sale not found")
    logger.info("sale_deleted", sale_id=sale_id, user_id=user.id)
    return Response(status_code=204)


@router.post("/clear-all", response_model=ClearSalesResponse)
async def clear_sales(body: ClearSalesRequest, request: Request, user: SalesAdmin) -> ClearSalesResponse:
    """Hard-delete every sale of a router."""
    deleted = await _get_sale_ledger(request).clear_sales(body.router_id)
    logger.info("sales_cleared", router_id=body.router_id, deleted=deleted, user_id=user.id)
    return ClearSalesResponse(deleted=deleted)
