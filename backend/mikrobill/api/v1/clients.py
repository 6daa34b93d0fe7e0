"""
DHCP captive-portal client endpoints.

Endpoints (all under /routers/{router_id}/dhcp-clients):
- GET    ""                 - clients merged with local records
- POST   /quote             - charge breakdown for a plan and downtime days
- GET    /{mac}/form        - pre-filled activation form
- POST   /{mac}/activate    - activate or renew on a plan, records a sale
- POST   /{mac}/edit        - manual edit, no sale
- POST   /{mac}/grace       - grant grace days
- DELETE /{mac}             - deactivate (active) or delete (pending)
"""

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from mikrobill.auth import CurrentUser
from mikrobill.models.billing import ChargeCalculation
from mikrobill.models.clients import (
    ActivationForm,
    ActivationRequest,
    DhcpClient,
    DhcpClientView,
    EditRequest,
    EncodedSubscription,
    GraceRequest,
    RouterRef,
)
from mikrobill.services.activation_service import ClientNotFoundError, DhcpBillingService
from mikrobill.services.router_gateway import RouterApiError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/routers/{router_id}/dhcp-clients", tags=["dhcp-clients"])


class QuoteRequest(BaseModel):
    """Quote request for the activation form summary."""

    plan_id: str | None = None
    downtime_days: int = 0


def _get_billing_service(request: Request) -> DhcpBillingService:
    service = getattr(request.app.state, "dhcp_billing_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Billing service unavailable")
    return service


def _router_error(exc: RouterApiError) -> HTTPException:
    status = exc.status_code if 400 <= exc.status_code < 600 else 502
    return HTTPException(status_code=status, detail=exc.message)


@router.get("", response_model=list[DhcpClientView])
async def list_clients(
    router_id: str,
    request: Request,
    _user: CurrentUser,
    router_name: str = Query(default="", alias="routerName"),
) -> list[DhcpClientView]:
    """List the router's captive-portal clients."""
    service = _get_billing_service(request)
    try:
        return await service.list_clients(RouterRef(id=router_id, name=router_name))
    except RouterApiError as e:
        raise _router_error(e)


@router.post("/quote", response_model=ChargeCalculation)
async def quote(router_id: str, body: QuoteRequest, request: Request, _user: CurrentUser) -> ChargeCalculation:
    """Charge breakdown; all zeros when the plan is unknown."""
    service = _get_billing_service(request)
    return await service.quote(router_id, body.plan_id, body.downtime_days)


@router.get("/{mac_address}/form", response_model=ActivationForm)
async def activation_form(
    router_id: str, mac_address: str, request: Request, _user: CurrentUser
) -> ActivationForm:
    """Activation form pre-filled from the client's stored annotation."""
    service = _get_billing_service(request)
    try:
        return await service.load_form(router_id, mac_address)
    except ClientNotFoundError:
        raise HTTPException(status_code=404, detail="DHCP client not found")
    except RouterApiError as e:
        raise _router_error(e)


@router.post("/{mac_address}/activate", response_model=EncodedSubscription)
async def activate_client(
    router_id: str,
    mac_address: str,
    body: ActivationRequest,
    request: Request,
    _user: CurrentUser,
    router_name: str = Query(default="", alias="routerName"),
) -> EncodedSubscription:
    """Activate or renew a client and record the sale."""
    service = _get_billing_service(request)
    try:
        return await service.activate(RouterRef(id=router_id, name=router_name), mac_address, body)
    except ClientNotFoundError:
        raise HTTPException(status_code=404, detail="DHCP client not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RouterApiError as e:
        raise _router_error(e)


@router.post("/{mac_address}/edit", response_model=EncodedSubscription)
async def edit_client(
    router_id: str, mac_address: str, body: EditRequest, request: Request, _user: CurrentUser
) -> EncodedSubscription:
    """Save manual changes to a client."""
    service = _get_billing_service(request)
    try:
        return await service.edit(RouterRef(id=router_id), mac_address, body)
    except ClientNotFoundError:
        raise HTTPException(status_code=404, detail="DHCP client not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RouterApiError as e:
        raise _router_error(e)


@router.post("/{mac_address}/grace", response_model=EncodedSubscription)
async def grant_grace(
    router_id: str, mac_address: str, body: GraceRequest, request: Request, _user: CurrentUser
) -> EncodedSubscription:
    """Grant grace days to a client."""
    service = _get_billing_service(request)
    try:
        return await service.grant_grace(RouterRef(id=router_id), mac_address, body)
    except ClientNotFoundError:
        raise HTTPException(status_code=404, detail="DHCP client not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RouterApiError as e:
        raise _router_error(e)


@router.delete("/{mac_address}", response_model=DhcpClient)
async def remove_client(
    router_id: str, mac_address: str, request: Request, _user: CurrentUser
) -> DhcpClient:
    """Deactivate an active client, or delete a pending one."""
    service = _get_billing_service(request)
    try:
        return await service.deactivate(RouterRef(id=router_id), mac_address)
    except ClientNotFoundError:
        raise HTTPException(status_code=404, detail="DHCP client not found")
    except RouterApiError as e:
        raise _router_error(e)
