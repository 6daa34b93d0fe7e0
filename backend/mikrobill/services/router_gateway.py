"""
Router control API gateway.

Captive-portal clients live on the router as DHCP leases; a client is active
while its IP sits on the authorized address list, whose comment carries the
subscription annotation. All writes go through the /mt-api proxy, which applies
expiry schedulers and speed queues on the router itself.

Usage:
    gateway = MikrotikApiGateway(RouterApiConfig(base_url="http://10.0.0.2:3001/mt-api"))
    clients = await gateway.list_dhcp_clients("router-1")
"""

import json
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import structlog

from mikrobill.config import RouterApiConfig
from mikrobill.constants import AUTHORIZED_DHCP_LIST, NOT_AVAILABLE
from mikrobill.models.clients import DhcpClient, DhcpClientUpdate
from mikrobill.services.expiry import resolve_expires_at, routeros_schedule_stamp

logger = structlog.get_logger(__name__)


class RouterApiError(Exception):
    """A router API call failed. `message` is the collaborator's own text."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _entry_id(entry: dict[str, Any]) -> str:
    return str(entry.get(".id") or entry.get("id") or "")


def merge_dhcp_clients(
    leases: list[dict[str, Any]], address_lists: list[dict[str, Any]]
) -> list[DhcpClient]:
    """
    Build the client view from raw leases and firewall address-list entries.

    A lease whose IP is on the authorized list is an active client and takes
    its id, comment and timeout from the list entry; every other lease is
    pending and keyed by the lease id.
    """
    authorized = {
        entry.get("address"): entry
        for entry in address_lists
        if entry.get("list") == AUTHORIZED_DHCP_LIST
    }

    clients: list[DhcpClient] = []
    for lease in leases:
        address = lease.get("address", "")
        host_name = lease.get("host-name") or NOT_AVAILABLE
        entry = authorized.get(address)
        if entry is not None:
            clients.append(
                DhcpClient(
                    id=_entry_id(entry),
                    status="active",
                    address=address,
                    mac_address=lease.get("mac-address", ""),
                    host_name=host_name,
                    customer_info="",
                    timeout=entry.get("timeout"),
                    creation_time=entry.get("creation-time"),
                    comment=entry.get("comment"),
                )
            )
        else:
            clients.append(
                DhcpClient(
                    id=_entry_id(lease),
                    status="pending",
                    address=address,
                    mac_address=lease.get("mac-address", ""),
                    host_name=host_name,
                )
            )
    return clients


def update_request_body(client: DhcpClient, update: DhcpClientUpdate) -> dict[str, Any]:
    """JSON body for the proxy's dhcp-client/update endpoint."""
    plan = None
    if update.plan is not None:
        plan = {
            "id": update.plan.id,
            "name": update.plan.name,
            "price": update.plan.price,
            "cycle_days": update.plan.cycle_days,
            "speedLimit": update.plan.speed_limit,
            "currency": update.plan.currency,
        }
    body = {
        "macAddress": client.mac_address,
        "address": client.address,
        "customerInfo": update.customer_info,
        "contactNumber": update.contact_number,
        "email": update.email,
        "plan": plan,
        "downtimeDays": update.downtime_days,
        "planType": update.billing_type.value,
        "graceDays": update.grace_days,
        "graceTime": update.grace_time,
        "expiresAt": update.expires_at,
        "speedLimit": update.speed_limit,
        "comment": update.annotation,
    }
    return {key: value for key, value in body.items() if value is not None}


class RouterGateway(Protocol):
    """Contract for the router control API."""

    async def list_dhcp_clients(self, router_id: str) -> list[DhcpClient]:
        """Current captive-portal clients on a router."""

    async def update_dhcp_client_details(
        self, router_id: str, client: DhcpClient, update: DhcpClientUpdate
    ) -> None:
        """Authorize/update a client with the given action parameters."""

    async def delete_dhcp_client(self, router_id: str, client: DhcpClient) -> None:
        """Deactivate an active client, or remove a pending client's lease."""


class MikrotikApiGateway:
    """Router gateway backed by the /mt-api HTTP proxy."""

    def __init__(self, config: RouterApiConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the gateway.

        Args:
            config: Proxy base URL and timeout.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.config = config or RouterApiConfig()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            timeout=self.config.request_timeout_seconds,
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _call(
        self, router_id: str, endpoint: str, method: str = "GET", body: dict | None = None
    ) -> Any:
        """
        Call one proxy endpoint for a router. No retries.

        Raises:
            RouterApiError: On transport failure or a non-2xx response, carrying
                the proxy's `message` when it sent one.
        """
        url = f"/{router_id}/{endpoint.lstrip('/')}"
        try:
            response = await self._client.request(method, url, json=body)
        except httpx.HTTPError as exc:
            logger.warning("router_api_unreachable", router_id=router_id, endpoint=endpoint, error=str(exc))
            raise RouterApiError(502, str(exc) or "Router API unreachable") from exc

        if response.is_error:
            try:
                message = response.json().get("message") or response.reason_phrase
            except (json.JSONDecodeError, AttributeError):
                message = response.reason_phrase
            message = message or f"API Error: {response.status_code}"
            logger.warning(
                "router_api_error",
                router_id=router_id,
                endpoint=endpoint,
                status_code=response.status_code,
                message=message,
            )
            raise RouterApiError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def list_dhcp_clients(self, router_id: str) -> list[DhcpClient]:
        leases = await self._call(router_id, "ip/dhcp-server/lease/print")
        address_lists = await self._call(router_id, "ip/firewall/address-list/print")
        return merge_dhcp_clients(leases or [], address_lists or [])

    async def update_dhcp_client_details(
        self, router_id: str, client: DhcpClient, update: DhcpClientUpdate
    ) -> None:
        await self._call(
            router_id, "dhcp-client/update", "POST", update_request_body(client, update)
        )

    async def delete_dhcp_client(self, router_id: str, client: DhcpClient) -> None:
        if client.status == "active":
            endpoint = "ip/firewall/address-list/remove"
        else:
            endpoint = "ip/dhcp-server/lease/remove"
        await self._call(router_id, endpoint, "POST", {".id": client.id})


class InMemoryRouterGateway:
    """In-memory router used for tests and local fallback.

    Applies updates the way the router API does: resolves the expiry, stamps
    dueDate/dueDateTime into the stored comment and records the scheduler entry.
    """

    def __init__(self, now_provider=lambda: datetime.now(UTC)) -> None:
        self.now_provider = now_provider
        self.clients: dict[str, dict[str, DhcpClient]] = {}
        self.schedules: dict[str, tuple[str, str]] = {}
        self.updates: list[tuple[str, str, DhcpClientUpdate]] = []

    def add_client(self, router_id: str, client: DhcpClient) -> None:
        self.clients.setdefault(router_id, {})[client.mac_address] = client

    def _require(self, router_id: str, client: DhcpClient) -> DhcpClient:
        stored = self.clients.get(router_id, {}).get(client.mac_address)
        if stored is None:
            raise RouterApiError(404, "DHCP client not found.")
        return stored

    async def list_dhcp_clients(self, router_id: str) -> list[DhcpClient]:
        return [client.model_copy() for client in self.clients.get(router_id, {}).values()]

    async def update_dhcp_client_details(
        self, router_id: str, client: DhcpClient, update: DhcpClientUpdate
    ) -> None:
        stored = self._require(router_id, client)
        expires_at = resolve_expires_at(update, self.now_provider())

        comment = json.loads(update.annotation)
        comment["dueDate"] = expires_at.date().isoformat()
        comment["dueDateTime"] = expires_at.isoformat()

        self.clients[router_id][client.mac_address] = stored.model_copy(
            update={
                "status": "active",
                "customer_info": update.customer_info,
                "contact_number": update.contact_number,
                "email": update.email,
                "speed_limit": update.speed_limit,
                "comment": json.dumps(comment, separators=(",", ":")),
            }
        )
        schedule_name = f"deactivate-dhcp-{client.address.replace('.', '-')}"
        self.schedules[schedule_name] = routeros_schedule_stamp(expires_at)
        self.updates.append((router_id, client.mac_address, update))

    async def delete_dhcp_client(self, router_id: str, client: DhcpClient) -> None:
        stored = self._require(router_id, client)
        if stored.status == "active":
            self.clients[router_id][client.mac_address] = stored.model_copy(
                update={"status": "pending", "comment": None, "timeout": None}
            )
            self.schedules.pop(f"deactivate-dhcp-{client.address.replace('.', '-')}", None)
        else:
            del self.clients[router_id][client.mac_address]
