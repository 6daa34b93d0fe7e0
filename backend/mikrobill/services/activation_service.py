"""DHCP client billing service: activation, renewal, edit, grace and removal."""

from datetime import UTC, datetime

import structlog

from mikrobill.config import BillingConfig
from mikrobill.models.billing import BillingPlan, ChargeCalculation
from mikrobill.models.clients import (
    ActivationForm,
    ActivationRequest,
    CustomerContact,
    DhcpClient,
    DhcpClientRecord,
    DhcpClientView,
    EditRequest,
    EncodedSubscription,
    GraceRequest,
    RouterRef,
)
from mikrobill.services.annotation_codec import decode_annotation, encode_subscription
from mikrobill.services.charge_calculator import calculate_charge
from mikrobill.services.client_records import ClientRecordRepository, new_record_id
from mikrobill.services.expiry import expiration_display, validate_grace
from mikrobill.services.plan_selection import find_plan, preselect_plan
from mikrobill.services.plan_store import PlanRepository
from mikrobill.services.router_gateway import RouterGateway
from mikrobill.services.sales_ledger import SaleLedger

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ClientNotFoundError(LookupError):
    """The router has no client with the requested MAC address."""


class DhcpBillingService:
    """Wires the annotation codec and charge calculator to the router and stores.

    Every save is one router update carrying the full re-encoded annotation.
    Failures from the router or stores propagate to the caller unchanged; there
    is no retry and nothing is rolled back.
    """

    def __init__(
        self,
        plans: PlanRepository,
        sales: SaleLedger,
        records: ClientRecordRepository,
        gateway: RouterGateway,
        config: BillingConfig | None = None,
        now_provider=_utcnow,
    ) -> None:
        self.plans = plans
        self.sales = sales
        self.records = records
        self.gateway = gateway
        self.config = config or BillingConfig()
        self.now_provider = now_provider

    async def get_client(self, router_id: str, mac_address: str) -> DhcpClient:
        clients = await self.gateway.list_dhcp_clients(router_id)
        client = next((c for c in clients if c.mac_address == mac_address), None)
        if client is None:
            raise ClientNotFoundError(mac_address)
        return client

    async def list_clients(self, router: RouterRef) -> list[DhcpClientView]:
        """Router clients merged with locally stored customer details."""
        clients = await self.gateway.list_dhcp_clients(router.id)
        records = {r.mac_address: r for r in await self.records.list_records(router.id)}

        views: list[DhcpClientView] = []
        for client in clients:
            record = records.get(client.mac_address)
            if record is not None:
                client = client.model_copy(
                    update={
                        "customer_info": record.customer_info,
                        "contact_number": record.contact_number,
                        "email": record.email,
                        "speed_limit": record.speed_limit,
                    }
                )
            state = decode_annotation(client.comment)
            views.append(
                DhcpClientView(
                    **client.model_dump(),
                    expiration=expiration_display(client, state, self.config.end_of_day_time),
                    billing_type=state.billing_type,
                    plan_name=state.plan_name,
                )
            )
        return views

    def prepare_form(
        self,
        client: DhcpClient,
        plans: list[BillingPlan],
        record: DhcpClientRecord | None = None,
    ) -> ActivationForm:
        """Pre-fill the activation form for a client."""
        state = decode_annotation(client.comment)
        selected = preselect_plan(plans, state.plan_name)
        record_info = record.customer_info if record else None
        return ActivationForm(
            customer_info=record_info or client.customer_info or client.host_name or "",
            contact_number=(record.contact_number if record else None) or client.contact_number or "",
            email=(record.email if record else None) or client.email or "",
            state=state,
            selected_plan=selected,
            calculation=calculate_charge(selected, 0),
            can_submit=selected is not None,
        )

    async def load_form(self, router_id: str, mac_address: str) -> ActivationForm:
        client = await self.get_client(router_id, mac_address)
        plans = await self.plans.list_plans(router_id)
        record = await self.records.get_record(router_id, mac_address)
        return self.prepare_form(client, plans, record)

    async def quote(self, router_id: str, plan_id: str | None, downtime_days: int) -> ChargeCalculation:
        """Charge breakdown for a plan of this router; zeros when no plan matches."""
        plans = await self.plans.list_plans(router_id)
        return calculate_charge(find_plan(plans, plan_id), downtime_days)

    async def _save_record(self, router: RouterRef, client: DhcpClient, contact: CustomerContact, speed_limit: str | None) -> None:
        await self.records.upsert_record(
            DhcpClientRecord(
                id=new_record_id(),
                router_id=router.id,
                mac_address=client.mac_address,
                customer_info=contact.customer_info,
                contact_number=contact.contact_number,
                email=contact.email,
                speed_limit=speed_limit,
                last_seen=self.now_provider(),
            )
        )

    async def activate(
        self, router: RouterRef, mac_address: str, request: ActivationRequest
    ) -> EncodedSubscription:
        """
        Activate or renew a client on a plan and record the sale.

        Raises:
            ClientNotFoundError: If the router has no such client.
            ValueError: If no plan is selected or the manual expiry is invalid.
            RouterApiError: If the router API rejects the update.
        """
        client = await self.get_client(router.id, mac_address)
        plans = await self.plans.list_plans(router.id)
        plan = find_plan(plans, request.plan_id)
        if plan is None:
            raise ValueError("Please select a billing plan.")

        contact = CustomerContact(
            customer_info=request.customer_info,
            contact_number=request.contact_number,
            email=request.email,
            address=client.address,
        )
        encoded = encode_subscription(
            plan,
            request.manual_expires_at,
            request.billing_type,
            customer=contact,
            downtime_days=request.downtime_days,
            router=router,
            now=self.now_provider(),
        )

        await self.gateway.update_dhcp_client_details(router.id, client, encoded.update_payload)
        if encoded.sale_record is not None:
            await self.sales.append_sale(encoded.sale_record)
        await self._save_record(router, client, contact, plan.speed_limit)

        logger.info(
            "dhcp_client_activated",
            router_id=router.id,
            mac_address=mac_address,
            plan_id=plan.id,
            downtime_days=request.downtime_days,
            final_amount=encoded.sale_record.final_amount if encoded.sale_record else None,
        )
        return encoded

    async def edit(self, router: RouterRef, mac_address: str, request: EditRequest) -> EncodedSubscription:
        """Save manual edits; billing type and plan name are carried over."""
        client = await self.get_client(router.id, mac_address)
        state = decode_annotation(client.comment)
        contact = CustomerContact(
            customer_info=request.customer_info,
            contact_number=request.contact_number,
            email=request.email,
            address=client.address,
        )
        encoded = encode_subscription(
            None,
            request.expires_at,
            state.billing_type,
            customer=contact,
            due_date=state.due_date,
            plan_name=state.plan_name,
        )
        payload = encoded.update_payload.model_copy(update={"speed_limit": request.speed_limit or None})

        await self.gateway.update_dhcp_client_details(router.id, client, payload)
        await self._save_record(router, client, contact, request.speed_limit or None)
        logger.info("dhcp_client_edited", router_id=router.id, mac_address=mac_address)
        return EncodedSubscription(update_payload=payload)

    async def grant_grace(self, router: RouterRef, mac_address: str, request: GraceRequest) -> EncodedSubscription:
        """
        Extend a client by a number of grace days ending at the given time.

        Raises:
            ValueError: If grace days is not positive or the time is not HH:MM.
        """
        validate_grace(request.grace_days, request.grace_time)
        client = await self.get_client(router.id, mac_address)
        record = await self.records.get_record(router.id, mac_address)
        state = decode_annotation(client.comment)
        encoded = encode_subscription(
            None,
            None,
            state.billing_type,
            customer=CustomerContact(
                customer_info=(record.customer_info if record else None)
                or client.customer_info
                or client.host_name,
                address=client.address,
            ),
            due_date=state.due_date,
            plan_name=state.plan_name,
        )
        payload = encoded.update_payload.model_copy(
            update={"grace_days": request.grace_days, "grace_time": request.grace_time}
        )

        await self.gateway.update_dhcp_client_details(router.id, client, payload)
        logger.info(
            "dhcp_client_grace_granted",
            router_id=router.id,
            mac_address=mac_address,
            grace_days=request.grace_days,
        )
        return EncodedSubscription(update_payload=payload)

    async def deactivate(self, router: RouterRef, mac_address: str) -> DhcpClient:
        """Deactivate an active client or delete a pending one."""
        client = await self.get_client(router.id, mac_address)
        await self.gateway.delete_dhcp_client(router.id, client)
        logger.info(
            "dhcp_client_removed",
            router_id=router.id,
            mac_address=mac_address,
            was_active=client.status == "active",
        )
        return client
