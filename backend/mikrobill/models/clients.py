"""DHCP captive-portal client models and activation payloads."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from mikrobill.models.billing import (
    BillingPlan,
    BillingType,
    ChargeCalculation,
    ClientSubscriptionState,
    SaleRecord,
)


class RouterRef(BaseModel):
    """The router a client belongs to."""

    id: str
    name: str = ""


class DhcpClient(BaseModel):
    """A client as seen on the router (lease + authorized address-list entry)."""

    id: str
    status: Literal["pending", "active"]
    address: str
    mac_address: str
    host_name: str = "N/A"
    customer_info: str | None = None
    contact_number: str | None = None
    email: str | None = None
    speed_limit: str | None = None
    timeout: str | None = None
    creation_time: str | None = None
    comment: str | None = None


class DhcpClientRecord(BaseModel):
    """Locally stored customer details for a router client, keyed by MAC."""

    id: str
    router_id: str
    mac_address: str
    customer_info: str | None = None
    contact_number: str | None = None
    email: str | None = None
    speed_limit: str | None = None
    last_seen: datetime


class CustomerContact(BaseModel):
    """Customer details captured on the activation form."""

    customer_info: str
    contact_number: str | None = None
    email: str | None = None
    address: str | None = None


class DhcpClientUpdate(BaseModel):
    """Action parameters sent to the router API for one client."""

    customer_info: str
    contact_number: str | None = None
    email: str | None = None
    annotation: str
    billing_type: BillingType = BillingType.PREPAID
    plan: BillingPlan | None = None
    downtime_days: int = 0
    speed_limit: str | None = None
    # None lets the router API fall back to the plan cycle
    expires_at: str | None = None
    grace_days: int | None = None
    grace_time: str | None = None


class EncodedSubscription(BaseModel):
    """Output of the subscription state encoder."""

    update_payload: DhcpClientUpdate
    sale_record: SaleRecord | None = None


class ActivationRequest(BaseModel):
    """Activation / renewal form submission."""

    customer_info: str = Field(min_length=1)
    contact_number: str | None = None
    email: str | None = None
    plan_id: str | None = None
    downtime_days: int = 0
    billing_type: BillingType = BillingType.PREPAID
    manual_expires_at: str | None = None


class EditRequest(BaseModel):
    """Manual client edit without billing."""

    customer_info: str = Field(min_length=1)
    contact_number: str | None = None
    email: str | None = None
    speed_limit: str | None = None
    expires_at: str = Field(min_length=1)


class GraceRequest(BaseModel):
    """Grace period grant."""

    grace_days: int
    grace_time: str = "23:59"


class ActivationForm(BaseModel):
    """Pre-filled activation form for an existing client."""

    customer_info: str
    contact_number: str
    email: str
    state: ClientSubscriptionState
    selected_plan: BillingPlan | None = None
    downtime_days: int = 0
    manual_expires_at: str = ""
    calculation: ChargeCalculation
    can_submit: bool


class DhcpClientView(DhcpClient):
    """Router client merged with its local record, for listing."""

    expiration: str
    billing_type: BillingType = BillingType.PREPAID
    plan_name: str | None = None
