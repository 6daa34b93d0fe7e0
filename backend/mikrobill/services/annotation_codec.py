"""
Subscription state codec for the router client comment field.

The router API only offers a free-text comment per client, so subscription
metadata is stored there as a JSON object:

    {"dueDate": "YYYY-MM-DD", "billingType": "prepaid"|"postpaid", "planName": "..."}

decode_annotation() turns any comment (including legacy free text) into a
ClientSubscriptionState and never raises. encode_subscription() always writes
the whole object back; fields not repopulated by the caller are dropped.
"""

import json
import re
import uuid
from datetime import UTC, date, datetime
from typing import Any

import structlog

from mikrobill.constants import (
    ANNOTATION_BILLING_TYPE_KEY,
    ANNOTATION_DUE_DATE_KEY,
    ANNOTATION_DUE_DATE_TIME_KEY,
    ANNOTATION_LEGACY_PLAN_TYPE_KEY,
    ANNOTATION_PLAN_NAME_KEY,
)
from mikrobill.models.billing import (
    BillingPlan,
    BillingType,
    ClientSubscriptionState,
    SaleRecord,
)
from mikrobill.models.clients import (
    CustomerContact,
    DhcpClientUpdate,
    EncodedSubscription,
    RouterRef,
)
from mikrobill.services.charge_calculator import calculate_charge

logger = structlog.get_logger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_due_date(value: Any) -> date | None:
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _parse_due_date_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        # Router API writes JavaScript ISO strings ending in "Z"
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _parse_billing_type(data: dict[str, Any]) -> BillingType:
    if ANNOTATION_BILLING_TYPE_KEY in data:
        raw = data[ANNOTATION_BILLING_TYPE_KEY]
    else:
        legacy = data.get(ANNOTATION_LEGACY_PLAN_TYPE_KEY)
        raw = legacy.lower() if isinstance(legacy, str) else None

    if raw == BillingType.POSTPAID.value:
        return BillingType.POSTPAID
    return BillingType.PREPAID


def decode_annotation(raw: str | None) -> ClientSubscriptionState:
    """
    Decode a client comment into subscription state.

    Args:
        raw: Comment text from the router; may be None, empty or legacy free text.

    Returns:
        Decoded state, or the default (prepaid, no due date, no plan) when the
        comment is not a JSON object.
    """
    if not raw:
        return ClientSubscriptionState()

    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError):
        logger.debug("annotation_decode_failed", length=len(raw))
        return ClientSubscriptionState()

    if not isinstance(data, dict):
        return ClientSubscriptionState()

    plan_name = data.get(ANNOTATION_PLAN_NAME_KEY)
    return ClientSubscriptionState(
        due_date=_parse_due_date(data.get(ANNOTATION_DUE_DATE_KEY)),
        billing_type=_parse_billing_type(data),
        plan_name=plan_name if isinstance(plan_name, str) else None,
        due_date_time=_parse_due_date_time(data.get(ANNOTATION_DUE_DATE_TIME_KEY)),
    )


def serialize_state(state: ClientSubscriptionState) -> str:
    """Serialize the full annotation object. Absent fields are omitted."""
    payload: dict[str, str] = {}
    if state.due_date is not None:
        payload[ANNOTATION_DUE_DATE_KEY] = state.due_date.isoformat()
    payload[ANNOTATION_BILLING_TYPE_KEY] = state.billing_type.value
    if state.plan_name is not None:
        payload[ANNOTATION_PLAN_NAME_KEY] = state.plan_name
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _manual_due_date(manual_expires_at: str) -> date:
    """Calendar date of a manual expiry ("YYYY-MM-DD", "YYYY-MM-DDTHH:MM", ...)."""
    candidate = manual_expires_at.strip()
    try:
        return datetime.fromisoformat(candidate.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(candidate[:10])
    except ValueError:
        raise ValueError(f"Invalid manual expiration: {manual_expires_at!r}") from None


def encode_subscription(
    plan: BillingPlan | None,
    manual_expires_at: str | None,
    billing_type: BillingType,
    *,
    customer: CustomerContact,
    downtime_days: int = 0,
    due_date: date | None = None,
    plan_name: str | None = None,
    router: RouterRef | None = None,
    now: datetime | None = None,
) -> EncodedSubscription:
    """
    Build the router update payload and, when a plan is present, the sale record.

    Args:
        plan: Plan being applied, or None for non-billing saves (edit, grace).
        manual_expires_at: Operator-entered expiry; when set it wins over any
            plan-based expiry and supplies the annotation's due date.
        billing_type: Billing type to store.
        customer: Customer details from the form.
        downtime_days: Discount days for the sale amounts.
        due_date: Due date to store when there is no manual expiry.
        plan_name: Plan name to store when `plan` is None.
        router: Router the sale belongs to.
        now: Sale timestamp; defaults to the current UTC time.

    Raises:
        ValueError: If `manual_expires_at` is set but is not an ISO date/datetime.
    """
    expires_at = (manual_expires_at or "").strip() or None
    if expires_at:
        due_date = _manual_due_date(expires_at)

    state = ClientSubscriptionState(
        due_date=due_date,
        billing_type=billing_type,
        plan_name=plan.name if plan else plan_name,
    )

    update_payload = DhcpClientUpdate(
        customer_info=customer.customer_info,
        contact_number=customer.contact_number,
        email=customer.email,
        annotation=serialize_state(state),
        billing_type=billing_type,
        plan=plan,
        downtime_days=downtime_days,
        speed_limit=plan.speed_limit if plan else None,
        expires_at=expires_at,
    )

    if plan is None:
        return EncodedSubscription(update_payload=update_payload)

    charge = calculate_charge(plan, downtime_days)
    sale_record = SaleRecord(
        id=f"sale_{uuid.uuid4().hex}",
        date=now or datetime.now(UTC),
        client_name=customer.customer_info,
        plan_name=plan.name,
        plan_price=charge.price,
        discount_amount=charge.discount,
        final_amount=charge.total,
        currency=plan.currency,
        router_id=router.id if router else plan.router_id,
        router_name=router.name if router else "",
        client_address=customer.address,
        client_contact=customer.contact_number,
        client_email=customer.email,
    )
    return EncodedSubscription(update_payload=update_payload, sale_record=sale_record)
