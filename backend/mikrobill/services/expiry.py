"""
Expiry resolution and display helpers.

resolve_expires_at() mirrors how the router API turns an update payload into an
expiry timestamp. expiration_display() is the display-side rule for showing a
client's due date, including the end-of-day time for date-only annotations.
"""

import re
from datetime import datetime, timedelta

from mikrobill.constants import NOT_AVAILABLE, ROUTEROS_MONTHS
from mikrobill.models.billing import ClientSubscriptionState
from mikrobill.models.clients import DhcpClient, DhcpClientUpdate
from mikrobill.services.charge_calculator import effective_service_days

_HH_MM_RE = re.compile(r"^\d{2}:\d{2}$")


def validate_grace(grace_days: int, grace_time: str) -> None:
    """
    Validate grace period input.

    Raises:
        ValueError: If days is not positive or time is not HH:MM.
    """
    if grace_days <= 0:
        raise ValueError("Please enter a valid number of days (> 0).")
    if not _HH_MM_RE.match(grace_time or ""):
        raise ValueError("Please set a valid time (HH:MM).")
    hours, minutes = (int(part) for part in grace_time.split(":"))
    if hours > 23 or minutes > 59:
        raise ValueError("Please set a valid time (HH:MM).")


def resolve_expires_at(update: DhcpClientUpdate, now: datetime) -> datetime:
    """
    Resolve the expiry a router update should schedule.

    Precedence: manual expiry, then grace days (today at grace time), then
    now + plan cycle, then now.
    """
    if update.expires_at:
        return datetime.fromisoformat(update.expires_at.replace("Z", "+00:00"))

    if update.grace_days:
        start = now
        if update.grace_time:
            hours, minutes = (int(part) for part in update.grace_time.split(":"))
            start = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        return start + timedelta(days=update.grace_days)

    if update.plan and update.plan.cycle_days:
        return now + timedelta(days=update.plan.cycle_days)

    return now


def renewal_expires_at(start: datetime, cycle_days: int, discount_days: int) -> datetime:
    """PPPoE renewal expiry: the cycle shortened by discount days, never negative."""
    return start + timedelta(days=effective_service_days(cycle_days, discount_days))


def routeros_schedule_stamp(moment: datetime) -> tuple[str, str]:
    """Format a timestamp as RouterOS scheduler start-date / start-time."""
    start_date = f"{ROUTEROS_MONTHS[moment.month - 1]}/{moment.day:02d}/{moment.year}"
    return start_date, moment.strftime("%H:%M:%S")


def expiration_display(
    client: DhcpClient,
    state: ClientSubscriptionState,
    end_of_day_time: str = "23:59",
) -> str:
    """Human-readable expiry for the client list."""
    if client.status != "active":
        return NOT_AVAILABLE
    if state.due_date_time is not None:
        return state.due_date_time.isoformat()
    if state.due_date is not None:
        return f"{state.due_date.isoformat()} {end_of_day_time}"
    return client.timeout or NOT_AVAILABLE
