"""
Business logic constants for the MikroBill backend.

These values are stable across environments and are part of the contract with
the router control API (annotation keys, address-list names). For operational
parameters that vary per environment (URLs, timeouts, table names), see
config.py.
"""

# --- Annotation (client comment) JSON keys ---
# Stored verbatim inside the router's free-text comment field.
ANNOTATION_DUE_DATE_KEY = "dueDate"
ANNOTATION_BILLING_TYPE_KEY = "billingType"
ANNOTATION_PLAN_NAME_KEY = "planName"
# Written by the router API, read-only for us
ANNOTATION_DUE_DATE_TIME_KEY = "dueDateTime"
ANNOTATION_LEGACY_PLAN_TYPE_KEY = "planType"

# --- PPPoE plan cycle labels → days in cycle ---
CYCLE_LABEL_DAYS: dict[str, int] = {
    "Monthly": 30,
    "Quarterly": 90,
    "Yearly": 365,
}
DEFAULT_CYCLE_DAYS = 30

# --- Router address list that marks a captive-portal client as active ---
AUTHORIZED_DHCP_LIST = "authorized-dhcp-users"

# --- Display placeholders ---
NOT_AVAILABLE = "N/A"

# --- RouterOS scheduler month abbreviations ---
ROUTEROS_MONTHS = (
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
)

# --- API metadata ---
API_TITLE = "MikroBill API"
API_VERSION = "0.1.0"
