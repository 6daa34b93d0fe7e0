"""
Shared test fixtures for the MikroBill backend test suite.
"""

from datetime import UTC, datetime

import pytest
import structlog
from fastapi.testclient import TestClient

from mikrobill.auth import AuthenticatedUser, get_current_user
from mikrobill.models.billing import BillingPlan
from mikrobill.models.clients import DhcpClient, RouterRef
from mikrobill.services.activation_service import DhcpBillingService
from mikrobill.services.client_records import InMemoryClientRecordRepository
from mikrobill.services.plan_store import InMemoryPlanRepository
from mikrobill.services.router_gateway import InMemoryRouterGateway
from mikrobill.services.sales_ledger import InMemorySaleLedger

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests off any real Supabase project or router proxy."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_SECRET_KEY", "")
    monkeypatch.setenv("ROUTER_API__BASE_URL", "http://router-proxy.test/mt-api")


@pytest.fixture(autouse=True)
def _configure_structlog_for_tests():
    """Configure structlog for tests using a simple, deterministic setup."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def client() -> TestClient:
    """FastAPI TestClient wrapping the main application."""
    # Clear the lru_cache so settings pick up test env vars
    from mikrobill.config import get_settings

    get_settings.cache_clear()

    from mikrobill.main import app

    app.dependency_overrides.clear()
    return TestClient(app)


@pytest.fixture
def admin_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="admin-1", email="admin@example.com", permissions=["*:*"])


@pytest.fixture
def authed_client(client: TestClient, admin_user: AuthenticatedUser) -> TestClient:
    """TestClient with the auth dependency replaced by an administrator."""

    async def _fake_user() -> AuthenticatedUser:
        return admin_user

    client.app.dependency_overrides[get_current_user] = _fake_user
    yield client
    client.app.dependency_overrides.clear()


@pytest.fixture
def router_ref() -> RouterRef:
    return RouterRef(id="router-1", name="Main Tower")


@pytest.fixture
def basic_plan() -> BillingPlan:
    """1000 per 30 days, 10 Mbps."""
    return BillingPlan(
        id="plan-basic",
        name="Basic 10M",
        price=1000.0,
        cycle_days=30,
        speed_limit="10",
        currency="PHP",
        router_id="router-1",
    )


@pytest.fixture
def premium_plan() -> BillingPlan:
    return BillingPlan(
        id="plan-premium",
        name="Premium 50M",
        price=2500.0,
        cycle_days=30,
        speed_limit="50",
        currency="PHP",
        router_id="router-1",
    )


@pytest.fixture
def pending_client() -> DhcpClient:
    return DhcpClient(
        id="*1A",
        status="pending",
        address="10.5.50.23",
        mac_address="AA:BB:CC:DD:EE:01",
        host_name="juans-phone",
    )


@pytest.fixture
def active_client() -> DhcpClient:
    return DhcpClient(
        id="*2B",
        status="active",
        address="10.5.50.24",
        mac_address="AA:BB:CC:DD:EE:02",
        host_name="maria-laptop",
        customer_info="",
        timeout="6d23:10:00",
        comment='{"dueDate":"2024-03-15","billingType":"postpaid","planName":"Premium 50M"}',
    )


@pytest.fixture
def billing_stack(router_ref, basic_plan, premium_plan, pending_client, active_client):
    """DhcpBillingService over in-memory stores and router, pre-seeded."""
    plans = InMemoryPlanRepository(default_currency="PHP")
    plans.plans[basic_plan.id] = basic_plan
    plans.plans[premium_plan.id] = premium_plan

    gateway = InMemoryRouterGateway(now_provider=lambda: FIXED_NOW)
    gateway.add_client(router_ref.id, pending_client)
    gateway.add_client(router_ref.id, active_client)

    sales = InMemorySaleLedger()
    records = InMemoryClientRecordRepository()
    service = DhcpBillingService(plans, sales, records, gateway, now_provider=lambda: FIXED_NOW)
    return service, plans, sales, records, gateway
