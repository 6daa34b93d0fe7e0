"""Integration tests for the sale ledger endpoints."""

from datetime import UTC, datetime

import pytest

from mikrobill.auth import AuthenticatedUser, get_current_user
from mikrobill.models.billing import SaleRecord
from mikrobill.services.sales_ledger import InMemorySaleLedger

SALES_URL = "/api/v1/sales"


def _sale(sale_id: str, day: int, router_id: str = "router-1") -> SaleRecord:
    return SaleRecord(
        id=sale_id,
        date=datetime(2024, 3, day, tzinfo=UTC),
        client_name="Juan",
        plan_name="Basic 10M",
        plan_price=1000,
        discount_amount=166.67,
        final_amount=833.33,
        currency="PHP",
        router_id=router_id,
        router_name="Main Tower",
    )


@pytest.fixture
def ledger(client) -> InMemorySaleLedger:
    ledger = InMemorySaleLedger()
    for sale in (_sale("s1", 1), _sale("s2", 2), _sale("s3", 3, router_id="router-2")):
        ledger.sales[sale.id] = sale
    client.app.state.sale_ledger = ledger
    return ledger


@pytest.fixture
def cashier_client(client):
    async def _cashier() -> AuthenticatedUser:
        return AuthenticatedUser(id="cashier-1", permissions=["sales_report:view"])

    client.app.dependency_overrides[get_current_user] = _cashier
    yield client
    client.app.dependency_overrides.clear()


class TestSalesEndpoints:
    def test_list_newest_first(self, authed_client, ledger):
        response = authed_client.get(SALES_URL, params={"routerId": "router-1"})

        assert response.status_code == 200
        assert [sale["id"] for sale in response.json()] == ["s2", "s1"]

    def test_delete_sale(self, authed_client, ledger):
        response = authed_client.delete(f"{SALES_URL}/s1")

        assert response.status_code == 204
        assert "s1" not in ledger.sales

    def test_delete_missing_sale_is_404(self, authed_client, ledger):
        assert authed_client.delete(f"{SALES_URL}/nope").status_code == 404

    def test_clear_all_for_router(self, authed_client, ledger):
        response = authed_client.post(f"{SALES_URL}/clear-all", json={"routerId": "router-1"})

        assert response.status_code == 200
        assert response.json() == {"deleted": 2}
        assert list(ledger.sales) == ["s3"]


class TestSalesPermissions:
    def test_cashier_can_list(self, cashier_client, ledger):
        assert cashier_client.get(SALES_URL, params={"routerId": "router-1"}).status_code == 200

    def test_cashier_cannot_delete(self, cashier_client, ledger):
        response = cashier_client.delete(f"{SALES_URL}/s1")

        assert response.status_code == 403
        assert "s1" in ledger.sales

    def test_cashier_cannot_clear(self, cashier_client, ledger):
        response = cashier_client.post(f"{SALES_URL}/clear-all", json={"routerId": "router-1"})

        assert response.status_code == 403
        assert len(ledger.sales) == 3
