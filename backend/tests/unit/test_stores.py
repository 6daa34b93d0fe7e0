"""Unit tests for the plan, sale and client record repositories."""

from datetime import UTC, datetime, timedelta

import pytest

from mikrobill.models.billing import BillingPlanCreate, BillingPlanUpdate, SaleRecord
from mikrobill.models.clients import DhcpClientRecord
from mikrobill.services.charge_calculator import calculate_charge
from mikrobill.services.client_records import (
    InMemoryClientRecordRepository,
    SupabaseClientRecordRepository,
)
from mikrobill.services.plan_store import InMemoryPlanRepository, SupabasePlanRepository
from mikrobill.services.sales_ledger import InMemorySaleLedger

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def _sale(sale_id: str, router_id: str = "router-1", offset_hours: int = 0) -> SaleRecord:
    return SaleRecord(
        id=sale_id,
        date=T0 + timedelta(hours=offset_hours),
        client_name="Juan",
        plan_name="Basic 10M",
        plan_price=1000,
        discount_amount=0,
        final_amount=1000,
        currency="PHP",
        router_id=router_id,
    )


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Minimal stand-in for the supabase async query builder."""

    def __init__(self, table: "FakeTable"):
        self.table = table
        self.filters: list[tuple[str, object]] = []
        self.action = "select"
        self.payload = None

    def select(self, *_columns):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, *_args, **_kwargs):
        return self

    def limit(self, _count):
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def upsert(self, payload, on_conflict="id"):
        self.action, self.payload = "upsert", payload
        self.filters = [(on_conflict, payload[on_conflict])]
        return self

    def _matches(self, row) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    async def execute(self):
        rows = self.table.rows
        if self.action == "insert":
            rows.append(dict(self.payload))
            return FakeResponse([dict(self.payload)])
        if self.action == "upsert":
            existing = [row for row in rows if self._matches(row)]
            if not existing:
                rows.append(dict(self.payload))
                return FakeResponse([dict(self.payload)])
            # Only the columns sent are written, as in PostgREST
            existing[0].update(self.payload)
            return FakeResponse([dict(existing[0])])
        matched = [row for row in rows if self._matches(row)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
        elif self.action == "delete":
            self.table.rows = [row for row in rows if not self._matches(row)]
        return FakeResponse([dict(row) for row in matched])


class FakeTable:
    def __init__(self, rows=None):
        self.rows = rows or []


class FakeSupabase:
    def __init__(self, **tables):
        self.tables = {name: FakeTable(rows) for name, rows in tables.items()}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


class TestInMemoryPlanRepository:
    async def test_create_assigns_id_and_default_currency(self):
        repo = InMemoryPlanRepository(default_currency="PHP")

        plan = await repo.create_plan(
            BillingPlanCreate(router_id="router-1", name="Basic", price=1000, cycle_days=30)
        )

        assert plan.id.startswith("dhcp_plan_")
        assert plan.currency == "PHP"

    async def test_list_is_per_router_in_insertion_order(self):
        repo = InMemoryPlanRepository()
        for name in ("B", "A", "C"):
            await repo.create_plan(
                BillingPlanCreate(router_id="router-1", name=name, price=1, cycle_days=30)
            )
        await repo.create_plan(
            BillingPlanCreate(router_id="router-2", name="Other", price=1, cycle_days=30)
        )

        plans = await repo.list_plans("router-1")

        assert [plan.name for plan in plans] == ["B", "A", "C"]

    async def test_partial_update(self):
        repo = InMemoryPlanRepository()
        plan = await repo.create_plan(
            BillingPlanCreate(router_id="router-1", name="Basic", price=1000, cycle_days=30)
        )

        updated = await repo.update_plan(plan.id, BillingPlanUpdate(price=1200))

        assert updated.price == 1200
        assert updated.name == "Basic"

    async def test_explicit_nulls_do_not_clear_required_fields(self):
        repo = InMemoryPlanRepository(default_currency="PHP")
        plan = await repo.create_plan(
            BillingPlanCreate(router_id="router-1", name="Basic", price=1000, cycle_days=30, speed_limit="10")
        )

        updated = await repo.update_plan(
            plan.id, BillingPlanUpdate(price=None, currency=None, name=None, speed_limit=None)
        )

        assert updated.price == 1000
        assert updated.currency == "PHP"
        assert updated.name == "Basic"
        assert updated.speed_limit is None
        assert calculate_charge(updated, 3).total == pytest.approx(900)

    async def test_update_and_delete_missing(self):
        repo = InMemoryPlanRepository()

        assert await repo.update_plan("nope", BillingPlanUpdate(price=1)) is None
        assert await repo.delete_plan("nope") is False

    async def test_returned_plans_are_copies(self):
        repo = InMemoryPlanRepository()
        plan = await repo.create_plan(
            BillingPlanCreate(router_id="router-1", name="Basic", price=1000, cycle_days=30)
        )

        plan.name = "Mutated"

        assert (await repo.get_plan(plan.id)).name == "Basic"


class TestSupabasePlanRepository:
    async def test_rows_without_currency_get_default(self):
        client = FakeSupabase(
            dhcp_billing_plans=[
                {"id": "p1", "router_id": "router-1", "name": "Basic", "price": 1000, "cycle_days": 30}
            ]
        )
        repo = SupabasePlanRepository(client, "dhcp_billing_plans", default_currency="PHP")

        plans = await repo.list_plans("router-1")

        assert plans[0].currency == "PHP"

    async def test_create_then_delete(self):
        client = FakeSupabase(dhcp_billing_plans=[])
        repo = SupabasePlanRepository(client, "dhcp_billing_plans")

        plan = await repo.create_plan(
            BillingPlanCreate(router_id="router-1", name="Basic", price=1000, cycle_days=30, currency="EUR")
        )

        assert plan.currency == "EUR"
        assert await repo.get_plan(plan.id) is not None
        assert await repo.delete_plan(plan.id) is True
        assert await repo.get_plan(plan.id) is None


class TestInMemorySaleLedger:
    async def test_list_newest_first_per_router(self):
        ledger = InMemorySaleLedger()
        await ledger.append_sale(_sale("s1", offset_hours=0))
        await ledger.append_sale(_sale("s2", offset_hours=2))
        await ledger.append_sale(_sale("s3", router_id="router-2"))

        sales = await ledger.list_sales("router-1")

        assert [sale.id for sale in sales] == ["s2", "s1"]

    async def test_duplicate_id_rejected(self):
        ledger = InMemorySaleLedger()
        await ledger.append_sale(_sale("s1"))

        with pytest.raises(ValueError):
            await ledger.append_sale(_sale("s1"))

    async def test_delete_and_clear(self):
        ledger = InMemorySaleLedger()
        for sale_id in ("s1", "s2"):
            await ledger.append_sale(_sale(sale_id))
        await ledger.append_sale(_sale("s3", router_id="router-2"))

        assert await ledger.delete_sale("s1") is True
        assert await ledger.delete_sale("s1") is False
        assert await ledger.clear_sales("router-1") == 1
        assert await ledger.list_sales("router-1") == []
        assert len(await ledger.list_sales("router-2")) == 1


class TestInMemoryClientRecordRepository:
    async def test_upsert_keeps_first_id(self):
        repo = InMemoryClientRecordRepository()
        first = DhcpClientRecord(
            id="dhcp_client_1", router_id="router-1", mac_address="AA", customer_info="Juan", last_seen=T0
        )
        second = first.model_copy(update={"id": "dhcp_client_2", "customer_info": "Juan D."})

        await repo.upsert_record(first)
        stored = await repo.upsert_record(second)

        assert stored.id == "dhcp_client_1"
        assert stored.customer_info == "Juan D."
        assert len(await repo.list_records("router-1")) == 1

    async def test_records_are_scoped_by_router(self):
        repo = InMemoryClientRecordRepository()
        await repo.upsert_record(
            DhcpClientRecord(id="r1", router_id="router-1", mac_address="AA", last_seen=T0)
        )

        assert await repo.get_record("router-2", "AA") is None
        assert await repo.list_records("router-2") == []


class TestSupabaseClientRecordRepository:
    async def test_cleared_fields_are_written_as_null(self):
        client = FakeSupabase(dhcp_clients=[])
        repo = SupabaseClientRecordRepository(client, "dhcp_clients")
        first = DhcpClientRecord(
            id="dhcp_client_1",
            router_id="router-1",
            mac_address="AA",
            customer_info="Juan",
            email="juan@example.com",
            speed_limit="10",
            last_seen=T0,
        )
        await repo.upsert_record(first)

        stored = await repo.upsert_record(
            first.model_copy(update={"id": "dhcp_client_2", "email": None, "speed_limit": None})
        )

        [row] = client.tables["dhcp_clients"].rows
        assert row["id"] == "dhcp_client_1"
        assert row["speed_limit"] is None
        assert row["email"] is None
        assert stored.speed_limit is None
