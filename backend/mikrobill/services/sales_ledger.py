"""Append-only sale ledger repositories."""

from typing import Protocol

import structlog

from mikrobill.models.billing import SaleRecord

logger = structlog.get_logger(__name__)


class SaleLedger(Protocol):
    """Storage contract for sale records.

    Records are never edited; `delete_sale` and `clear_sales` are hard removes.
    """

    async def append_sale(self, sale: SaleRecord) -> SaleRecord:
        """Persist a new sale."""

    async def list_sales(self, router_id: str) -> list[SaleRecord]:
        """List a router's sales, newest first."""

    async def delete_sale(self, sale_id: str) -> bool:
        """Remove one sale. Returns False if it did not exist."""

    async def clear_sales(self, router_id: str) -> int:
        """Remove every sale for a router. Returns the number removed."""


class InMemorySaleLedger:
    """In-memory ledger used for tests and local fallback."""

    def __init__(self) -> None:
        self.sales: dict[str, SaleRecord] = {}

    async def append_sale(self, sale: SaleRecord) -> SaleRecord:
        if sale.id in self.sales:
            raise ValueError(f"Sale {sale.id} already recorded")
        self.sales[sale.id] = sale
        return sale

    async def list_sales(self, router_id: str) -> list[SaleRecord]:
        sales = [sale for sale in self.sales.values() if sale.router_id == router_id]
        return sorted(sales, key=lambda sale: sale.date, reverse=True)

    async def delete_sale(self, sale_id: str) -> bool:
        return self.sales.pop(sale_id, None) is not None

    async def clear_sales(self, router_id: str) -> int:
        doomed = [sale_id for sale_id, sale in self.sales.items() if sale.router_id == router_id]
        for sale_id in doomed:
            del self.sales[sale_id]
        return len(doomed)


class SupabaseSaleLedger:
    """Supabase-backed sale ledger."""

    def __init__(self, client, table: str):
        self.client = client
        self.table = table

    async def append_sale(self, sale: SaleRecord) -> SaleRecord:
        payload = sale.model_dump(mode="json")
        await self.client.table(self.table).insert(payload).execute()
        logger.info(
            "sale_recorded",
            sale_id=sale.id,
            router_id=sale.router_id,
            final_amount=sale.final_amount,
        )
        return sale

    async def list_sales(self, router_id: str) -> list[SaleRecord]:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("router_id", router_id)
            .order("date", desc=True)
            .execute()
        )
        return [SaleRecord.model_validate(row) for row in response.data or []]

    async def delete_sale(self, sale_id: str) -> bool:
        response = await self.client.table(self.table).delete().eq("id", sale_id).execute()
        return bool(response.data)

    async def clear_sales(self, router_id: str) -> int:
        response = (
            await self.client.table(self.table)
            .delete()
            .eq("router_id", router_id)
            .execute()
        )
        return len(response.data or [])
