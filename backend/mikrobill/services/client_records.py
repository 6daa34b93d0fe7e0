"""Local customer records for router clients, keyed by MAC address."""

import uuid
from typing import Protocol

from mikrobill.models.clients import DhcpClientRecord


class ClientRecordRepository(Protocol):
    """Storage contract for DHCP client records."""

    async def list_records(self, router_id: str) -> list[DhcpClientRecord]:
        """All records for a router."""

    async def get_record(self, router_id: str, mac_address: str) -> DhcpClientRecord | None:
        """Fetch one record by MAC."""

    async def upsert_record(self, record: DhcpClientRecord) -> DhcpClientRecord:
        """Insert, or replace the record with the same router and MAC."""


def new_record_id() -> str:
    return f"dhcp_client_{uuid.uuid4().hex}"


class InMemoryClientRecordRepository:
    """In-memory repository used for tests and local fallback."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], DhcpClientRecord] = {}

    async def list_records(self, router_id: str) -> list[DhcpClientRecord]:
        return [
            record.model_copy(deep=True)
            for (owner, _), record in self.records.items()
            if owner == router_id
        ]

    async def get_record(self, router_id: str, mac_address: str) -> DhcpClientRecord | None:
        record = self.records.get((router_id, mac_address))
        return record.model_copy(deep=True) if record else None

    async def upsert_record(self, record: DhcpClientRecord) -> DhcpClientRecord:
        key = (record.router_id, record.mac_address)
        existing = self.records.get(key)
        stored = record.model_copy(update={"id": existing.id}) if existing else record
        self.records[key] = stored
        return stored.model_copy(deep=True)


class SupabaseClientRecordRepository:
    """Supabase-backed repository for DHCP client records."""

    def __init__(self, client, table: str):
        self.client = client
        self.table = table

    async def list_records(self, router_id: str) -> list[DhcpClientRecord]:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("router_id", router_id)
            .execute()
        )
        return [DhcpClientRecord.model_validate(row) for row in response.data or []]

    async def get_record(self, router_id: str, mac_address: str) -> DhcpClientRecord | None:
        response = (
            await self.client.table(self.table)
            .select("*")
            .eq("router_id", router_id)
            .eq("mac_address", mac_address)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows:
            return None
        return DhcpClientRecord.model_validate(rows[0])

    async def upsert_record(self, record: DhcpClientRecord) -> DhcpClientRecord:
        payload = record.model_dump(mode="json")
        existing = await self.get_record(record.router_id, record.mac_address)
        if existing:
            payload["id"] = existing.id
        response = (
            await self.client.table(self.table)
            .upsert(payload, on_conflict="id")
            .execute()
        )
        rows = response.data or []
        if not rows:
            return record
        return DhcpClientRecord.model_validate(rows[0])
