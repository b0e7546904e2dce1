"""
Count Ledger — audit trail of count saves.

Each save overwrites the single row for its (waybill_id, product_name) key,
so resubmitting the same counts never creates duplicates. Rows are never
deleted, not even when the waybill itself is.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import CountLedgerEntry, Waybill, WaybillItem


class CountLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(
        self,
        waybill: Waybill,
        item: WaybillItem,
        counts: list[int],
    ) -> CountLedgerEntry:
        """Insert or overwrite the entry for this waybill line. Caller commits."""
        result = await self.db.execute(
            select(CountLedgerEntry).where(
                CountLedgerEntry.waybill_id == waybill.waybill_id,
                CountLedgerEntry.product_name == item.product_name,
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            entry = CountLedgerEntry(
                waybill_id=waybill.waybill_id,
                product_name=item.product_name,
            )
            self.db.add(entry)

        entry.waybill_no = waybill.waybill_no
        entry.declared_count = waybill.count
        entry.uom = waybill.uom
        entry.waybill_date = waybill.date
        entry.counts = list(counts)
        entry.total = sum(counts)
        entry.remark_actual = item.remark_actual or ""
        entry.product_id = item.product_id
        entry.saved_at = datetime.utcnow()
        # Two lines may share a product name; flush so the second sees the first.
        await self.db.flush()
        return entry

    async def for_waybill(self, waybill_id: uuid.UUID) -> list[CountLedgerEntry]:
        result = await self.db.execute(
            select(CountLedgerEntry)
            .where(CountLedgerEntry.waybill_id == waybill_id)
            .order_by(CountLedgerEntry.product_name)
        )
        return list(result.scalars().all())
