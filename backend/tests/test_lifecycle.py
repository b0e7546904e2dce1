"""
Waybill Lifecycle Tests — creation, duplicate numbers, close, edit, delete.
"""

import uuid

import pytest
from sqlalchemy import func, select

from core.errors import ConflictError, NotFoundError, ValidationError
from db.models import CountLedgerEntry, Product, Waybill
from integrations.webhook import WebhookNotifier
from receiving.directory import ProductDirectory
from receiving.ledger import CountLedger
from receiving.lifecycle import LineDraft, WaybillDraft, WaybillLifecycle
from receiving.reconciliation import CountReconciler


@pytest.fixture
def lifecycle(test_db, notifier):
    return WaybillLifecycle(test_db, ProductDirectory(test_db), notifier)


def _draft(waybill_no="WB-3000", *names, **kwargs) -> WaybillDraft:
    names = names or ("Rice 25kg",)
    return WaybillDraft(
        waybill_no=waybill_no,
        count=kwargs.get("count", 10),
        uom="Box",
        items=[LineDraft(product_name=name, incoming=10, uom_incoming="Box") for name in names],
    )


@pytest.mark.asyncio
class TestCreate:
    async def test_new_waybill_is_open_and_linked(self, lifecycle, seeded_db, webhook):
        result = await lifecycle.create(_draft("WB-3000", "Rice 25kg", "Cooking Oil 1L"))

        waybill = result.waybill
        assert waybill.status == "OPEN"
        assert waybill.closed_at is None
        assert [i.product_name for i in waybill.items] == ["Rice 25kg", "Cooking Oil 1L"]
        assert waybill.items[0].product_id == seeded_db["rice"].product_id
        assert waybill.items[0].conversion_factor == 25
        assert waybill.items[1].conversion_factor == 1
        assert result.warnings == []
        assert result.notified is True
        assert webhook.calls[0]["incomingId"] == str(waybill.waybill_id)

    async def test_unknown_product_is_saved_unlinked(self, lifecycle, seeded_db):
        result = await lifecycle.create(_draft("WB-3001", "Unlisted Widget"))

        item = result.waybill.items[0]
        assert item.product_id is None
        assert item.conversion_factor == 1
        assert len(result.warnings) == 1
        assert result.warnings[0].waybill_no == "WB-3001"

    async def test_bad_webhook_url_does_not_fail_create(self, test_db, seeded_db):
        notifier = WebhookNotifier(url="http://[::1", secret="s3cret")
        lifecycle = WaybillLifecycle(test_db, ProductDirectory(test_db), notifier)

        result = await lifecycle.create(_draft("WB-3002"))

        assert result.notified is False
        assert (await lifecycle.get(result.waybill.waybill_id)).waybill_no == "WB-3002"

    async def test_duplicate_number_conflicts(self, lifecycle, seeded_db, webhook):
        with pytest.raises(ConflictError) as exc_info:
            await lifecycle.create(_draft("WB-1001"))
        assert exc_info.value.field == "waybill_no"
        assert "Duplicate Waybill Number: WB-1001" in exc_info.value.message
        assert webhook.calls == []

    async def test_batch_is_all_or_nothing(self, lifecycle, test_db, seeded_db):
        with pytest.raises(ConflictError):
            await lifecycle.create_many([_draft("WB-4000"), _draft("WB-4001"), _draft("WB-4000")])

        total = (await test_db.execute(select(func.count(Waybill.waybill_id)))).scalar_one()
        assert total == 2

    async def test_empty_batch_is_invalid(self, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_many([])

    async def test_blank_product_name_is_invalid(self, lifecycle):
        draft = _draft("WB-4002")
        draft.items[0].product_name = "  "
        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.create(draft)
        assert exc_info.value.field == "items.0.product_name"


@pytest.mark.asyncio
class TestClose:
    async def test_close_sets_status_and_timestamp(self, lifecycle, seeded_db, webhook):
        waybill_id = seeded_db["open_waybill"].waybill_id
        result = await lifecycle.close(waybill_id)

        assert result.waybill.status == "CLOSED"
        assert result.waybill.closed_at is not None
        assert webhook.calls[-1]["incomingId"] == str(waybill_id)

    async def test_close_is_irreversible(self, lifecycle, seeded_db):
        waybill_id = seeded_db["open_waybill"].waybill_id
        first = await lifecycle.close(waybill_id)
        closed_at = first.waybill.closed_at

        with pytest.raises(ConflictError):
            await lifecycle.close(waybill_id)

        waybill = await lifecycle.get(waybill_id)
        assert waybill.status == "CLOSED"
        assert waybill.closed_at == closed_at

    async def test_closed_waybill_leaves_open_list(self, lifecycle, seeded_db):
        await lifecycle.close(seeded_db["open_waybill"].waybill_id)
        assert await lifecycle.list_open() == []
        closed_numbers = [w.waybill_no for w in await lifecycle.list_closed()]
        assert "WB-1001" in closed_numbers

    async def test_close_unknown_waybill(self, lifecycle, seeded_db):
        with pytest.raises(NotFoundError):
            await lifecycle.close(uuid.uuid4())


@pytest.mark.asyncio
class TestEdit:
    async def test_edit_replaces_lines_and_relinks(self, lifecycle, test_db, seeded_db):
        waybill_id = seeded_db["open_waybill"].waybill_id
        test_db.add(Product(category="Household", product_name="Dish Soap", conversion_factor=12))
        await test_db.commit()

        result = await lifecycle.edit(waybill_id, _draft("WB-1001-A", "Dish Soap", count=12))

        waybill = result.waybill
        assert waybill.waybill_no == "WB-1001-A"
        assert waybill.count == 12
        assert [i.product_name for i in waybill.items] == ["Dish Soap"]
        assert waybill.items[0].product_id is not None
        assert waybill.items[0].conversion_factor == 12

    async def test_edit_to_taken_number_conflicts(self, lifecycle, seeded_db):
        with pytest.raises(ConflictError):
            await lifecycle.edit(seeded_db["open_waybill"].waybill_id, _draft("WB-0900"))

    async def test_edit_keeping_own_number(self, lifecycle, seeded_db):
        result = await lifecycle.edit(seeded_db["open_waybill"].waybill_id, _draft("WB-1001", count=99))
        assert result.waybill.count == 99


@pytest.mark.asyncio
class TestDelete:
    async def test_delete_keeps_count_ledger(self, lifecycle, test_db, seeded_db, notifier):
        waybill = seeded_db["open_waybill"]
        reconciler = CountReconciler(test_db, ProductDirectory(test_db), CountLedger(test_db), notifier)
        await reconciler.reconcile(waybill, {"Rice 25kg": "20"}, {})

        await lifecycle.delete(waybill.waybill_id)

        with pytest.raises(NotFoundError):
            await lifecycle.get(waybill.waybill_id)
        entries = await CountLedger(test_db).for_waybill(waybill.waybill_id)
        assert {e.product_name for e in entries} == {"Rice 25kg", "Cooking Oil 1L"}
        remaining = (await test_db.execute(select(func.count(CountLedgerEntry.entry_id)))).scalar_one()
        assert remaining == 2
