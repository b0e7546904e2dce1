"""
Waybill Lifecycle — create, edit, close and delete delivery manifests.

    OPEN ──close()──▶ CLOSED      (terminal; no reopen operation exists)

Creation checks the waybill number explicitly before inserting so a
duplicate surfaces as ConflictError instead of a driver IntegrityError.
Every line is linked to the product directory on create and re-linked on
edit; names that match nothing are stored unlinked (product_id=None,
conversion_factor=1) with a warning.

Closing does not check that lines were counted, and lines stay editable
after close.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError, NotFoundError, ResolutionWarning, ValidationError
from db.models import Waybill, WaybillItem
from integrations.webhook import WaybillEvent, WebhookNotifier
from receiving.directory import ProductDirectory

logger = structlog.get_logger()


@dataclass
class LineDraft:
    product_name: str
    incoming: float
    uom_incoming: str
    actual_count: int = 0
    remark_actual: str = ""
    conversion_factor: float | None = None


@dataclass
class WaybillDraft:
    waybill_no: str
    count: float
    uom: str
    items: list[LineDraft]
    date: datetime | None = None


@dataclass
class LifecycleResult:
    waybill: Waybill
    warnings: list[ResolutionWarning] = field(default_factory=list)
    notified: bool = False


def _validate(draft: WaybillDraft) -> None:
    if not draft.waybill_no or not draft.waybill_no.strip():
        raise ValidationError("Waybill number is required.", field="waybill_no")
    if not draft.uom or not draft.uom.strip():
        raise ValidationError("Unit of measure is required.", field="uom")
    if draft.count is None or draft.count < 0:
        raise ValidationError("Declared count must be zero or more.", field="count")
    if not draft.items:
        raise ValidationError("A waybill needs at least one item.", field="items")
    for i, line in enumerate(draft.items):
        if not line.product_name or not line.product_name.strip():
            raise ValidationError("Product name is required.", field=f"items.{i}.product_name")
        if line.incoming is None or line.incoming < 0:
            raise ValidationError("Incoming quantity must be zero or more.", field=f"items.{i}.incoming")


class WaybillLifecycle:
    def __init__(self, db: AsyncSession, directory: ProductDirectory, notifier: WebhookNotifier):
        self.db = db
        self.directory = directory
        self.notifier = notifier

    # ── Lookups ────────────────────────────────────────────────────────────

    async def get(self, waybill_id: uuid.UUID) -> Waybill:
        waybill = await self.db.get(Waybill, waybill_id)
        if waybill is None:
            raise NotFoundError("Waybill not found.")
        return waybill

    async def list_open(self) -> list[Waybill]:
        result = await self.db.execute(
            select(Waybill).where(Waybill.status == "OPEN").order_by(Waybill.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_closed(self) -> list[Waybill]:
        result = await self.db.execute(
            select(Waybill).where(Waybill.status == "CLOSED").order_by(Waybill.closed_at.desc())
        )
        return list(result.scalars().all())

    async def number_taken(self, waybill_no: str, exclude_id: uuid.UUID | None = None) -> bool:
        query = select(Waybill.waybill_id).where(Waybill.waybill_no == waybill_no)
        if exclude_id is not None:
            query = query.where(Waybill.waybill_id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    # ── Line building ──────────────────────────────────────────────────────

    async def _build_items(self, draft: WaybillDraft) -> tuple[list[WaybillItem], list[ResolutionWarning]]:
        items: list[WaybillItem] = []
        warnings: list[ResolutionWarning] = []
        for position, line in enumerate(draft.items):
            link = await self.directory.resolve(line.product_name)
            if link is None:
                warnings.append(ResolutionWarning(product_name=line.product_name, waybill_no=draft.waybill_no))
                logger.warning(
                    "waybill.product_unresolved",
                    waybill_no=draft.waybill_no,
                    product_name=line.product_name,
                )
                product_id, factor = None, 1
            else:
                product_id, factor = link.product_id, link.conversion_factor

            items.append(
                WaybillItem(
                    position=position,
                    product_name=line.product_name.strip(),
                    incoming=line.incoming,
                    uom_incoming=line.uom_incoming.strip(),
                    actual_count=line.actual_count or 0,
                    remark_actual=(line.remark_actual or "").strip(),
                    product_id=product_id,
                    conversion_factor=line.conversion_factor or factor,
                )
            )
        return items, warnings

    # ── Transitions ────────────────────────────────────────────────────────

    async def create(self, draft: WaybillDraft) -> LifecycleResult:
        """Create a single OPEN waybill."""
        results = await self.create_many([draft])
        return results[0]

    async def create_many(self, drafts: list[WaybillDraft]) -> list[LifecycleResult]:
        """Create a batch of waybills. Nothing is inserted if any number is taken."""
        if not drafts:
            raise ValidationError("No waybill data provided.", field="waybills")

        seen: set[str] = set()
        for draft in drafts:
            _validate(draft)
            waybill_no = draft.waybill_no.strip()
            if waybill_no in seen or await self.number_taken(waybill_no):
                logger.warning("waybill.duplicate_number", waybill_no=waybill_no)
                raise ConflictError(
                    f"Duplicate Waybill Number: {waybill_no}. Please use a unique number.",
                    field="waybill_no",
                )
            seen.add(waybill_no)

        results: list[LifecycleResult] = []
        for draft in drafts:
            items, warnings = await self._build_items(draft)
            waybill = Waybill(
                waybill_no=draft.waybill_no.strip(),
                date=draft.date or datetime.utcnow(),
                count=draft.count,
                uom=draft.uom.strip(),
                status="OPEN",
                items=items,
            )
            self.db.add(waybill)
            results.append(LifecycleResult(waybill=waybill, warnings=warnings))

        await self.db.commit()

        for result in results:
            waybill = result.waybill
            logger.info(
                "waybill.created",
                waybill_id=str(waybill.waybill_id),
                waybill_no=waybill.waybill_no,
                items=len(waybill.items),
                unresolved=len(result.warnings),
            )
            delivery = await self.notifier.notify(waybill.waybill_id, WaybillEvent.CREATED)
            result.notified = delivery.delivered
        return results

    async def edit(self, waybill_id: uuid.UUID, draft: WaybillDraft) -> LifecycleResult:
        """Replace scalar fields and the whole item list; re-link every line."""
        waybill = await self.get(waybill_id)
        _validate(draft)
        waybill_no = draft.waybill_no.strip()
        if await self.number_taken(waybill_no, exclude_id=waybill.waybill_id):
            raise ConflictError(
                f"Duplicate Waybill Number: {waybill_no}. Please use a unique number.",
                field="waybill_no",
            )

        items, warnings = await self._build_items(draft)
        waybill.waybill_no = waybill_no
        if draft.date is not None:
            waybill.date = draft.date
        waybill.count = draft.count
        waybill.uom = draft.uom.strip()
        waybill.items = items
        waybill.updated_at = datetime.utcnow()

        await self.db.commit()
        logger.info(
            "waybill.updated",
            waybill_id=str(waybill.waybill_id),
            waybill_no=waybill.waybill_no,
            items=len(items),
            unresolved=len(warnings),
        )
        delivery = await self.notifier.notify(waybill.waybill_id, WaybillEvent.UPDATED)
        return LifecycleResult(waybill=waybill, warnings=warnings, notified=delivery.delivered)

    async def close(self, waybill_id: uuid.UUID) -> LifecycleResult:
        """OPEN → CLOSED. Uncounted lines do not block closing."""
        waybill = await self.get(waybill_id)
        if waybill.status == "CLOSED":
            raise ConflictError(f"Waybill {waybill.waybill_no} is already closed.", field="status")

        old_status = waybill.status
        waybill.status = "CLOSED"
        waybill.closed_at = datetime.utcnow()
        await self.db.commit()

        logger.info(
            "waybill.closed",
            waybill_id=str(waybill.waybill_id),
            waybill_no=waybill.waybill_no,
            from_status=old_status,
        )
        delivery = await self.notifier.notify(waybill.waybill_id, WaybillEvent.CLOSED)
        return LifecycleResult(waybill=waybill, notified=delivery.delivered)

    async def delete(self, waybill_id: uuid.UUID) -> None:
        """Remove a waybill and its lines. Ledger rows are kept."""
        waybill = await self.get(waybill_id)
        await self.db.delete(waybill)
        await self.db.commit()
        logger.info("waybill.deleted", waybill_id=str(waybill_id), waybill_no=waybill.waybill_no)
