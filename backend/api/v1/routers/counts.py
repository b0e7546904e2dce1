"""
Counts Router — floor staff submit per-product tallies for open waybills.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_lifecycle, get_reconciler, require
from api.v1.routers.waybills import WarningResponse, WaybillResponse
from core.policy import Capability
from receiving.lifecycle import WaybillLifecycle
from receiving.reconciliation import CountReconciler

router = APIRouter(prefix="/api/v1/counts", tags=["counts"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class CountSubmission(BaseModel):
    """Keys are product names on the waybill; values are raw tallies like "5, 10, 2"."""

    counts: dict[str, str] = {}
    remarks: dict[str, str] = {}


class LineOutcomeResponse(BaseModel):
    product_name: str
    counts: list[int]
    actual_count: int
    incoming: float
    discrepancy: float
    changed: bool

    model_config = {"from_attributes": True}


class LedgerEntryResponse(BaseModel):
    entry_id: UUID
    waybill_id: UUID
    waybill_no: str
    product_name: str
    declared_count: float | None
    uom: str | None
    waybill_date: datetime | None
    counts: list[int]
    total: int
    remark_actual: str
    product_id: UUID | None
    saved_at: datetime

    model_config = {"from_attributes": True}


class CountSaveResponse(BaseModel):
    waybill: WaybillResponse
    modified: bool
    lines: list[LineOutcomeResponse]
    warnings: list[WarningResponse]
    ledger: list[LedgerEntryResponse]
    notified: bool


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/open", response_model=list[WaybillResponse])
async def list_countable_waybills(
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.VIEW_OPEN_WAYBILLS)),
):
    """OPEN waybills awaiting a count, newest first."""
    return await lifecycle.list_open()


@router.post("/{waybill_id}", response_model=CountSaveResponse)
async def save_counts(
    waybill_id: UUID,
    body: CountSubmission,
    reconciler: CountReconciler = Depends(get_reconciler),
    user: dict = Depends(require(Capability.SAVE_COUNTS)),
):
    """Store tallies as actual counts and refresh the count ledger.

    Lines missing from ``counts`` are treated as an empty tally (0).
    """
    result = await reconciler.reconcile_by_id(waybill_id, body.counts, body.remarks)
    return CountSaveResponse(
        waybill=WaybillResponse.model_validate(result.waybill),
        modified=result.modified,
        lines=[LineOutcomeResponse.model_validate(line) for line in result.lines],
        warnings=[WarningResponse.from_warning(w) for w in result.warnings],
        ledger=[LedgerEntryResponse.model_validate(entry) for entry in result.ledger],
        notified=result.notified,
    )


@router.get("/{waybill_id}/ledger", response_model=list[LedgerEntryResponse])
async def get_count_ledger(
    waybill_id: UUID,
    reconciler: CountReconciler = Depends(get_reconciler),
    user: dict = Depends(require(Capability.VIEW_REPORTS)),
):
    """Ledger rows for a waybill; still available after the waybill is deleted."""
    return await reconciler.ledger.for_waybill(waybill_id)
