"""
Waybills Router — inbound manifest entry and lifecycle.

  POST   /              create one waybill (OPEN)
  POST   /batch         create several; all-or-nothing on duplicate numbers
  PUT    /{id}          full replace of header + lines
  POST   /{id}/close    OPEN → CLOSED
  DELETE /{id}          remove (count ledger is kept)
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import get_lifecycle, require
from core.errors import ResolutionWarning
from core.policy import Capability
from receiving.lifecycle import LifecycleResult, LineDraft, WaybillDraft, WaybillLifecycle

router = APIRouter(prefix="/api/v1/waybills", tags=["waybills"])

UOM_OPTIONS = [
    "Piece", "Pair", "Set", "Sack / Bag", "Dozen", "Box", "Carton", "Pack", "Bundle",
    "Bottle", "Roll", "Container", "Tray", "Pallet", "Drum", "Liter", "Milliliter",
    "Kilogram", "Gram", "Pound", "Ounce", "Meter", "Centimeter", "Foot", "Yard",
    "Square Meter", "Acre", "Hectare",
]


# ─── Schemas ────────────────────────────────────────────────────────────────


class WaybillItemIn(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=255)
    incoming: float = Field(..., ge=0)
    uom_incoming: str = Field(..., min_length=1, max_length=50)
    actual_count: int = Field(0, ge=0)
    remark_actual: str = ""
    conversion_factor: float | None = Field(None, ge=1)


class WaybillIn(BaseModel):
    waybill_no: str = Field(..., min_length=1, max_length=100)
    date: datetime | None = None
    count: float = Field(..., ge=0)
    uom: str = Field(..., min_length=1, max_length=50)
    items: list[WaybillItemIn] = Field(..., min_length=1)

    def to_draft(self) -> WaybillDraft:
        return WaybillDraft(
            waybill_no=self.waybill_no,
            date=self.date,
            count=self.count,
            uom=self.uom,
            items=[LineDraft(**item.model_dump()) for item in self.items],
        )


class WaybillBatchIn(BaseModel):
    waybills: list[WaybillIn] = Field(..., min_length=1)


class WaybillItemResponse(BaseModel):
    item_id: UUID
    position: int
    product_name: str
    incoming: float
    uom_incoming: str
    actual_count: int
    remark_actual: str
    product_id: UUID | None
    conversion_factor: float

    model_config = {"from_attributes": True}


class WaybillResponse(BaseModel):
    waybill_id: UUID
    waybill_no: str
    date: datetime
    count: float
    uom: str
    status: str
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    items: list[WaybillItemResponse]

    model_config = {"from_attributes": True}


class WarningResponse(BaseModel):
    product_name: str
    waybill_no: str
    message: str

    @classmethod
    def from_warning(cls, warning: ResolutionWarning) -> "WarningResponse":
        return cls(product_name=warning.product_name, waybill_no=warning.waybill_no, message=warning.message)


class WaybillMutationResponse(BaseModel):
    waybill: WaybillResponse
    warnings: list[WarningResponse] = []
    notified: bool

    @classmethod
    def from_result(cls, result: LifecycleResult) -> "WaybillMutationResponse":
        return cls(
            waybill=WaybillResponse.model_validate(result.waybill),
            warnings=[WarningResponse.from_warning(w) for w in result.warnings],
            notified=result.notified,
        )


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/uom-options", response_model=list[str])
async def list_uom_options(
    user: dict = Depends(require(Capability.VIEW_OPEN_WAYBILLS)),
):
    """Units of measure offered by the entry form."""
    return UOM_OPTIONS


@router.get("/", response_model=list[WaybillResponse])
async def list_open_waybills(
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """OPEN waybills, newest first."""
    return await lifecycle.list_open()


@router.get("/closed", response_model=list[WaybillResponse])
async def list_closed_waybills(
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """CLOSED waybills, most recently closed first."""
    return await lifecycle.list_closed()


@router.get("/{waybill_id}", response_model=WaybillResponse)
async def get_waybill(
    waybill_id: UUID,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    return await lifecycle.get(waybill_id)


@router.post("/", response_model=WaybillMutationResponse, status_code=201)
async def create_waybill(
    body: WaybillIn,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """Record a new inbound waybill. 409 if the number already exists."""
    result = await lifecycle.create(body.to_draft())
    return WaybillMutationResponse.from_result(result)


@router.post("/batch", response_model=list[WaybillMutationResponse], status_code=201)
async def create_waybills(
    body: WaybillBatchIn,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """Record several waybills from one entry form submission."""
    results = await lifecycle.create_many([w.to_draft() for w in body.waybills])
    return [WaybillMutationResponse.from_result(r) for r in results]


@router.put("/{waybill_id}", response_model=WaybillMutationResponse)
async def edit_waybill(
    waybill_id: UUID,
    body: WaybillIn,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """Replace header fields and every line; lines are re-linked to products."""
    result = await lifecycle.edit(waybill_id, body.to_draft())
    return WaybillMutationResponse.from_result(result)


@router.post("/{waybill_id}/close", response_model=WaybillMutationResponse)
async def close_waybill(
    waybill_id: UUID,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    """Close a waybill. There is no reopen."""
    result = await lifecycle.close(waybill_id)
    return WaybillMutationResponse.from_result(result)


@router.delete("/{waybill_id}", status_code=204)
async def delete_waybill(
    waybill_id: UUID,
    lifecycle: WaybillLifecycle = Depends(get_lifecycle),
    user: dict = Depends(require(Capability.MANAGE_WAYBILLS)),
):
    await lifecycle.delete(waybill_id)
