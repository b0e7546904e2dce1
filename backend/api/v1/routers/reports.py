"""
Reports Router — discrepancies and closed-waybill exports.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, require
from api.v1.routers.waybills import WaybillResponse
from core.errors import ValidationError
from core.policy import Capability
from receiving.discrepancies import closed_waybills, count_discrepancies, day_bounds, list_discrepancies
from receiving.report_pdf import REPORT_FILENAME, render_closed_report

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class DiscrepancyResponse(BaseModel):
    waybill_no: str
    product_name: str
    incoming: float
    actual_count: int
    difference: float
    remark_actual: str
    closed_at: datetime

    model_config = {"from_attributes": True}


class DiscrepancyReport(BaseModel):
    total: int
    rows: list[DiscrepancyResponse]


def _bounds(start: date | None, end: date | None):
    if start and end and start > end:
        raise ValidationError("Start date must not be after end date.", field="from")
    return day_bounds(start, end)


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/discrepancies", response_model=DiscrepancyReport)
async def get_discrepancies(
    start: date | None = Query(None, alias="from"),
    end: date | None = Query(None, alias="to"),
    limit: int = Query(10, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.VIEW_REPORTS)),
):
    """Closed-waybill lines where actual_count != incoming, newest close first."""
    lower, upper = _bounds(start, end)
    return DiscrepancyReport(
        total=await count_discrepancies(db, lower, upper),
        rows=[DiscrepancyResponse.model_validate(row) for row in await list_discrepancies(db, lower, upper, limit)],
    )


@router.get("/closed", response_model=list[WaybillResponse])
async def get_closed_waybills(
    start: date | None = Query(None, alias="from"),
    end: date | None = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.VIEW_REPORTS)),
):
    """Closed waybills whose close date falls within [from, to], inclusive."""
    lower, upper = _bounds(start, end)
    return await closed_waybills(db, lower, upper)


@router.get("/closed/pdf")
async def export_closed_waybills(
    start: date | None = Query(None, alias="from"),
    end: date | None = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.VIEW_REPORTS)),
):
    lower, upper = _bounds(start, end)
    waybills = await closed_waybills(db, lower, upper)
    pdf = render_closed_report(waybills, start, end)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{REPORT_FILENAME}"'},
    )
