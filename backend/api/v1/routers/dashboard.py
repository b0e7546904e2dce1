"""
Dashboard Router — landing page counters.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, require
from api.v1.routers.reports import DiscrepancyResponse
from api.v1.routers.waybills import WaybillResponse
from core.config import get_settings
from core.policy import Capability
from receiving.discrepancies import dashboard_summary

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


class DashboardResponse(BaseModel):
    product_count: int
    open_waybills: int
    closed_waybills: int
    overdue_waybills: int
    incoming_today: float
    discrepancies_total: int
    discrepancies_this_month: int
    closed_waybills_this_month: list[WaybillResponse]
    discrepancy_list_this_month: list[DiscrepancyResponse]


@router.get("/", response_model=DashboardResponse)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require(Capability.VIEW_DASHBOARD)),
):
    settings = get_settings()
    summary = await dashboard_summary(
        db,
        page_size=settings.dashboard_page_size,
        overdue_after_days=settings.overdue_after_days,
    )
    return DashboardResponse.model_validate(summary, from_attributes=True)
