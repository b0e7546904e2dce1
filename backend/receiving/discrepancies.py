"""
Discrepancy Reporting — counted vs expected on closed waybills.

A discrepancy is any line of a CLOSED waybill whose actual_count differs
from its incoming quantity. The dashboard shows a capped, newest-first list
for the current month; the monthly summary needs the uncapped count.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Product, Waybill, WaybillItem

DEFAULT_PAGE_SIZE = 10


@dataclass
class DiscrepancyRow:
    waybill_no: str
    product_name: str
    incoming: float
    actual_count: int
    remark_actual: str
    closed_at: datetime

    @property
    def difference(self) -> float:
        return self.actual_count - self.incoming


def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Expand calendar days to [00:00:00, 23:59:59.999999]."""
    lower = datetime.combine(start, time.min) if start else None
    upper = datetime.combine(end, time.max) if end else None
    return lower, upper


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    first = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_first = (first + timedelta(days=32)).replace(day=1)
    return first, next_first - timedelta(microseconds=1)


def _closed_in_range(query, start: datetime | None, end: datetime | None):
    query = query.where(Waybill.status == "CLOSED")
    if start is not None:
        query = query.where(Waybill.closed_at >= start)
    if end is not None:
        query = query.where(Waybill.closed_at <= end)
    return query


async def list_discrepancies(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = DEFAULT_PAGE_SIZE,
) -> list[DiscrepancyRow]:
    """Mismatched lines of closed waybills, newest close first."""
    query = (
        select(
            Waybill.waybill_no,
            WaybillItem.product_name,
            WaybillItem.incoming,
            WaybillItem.actual_count,
            WaybillItem.remark_actual,
            Waybill.closed_at,
        )
        .select_from(Waybill)
        .join(WaybillItem, WaybillItem.waybill_id == Waybill.waybill_id)
        .where(WaybillItem.actual_count != WaybillItem.incoming)
        .order_by(Waybill.closed_at.desc(), Waybill.waybill_no, WaybillItem.position)
    )
    query = _closed_in_range(query, start, end)
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return [
        DiscrepancyRow(
            waybill_no=row.waybill_no,
            product_name=row.product_name,
            incoming=row.incoming,
            actual_count=row.actual_count,
            remark_actual=row.remark_actual or "",
            closed_at=row.closed_at,
        )
        for row in result.all()
    ]


async def count_discrepancies(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    query = (
        select(func.count(WaybillItem.item_id))
        .select_from(Waybill)
        .join(WaybillItem, WaybillItem.waybill_id == Waybill.waybill_id)
        .where(WaybillItem.actual_count != WaybillItem.incoming)
    )
    query = _closed_in_range(query, start, end)
    return (await db.execute(query)).scalar_one()


async def closed_waybills(
    db: AsyncSession,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
) -> list[Waybill]:
    query = _closed_in_range(select(Waybill), start, end).order_by(Waybill.closed_at.desc())
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def dashboard_summary(
    db: AsyncSession,
    now: datetime | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    overdue_after_days: int = 7,
) -> dict:
    """Counters and month-to-date lists for the landing page."""
    now = now or datetime.utcnow()
    month_start, month_end = month_bounds(now)
    today_start, today_end = day_bounds(now.date(), now.date())

    async def _count_waybills(*where) -> int:
        return (await db.execute(select(func.count(Waybill.waybill_id)).where(*where))).scalar_one()

    product_count = (await db.execute(select(func.count(Product.product_id)))).scalar_one()
    open_waybills = await _count_waybills(Waybill.status == "OPEN")
    closed_count = await _count_waybills(Waybill.status == "CLOSED")
    overdue_waybills = await _count_waybills(
        Waybill.status == "OPEN",
        Waybill.date < now - timedelta(days=overdue_after_days),
    )

    incoming_today = (
        await db.execute(
            select(func.coalesce(func.sum(WaybillItem.incoming), 0))
            .select_from(Waybill)
            .join(WaybillItem, WaybillItem.waybill_id == Waybill.waybill_id)
            .where(Waybill.date >= today_start, Waybill.date <= today_end)
        )
    ).scalar_one()

    return {
        "product_count": product_count,
        "open_waybills": open_waybills,
        "closed_waybills": closed_count,
        "overdue_waybills": overdue_waybills,
        "incoming_today": float(incoming_today or 0),
        # Uncapped, across every closed waybill
        "discrepancies_total": await count_discrepancies(db),
        "discrepancies_this_month": await count_discrepancies(db, month_start, month_end),
        "closed_waybills_this_month": await closed_waybills(db, month_start, month_end, limit=page_size),
        "discrepancy_list_this_month": await list_discrepancies(db, month_start, month_end, limit=page_size),
    }
