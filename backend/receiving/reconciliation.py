"""
Count Reconciliation — turn free-text count entries into actual counts.

Counters type what they see per product as comma-separated tallies
("5, 10, 2"). For every line on the waybill:

1. Parse the tally for the line's product name; each token is read as an
   optional sign plus leading digits, tokens without one are dropped, an
   empty tally sums to 0
2. Store the sum as actual_count and the remark as remark_actual
3. Link the line to the product directory if it is not linked yet
4. Upsert the (waybill, product) ledger entry

The waybill is only written, and the product system only notified, when
some line actually changed. Resubmitting identical input is a no-op apart
from refreshing the ledger timestamps.
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Mapping

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ResolutionWarning, ValidationError
from db.models import CountLedgerEntry, Waybill
from integrations.webhook import WaybillEvent, WebhookNotifier
from receiving.directory import ProductDirectory
from receiving.ledger import CountLedger

logger = structlog.get_logger()

_TALLY_TOKEN = re.compile(r"\s*([+-]?\d+)", re.ASCII)


def parse_counts(raw: str | None) -> list[int]:
    """Split a comma-separated tally into integers, dropping anything else.

    Each token contributes its leading signed integer, so "5abc" is 5 and
    "2.5" is 2; tokens that do not start with digits are skipped.

    >>> parse_counts("5, 10, abc, -2")
    [5, 10, -2]
    """
    if not raw:
        return []
    counts = []
    for token in raw.split(","):
        match = _TALLY_TOKEN.match(token)
        if match:
            counts.append(int(match.group(1)))
    return counts


@dataclass
class LineOutcome:
    product_name: str
    counts: list[int]
    actual_count: int
    incoming: float
    changed: bool

    @property
    def discrepancy(self) -> float:
        return self.actual_count - self.incoming


@dataclass
class ReconcileResult:
    waybill: Waybill
    modified: bool
    lines: list[LineOutcome] = field(default_factory=list)
    warnings: list[ResolutionWarning] = field(default_factory=list)
    ledger: list[CountLedgerEntry] = field(default_factory=list)
    notified: bool = False


class CountReconciler:
    def __init__(
        self,
        db: AsyncSession,
        directory: ProductDirectory,
        ledger: CountLedger,
        notifier: WebhookNotifier,
    ):
        self.db = db
        self.directory = directory
        self.ledger = ledger
        self.notifier = notifier

    async def reconcile_by_id(
        self,
        waybill_id: uuid.UUID,
        raw_counts: Mapping[str, str],
        raw_remarks: Mapping[str, str],
    ) -> ReconcileResult:
        waybill = await self.db.get(Waybill, waybill_id)
        if waybill is None:
            raise NotFoundError("Waybill not found.")
        return await self.reconcile(waybill, raw_counts, raw_remarks)

    async def reconcile(
        self,
        waybill: Waybill,
        raw_counts: Mapping[str, str],
        raw_remarks: Mapping[str, str],
    ) -> ReconcileResult:
        known = {item.product_name for item in waybill.items}
        unknown = sorted((set(raw_counts) | set(raw_remarks)) - known)
        if unknown:
            raise ValidationError(
                f"Not on waybill {waybill.waybill_no}: {', '.join(unknown)}",
                field="counts",
            )

        parsed = {
            item.product_name: parse_counts(raw_counts.get(item.product_name, ""))
            for item in waybill.items
        }
        negative = sorted(name for name, counts in parsed.items() if sum(counts) < 0)
        if negative:
            raise ValidationError(
                f"Counted total cannot be negative: {', '.join(negative)}",
                field="counts",
            )

        result = ReconcileResult(waybill=waybill, modified=False)

        for item in waybill.items:
            counts = parsed[item.product_name]
            actual = sum(counts)
            remark = raw_remarks.get(item.product_name) or ""
            changed = False

            if item.actual_count != actual:
                item.actual_count = actual
                changed = True
            if (item.remark_actual or "") != remark:
                item.remark_actual = remark
                changed = True

            # Only unlinked lines are resolved here; edit() re-links everything.
            if item.product_id is None or not item.conversion_factor:
                link = await self.directory.resolve(item.product_name)
                if link is None:
                    product_id, factor = None, 1
                    result.warnings.append(
                        ResolutionWarning(product_name=item.product_name, waybill_no=waybill.waybill_no)
                    )
                    logger.warning(
                        "counts.product_unresolved",
                        waybill_no=waybill.waybill_no,
                        product_name=item.product_name,
                    )
                else:
                    product_id, factor = link.product_id, link.conversion_factor
                if item.product_id != product_id or item.conversion_factor != factor:
                    item.product_id = product_id
                    item.conversion_factor = factor
                    changed = True

            result.modified = result.modified or changed
            result.lines.append(
                LineOutcome(
                    product_name=item.product_name,
                    counts=counts,
                    actual_count=actual,
                    incoming=item.incoming,
                    changed=changed,
                )
            )

        # Ledger rows are written for every line whether or not the waybill changed.
        for item in waybill.items:
            entry = await self.ledger.upsert(waybill, item, parsed[item.product_name])
            if entry not in result.ledger:
                result.ledger.append(entry)

        await self.db.commit()

        logger.info(
            "counts.saved",
            waybill_id=str(waybill.waybill_id),
            waybill_no=waybill.waybill_no,
            modified=result.modified,
            lines=len(result.lines),
            unresolved=len(result.warnings),
        )

        if result.modified:
            delivery = await self.notifier.notify(waybill.waybill_id, WaybillEvent.COUNTED)
            result.notified = delivery.delivered
        return result
