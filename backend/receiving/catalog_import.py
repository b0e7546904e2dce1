"""
Product catalog import from a spreadsheet.

Layout of the first worksheet: a header row, then column A = category and
column B = product name. Rows missing either value are skipped. An import
replaces the whole catalog.
"""

from pathlib import Path

import structlog
from openpyxl import load_workbook
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Product

logger = structlog.get_logger()


def cell_text(value) -> str:
    """Flatten a cell value (rich text, formula result, number) to a trimmed string."""
    if value is None:
        return ""
    # CellRichText and friends stringify to their plain text
    return str(value).strip()


def read_product_rows(path: str | Path) -> list[dict[str, str]]:
    workbook = load_workbook(filename=path, read_only=True, data_only=True)
    try:
        worksheet = workbook.worksheets[0]
        rows = []
        for row in worksheet.iter_rows(min_row=2, max_col=2, values_only=True):
            category, product_name = (cell_text(v) for v in (tuple(row) + (None, None))[:2])
            if category and product_name:
                rows.append({"category": category, "product_name": product_name})
        return rows
    finally:
        workbook.close()


async def replace_catalog(db: AsyncSession, rows: list[dict[str, str]]) -> int:
    """Delete every product and insert ``rows``. Later duplicates of a name are dropped."""
    seen: set[str] = set()
    products = []
    for row in rows:
        if row["product_name"] in seen:
            logger.warning("catalog.duplicate_skipped", product_name=row["product_name"])
            continue
        seen.add(row["product_name"])
        products.append(Product(category=row["category"], product_name=row["product_name"]))

    await db.execute(delete(Product))
    db.add_all(products)
    await db.commit()
    logger.info("catalog.imported", products=len(products))
    return len(products)
