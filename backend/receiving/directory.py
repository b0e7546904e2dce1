"""
Product Directory — name → identifier resolution and catalog lookups.

Waybill lines reference products by free-text name. Resolution is an exact,
case-sensitive match on ``product_name``; the listing/search helpers go
through the lowercase+trimmed shadow columns instead.
"""

import math
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Product, normalize

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProductLink:
    """What a waybill line needs to know about its product."""

    product_id: uuid.UUID
    conversion_factor: float


@dataclass
class ProductPage:
    products: list[Product]
    current_page: int
    total_pages: int
    total_products: int
    limit: int


class ProductDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, product_name: str) -> ProductLink | None:
        """Exact-name lookup. Missing conversion factors default to 1."""
        result = await self.db.execute(
            select(Product.product_id, Product.conversion_factor).where(Product.product_name == product_name)
        )
        row = result.first()
        if row is None:
            return None
        return ProductLink(product_id=row.product_id, conversion_factor=row.conversion_factor or 1)

    async def get(self, product_id: uuid.UUID) -> Product | None:
        return await self.db.get(Product, product_id)

    async def name_taken(self, product_name: str, exclude_id: uuid.UUID | None = None) -> bool:
        query = select(Product.product_id).where(Product.product_name == product_name)
        if exclude_id is not None:
            query = query.where(Product.product_id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    async def page(
        self,
        page: int = 1,
        limit: int = 10,
        category: str | None = None,
        search: str | None = None,
    ) -> ProductPage:
        """Paginated catalog, sorted by name.

        category is an anchored case-insensitive match; search is a
        case-insensitive substring match on the product name.
        """
        filters = []
        if category:
            filters.append(Product.category_normalized == normalize(category))
        if search:
            filters.append(Product.product_name_normalized.contains(normalize(search), autoescape=True))

        total = (await self.db.execute(select(func.count(Product.product_id)).where(*filters))).scalar_one()
        result = await self.db.execute(
            select(Product)
            .where(*filters)
            .order_by(Product.product_name)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return ProductPage(
            products=list(result.scalars().all()),
            current_page=page,
            total_pages=math.ceil(total / limit) if limit else 0,
            total_products=total,
            limit=limit,
        )

    async def categories(self) -> list[str]:
        result = await self.db.execute(select(Product.category).distinct().order_by(Product.category))
        return [row[0] for row in result.all()]

    async def in_category(self, category: str) -> list[Product]:
        result = await self.db.execute(
            select(Product)
            .where(Product.category_normalized == normalize(category))
            .order_by(Product.product_name)
        )
        return list(result.scalars().all())

    async def search(self, query: str) -> list[Product]:
        result = await self.db.execute(
            select(Product)
            .where(Product.product_name_normalized.contains(normalize(query), autoescape=True))
            .order_by(Product.product_name)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        return (await self.db.execute(select(func.count(Product.product_id)))).scalar_one()
