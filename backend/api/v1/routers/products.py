"""
Products Router — catalog browsing and CRUD.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_directory, require
from core.errors import ConflictError, NotFoundError, ValidationError
from core.policy import Capability
from db.models import Product
from receiving.directory import ProductDirectory

router = APIRouter(prefix="/api/v1/products", tags=["products"])

REQUIRED_FIELDS = ("category", "product_name")


# ─── Schemas ────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    product_name: str = Field(..., min_length=1, max_length=255)
    sku: str | None = None
    barcode: str | None = None
    price: float | None = Field(None, ge=0)
    stock: float | None = None
    base_unit: str | None = None
    conversion_factor: float | None = Field(None, ge=1)


class ProductUpdate(BaseModel):
    category: str | None = Field(None, min_length=1, max_length=100)
    product_name: str | None = Field(None, min_length=1, max_length=255)
    sku: str | None = None
    barcode: str | None = None
    price: float | None = Field(None, ge=0)
    stock: float | None = None
    base_unit: str | None = None
    conversion_factor: float | None = Field(None, ge=1)


class ProductResponse(BaseModel):
    product_id: UUID
    category: str
    product_name: str
    sku: str | None
    barcode: str | None
    price: float | None
    stock: float | None
    base_unit: str | None
    conversion_factor: float | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductPageResponse(BaseModel):
    products: list[ProductResponse]
    current_page: int
    total_pages: int
    total_products: int
    limit: int

    model_config = {"from_attributes": True}


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=ProductPageResponse)
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: str | None = None,
    search: str | None = None,
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    """Paginated catalog with optional category and name filters."""
    result = await directory.page(page=page, limit=limit, category=category, search=search)
    return ProductPageResponse.model_validate(result)


@router.get("/categories", response_model=list[str])
async def list_categories(
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    return await directory.categories()


@router.get("/category/{category}", response_model=list[ProductResponse])
async def list_products_in_category(
    category: str,
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    return await directory.in_category(category)


@router.get("/search/{query}", response_model=list[ProductResponse])
async def search_products(
    query: str,
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    """Case-insensitive substring match on the product name."""
    return await directory.search(query)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    product = await directory.get(product_id)
    if not product:
        raise NotFoundError("Product not found.")
    return product


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    if await directory.name_taken(body.product_name):
        raise ConflictError(f"Product {body.product_name} already exists.", field="product_name")

    product = Product(**body.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: UUID,
    update: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    """Update a product. Existing waybill lines keep their stored link."""
    product = await directory.get(product_id)
    if not product:
        raise NotFoundError("Product not found.")

    changes = update.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be empty.", field=field)

    new_name = changes.get("product_name")
    if new_name and await directory.name_taken(new_name, exclude_id=product_id):
        raise ConflictError(f"Product {new_name} already exists.", field="product_name")

    for field, value in changes.items():
        setattr(product, field, value)
    product.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: UUID,
    db: AsyncSession = Depends(get_db),
    directory: ProductDirectory = Depends(get_directory),
    user: dict = Depends(require(Capability.MANAGE_PRODUCTS)),
):
    product = await directory.get(product_id)
    if not product:
        raise NotFoundError("Product not found.")
    await db.delete(product)
    await db.commit()
