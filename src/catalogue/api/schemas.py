"""Pydantic request/response schemas for the Catalogue API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

# --- Product Request Schemas ---


class CreateProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Classic Black T-Shirt",
                    "price": "29.99",
                    "stock": 40,
                    "description": "Premium cotton crew-neck tee in black.",
                    "images": ["https://cdn.example.com/tshirt-black.jpg"],
                    "brand": "Acme Apparel",
                    "category": "Apparel",
                }
            ]
        }
    }

    name: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., gt=0)
    stock: int = Field(0, ge=0)
    description: str = ""
    images: list[str] = Field(default_factory=list)
    brand: str | None = Field(None, max_length=100)
    category: str | None = Field(None, max_length=100)
    original_price: Decimal | None = Field(None, gt=0)
    sku: str | None = Field(None, max_length=50)
    slug: str | None = Field(None, max_length=220)
    pre_order: bool = False


class UpdateProductRequest(BaseModel):
    """Admin edit. ``stock`` and ``availability`` are accepted only to be refused with a clear error."""

    name: str | None = Field(None, max_length=200)
    description: str | None = None
    price: Decimal | None = None
    original_price: Decimal | None = None
    images: list[str] | None = None
    brand: str | None = Field(None, max_length=100)
    category: str | None = Field(None, max_length=100)
    is_active: bool | None = None
    stock: int | None = None
    availability: str | None = None


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class InventoryItem(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)


class InventoryCheckRequest(BaseModel):
    items: list[InventoryItem] = Field(..., min_length=1)


# --- Response Schemas ---


class ProductResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    slug: str
    sku: str
    description: str
    price: float
    original_price: float | None = None
    images: list[str]
    brand: str | None = None
    category: str | None = None
    stock: int
    availability: str
    ratings_average: float
    ratings_quantity: int
    is_active: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class PriceHistoryResponse(BaseModel):
    model_config = {"from_attributes": True}

    product_id: str
    old_price: float
    new_price: float
    changed_by: str | None = None
    created_at: datetime


class InventoryStatusResponse(BaseModel):
    model_config = {"from_attributes": True}

    product_id: str
    available: bool
    remaining_stock: int


class StockLevelResponse(BaseModel):
    product_id: str
    stock: int


class ProductPageResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_next: bool
