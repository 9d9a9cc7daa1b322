"""FastAPI endpoints for the Catalogue domain."""

from fastapi import APIRouter, Depends, Query

from catalogue.api.schemas import (
    CreateProductRequest,
    InventoryCheckRequest,
    InventoryStatusResponse,
    PriceHistoryResponse,
    ProductPageResponse,
    ProductResponse,
    RestockRequest,
    StockLevelResponse,
    UpdateProductRequest,
)
from catalogue.inventory.receiving import check_availability, restock
from catalogue.product.management import (
    create_product,
    delete_product,
    get_price_history,
    get_product,
    restore_product,
    update_product,
)
from catalogue.product.queries import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    find_by_brand,
    list_deleted_products,
    list_products,
    new_arrivals,
    similar_products,
    top_rated_products,
)
from shared.api import Actor, Envelope, admin_actor

product_router = APIRouter(prefix="/products", tags=["products"])
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


# --- Product endpoints ---


@product_router.post("", status_code=201, response_model=Envelope[ProductResponse])
async def create_product_endpoint(
    body: CreateProductRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[ProductResponse]:
    product = create_product(**body.model_dump())
    return Envelope(data=ProductResponse.model_validate(product))


def _products(products) -> list[ProductResponse]:
    return [ProductResponse.model_validate(product) for product in products]


@product_router.get("", response_model=Envelope[ProductPageResponse])
async def list_products_endpoint(
    category: str | None = None,
    brand: str | None = None,
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    search: str | None = Query(None, alias="q"),
    sort: str = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Envelope[ProductPageResponse]:
    result = list_products(
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )
    return Envelope(
        data=ProductPageResponse(
            items=_products(result.items),
            total=result.total,
            page=result.page,
            limit=result.limit,
            pages=result.pages,
            has_next=result.has_next,
        )
    )


@product_router.get("/top", response_model=Envelope[list[ProductResponse]])
async def top_products(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Envelope[list[ProductResponse]]:
    return Envelope(data=_products(top_rated_products(limit)))


@product_router.get("/new", response_model=Envelope[list[ProductResponse]])
async def new_products(
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> Envelope[list[ProductResponse]]:
    return Envelope(data=_products(new_arrivals(limit)))


@product_router.get("/deleted", response_model=Envelope[list[ProductResponse]])
async def deleted_products(actor: Actor = Depends(admin_actor)) -> Envelope[list[ProductResponse]]:
    return Envelope(data=_products(list_deleted_products()))


@product_router.get("/brand/{brand}", response_model=Envelope[list[ProductResponse]])
async def products_by_brand(brand: str) -> Envelope[list[ProductResponse]]:
    return Envelope(data=_products(find_by_brand(brand)))


@product_router.get("/{product_id}/similar", response_model=Envelope[list[ProductResponse]])
async def similar_products_endpoint(product_id: str) -> Envelope[list[ProductResponse]]:
    return Envelope(data=_products(similar_products(product_id)))


@product_router.get("/{product_id}", response_model=Envelope[ProductResponse])
async def get_product_endpoint(product_id: str) -> Envelope[ProductResponse]:
    return Envelope(data=ProductResponse.model_validate(get_product(product_id)))


@product_router.patch("/{product_id}", response_model=Envelope[ProductResponse])
async def update_product_endpoint(
    product_id: str, body: UpdateProductRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[ProductResponse]:
    product = update_product(product_id, changed_by=actor.user_id, **body.model_dump(exclude_unset=True))
    return Envelope(data=ProductResponse.model_validate(product))


@product_router.delete("/{product_id}", response_model=Envelope[ProductResponse])
async def delete_product_endpoint(product_id: str, actor: Actor = Depends(admin_actor)) -> Envelope[ProductResponse]:
    return Envelope(data=ProductResponse.model_validate(delete_product(product_id)))


@product_router.post("/{product_id}/restore", response_model=Envelope[ProductResponse])
async def restore_product_endpoint(product_id: str, actor: Actor = Depends(admin_actor)) -> Envelope[ProductResponse]:
    return Envelope(data=ProductResponse.model_validate(restore_product(product_id)))


@product_router.post("/{product_id}/restock", response_model=Envelope[StockLevelResponse])
async def restock_product(
    product_id: str, body: RestockRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[StockLevelResponse]:
    stock = restock(product_id, body.quantity)
    return Envelope(data=StockLevelResponse(product_id=product_id, stock=stock))


@product_router.get("/{product_id}/price-history", response_model=Envelope[list[PriceHistoryResponse]])
async def price_history(product_id: str) -> Envelope[list[PriceHistoryResponse]]:
    entries = get_price_history(product_id)
    return Envelope(data=[PriceHistoryResponse.model_validate(entry) for entry in entries])


# --- Inventory endpoints ---


@inventory_router.post("/check", response_model=Envelope[list[InventoryStatusResponse]])
async def check_inventory_endpoint(body: InventoryCheckRequest) -> Envelope[list[InventoryStatusResponse]]:
    statuses = check_availability([(item.product_id, item.quantity) for item in body.items])
    return Envelope(data=[InventoryStatusResponse.model_validate(status) for status in statuses])
