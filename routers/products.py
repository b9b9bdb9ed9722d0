import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from errors import NotFound, best_effort
from images import FALLBACK_IMAGE
from querying import ProductFilters
from repositories import Services
from schemas import ProductCreate, ProductUpdate, StockUpdate
from security import get_services, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])

DEFAULT_LIMIT = 50


def _listing(products):
    return {"success": True, "count": len(products), "data": products}


def _store_image(services: Services, img: Optional[str], name: Optional[str]):
    """Persist a base64 data URL and return its URL, or None when saving failed."""
    outcome = best_effort(services.images.save_base64_image, img, name, description="Saving product image")
    return outcome.value if outcome.ok else None


def _discard_image(services: Services, url: Optional[str], product_id) -> None:
    if services.images.is_managed(url):
        outcome = best_effort(services.images.delete_image, url, description="Deleting product image")
        if outcome.ok:
            logger.info("Image deleted for product: %s", product_id)


@router.get("")
def list_products(
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    status: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder", pattern="^(asc|desc)$"),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    offset: int = Query(0, ge=0),
    q: Optional[str] = None,
    services: Services = Depends(get_services),
):
    filters = ProductFilters(
        category=category or None,
        subcategory=subcategory or None,
        status=status or None,
        min_price=min_price,
        max_price=max_price,
        q=q or None,
        sort_by=sort_by or None,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    return _listing(services.products.find_all(filters))


@router.get("/search/{term}")
def search_products(term: str, services: Services = Depends(get_services)):
    return _listing(services.products.search(term))


@router.get("/category/{category}")
def products_by_category(
    category: str,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    filters = ProductFilters(sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset)
    return _listing(services.products.find_by_category(category, filters))


@router.get("/{product_id}")
def get_product(product_id: str, services: Services = Depends(get_services)):
    product = services.products.find_by_id(product_id)
    if not product:
        raise NotFound("Product not found")
    return {"success": True, "data": product}


@router.post("", status_code=201)
def create_product(body: ProductCreate, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    data = body.model_dump()
    if services.images.is_base64_image(data.get("img")):
        data["img"] = _store_image(services, data["img"], data["name"]) or FALLBACK_IMAGE
    product = services.products.create(data)
    return {"success": True, "data": product}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdate,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    data = body.model_dump(exclude_unset=True)
    if services.images.is_base64_image(data.get("img")):
        current = services.products.find_by_id(product_id)
        new_url = _store_image(services, data["img"], data.get("name"))
        if new_url:
            data["img"] = new_url
            if current:
                _discard_image(services, current.get("img"), product_id)
            logger.info("Image updated for product: %s", product_id)
        else:
            # keep the current image rather than failing the whole update
            del data["img"]
    product = services.products.update(product_id, data)
    return {"success": True, "data": product}


@router.delete("/{product_id}")
def delete_product(product_id: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    product = services.products.find_by_id(product_id)
    if not product:
        raise NotFound("Product not found")
    _discard_image(services, product.get("img"), product_id)
    services.products.delete(product_id)
    return {"success": True, "message": "Product deleted successfully"}


@router.patch("/{product_id}/stock")
def update_product_stock(
    product_id: str,
    body: StockUpdate,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    product = services.products.update_stock(product_id, body.stock)
    return {"success": True, "data": product}
