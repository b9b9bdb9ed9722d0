from fastapi import APIRouter, Depends

from errors import Conflict
from repositories import Services
from schemas import CategoryCreate, CategoryUpdate, SubcategoryIn
from security import get_services, require_admin

router = APIRouter(tags=["categories"])

# storefront sections reported by the legacy counts endpoint
LEGACY_CATEGORIES = [
    "t-shirts-shirts",
    "pants-shorts",
    "slides-socks",
    "jackets-hoodies",
    "jewelry",
    "accessories",
    "bags",
    "bottles",
    "caps",
    "unisex",
]


@router.get("")
def category_counts(services: Services = Depends(get_services)):
    data = [
        {
            "name": name,
            "displayName": name[:1].upper() + name[1:],
            "productCount": services.products.count_by_category(name, status="instock"),
        }
        for name in LEGACY_CATEGORIES
    ]
    return {"success": True, "data": data}


@router.get("/stats")
def category_stats(services: Services = Depends(get_services)):
    return {"success": True, "data": services.products.category_stats()}


@router.get("/all")
def all_categories(services: Services = Depends(get_services)):
    return {"success": True, "data": services.categories.find_all()}


@router.post("/initialize")
def initialize_categories(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    added = services.categories.initialize_defaults()
    if not added:
        return {"success": True, "message": "All default categories already exist", "added": 0}
    return {
        "success": True,
        "message": f"{len(added)} default categories initialized successfully",
        "added": len(added),
        "categories": added,
    }


@router.post("", status_code=201)
def create_category(body: CategoryCreate, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    if services.categories.find_by_name(body.name):
        raise Conflict("Category with this name already exists", key="message")
    category = services.categories.create(
        body.name, body.label, [sub.model_dump() for sub in body.subcategories]
    )
    return {"success": True, "data": category, "message": "Category created successfully"}


@router.put("/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdate,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    existing = services.categories.find_by_name(body.name)
    if existing and existing["id"] != category_id:
        raise Conflict("Category with this name already exists", key="message")
    category = services.categories.update(category_id, body.model_dump())
    return {"success": True, "data": category, "message": "Category updated successfully"}


@router.delete("/{category_id}")
def delete_category(category_id: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    services.categories.delete_guarded(category_id)
    return {"success": True, "message": "Category deleted successfully"}


@router.post("/{category_id}/subcategories", status_code=201)
def add_subcategory(
    category_id: str,
    body: SubcategoryIn,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    category = services.categories.add_subcategory(category_id, body.value, body.label)
    return {"success": True, "data": category, "message": "Subcategory added successfully"}


@router.put("/{category_id}/subcategories/{sub_id}")
def update_subcategory(
    category_id: str,
    sub_id: str,
    body: SubcategoryIn,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    category = services.categories.update_subcategory(category_id, sub_id, body.model_dump())
    return {"success": True, "data": category, "message": "Subcategory updated successfully"}


@router.delete("/{category_id}/subcategories/{sub_id}")
def delete_subcategory(
    category_id: str,
    sub_id: str,
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    category = services.categories.delete_subcategory_guarded(category_id, sub_id)
    return {"success": True, "data": category, "message": "Subcategory deleted successfully"}
