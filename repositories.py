"""
Repositories, one per collection.

Every mutation is an unconditional read-modify-write against a single
document; nothing here takes a lock or runs a transaction.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database

from config import Settings
from database import BatchOperation, DocumentStore, utcnow
from errors import Conflict, NotFound
from identity import IdentityProvider
from images import ImageService
from querying import OrderFilters, ProductFilters, order_plan, product_plan, run_query, sort_items
from sequences import ORDERS, PRODUCTS, SequenceAllocator
from storage import ObjectStorage

logger = logging.getLogger(__name__)

CATEGORIES = "categories"
USERS = "users"
ADMINS = "admins"

IMMUTABLE_PRODUCT_FIELDS = ("id", "createdAt")

DEFAULT_CATEGORIES = [
    {"name": "men", "label": "Men", "subcategories": []},
    {"name": "women", "label": "Women", "subcategories": []},
    {
        "name": "unisex",
        "label": "Unisex",
        "subcategories": [
            {"value": "t-shirts-shirts", "label": "T-shirts & Shirts"},
            {"value": "pants-shorts", "label": "Pants & Shorts"},
            {"value": "slides-socks", "label": "Slides & Socks"},
            {"value": "jackets-hoodies", "label": "Jackets & Hoodies"},
        ],
    },
    {
        "name": "accessories",
        "label": "Accessories",
        "subcategories": [
            {"value": "bags", "label": "Bags & Backpacks"},
            {"value": "caps", "label": "Caps & Hats"},
            {"value": "bottles", "label": "Bottles"},
        ],
    },
    {
        "name": "jewelry",
        "label": "Jewelry",
        "subcategories": [
            {"value": "bracelets", "label": "Bracelets"},
            {"value": "necklaces", "label": "Necklaces"},
            {"value": "rings", "label": "Rings"},
        ],
    },
]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class ProductRepository:
    collection = PRODUCTS

    def __init__(self, store: DocumentStore, allocator: SequenceAllocator):
        self.store = store
        self.allocator = allocator

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        product_id = self.allocator.next_product_id()
        now = utcnow()
        product = {**data, "id": product_id, "createdAt": now, "updatedAt": now}
        self.store.set(self.collection, str(product_id), product)
        logger.info("Product created with ID: %s", product_id)
        return product

    def find_by_id(self, product_id) -> Optional[Dict[str, Any]]:
        return self.store.get(self.collection, str(product_id))

    def find_all(self, filters: Optional[ProductFilters] = None) -> List[Dict[str, Any]]:
        return run_query(self.store, self.collection, product_plan(filters or ProductFilters()))

    def find_all_simple(self) -> List[Dict[str, Any]]:
        return self.store.query(self.collection, order_by="createdAt", descending=True)

    def search(self, term: str) -> List[Dict[str, Any]]:
        return self.find_all(ProductFilters(q=term))

    def find_by_category(self, category: str, filters: Optional[ProductFilters] = None) -> List[Dict[str, Any]]:
        filters = filters or ProductFilters()
        filters.category = category
        return self.find_all(filters)

    def count_by_category(self, category: str, status: Optional[str] = None) -> int:
        return len(self.find_all(ProductFilters(category=category, status=status)))

    def update(self, product_id, data: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: v for k, v in data.items() if k not in IMMUTABLE_PRODUCT_FIELDS}
        changes["updatedAt"] = utcnow()
        updated = self.store.update(self.collection, str(product_id), changes)
        if updated is None:
            raise NotFound("Product not found")
        logger.info("Product updated with ID: %s", product_id)
        return updated

    def delete(self, product_id) -> None:
        if not self.store.delete(self.collection, str(product_id)):
            raise NotFound("Product not found")
        logger.info("Product deleted with ID: %s", product_id)

    def update_stock(self, product_id, stock: Dict[str, int]) -> Dict[str, Any]:
        current = self.find_by_id(product_id)
        if current is None:
            raise NotFound("Product not found")
        merged = {**(current.get("stock") or {}), **stock}
        updated = self.store.update(self.collection, str(product_id), {"stock": merged, "updatedAt": utcnow()})
        if updated is None:
            raise NotFound("Product not found")
        logger.info("Stock updated for product ID: %s", product_id)
        return updated

    def category_stats(self) -> Dict[str, Dict[str, float]]:
        stats: Dict[str, Dict[str, float]] = {}
        for product in self.find_all():
            entry = stats.setdefault(
                product.get("category"),
                {"total": 0, "inStock": 0, "outOfStock": 0, "averagePrice": 0, "totalValue": 0},
            )
            entry["total"] += 1
            if product.get("status") == "instock":
                entry["inStock"] += 1
            else:
                entry["outOfStock"] += 1
            entry["totalValue"] += product.get("price") or 0
        for entry in stats.values():
            entry["averagePrice"] = entry["totalValue"] / entry["total"]
        return stats


class CategoryRepository:
    collection = CATEGORIES

    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _with_ids(subcategories: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [{**sub, "id": sub.get("id") or str(uuid.uuid4())} for sub in subcategories]

    def _build(self, name: str, label: str, subcategories: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        now = utcnow()
        return {
            "id": str(uuid.uuid4()),
            "name": name,
            "label": label,
            "subcategories": self._with_ids(subcategories or []),
            "createdAt": now,
            "updatedAt": now,
        }

    def create(self, name: str, label: str, subcategories: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        category = self._build(name, label, subcategories)
        self.store.set(self.collection, category["id"], category)
        logger.info("Category created with ID: %s", category["id"])
        return category

    def find_all(self) -> List[Dict[str, Any]]:
        return self.store.query(self.collection, order_by="createdAt")

    def find_by_id(self, category_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.collection, category_id)

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        found = self.store.query(self.collection, [("name", "==", name)], limit=1)
        return found[0] if found else None

    def _require(self, category_id: str) -> Dict[str, Any]:
        category = self.find_by_id(category_id)
        if category is None:
            raise NotFound("Category not found", key="message")
        return category

    def _save(self, category_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        updated = self.store.update(self.collection, category_id, {**fields, "updatedAt": utcnow()})
        if updated is None:
            raise NotFound("Category not found", key="message")
        return updated

    def update(self, category_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        updated = self._save(category_id, data)
        logger.info("Category updated with ID: %s", category_id)
        return updated

    def delete(self, category_id: str) -> None:
        if not self.store.delete(self.collection, category_id):
            raise NotFound("Category not found", key="message")
        logger.info("Category deleted with ID: %s", category_id)

    def is_in_use(self, name: str) -> bool:
        return self.store.exists(PRODUCTS, [("category", "==", name)])

    def is_subcategory_in_use(self, value: str) -> bool:
        return self.store.exists(PRODUCTS, [("subcategory", "==", value)])

    def delete_guarded(self, category_id: str) -> None:
        category = self._require(category_id)
        if self.is_in_use(category["name"]):
            raise Conflict("Cannot delete category that is being used by products", key="message")
        self.delete(category_id)

    def add_subcategory(self, category_id: str, value: str, label: str) -> Dict[str, Any]:
        category = self._require(category_id)
        subcategories = list(category.get("subcategories") or [])
        subcategories.append({"value": value, "label": label, "id": str(uuid.uuid4())})
        updated = self._save(category_id, {"subcategories": subcategories})
        logger.info("Subcategory added to category %s", category_id)
        return updated

    def update_subcategory(self, category_id: str, subcategory_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        category = self._require(category_id)
        subcategories = list(category.get("subcategories") or [])
        for index, sub in enumerate(subcategories):
            if sub.get("id") == subcategory_id:
                subcategories[index] = {**sub, **data}
                break
        else:
            raise NotFound("Subcategory not found", key="message")
        updated = self._save(category_id, {"subcategories": subcategories})
        logger.info("Subcategory %s updated in category %s", subcategory_id, category_id)
        return updated

    def delete_subcategory(self, category_id: str, subcategory_id: str) -> Dict[str, Any]:
        category = self._require(category_id)
        remaining = [sub for sub in category.get("subcategories") or [] if sub.get("id") != subcategory_id]
        updated = self._save(category_id, {"subcategories": remaining})
        logger.info("Subcategory %s deleted from category %s", subcategory_id, category_id)
        return updated

    def delete_subcategory_guarded(self, category_id: str, subcategory_id: str) -> Dict[str, Any]:
        category = self._require(category_id)
        subcategory = next((s for s in category.get("subcategories") or [] if s.get("id") == subcategory_id), None)
        if subcategory is None:
            raise NotFound("Subcategory not found", key="message")
        if self.is_subcategory_in_use(subcategory["value"]):
            raise Conflict("Cannot delete subcategory that is being used by products", key="message")
        return self.delete_subcategory(category_id, subcategory_id)

    def initialize_defaults(self) -> List[str]:
        existing = {category["name"] for category in self.find_all()}
        missing = [c for c in DEFAULT_CATEGORIES if c["name"] not in existing]
        if not missing:
            logger.info("Categories already initialized")
            return []
        operations = []
        for data in missing:
            category = self._build(data["name"], data["label"], data["subcategories"])
            operations.append(BatchOperation("set", self.collection, category["id"], category))
        self.store.batch_write(operations)
        names = [c["name"] for c in missing]
        logger.info("Default categories initialized: %s", ", ".join(names))
        return names


class OrderRepository:
    collection = ORDERS

    def __init__(self, store: DocumentStore, allocator: SequenceAllocator):
        self.store = store
        self.allocator = allocator

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        order_id = self.allocator.next_order_id()
        now = utcnow()
        order = {
            "orderId": order_id,
            "userId": data.get("userId") or None,
            "userEmail": data.get("userEmail"),
            "userName": data.get("userName"),
            "items": data.get("items") or [],
            "totalAmount": float(data["totalAmount"]),
            "shippingAddress": data.get("shippingAddress"),
            "phone": data.get("phone"),
            "paymentMethod": data.get("paymentMethod") or "pending",
            "paymentStatus": "pending",
            "orderStatus": "pending",
            "notes": data.get("notes") or "",
            "createdAt": now,
            "updatedAt": now,
        }
        self.store.set(self.collection, order_id, order)
        logger.info("Order created: %s", order_id)
        return order

    def find_by_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.collection, order_id)

    def find_all(self, filters: Optional[OrderFilters] = None) -> List[Dict[str, Any]]:
        return run_query(self.store, self.collection, order_plan(filters or OrderFilters()))

    def find_by_user_id(self, user_id: str) -> List[Dict[str, Any]]:
        return self.find_all(OrderFilters(user_id=user_id))

    def _set_status(self, order_id: str, field: str, status: str) -> Dict[str, Any]:
        updated = self.store.update(self.collection, order_id, {field: status, "updatedAt": utcnow()})
        if updated is None:
            raise NotFound("Order not found")
        logger.info("Order %s %s updated to: %s", order_id, field, status)
        return updated

    def update_order_status(self, order_id: str, status: str) -> Dict[str, Any]:
        return self._set_status(order_id, "orderStatus", status)

    def update_payment_status(self, order_id: str, status: str) -> Dict[str, Any]:
        return self._set_status(order_id, "paymentStatus", status)

    def stats(self) -> Dict[str, Any]:
        stats = {"totalOrders": 0, "totalRevenue": 0.0, "pendingOrders": 0, "completedOrders": 0, "cancelledOrders": 0}
        for order in self.store.query(self.collection):
            stats["totalOrders"] += 1
            stats["totalRevenue"] += order.get("totalAmount") or 0
            status = order.get("orderStatus")
            if status in ("pending", "confirmed"):
                stats["pendingOrders"] += 1
            elif status == "delivered":
                stats["completedOrders"] += 1
            elif status == "cancelled":
                stats["cancelledOrders"] += 1
        return stats


class UserRepository:
    collection = USERS

    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        user = {
            "uid": profile["uid"],
            "email": profile["email"],
            "firstName": profile.get("firstName") or "",
            "lastName": profile.get("lastName") or "",
            "displayName": profile.get("displayName") or "",
            "phone": profile.get("phone") or "",
            "cart": [],
            "wishlist": [],
            "orders": [],
            "addresses": [],
            "createdAt": now,
            "updatedAt": now,
            "isActive": True,
            "preferences": {"notifications": True, "newsletter": False},
        }
        self.store.set(self.collection, user["uid"], user)
        logger.info("User profile created: %s", user["uid"])
        return user

    def get_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.collection, uid)

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        found = self.store.query(self.collection, [("email", "==", email)], limit=1)
        return found[0] if found else None

    def _require(self, uid: str) -> Dict[str, Any]:
        user = self.get_by_uid(uid)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_all(self) -> List[Dict[str, Any]]:
        users = [
            {
                "uid": user.get("uid"),
                "email": user.get("email"),
                "firstName": user.get("firstName") or "",
                "lastName": user.get("lastName") or "",
                "displayName": user.get("displayName") or "",
                "phone": user.get("phone") or "",
                "createdAt": user.get("createdAt"),
                "isActive": True,
                "orderCount": len(user.get("orders") or []),
            }
            for user in self.store.query(self.collection)
            if user.get("isActive") is not False
        ]
        return sort_items(users, "createdAt", descending=True)

    def update(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        updated = self.store.update(self.collection, uid, {**data, "updatedAt": utcnow()})
        if updated is None:
            raise NotFound("User not found")
        logger.info("User profile updated: %s", uid)
        return updated

    def update_cart(self, uid: str, cart: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.update(uid, {"cart": cart})
        return cart

    def update_wishlist(self, uid: str, wishlist: List[int]) -> List[int]:
        self.update(uid, {"wishlist": wishlist})
        return wishlist

    def add_to_cart(self, uid: str, line: Dict[str, Any]) -> List[Dict[str, Any]]:
        cart = list(self._require(uid).get("cart") or [])
        now = utcnow()
        quantity = line.get("quantity") or 1
        for item in cart:
            if item.get("productId") == line["productId"] and item.get("size") == line["size"]:
                item["quantity"] = (item.get("quantity") or 0) + quantity
                item["updatedAt"] = now
                break
        else:
            cart.append({**line, "quantity": quantity, "addedAt": now, "updatedAt": now})
        return self.update_cart(uid, cart)

    def remove_from_cart(self, uid: str, product_id: int, size: str) -> List[Dict[str, Any]]:
        cart = [
            item
            for item in self._require(uid).get("cart") or []
            if not (item.get("productId") == product_id and item.get("size") == size)
        ]
        return self.update_cart(uid, cart)

    def toggle_wishlist(self, uid: str, product_id: int) -> List[int]:
        wishlist = list(self._require(uid).get("wishlist") or [])
        if product_id in wishlist:
            wishlist = [pid for pid in wishlist if pid != product_id]
        else:
            wishlist.append(product_id)
        return self.update_wishlist(uid, wishlist)

    def add_order(self, uid: str, summary: Dict[str, Any]) -> Dict[str, Any]:
        orders = list(self._require(uid).get("orders") or [])
        entry = {**summary, "createdAt": utcnow()}
        orders.append(entry)
        self.update(uid, {"orders": orders})
        logger.info("Order added for user: %s", uid)
        return entry

    def stats(self) -> Dict[str, int]:
        users = self.store.query(self.collection)
        return {
            "totalUsers": len(users),
            "activeUsers": sum(1 for user in users if user.get("isActive")),
            "totalOrders": sum(len(user.get("orders") or []) for user in users),
        }

    def delete(self, uid: str) -> None:
        now = utcnow()
        if self.store.update(self.collection, uid, {"isActive": False, "deletedAt": now, "updatedAt": now}) is None:
            raise NotFound("User not found")
        logger.info("User soft deleted: %s", uid)


class AdminRepository:
    collection = ADMINS

    def __init__(self, store: DocumentStore):
        self.store = store

    def create(self, uid: str, email: str, display_name: Optional[str] = None, email_verified: bool = False) -> Dict[str, Any]:
        now = utcnow()
        admin = {
            "uid": uid,
            "email": email,
            "displayName": display_name or "Admin User",
            "emailVerified": email_verified,
            "createdAt": now,
            "updatedAt": now,
            "role": "admin",
            "status": "active",
            "lastLogin": None,
            "loginCount": 0,
        }
        self.store.set(self.collection, uid, admin)
        logger.info("Admin profile created in database: %s (%s)", email, uid)
        return admin

    def find_by_uid(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.store.get(self.collection, uid)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        found = self.store.query(self.collection, [("email", "==", email)], limit=1)
        return found[0] if found else None

    def find_all(self) -> List[Dict[str, Any]]:
        return self.store.query(self.collection, order_by="createdAt", descending=True)

    def any_exist(self) -> bool:
        return bool(self.store.query(self.collection, limit=1))

    def update(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        updated = self.store.update(self.collection, uid, {**data, "updatedAt": utcnow()})
        if updated is None:
            raise NotFound("Admin not found in database")
        logger.info("Admin updated in database: %s", uid)
        return updated

    def record_login(self, uid: str) -> None:
        admin = self.find_by_uid(uid)
        if admin is None:
            return
        self.update(uid, {"lastLogin": utcnow(), "loginCount": (admin.get("loginCount") or 0) + 1})
        logger.info("Admin login recorded: %s", uid)

    def promote(self, uid: str, email: str, display_name: Optional[str] = None, email_verified: bool = False) -> Dict[str, Any]:
        if self.find_by_uid(uid) is None:
            return self.create(uid, email, display_name, email_verified)
        return self.update(uid, {"status": "active", "role": "admin"})

    def demote(self, uid: str) -> Optional[Dict[str, Any]]:
        if self.find_by_uid(uid) is None:
            return None
        return self.update(uid, {"status": "inactive", "role": "user"})

    def delete(self, uid: str) -> None:
        if not self.store.delete(self.collection, uid):
            raise NotFound("Admin not found in database")
        logger.info("Admin deleted from database: %s", uid)

    def stats(self) -> Dict[str, int]:
        admins = self.store.query(self.collection)
        cutoff = datetime.now(timezone.utc) - timedelta(days=30)
        total = len(admins)
        active = sum(1 for admin in admins if admin.get("status") == "active")
        recent = sum(1 for admin in admins if admin.get("lastLogin") and _as_utc(admin["lastLogin"]) > cutoff)
        return {"totalAdmins": total, "activeAdmins": active, "recentLogins": recent, "inactiveAdmins": total - active}


@dataclass
class Services:
    """Everything a request handler needs, built once per application."""

    settings: Settings
    store: DocumentStore
    allocator: SequenceAllocator
    products: ProductRepository
    categories: CategoryRepository
    orders: OrderRepository
    users: UserRepository
    admins: AdminRepository
    identity: IdentityProvider
    images: ImageService
    storage: ObjectStorage

    @classmethod
    def build(cls, settings: Settings, db: Database) -> "Services":
        store = DocumentStore(db)
        allocator = SequenceAllocator(store)
        return cls(
            settings=settings,
            store=store,
            allocator=allocator,
            products=ProductRepository(store, allocator),
            categories=CategoryRepository(store),
            orders=OrderRepository(store, allocator),
            users=UserRepository(store),
            admins=AdminRepository(store),
            identity=IdentityProvider(store, settings.jwt_secret, timedelta(minutes=settings.token_expire_minutes)),
            images=ImageService(settings.image_dir),
            storage=ObjectStorage(db, settings.storage_bucket),
        )
