"""
Request and document schemas for the Vengase store.

Each collection below is owned by one repository; these models validate what
enters it. Collection names:
- Product -> "products" (keyed by integer id)
- Category -> "categories" (keyed by UUID)
- Order -> "orders" (keyed by orderId)
- User profile -> "users" (keyed by provider uid)
- Admin profile -> "admins" (keyed by provider uid)
"""
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

ProductCategory = Literal[
    "tops", "bottoms", "jewelry", "accessories", "bags", "bottles", "caps", "activewear", "unisex", "men", "women"
]
SizeCode = Literal["S", "M", "L", "XL", "XXL"]
ProductStatus = Literal["instock", "outofstock", "discontinued"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]

Slug = Annotated[str, Field(min_length=1, pattern=r"^[a-z0-9-]+$")]
Label = Annotated[str, Field(min_length=1, pattern=r"\S")]
Feature = Annotated[str, Field(max_length=100)]
Color = Annotated[str, Field(max_length=50)]
StockCount = Annotated[int, Field(ge=0)]


# ---------- Products ----------

class ProductCreate(BaseModel):
    """
    Products collection schema
    Collection name: "products"
    """
    name: str = Field(..., min_length=1, max_length=255)
    price: float = Field(..., ge=0, description="Unit price")
    description: str = Field(..., min_length=3, max_length=500)
    detailedDescription: Optional[str] = Field(None, max_length=2000)
    category: ProductCategory
    subcategory: Optional[str] = Field(None, max_length=100)
    fabric: Optional[str] = Field(None, max_length=100)
    features: List[Feature] = Field(default_factory=list)
    colors: List[Color] = Field(default_factory=list)
    stock: Dict[SizeCode, StockCount] = Field(default_factory=dict, description="Units per size")
    img: Optional[str] = Field(None, description="Image URL path or base64 data URL")
    rating: float = Field(0, ge=0, le=5)
    reviews: int = Field(0, ge=0)
    status: ProductStatus = "instock"


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, min_length=3, max_length=500)
    detailedDescription: Optional[str] = Field(None, max_length=2000)
    category: Optional[ProductCategory] = None
    subcategory: Optional[str] = Field(None, max_length=100)
    fabric: Optional[str] = Field(None, max_length=100)
    features: Optional[List[Feature]] = None
    colors: Optional[List[Color]] = None
    stock: Optional[Dict[SizeCode, StockCount]] = None
    img: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    reviews: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatus] = None


class StockUpdate(BaseModel):
    stock: Dict[SizeCode, StockCount]


# ---------- Categories ----------

class SubcategoryIn(BaseModel):
    value: Slug
    label: Label


class CategoryCreate(BaseModel):
    """
    Categories collection schema
    Collection name: "categories"
    """
    name: Slug = Field(..., description="Lowercase, hyphenated unique name")
    label: Label
    subcategories: List[SubcategoryIn] = Field(default_factory=list)


class CategoryUpdate(BaseModel):
    name: Slug
    label: Label


# ---------- Orders ----------

class OrderItem(BaseModel):
    productId: int
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    img: Optional[str] = None


class ShippingAddress(BaseModel):
    address: str = Field(..., min_length=5, max_length=500)
    city: str = Field(..., min_length=2, max_length=100)
    postalCode: str = Field(..., min_length=3, max_length=10)
    country: str = "Sri Lanka"


class OrderCreate(BaseModel):
    """
    Orders collection schema
    Collection name: "orders"
    """
    userEmail: EmailStr
    userName: str = Field(..., min_length=2, max_length=100)
    phone: str = Field(..., min_length=10, max_length=15)
    items: List[OrderItem] = Field(..., min_length=1)
    totalAmount: float = Field(..., ge=0)
    shippingAddress: ShippingAddress
    paymentMethod: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


# ---------- Users ----------

class RegisterRequest(BaseModel):
    uid: str = Field(..., min_length=1)
    email: EmailStr
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    displayName: Optional[str] = None
    phone: Optional[str] = None


class SignInRequest(BaseModel):
    uid: str = Field(..., min_length=1)
    email: EmailStr
    displayName: Optional[str] = None


class Preferences(BaseModel):
    notifications: bool = True
    newsletter: bool = False


class ProfileUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    displayName: Optional[str] = None
    phone: Optional[str] = None
    preferences: Optional[Preferences] = None


class CartLine(BaseModel):
    productId: int
    size: str
    quantity: int = Field(1, ge=1)
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    img: Optional[str] = None


class AddToCartRequest(BaseModel):
    productId: int
    size: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class RemoveFromCartRequest(BaseModel):
    productId: int
    size: str = Field(..., min_length=1)


class SyncCartRequest(BaseModel):
    cart: List[CartLine] = Field(default_factory=list)


class SyncWishlistRequest(BaseModel):
    wishlist: List[int] = Field(default_factory=list)


class ToggleWishlistRequest(BaseModel):
    productId: int


# ---------- Identity & admin ----------

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    displayName: Optional[str] = Field(None, min_length=2, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    uid: str


class CreateAdminRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    displayName: Optional[str] = Field(None, min_length=2, max_length=100)


class MakeAdminRequest(BaseModel):
    uid: Optional[str] = None
    email: Optional[EmailStr] = None


class UidRequest(BaseModel):
    uid: str = Field(..., min_length=1)
