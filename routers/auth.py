import logging

from fastapi import APIRouter, Depends

from errors import Forbidden, NotFound, ValidationError, best_effort
from identity import IdentityError, TokenClaims
from repositories import Services
from schemas import (
    AddToCartRequest,
    CreateAdminRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    RemoveFromCartRequest,
    SignInRequest,
    SignupRequest,
    SyncCartRequest,
    SyncWishlistRequest,
    TokenResponse,
    ToggleWishlistRequest,
    UidRequest,
)
from security import authenticate_token, get_services, identity_error, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

PROFILE_FIELDS = ("uid", "email", "firstName", "lastName", "displayName", "phone")


def _public_profile(user, *extra):
    return {name: user.get(name) for name in PROFILE_FIELDS + extra}


# ----------------------------------------------------------------------------
# Accounts and tokens
# ----------------------------------------------------------------------------

@router.post("/signup", status_code=201)
def signup(body: SignupRequest, services: Services = Depends(get_services)):
    try:
        record = services.identity.create_user(body.email, body.password, body.displayName)
    except IdentityError as exc:
        raise identity_error(exc)
    services.users.create({"uid": record.uid, "email": record.email, "displayName": record.displayName or ""})
    token = services.identity.issue_token(record)
    return {"success": True, "data": TokenResponse(access_token=token, uid=record.uid).model_dump()}


@router.post("/login")
def login(body: LoginRequest, services: Services = Depends(get_services)):
    try:
        token = services.identity.sign_in(body.email, body.password)
    except IdentityError as exc:
        raise identity_error(exc)
    claims = services.identity.verify_token(token)
    best_effort(services.admins.record_login, claims.uid, description="Recording admin login")
    return {"success": True, "data": TokenResponse(access_token=token, uid=claims.uid).model_dump()}


# ----------------------------------------------------------------------------
# Profiles
# ----------------------------------------------------------------------------

@router.post("/register", status_code=201)
def register(body: RegisterRequest, services: Services = Depends(get_services)):
    if services.users.get_by_uid(body.uid):
        raise ValidationError("User profile already exists")
    first, last = body.firstName or "", body.lastName or ""
    user = services.users.create({
        "uid": body.uid,
        "email": body.email,
        "firstName": first,
        "lastName": last,
        "displayName": body.displayName or f"{first} {last}".strip(),
        "phone": body.phone or "",
    })
    logger.info("User registered: %s", body.uid)
    return {"success": True, "data": _public_profile(user)}


@router.post("/signin")
def signin(body: SignInRequest, services: Services = Depends(get_services)):
    user = services.users.get_by_uid(body.uid)
    if not user:
        user = services.users.create({
            "uid": body.uid,
            "email": body.email,
            "displayName": body.displayName or body.email.split("@")[0],
        })
        logger.info("User profile created on sign in: %s", body.uid)
    data = _public_profile(user)
    data["cart"] = user.get("cart") or []
    data["wishlist"] = user.get("wishlist") or []
    return {"success": True, "data": data}


@router.get("/profile")
def get_profile(services: Services = Depends(get_services), claims: TokenClaims = Depends(authenticate_token)):
    user = services.users.get_by_uid(claims.uid)
    if not user:
        raise NotFound("User profile not found")
    return {"success": True, "data": user}


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    changes = body.model_dump(exclude_unset=True)
    if not body.displayName and (body.firstName or body.lastName):
        changes["displayName"] = f"{body.firstName or ''} {body.lastName or ''}".strip()
    user = services.users.update(claims.uid, changes)
    return {"success": True, "data": user}


# ----------------------------------------------------------------------------
# Cart & Wishlist
# ----------------------------------------------------------------------------

@router.post("/sync-cart")
def sync_cart(
    body: SyncCartRequest,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    services.users.update_cart(claims.uid, [line.model_dump() for line in body.cart])
    return {"success": True, "message": "Cart synced successfully"}


@router.post("/sync-wishlist")
def sync_wishlist(
    body: SyncWishlistRequest,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    services.users.update_wishlist(claims.uid, body.wishlist)
    return {"success": True, "message": "Wishlist synced successfully"}


@router.post("/cart/add")
def add_to_cart(
    body: AddToCartRequest,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    product = services.products.find_by_id(body.productId)
    if not product:
        raise NotFound("Product not found")
    line = {
        "productId": body.productId,
        "size": body.size,
        "quantity": body.quantity,
        "name": product.get("name"),
        "price": product.get("price"),
        "img": product.get("img"),
    }
    cart = services.users.add_to_cart(claims.uid, line)
    return {"success": True, "data": {"cart": cart}}


@router.post("/cart/remove")
def remove_from_cart(
    body: RemoveFromCartRequest,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    cart = services.users.remove_from_cart(claims.uid, body.productId, body.size)
    return {"success": True, "data": {"cart": cart}}


@router.post("/wishlist/toggle")
def toggle_wishlist(
    body: ToggleWishlistRequest,
    services: Services = Depends(get_services),
    claims: TokenClaims = Depends(authenticate_token),
):
    wishlist = services.users.toggle_wishlist(claims.uid, body.productId)
    return {"success": True, "data": {"wishlist": wishlist}}


# ----------------------------------------------------------------------------
# Admin accounts and user management
# ----------------------------------------------------------------------------

@router.get("/verify-admin")
def verify_admin(claims: TokenClaims = Depends(authenticate_token)):
    if not claims.admin:
        raise Forbidden("Admin access required")
    return {"success": True, "data": {"uid": claims.uid, "email": claims.email, "admin": claims.admin}}


@router.post("/create-admin", status_code=201)
def create_admin(body: CreateAdminRequest, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    try:
        record = services.identity.create_user(body.email, body.password, body.displayName, email_verified=True)
        services.identity.set_custom_claims(record.uid, {"admin": True})
    except IdentityError as exc:
        raise identity_error(exc)
    logger.info("Admin user created: %s", record.uid)
    return {
        "success": True,
        "data": {"uid": record.uid, "email": record.email, "displayName": record.displayName, "admin": True},
    }


@router.post("/revoke-admin")
def revoke_admin(body: UidRequest, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    try:
        services.identity.set_custom_claims(body.uid, {"admin": False})
    except IdentityError as exc:
        raise identity_error(exc)
    logger.info("Admin access revoked for user: %s", body.uid)
    return {"success": True, "message": "Admin access revoked successfully"}


@router.get("/users")
def list_users(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    users = services.users.get_all()
    logger.info("Admin retrieved %d users", len(users))
    return {"success": True, "count": len(users), "data": users}


@router.get("/users/stats")
def user_stats(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    return {"success": True, "data": services.users.stats()}


@router.delete("/users/{uid}")
def delete_user(uid: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    services.users.delete(uid)
    logger.info("User deleted: %s", uid)
    return {"success": True, "message": "User deleted successfully"}
