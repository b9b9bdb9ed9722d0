import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends

from errors import ValidationError, best_effort
from identity import IdentityError, TokenClaims
from repositories import Services
from schemas import CreateAdminRequest, MakeAdminRequest, UidRequest
from security import authenticate_token, get_services, identity_error, oauth2_scheme, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def bootstrap_or_admin(
    token: Optional[str] = Depends(oauth2_scheme),
    services: Services = Depends(get_services),
) -> Optional[TokenClaims]:
    """Open while no admin profile exists; afterwards the caller must be an admin."""
    if not services.admins.any_exist():
        logger.info("No admin profiles yet, allowing initial admin setup")
        return None
    return require_admin(authenticate_token(token, services), services)


@router.post("/create-admin", status_code=201)
def create_admin(
    body: CreateAdminRequest,
    services: Services = Depends(get_services),
    _caller: Optional[TokenClaims] = Depends(bootstrap_or_admin),
):
    try:
        record = services.identity.create_user(
            body.email, body.password, body.displayName or "Admin User", email_verified=True
        )
        services.identity.set_custom_claims(record.uid, {"admin": True, "role": "admin", "createdAt": _now_iso()})
    except IdentityError as exc:
        raise identity_error(exc)

    profile = services.admins.create(record.uid, record.email, record.displayName, record.emailVerified)
    logger.info("Admin user created: %s (%s)", record.email, record.uid)
    return {
        "success": True,
        "data": {
            "uid": record.uid,
            "email": record.email,
            "displayName": record.displayName,
            "admin": True,
            "profile": profile,
            "message": "Admin user created successfully",
        },
    }


@router.post("/make-admin")
def make_admin(body: MakeAdminRequest, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    if not body.uid and not body.email:
        raise ValidationError("User UID or email is required")
    try:
        record = services.identity.get_user(body.uid) if body.uid else services.identity.get_user_by_email(body.email)
        services.identity.set_custom_claims(record.uid, {"admin": True, "role": "admin", "promotedAt": _now_iso()})
    except IdentityError as exc:
        raise identity_error(exc)

    outcome = best_effort(
        services.admins.promote,
        record.uid,
        record.email,
        record.displayName,
        record.emailVerified,
        description="Creating admin profile",
    )
    logger.info("User promoted to admin: %s (%s)", record.email, record.uid)
    return {
        "success": True,
        "data": {
            "uid": record.uid,
            "email": record.email,
            "displayName": record.displayName,
            "admin": True,
            "profile": outcome.value,
            "message": "User promoted to admin successfully",
        },
    }


@router.get("/list")
def list_admins(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    admins = [
        {
            "uid": user.uid,
            "email": user.email,
            "displayName": user.displayName,
            "emailVerified": user.emailVerified,
            "disabled": user.disabled,
            "createdAt": user.creationTime,
            "lastSignIn": user.lastSignInTime,
            "customClaims": user.customClaims,
        }
        for user in services.identity.list_users(1000)
        if user.customClaims.get("admin")
    ]
    return {"success": True, "data": {"admins": admins, "count": len(admins)}}


@router.post("/remove-admin")
def remove_admin(body: UidRequest, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    try:
        record = services.identity.get_user(body.uid)
        services.identity.set_custom_claims(body.uid, {"admin": False, "role": "user", "demotedAt": _now_iso()})
    except IdentityError as exc:
        raise identity_error(exc)

    best_effort(services.admins.demote, body.uid, description="Deactivating admin profile")
    logger.info("Admin privileges removed: %s (%s)", record.email, body.uid)
    return {
        "success": True,
        "data": {
            "uid": record.uid,
            "email": record.email,
            "admin": False,
            "message": "Admin privileges removed successfully",
        },
    }


def _ensure_profile(services: Services, claims: TokenClaims):
    profile = services.admins.find_by_uid(claims.uid)
    if profile is None:
        profile = services.admins.create(
            claims.uid,
            claims.email,
            claims.name or (claims.email or "").split("@")[0],
            claims.email_verified,
        )
        logger.info("Created admin profile for: %s", claims.email)
    return profile


@router.get("/verify")
def verify_admin(services: Services = Depends(get_services), claims: TokenClaims = Depends(require_admin)):
    best_effort(services.admins.record_login, claims.uid, description="Updating last login")
    profile = best_effort(_ensure_profile, services, claims, description="Loading admin profile").value
    return {
        "success": True,
        "data": {
            "uid": claims.uid,
            "email": claims.email,
            "admin": True,
            "role": "admin",
            "profile": profile,
            "verified": True,
            "message": "Admin verified successfully",
        },
    }


@router.get("/stats")
def admin_stats(services: Services = Depends(get_services), _admin=Depends(require_admin)):
    return {"success": True, "data": services.admins.stats()}
