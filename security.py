import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from errors import AppError, Conflict, Forbidden, NotFound, Unauthorized, UpstreamError, ValidationError, best_effort
from identity import IdentityError, TokenClaims, TokenExpired, TokenMalformed
from repositories import Services

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

IDENTITY_ERRORS = {
    "auth/user-not-found": NotFound,
    "auth/email-already-exists": Conflict,
    "auth/invalid-email": ValidationError,
    "auth/weak-password": ValidationError,
    "auth/invalid-credential": Unauthorized,
}


def identity_error(exc: IdentityError) -> AppError:
    """Translate an identity-provider failure into the HTTP error taxonomy."""
    return IDENTITY_ERRORS.get(exc.code, UpstreamError)(exc.message)


def get_services(request: Request) -> Services:
    return request.app.state.services


def authenticate_token(
    token: Optional[str] = Depends(oauth2_scheme),
    services: Services = Depends(get_services),
) -> TokenClaims:
    if not token:
        logger.warning("Authentication failed: no token provided")
        raise Unauthorized("Access token required")
    try:
        claims = services.identity.verify_token(token)
    except TokenExpired:
        raise Forbidden("Token expired")
    except TokenMalformed:
        raise Forbidden("Invalid token format")
    except IdentityError as exc:
        logger.error("Authentication error: %s (%s)", exc.message, exc.code)
        raise Forbidden("Invalid or expired token")
    logger.debug("Token verified for user: %s (%s)", claims.email, claims.uid)
    return claims


def optional_auth(
    token: Optional[str] = Depends(oauth2_scheme),
    services: Services = Depends(get_services),
) -> Optional[TokenClaims]:
    if not token:
        return None
    try:
        return services.identity.verify_token(token)
    except IdentityError:
        logger.debug("Optional auth: invalid token, continuing without user")
        return None


def is_admin(claims: Optional[TokenClaims], services: Services) -> bool:
    if claims is None:
        return False
    return claims.admin or claims.email in services.settings.admin_emails


def require_admin(
    claims: TokenClaims = Depends(authenticate_token),
    services: Services = Depends(get_services),
) -> TokenClaims:
    allow_listed = claims.email in services.settings.admin_emails
    if not claims.admin and not allow_listed:
        logger.warning("Access denied for user: %s (UID: %s)", claims.email, claims.uid)
        raise Forbidden("Admin access required")

    if allow_listed and not claims.admin:
        grant = {"admin": True, "role": "admin", "grantedAt": datetime.now(timezone.utc).isoformat()}
        outcome = best_effort(
            services.identity.set_custom_claims, claims.uid, grant, description="Granting admin claims"
        )
        if outcome.ok:
            logger.info("Admin claims granted to: %s", claims.email)
    return claims
