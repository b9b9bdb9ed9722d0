"""
Identity provider: user accounts, custom claims and bearer tokens.

Accounts live in the ``identities`` collection; passwords are hashed with
passlib and tokens are HS256 JWTs that embed the account's custom claims at
issue time, so a claim change takes effect on the next token.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from database import DocumentStore, utcnow

logger = logging.getLogger(__name__)

IDENTITIES = "identities"
JWT_ALG = "HS256"
MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_email_adapter = TypeAdapter(EmailStr)


class IdentityError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class TokenExpired(IdentityError):
    def __init__(self, message: str = "Token expired"):
        super().__init__("auth/id-token-expired", message)


class TokenMalformed(IdentityError):
    def __init__(self, message: str = "Invalid token format"):
        super().__init__("auth/argument-error", message)


class UserRecord(BaseModel):
    uid: str
    email: str
    displayName: Optional[str] = None
    emailVerified: bool = False
    disabled: bool = False
    customClaims: Dict[str, Any] = {}
    creationTime: Optional[datetime] = None
    lastSignInTime: Optional[datetime] = None


class TokenClaims(BaseModel):
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    name: Optional[str] = None
    admin: bool = False
    role: Literal["admin", "user"] = "user"
    issued_at: Optional[datetime] = None


def _record(doc: Dict[str, Any]) -> UserRecord:
    return UserRecord(**{k: v for k, v in doc.items() if k != "passwordHash"})


class IdentityProvider:
    def __init__(self, store: DocumentStore, secret: str, token_ttl: timedelta = timedelta(hours=1)):
        self.store = store
        self.secret = secret
        self.token_ttl = token_ttl

    # ----- accounts -----

    def create_user(self, email: str, password: str, display_name: Optional[str] = None, email_verified: bool = False) -> UserRecord:
        try:
            email = str(_email_adapter.validate_python(email)).lower()
        except PydanticValidationError:
            raise IdentityError("auth/invalid-email", "Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise IdentityError("auth/weak-password", "Password should be at least 6 characters")
        if self.store.exists(IDENTITIES, [("email", "==", email)]):
            raise IdentityError("auth/email-already-exists", "Email already exists")

        uid = uuid.uuid4().hex
        doc = {
            "uid": uid,
            "email": email,
            "displayName": display_name,
            "emailVerified": email_verified,
            "disabled": False,
            "customClaims": {},
            "passwordHash": pwd_context.hash(password),
            "creationTime": utcnow(),
            "lastSignInTime": None,
        }
        self.store.set(IDENTITIES, uid, doc)
        logger.info("Identity created: %s (%s)", email, uid)
        return _record(doc)

    def get_user(self, uid: str) -> UserRecord:
        doc = self.store.get(IDENTITIES, uid)
        if not doc:
            raise IdentityError("auth/user-not-found", "User not found")
        return _record(doc)

    def get_user_by_email(self, email: str) -> UserRecord:
        found = self.store.query(IDENTITIES, [("email", "==", email.lower())], limit=1)
        if not found:
            raise IdentityError("auth/user-not-found", "User not found")
        return _record(found[0])

    def set_custom_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        if self.store.update(IDENTITIES, uid, {"customClaims": dict(claims)}) is None:
            raise IdentityError("auth/user-not-found", "User not found")
        logger.info("Custom claims set for %s: %s", uid, sorted(claims))

    def list_users(self, page_size: int = 1000) -> List[UserRecord]:
        return [_record(doc) for doc in self.store.query(IDENTITIES, limit=page_size)]

    # ----- tokens -----

    def sign_in(self, email: str, password: str) -> str:
        found = self.store.query(IDENTITIES, [("email", "==", email.lower())], limit=1)
        if not found or found[0].get("disabled") or not pwd_context.verify(password, found[0]["passwordHash"]):
            raise IdentityError("auth/invalid-credential", "Invalid credentials")
        doc = self.store.update(IDENTITIES, found[0]["uid"], {"lastSignInTime": utcnow()})
        return self.issue_token(_record(doc or found[0]))

    def issue_token(self, record: UserRecord) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            **record.customClaims,
            "sub": record.uid,
            "uid": record.uid,
            "email": record.email,
            "email_verified": record.emailVerified,
            "name": record.displayName,
            "iat": now,
            "exp": now + self.token_ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALG)

    def verify_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALG])
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except jwt.InvalidSignatureError:
            raise IdentityError("auth/invalid-id-token", "Invalid or expired token")
        except jwt.DecodeError:
            raise TokenMalformed()
        except jwt.InvalidTokenError as exc:
            raise IdentityError("auth/invalid-id-token", str(exc) or "Invalid or expired token")

        uid = payload.get("uid") or payload.get("sub")
        if not uid:
            raise IdentityError("auth/invalid-id-token", "Invalid or expired token")
        admin = payload.get("admin") is True
        return TokenClaims(
            uid=uid,
            email=payload.get("email"),
            email_verified=bool(payload.get("email_verified")),
            name=payload.get("name"),
            admin=admin,
            role="admin" if admin else "user",
            issued_at=datetime.fromtimestamp(payload["iat"], timezone.utc) if "iat" in payload else None,
        )
