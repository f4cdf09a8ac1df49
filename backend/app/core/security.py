from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
import hashlib
import secrets

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from app.core.config import settings
from app.schemas.token import TokenPayload

ACCESS_TOKEN_TYPE = "access"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLES = (ROLE_ADMIN, ROLE_MANAGER)


class TokenExpiredError(Exception):
    """The access token signature is valid but its ``exp`` is in the past."""


class InvalidTokenError(Exception):
    """The access token is malformed, forged or not an access token."""


def create_access_token(
    subject: str | Any,
    role: str,
    extra_claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        subject: The subject of the token (admin user id or manager account id)
        role: ``admin`` or ``manager``
        extra_claims: Optional claims such as ``employee_id`` and ``manager_id``
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode: Dict[str, Any] = {k: v for k, v in (extra_claims or {}).items() if v is not None}
    to_encode.update({
        "exp": expire,
        "sub": str(subject),
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """
    Decode and verify an access token.

    Raises:
        TokenExpiredError: signature checks out but the token has expired
        InvalidTokenError: anything else (bad signature, wrong type, missing claims)
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Access token expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("Invalid access token") from exc

    if payload.get("type") != ACCESS_TOKEN_TYPE or payload.get("role") not in ROLES:
        raise InvalidTokenError("Invalid access token")

    try:
        return TokenPayload(**payload)
    except ValidationError as exc:
        raise InvalidTokenError("Invalid access token") from exc


def get_access_token_expire_time(token: str) -> datetime:
    """Expiry of an already verified token, used to size blacklist entries."""
    claims = jwt.get_unverified_claims(token)
    exp = claims.get("exp")
    if exp is None:
        return datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return datetime.utcfromtimestamp(exp)


def _prepare_password(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode('utf-8')[:72]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password from database

    Returns:
        True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(
            _prepare_password(plain_password),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Malformed hash stored in the database
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_prepare_password(password), salt)
    return hashed.decode('utf-8')


def create_refresh_token() -> Tuple[str, str]:
    """
    Create an opaque refresh token.

    Returns:
        Tuple of (raw_token, token_hash):
        - raw_token: sent to the client in the ``refreshToken`` cookie
        - token_hash: SHA256 hex digest, the only form persisted
    """
    raw_token = secrets.token_urlsafe(32)
    return raw_token, hash_refresh_token(raw_token)


def hash_refresh_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def get_refresh_token_expire_time() -> datetime:
    return datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
