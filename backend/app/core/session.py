"""
Cookie session handling: access token verification and refresh token rotation.

Every protected route resolves its principal through :func:`resolve_session`.
A valid access token is used as is. When it has expired (or is missing) and a
refresh cookie is present, the refresh token is rotated and both cookies are
re-issued on the outgoing response.
"""

import logging
from typing import Optional, Tuple

from fastapi import Request, Response, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.cookies import set_auth_cookies
from app.core.errors import APIError, SessionExpiredError
from app.core.rate_limiter import get_real_client_ip
from app.core.security import (
    ROLE_ADMIN,
    ROLE_MANAGER,
    InvalidTokenError,
    TokenExpiredError,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    get_refresh_token_expire_time,
    hash_refresh_token,
)
from app.core.token_blacklist import is_token_blacklisted_async
from app.models.department_history import DepartmentHistory
from app.models.employee import Employee
from app.models.manager import ManagerRole
from app.models.refresh_token import RefreshToken
from app.models.user import User

logger = logging.getLogger("perftracker.session")


class Principal(BaseModel):
    """The admin or manager behind a request."""
    id: int
    role: str
    email: str
    full_name: Optional[str] = None
    employee_id: Optional[str] = None
    manager_id: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER


def _unauthorized(message: str) -> APIError:
    return APIError(
        status.HTTP_401_UNAUTHORIZED,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def read_access_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access token cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(settings.ACCESS_TOKEN_COOKIE) or None


async def get_active_assignment(db: AsyncSession, employee_id: str) -> Optional[DepartmentHistory]:
    result = await db.execute(
        select(DepartmentHistory)
        .where(
            DepartmentHistory.employee_id == employee_id,
            DepartmentHistory.is_active.is_(True),
        )
        .order_by(DepartmentHistory.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_principal(db: AsyncSession, role: str, subject_id: int) -> Optional[Principal]:
    """Load the account a token was issued to, or None when it no longer exists."""
    if role == ROLE_ADMIN:
        result = await db.execute(select(User).where(User.id == subject_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return Principal(id=user.id, role=ROLE_ADMIN, email=user.email, full_name=user.full_name)

    if role == ROLE_MANAGER:
        result = await db.execute(
            select(ManagerRole, Employee)
            .join(Employee, Employee.employee_id == ManagerRole.employee_id)
            .where(ManagerRole.id == subject_id, Employee.deleted_at.is_(None))
        )
        row = result.first()
        if row is None:
            return None
        manager, employee = row
        assignment = await get_active_assignment(db, manager.employee_id)
        return Principal(
            id=manager.id,
            role=ROLE_MANAGER,
            email=manager.email,
            full_name=employee.full_name,
            employee_id=manager.employee_id,
            manager_id=manager.manager_id,
            department=assignment.department_name if assignment else None,
            designation=assignment.designation if assignment else None,
        )

    return None


def issue_access_token(principal: Principal) -> str:
    extra = None
    if principal.is_manager:
        extra = {"employee_id": principal.employee_id, "manager_id": principal.manager_id}
    return create_access_token(principal.id, principal.role, extra_claims=extra)


async def store_refresh_token(
    db: AsyncSession,
    principal: Principal,
    request: Optional[Request] = None,
) -> str:
    """
    Create a refresh token for ``principal`` and persist its hash.
    Commits the session; returns the raw token for the cookie.
    """
    raw_token, token_hash = create_refresh_token()

    device_info = None
    ip_address = None
    if request is not None:
        ip_address = get_real_client_ip(request)
        device_info = request.headers.get("User-Agent", "")[:255] or None

    db.add(RefreshToken(
        token_hash=token_hash,
        subject_id=principal.id,
        role=principal.role,
        expires_at=get_refresh_token_expire_time(),
        device_info=device_info,
        ip_address=ip_address,
    ))
    await db.commit()
    return raw_token


async def issue_session(
    db: AsyncSession,
    principal: Principal,
    response: Response,
    request: Optional[Request] = None,
) -> Tuple[str, str]:
    """Issue a fresh access/refresh pair and set both cookies."""
    access_token = issue_access_token(principal)
    refresh_token = await store_refresh_token(db, principal, request)
    set_auth_cookies(response, access_token, refresh_token)
    return access_token, refresh_token


async def revoke_refresh_token(db: AsyncSession, raw_token: str) -> bool:
    """Revoke a single refresh token. Returns False when it is unknown."""
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw_token))
    )
    token_record = result.scalar_one_or_none()
    if token_record is None:
        return False
    if token_record.revoked_at is None:
        token_record.revoke()
        await db.commit()
    return True


async def revoke_all_refresh_tokens(db: AsyncSession, principal: Principal) -> int:
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.subject_id == principal.id,
            RefreshToken.role == principal.role,
            RefreshToken.revoked_at.is_(None),
        )
    )
    tokens = result.scalars().all()
    for token in tokens:
        token.revoke()
    if tokens:
        await db.commit()
    return len(tokens)


async def rotate_refresh_token(
    db: AsyncSession,
    raw_token: str,
    response: Response,
    request: Optional[Request] = None,
) -> Principal:
    """
    Exchange a refresh token for a new access/refresh pair.

    The presented token is revoked and both cookies are set on ``response``;
    the new pair is also kept on ``request.state.refreshed_tokens``.
    Raises SessionExpiredError (401, cookies cleared) when the token is
    unknown, revoked, expired or its account is gone.
    """
    result = await db.execute(
        select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw_token))
    )
    token_record = result.scalar_one_or_none()

    if token_record is None or not token_record.is_valid():
        logger.info("Rejected unknown, revoked or expired refresh token")
        raise SessionExpiredError()

    principal = await load_principal(db, token_record.role, token_record.subject_id)
    if principal is None:
        token_record.revoke()
        await db.commit()
        raise SessionExpiredError()

    token_record.revoke()
    tokens = await issue_session(db, principal, response, request)
    if request is not None:
        # Read by the error handlers
        request.state.refreshed_tokens = tokens
    logger.debug(f"Rotated refresh token for {principal.role}:{principal.id}")
    return principal


async def resolve_session(request: Request, response: Response, db: AsyncSession) -> Principal:
    """
    Resolve the principal of a request, refreshing the session when the
    access token has expired.
    """
    access_token = read_access_token(request)
    refresh_token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE)

    if access_token:
        if await is_token_blacklisted_async(access_token):
            raise _unauthorized("Token has been revoked")

        try:
            payload = decode_access_token(access_token)
        except TokenExpiredError:
            payload = None
        except InvalidTokenError:
            raise _unauthorized("Invalid token")

        if payload is not None:
            try:
                subject_id = int(payload.sub)
            except ValueError:
                raise _unauthorized("Invalid token")
            principal = await load_principal(db, payload.role, subject_id)
            if principal is None:
                raise _unauthorized("Account not found")
            request.state.principal = principal
            request.state.access_token = access_token
            return principal

        if not refresh_token:
            raise _unauthorized("Access token expired")

    if refresh_token:
        principal = await rotate_refresh_token(db, refresh_token, response, request)
        request.state.principal = principal
        request.state.access_token = None
        return principal

    raise _unauthorized("Not authenticated")

