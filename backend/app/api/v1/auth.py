from datetime import datetime
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal, get_db
from app.core.config import settings
from app.core.cookies import clear_auth_cookies
from app.core.login_tracker import get_login_tracker, login_key
from app.core.logging_config import get_logger
from app.core.rate_limiter import RateLimits, get_real_client_ip, limiter
from app.core.security import (
    ROLE_ADMIN,
    ROLE_MANAGER,
    InvalidTokenError,
    TokenExpiredError,
    decode_access_token,
    get_access_token_expire_time,
    get_password_hash,
    verify_password,
)
from app.core.session import (
    Principal,
    issue_session,
    load_principal,
    read_access_token,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
)
from app.core.token_blacklist import blacklist_token_async
from app.models.employee import Employee
from app.models.manager import ManagerRole
from app.models.user import User
from app.schemas.auth import AdminUserResponse, LoginRequest, ManagerProfileResponse, SignupRequest
from app.schemas.token import RefreshRequest

router = APIRouter()
logger = get_logger("perftracker.auth")

INVALID_CREDENTIALS = "Invalid email or password"


def _login_key(email: str, request: Request | None) -> str:
    """Login tracking key: normalised email plus client IP."""
    client_ip = get_real_client_ip(request) if request is not None else None
    return login_key(email, client_ip)


async def _assert_not_locked(key: str) -> None:
    tracker = get_login_tracker()
    is_locked, remaining_seconds = await tracker.is_locked(key)
    if is_locked:
        remaining_minutes = (remaining_seconds // 60) + 1
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many login attempts. Try again in {remaining_minutes} minutes."
        )


async def _register_failed_attempt(key: str) -> NoReturn:
    """Count a failure; raises 429 when it triggers the lockout, 401 otherwise."""
    if await get_login_tracker().register_failure(key):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Account temporarily locked due to repeated failures. Please wait before retrying."
        )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=INVALID_CREDENTIALS,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _reset_attempts(key: str) -> None:
    await get_login_tracker().reset(key)


def _validate_password_policy(password: str) -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long."
        )


def _manager_profile(principal: Principal, employee: Optional[Employee] = None) -> ManagerProfileResponse:
    return ManagerProfileResponse(
        id=principal.id,
        employee_id=principal.employee_id,
        manager_id=principal.manager_id,
        email=principal.email,
        first_name=employee.first_name if employee else None,
        last_name=employee.last_name if employee else None,
        phone_number=employee.phone_number if employee else None,
        department=principal.department,
        designation=principal.designation,
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.AUTH_REGISTER)
async def signup(
    request: Request,
    response: Response,
    signup_data: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Create an admin account.
    """
    _validate_password_policy(signup_data.password)

    email = signup_data.email.lower()
    result = await db.execute(select(User).where(func.lower(User.email) == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        full_name=signup_data.full_name,
        email=email,
        password_hash=get_password_hash(signup_data.password),
        phone_number=signup_data.phone_number,
        company_website=signup_data.company_website,
        pan_number=signup_data.pan_number,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Admin account created: {user.id}")
    return {
        "success": True,
        "message": "User registered successfully",
        "user": AdminUserResponse.model_validate(user),
    }


@router.post("/login")
@limiter.limit(RateLimits.AUTH_LOGIN)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Admin login. Sets the access and refresh cookies.
    """
    key = _login_key(login_data.email, request)
    await _assert_not_locked(key)

    result = await db.execute(
        select(User).where(func.lower(User.email) == login_data.email.strip().lower())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(login_data.password, user.password_hash):
        await _register_failed_attempt(key)

    user.last_login = datetime.utcnow()
    await db.commit()
    await _reset_attempts(key)

    principal = Principal(id=user.id, role=ROLE_ADMIN, email=user.email, full_name=user.full_name)
    await issue_session(db, principal, response, request)

    logger.info(f"Admin login: {user.id}")
    return {
        "success": True,
        "message": "Login successful",
        "user": AdminUserResponse.model_validate(user),
    }


@router.post("/manager-login")
@limiter.limit(RateLimits.AUTH_LOGIN)
async def manager_login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Manager login against the accounts created on promotion.
    """
    key = _login_key(login_data.email, request)
    await _assert_not_locked(key)

    result = await db.execute(
        select(ManagerRole).where(func.lower(ManagerRole.email) == login_data.email.strip().lower())
    )
    manager = result.scalar_one_or_none()

    if manager is None or not verify_password(login_data.password, manager.password_hash):
        await _register_failed_attempt(key)

    principal = await load_principal(db, ROLE_MANAGER, manager.id)
    if principal is None:
        # Account belongs to a soft-deleted employee
        await _register_failed_attempt(key)

    await _reset_attempts(key)
    await issue_session(db, principal, response, request)

    employee_result = await db.execute(select(Employee).where(Employee.employee_id == manager.employee_id))
    employee = employee_result.scalar_one_or_none()

    logger.info(f"Manager login: {principal.manager_id}")
    return {
        "success": True,
        "message": "Login successful",
        "user": _manager_profile(principal, employee),
    }


@router.post("/refresh")
@limiter.limit(RateLimits.AUTH_REFRESH)
async def refresh(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Exchange a refresh token (cookie or JSON body) for a new session.
    The presented token is revoked and both cookies are re-issued.
    """
    raw_token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE)
    if not raw_token and body is not None:
        raw_token = body.refreshToken
    if not raw_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Refresh token is required")

    principal = await rotate_refresh_token(db, raw_token, response, request)
    return {
        "success": True,
        "message": "Token refreshed successfully",
        "user": principal,
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Blacklist the access token, revoke refresh tokens and clear the cookies.
    Succeeds even without a valid session.
    """
    access_token = read_access_token(request)
    refresh_token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE)

    if access_token:
        try:
            payload = decode_access_token(access_token)
        except (TokenExpiredError, InvalidTokenError):
            payload = None

        if payload is not None:
            await blacklist_token_async(access_token, get_access_token_expire_time(access_token))
            principal = await load_principal(db, payload.role, int(payload.sub))
            if principal is not None:
                revoked = await revoke_all_refresh_tokens(db, principal)
                logger.info(f"Logout {principal.role}:{principal.id}, revoked {revoked} refresh tokens")

    if refresh_token:
        await revoke_refresh_token(db, refresh_token)

    clear_auth_cookies(response)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def read_current_principal(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Any:
    if principal.is_admin:
        result = await db.execute(select(User).where(User.id == principal.id))
        return {"success": True, "user": AdminUserResponse.model_validate(result.scalar_one())}

    result = await db.execute(select(Employee).where(Employee.employee_id == principal.employee_id))
    return {"success": True, "user": _manager_profile(principal, result.scalar_one_or_none())}
