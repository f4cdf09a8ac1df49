import logging
from typing import AsyncGenerator, Callable, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import AsyncSessionLocal
from app.core.security import ROLE_ADMIN, ROLE_MANAGER
from app.core.session import Principal, resolve_session

logger = logging.getLogger("perftracker.deps")


async def get_db() -> AsyncGenerator:
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_principal(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the authenticated admin or manager.

    Refreshed cookies are written to ``response``; FastAPI merges them into
    whatever the endpoint returns as long as it is not a Response itself.
    """
    return await resolve_session(request, response, db)


def require_role(*roles: str, detail: Optional[str] = None) -> Callable:
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        @router.post("/employees")
        async def create(principal: Principal = Depends(require_role("admin"))):
            ...
    """
    async def role_checker(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if principal.role not in roles:
            logger.info(f"Denied {principal.role}:{principal.id}, requires {', '.join(roles)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=detail or f"Access denied. Required role: {' or '.join(roles)}",
            )
        return principal

    return role_checker


get_current_admin = require_role(ROLE_ADMIN)
get_reviewing_manager = require_role(ROLE_MANAGER, detail="Only managers can create performance reviews")
