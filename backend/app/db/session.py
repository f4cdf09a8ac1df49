from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncSession
from sqlalchemy import text
from app.core.config import settings


def _engine_options(database_url: str) -> dict:
    """
    Pool settings for the server databases. SQLite (local tooling, tests)
    uses its own single-connection pool and rejects the sizing arguments.
    """
    if database_url.startswith("sqlite"):
        return {}
    # - pool_pre_ping: drop stale connections before handing them out
    # - pool_recycle: recycle hourly to stay under server-side idle timeouts
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": 30,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQLALCHEMY_ECHO,
    **_engine_options(settings.DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def check_db_connection() -> bool:
    """
    Verify database connectivity. Used by the health check.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
