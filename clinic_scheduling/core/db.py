from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy import Index, UniqueConstraint
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from clinic_scheduling.core.config import settings


def to_async_database_url(database_url: str) -> str:
    """Map a plain postgresql:// or sqlite:// URL to its async driver.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so they
    are stripped; SSL is enabled via connect_args instead.
    """
    if database_url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + database_url[len("sqlite://"):]
    parsed = urlparse(database_url)
    if parsed.scheme != "postgresql":
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment)
    )


def build_engine(database_url: str) -> AsyncEngine:
    url = to_async_database_url(database_url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.db_echo)
    return create_async_engine(
        url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        connect_args={"ssl": True} if settings.database_ssl else {},
    )


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url)
async_session_maker = make_session_maker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    # Register every table on the metadata before create_all
    import clinic_scheduling.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_transient_error(exc: DBAPIError) -> bool:
    """True for failures that succeed on a plain retry of the same transaction."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def violates_unique(exc: IntegrityError, constraint: Index | UniqueConstraint) -> bool:
    """True when ``exc`` was raised by ``constraint`` and not by some other one."""
    orig = exc.orig
    # psycopg2 exposes diag; asyncpg errors arrive as the cause of the adapted error
    for source in (orig, getattr(orig, "diag", None), getattr(orig, "__cause__", None)):
        name = getattr(source, "constraint_name", None)
        if name:
            return name == constraint.name
    message = str(orig)
    if constraint.name in message:
        return True
    # SQLite names the columns instead of the constraint
    columns = ", ".join(f"{constraint.table.name}.{column.name}" for column in constraint.columns)
    return f"UNIQUE constraint failed: {columns}" in message
