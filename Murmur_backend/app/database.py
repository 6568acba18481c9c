from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from app.config import settings
from app.migrations import run_migrations


def database_url(path: str) -> str:
    return f"sqlite+aiosqlite:///{path}"


engine = create_async_engine(database_url(settings.DATABASE_PATH), echo=settings.SQL_ECHO)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


def make_session_factory(path: str):
    """Engine + session factory for a database other than the configured one."""
    other = create_async_engine(database_url(path), echo=settings.SQL_ECHO)
    return other, sessionmaker(other, class_=AsyncSession, expire_on_commit=False)


async def create_tables(target=None):
    # register the tables on Base.metadata
    import models.space  # noqa: F401
    import models.system  # noqa: F401
    import models.user  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await run_migrations(conn)
