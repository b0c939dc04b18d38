from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    # MySQL drops idle connections after wait_timeout; recycle well before that.
    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(get_settings())

# Routers hand out ORM objects after commit, so keep their state loaded.
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
