from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from waste_service.core.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session():
    async with SessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
