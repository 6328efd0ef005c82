"""
Database connection and session management
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from .config import settings


class Base(DeclarativeBase):
    """Base class for all models"""
    pass


# SQLite (local dev, tests) does not take pool sizing arguments
_pool_options = {} if settings.DATABASE_URL.startswith("sqlite") else {
    "pool_size": 10,
    "max_overflow": 20,
}

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL, 
    echo=False, 
    **_pool_options
)

# Session maker
async_session_maker = async_sessionmaker(
    engine, 
    class_=AsyncSession, 
    expire_on_commit=False
)


async def get_db():
    """Dependency for getting database session"""
    async with async_session_maker() as session:
        yield session
