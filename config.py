import os
import logging
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from models import Base

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./ecoswift.db")
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "eco-swift-secret-key-2024")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

LOW_STOCK_THRESHOLD = int(os.getenv("LOW_STOCK_THRESHOLD", 5))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 4000))

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

logger = logging.getLogger(__name__)


def setup_logging():
    """Configure the root logger once for the whole process"""
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_async_url(database_url: str) -> str:
    if database_url.startswith("postgresql://"):
        asyncpg_url = database_url.replace("postgresql://", "postgresql+asyncpg://")
        base_url = asyncpg_url.split("?")[0]
        return f"{base_url}?prepared_statement_cache_size=0"
    return database_url


def get_sync_url(database_url: str) -> str:
    return (
        database_url
        .replace("postgresql+asyncpg://", "postgresql://")
        .replace("sqlite+aiosqlite://", "sqlite://")
    )


async_url = get_async_url(DATABASE_URL)

if async_url.startswith("postgresql+asyncpg://"):
    async_engine = create_async_engine(
        async_url,
        echo=False,
        pool_pre_ping=False,
        pool_size=5,
        max_overflow=0
    )
else:
    async_engine = create_async_engine(async_url, echo=False)

AsyncSessionLocal = sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

_db_ready = False


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """
    Connect to the database and create missing tables.
    Raises on failure; callers decide whether that is fatal.
    """
    global _db_ready
    if _db_ready:
        return
    try:
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(f"Database connection error: {type(e).__name__}: {str(e)}")
        raise RuntimeError(f"Failed to connect to database: {str(e)}") from e
    _db_ready = True
    logger.info(f"Connected to database ({async_url.split('://')[0]})")


def get_sync_engine():
    return create_engine(get_sync_url(DATABASE_URL))
