"""
Database connection utilities for async SQLAlchemy.
"""
import logging
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from ekskul_recommender.config import settings

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """
    Chuẩn hóa database URL:
    - Convert postgresql:// và postgres:// -> postgresql+asyncpg://
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def mask_url(url: str) -> str:
    """Mask password trong database URL để log."""
    if '@' in url:
        parts = url.split('@')
        user_pass = parts[0].split('//')[1] if '//' in parts[0] else parts[0]
        if ':' in user_pass:
            user = user_pass.split(':')[0]
            return url.replace(user_pass, f"{user}:***")
    return url


normalized_db_url = normalize_database_url(settings.database_url)
logger.info(f"Database URL: {mask_url(normalized_db_url)}")

# Engine không connect cho đến query đầu tiên
engine = create_async_engine(
    normalized_db_url,
    echo=False,
    pool_pre_ping=True,  # Kiểm tra connection trước khi dùng
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,  # Recycle connections sau 1 giờ
    pool_timeout=30,
)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)
