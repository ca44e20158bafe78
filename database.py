from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
import logging

from config import settings

# Configure SQLAlchemy logging to reduce verbosity
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine")
sqlalchemy_logger.setLevel(logging.WARNING)

# CRITICAL: Never hardcode production credentials. Always use environment variables.
DATABASE_URL = settings.DATABASE_URL

ECHO_SQL = (settings.ENVIRONMENT == "development" and settings.DEBUG)

logger = logging.getLogger(__name__)

try:
    engine_kwargs = {
        "echo": False,
        "future": True,
    }
    if "sqlite" not in DATABASE_URL.lower():
        # Connection pool configuration to prevent connection exhaustion
        engine_kwargs.update(
            echo=ECHO_SQL,
            pool_pre_ping=True,  # Test connections before using them
            pool_size=10,
            max_overflow=20,
            pool_timeout=5,  # Seconds to wait for a connection
            pool_recycle=7200,  # Recycle connections after 2 hours
        )
    engine = create_async_engine(DATABASE_URL, **engine_kwargs)
    logger.info("Database engine created")
except Exception as e:
    logger.error(f"Failed to create database engine: {e}", exc_info=True)
    raise

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()

# Dependency for FastAPI routes
async def get_db():
    """
    Dependency function to get database session
    Usage in FastAPI routes:
        async def my_route(db: AsyncSession = Depends(get_db)):

    Note: Session is automatically closed in the finally block to ensure
    connections are returned to the pool.
    """
    session = None
    try:
        session = AsyncSessionLocal()
        yield session
        await session.commit()
    except Exception as e:
        if session:
            await session.rollback()
        # Log database errors for debugging
        logger.error(f"Database error in session: {str(e)}", exc_info=True)
        raise
    finally:
        if session:
            try:
                await session.close()
            except Exception as close_error:
                logger.warning(f"Error closing session: {close_error}")

# Alias for consistency
get_async_session = get_db
