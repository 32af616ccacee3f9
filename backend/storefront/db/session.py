from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from storefront.core.config import settings
import logging
import asyncio

logger = logging.getLogger(__name__)

engine = None
SessionLocal = None

_is_initialized = False
_initialization_lock = asyncio.Lock()

def build_engine(url: str, echo: bool = False):
    """Create a sync engine; SQLite needs to be shared across threadpool workers."""
    url = str(url)
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_timeout=60,
        pool_recycle=1800,  # recycle connections every 30 minutes
        pool_pre_ping=True,
    )

async def init_db_connection(max_retries=5, initial_delay=1):
    """Initialize the database connection with retries."""
    global engine, SessionLocal, _is_initialized

    if _is_initialized:
        return True

    async with _initialization_lock:
        if _is_initialized:
            return True

        retry_count = 0
        last_exception = None

        while retry_count < max_retries:
            try:
                engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))

                SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
                _is_initialized = True

                logger.info(f"Database connection established (attempt {retry_count + 1})")
                return True

            except Exception as e:
                retry_count += 1
                last_exception = e
                wait_time = initial_delay * (2 ** (retry_count - 1))  # Exponential backoff

                logger.warning(f"Database connection attempt {retry_count}/{max_retries} failed: {e}")
                logger.warning(f"Retrying in {wait_time} seconds...")

                await asyncio.sleep(wait_time)

        logger.error(f"Could not connect to the database after {max_retries} attempts: {last_exception}")
        return False

def create_tables(bind=None):
    """Create every table known to the declarative base."""
    from storefront.db.base import Base

    Base.metadata.create_all(bind=bind or engine)

def dispose():
    global engine, SessionLocal, _is_initialized

    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None
    _is_initialized = False
