"""Realize Reporter — Local Database Engine."""

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from realize.config import settings
from realize.core.logging import get_logger

logger = get_logger("database")

db_url = settings.effective_database_url


def _mask_url(url: str) -> str:
    """Mask password in DB URL for safe logging."""
    if "@" in url:
        before_at = url.split("@")[0]
        after_at = url.split("@", 1)[1]
        if ":" in before_at.split("//", 1)[-1]:
            scheme_user = before_at.rsplit(":", 1)[0]
            return f"{scheme_user}:****@{after_at}"
    return url


def build_engine(url: str) -> Engine:
    """Create an engine with backend-appropriate connection arguments."""
    engine_kwargs: dict = {"echo": False}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_recycle"] = 300
    return create_engine(url, **engine_kwargs)


engine = build_engine(db_url)
logger.info(f"Local store: {_mask_url(db_url)}")


def test_connection(target: Engine | None = None) -> bool:
    """Test the database connection with SELECT 1."""
    target = target or engine
    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))
            conn.commit()
        return True
    except Exception as e:
        logger.error(f"Local store connection test failed: {e}")
        return False


def init_db(target: Engine | None = None) -> None:
    """Create all tables."""
    # Registers StoredValue on the metadata
    from realize.models import storage_models  # noqa: F401

    SQLModel.metadata.create_all(target or engine)
    logger.info("Local store tables ready")
