import logging
import os
from sqlmodel import Session, SQLModel, create_engine

logger = logging.getLogger(__name__)


def database_url_from_env(environ=os.environ) -> str:
    """Resolve the database URL, defaulting to SQLite for local dev."""
    if environ.get("DATABASE_URL"):
        url = environ["DATABASE_URL"]
    else:
        # Guard against SQLite fallback in production
        if environ.get("ENV", "dev").lower() in ("prod", "production") or environ.get("RENDER"):
            raise RuntimeError(
                "DATABASE_URL missing in production; refusing to start with SQLite. "
                "Please configure DATABASE_URL environment variable."
            )
        url = f"sqlite:///{environ.get('DATABASE_PATH', './hourlog.db')}"

    # Hosted Postgres providers hand out postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


DATABASE_URL = database_url_from_env()

db_driver = DATABASE_URL.split(":", 1)[0] if ":" in DATABASE_URL else "unknown"
logger.info(f"DB_URL_DRIVER={db_driver}")

engine = create_engine(DATABASE_URL, echo=False)


def create_db_and_tables():
    """Create database and tables if they don't exist.
    This is safe to call multiple times - it won't wipe existing data.
    """
    # Register table models on the metadata before creating
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Get database session."""
    with Session(engine) as session:
        yield session
