"""
Database configuration and session management

The statement timeout configured in settings is handed to every PostgreSQL
connection, so a request never waits on the database longer than that.
"""
import logging
import threading

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str = settings.DATABASE_URL, **overrides):
    """Create the engine with pool settings suited to the target dialect"""
    options = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,
    }
    if database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        }
        if settings.DB_STATEMENT_TIMEOUT_MS > 0:
            connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=300,  # Recycle connections every 5 minutes
            pool_timeout=30,
            pool_reset_on_return="commit",
            connect_args=connect_args,
        )
    elif database_url.startswith("sqlite"):
        # Sessions are handed across threads by the test suite and by uvicorn workers
        options["connect_args"] = {"check_same_thread": False, "timeout": 15}
    options.update(overrides)
    return create_engine(database_url, **options)


engine = build_engine()

_warmup_thread = None
_warmup_complete = False


def warmup_pool(connections: int = 2):
    """Pre-create connections to reduce cold start latency"""
    global _warmup_thread, _warmup_complete

    def _warmup_sync():
        global _warmup_complete
        opened = []
        try:
            for _ in range(connections):
                try:
                    conn = engine.connect()
                    conn.execute(text("SELECT 1"))
                    opened.append(conn)
                except Exception as e:
                    logger.warning(f"Failed to create connection during warmup: {e}")
            for conn in opened:
                conn.close()
            if opened:
                logger.info(f"Connection pool warmed up ({len(opened)} connections)")
        finally:
            _warmup_complete = True

    _warmup_thread = threading.Thread(target=_warmup_sync, daemon=True)
    _warmup_thread.start()


def wait_for_warmup_complete(timeout=5.0):
    """Wait for the warmup thread (used for a clean shutdown)"""
    if _warmup_thread is not None:
        _warmup_thread.join(timeout)
    return _warmup_complete


# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
