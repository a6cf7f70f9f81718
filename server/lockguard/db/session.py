from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from lockguard.core.config import Settings, get_settings


def build_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine with bounded connect/busy timeouts."""
    url = settings.database_url_sync
    timeout = settings.store_timeout_seconds

    if url.startswith("sqlite"):
        # SQLite's busy timeout bounds how long a writer waits for the lock
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )

    # Caps statement and row-lock waits on the server as well
    timeout_ms = int(timeout * 1000)
    return create_engine(
        url,
        connect_args={
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        },
        pool_pre_ping=True,
        pool_timeout=timeout,
    )


engine = build_engine(get_settings())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
