from collections.abc import Iterator

from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import QueuePool

from sharebox.config import DB_CONNECT_ARGS, DB_URL

# Pooled engine; pre-ping drops stale connections for the long-lived auditor job
engine = create_engine(
    DB_URL,
    connect_args=DB_CONNECT_ARGS,
    poolclass=QueuePool,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=False,
)


def init_db() -> None:
    # Imported for its side effect of registering the tables on the metadata
    from sharebox import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


def ensure_connection() -> bool:
    """
    Verify that the database connection is alive.
    Used by the health check and before each audit run.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except OperationalError:
        return False
