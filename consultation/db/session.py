# consultation/db/session.py
import logging
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from consultation.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
is_sqlite = settings.DATABASE_URL.startswith("sqlite")

# check_same_thread=False lets FastAPI hand a connection across threads.
# The busy timeout makes concurrent approvals queue on the write lock.
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30} if is_sqlite else {},
)


if is_sqlite:

    @event.listens_for(engine, "connect")
    def enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
        # SQLite ignores ON DELETE SET NULL unless this is on per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("SQLite connection opened with foreign keys enforced")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
