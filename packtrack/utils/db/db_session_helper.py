from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from packtrack.db import SessionLocal


@contextmanager
def db_session() -> Iterator[Session]:
    """Session scope for workers and tasks outside the request cycle."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
