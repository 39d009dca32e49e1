from collections.abc import Iterator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal


# one session per request; anything left uncommitted on error is rolled back
def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
