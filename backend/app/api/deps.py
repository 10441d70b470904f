"""FastAPI dependencies: database session and content store.

The admin API is unauthenticated; deploy it behind a private network.
"""
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.content_store import ContentStore


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> ContentStore:
    """Content store sharing the request's session, so record and bytes commit together."""
    return ContentStore(db)
