# app/database.py

import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings
from app.core.errors import ConflictError

logger = logging.getLogger("app")


connect_args = {}

# SQLite connections are shared with FastAPI's threadpool
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_conflict(db, action: str, detail: str, code: str):
    # A unique constraint violation becomes a 409
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Integrity error while trying to {action}")
        raise ConflictError(detail, code=code) from None
