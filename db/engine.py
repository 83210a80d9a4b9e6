from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from config import get_settings
from db.base import Base
import db.models  # noqa: F401
import logging
import os

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().DATABASE_URL

# Create data directory if it doesn't exist
if DATABASE_URL.startswith("sqlite:///") and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "")
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)

# Use check_same_thread only for SQLite
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    Base.metadata.create_all(engine)
    logger.info(f"Tables ready: {', '.join(Base.metadata.tables.keys())}")
