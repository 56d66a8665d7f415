from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL


def build_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        # SQLite pools are per-thread; background tasks run in the threadpool.
        return create_engine(url, connect_args={"check_same_thread": False}, future=True)
    return create_engine(
        url,
        pool_size=25,
        max_overflow=50,
        pool_timeout=10,       # fail fast instead of hanging 30s
        pool_pre_ping=True,
        pool_recycle=1800,
        future=True,
    )


engine = build_engine()

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)

# Base class for our ORM models
Base = declarative_base()

