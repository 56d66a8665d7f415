"""
Simple script to initialize the database tables.

Run this locally while the DB is up:
    python -m meterproxy.init_db
"""

from .db import Base, engine
from . import models  # noqa: F401  (registers the tables on Base.metadata)


def init_db(bind=engine):
    Base.metadata.create_all(bind=bind)


if __name__ == "__main__":
    init_db()
