from databases import Database
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base

from jobdesk.config import DATABASE_URL

database = Database(DATABASE_URL)
Base = declarative_base()


def create_tables(url: str = DATABASE_URL) -> None:
    # why: databases has no DDL support, tables are created with a sync engine
    from jobdesk import models  # noqa: F401

    engine = create_engine(url, pool_pre_ping=True)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()
