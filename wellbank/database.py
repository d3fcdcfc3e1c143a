"""
Database connection and session.

Schema source of truth: wellbank.models. On startup, Base.metadata.create_all(bind=engine)
creates all tables and columns from the current models. The scripts in scripts/
(migrate_*.py) are only for existing databases created before a column was added.
"""
from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, sessionmaker
from wellbank.config import get_settings

settings = get_settings()

# SQLite (tests, local runs) needs the connection shared with TestClient's worker thread
_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONColumn = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")
