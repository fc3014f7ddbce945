"""
SQLAlchemy declarative base and schema provisioning.

The API itself talks to the hosted database through Supabase; these models
describe the same tables so a local Postgres (or SQLite in tests) can be
provisioned with `init_db`.
"""
import logging
import uuid

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


def init_db(database_url: str, echo: bool = False):
    """Create every table that does not exist yet and return the engine."""
    # importing the package registers all models on Base.metadata
    import studygram.models  # noqa: F401

    engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created: %s", sorted(Base.metadata.tables))
    return engine
