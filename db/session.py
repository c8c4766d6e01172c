# WORKFLOW: Database session management for the rule repository tables.
# Used by: SqlRuleRepository, rule loader, /rules/refresh, readiness checks
# Functions:
# 1. get_engine() / get_session_factory() - Lazily built engine and session factory
# 2. get_db() - Dependency injection for FastAPI endpoints
# 3. init_db() - Create the compliance rule, country profile and restricted term tables
# 4. check_db_connection() - Connectivity probe for /readyz
#
# Database lifecycle:
# Startup: init_db() -> Create rule tables (rule_source == "sql" only)
# Runtime: get_db() / SqlRuleRepository -> Session -> Query active version -> Close session

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import settings

logger = logging.getLogger(__name__)

_engine = None
_SessionLocal = None


def _engine_kwargs(url: str) -> dict:
    # FastAPI opens get_db() sessions from its threadpool
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_pre_ping": True}


def get_engine():
    """Engine for settings.database_url, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            **_engine_kwargs(settings.database_url),
        )
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db():
    """
    Yield a session for one request and close it afterwards.

    Uncommitted work is rolled back when the endpoint raises.
    """
    db = get_session_factory()()
    try:
        yield db
    except Exception as e:
        logger.error(f"Rule database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine=None):
    """
    Create the rule tables if they do not exist.

    Args:
        engine: Engine to create the tables on; defaults to get_engine()
    """
    from db.models import Base

    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("Rule tables ready")
    except Exception as e:
        logger.error(f"Rule table creation failed: {e}")
        raise


def check_db_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Rule database connection check failed: {e}")
        return False
