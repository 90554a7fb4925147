"""Database engine builder (SSOT).

- pool_pre_ping=True always
- ENV: INSIGHT_DB_POOL=queuepool|nullpool (default: queuepool)
- ENV: INSIGHT_DB_POOL_SIZE / INSIGHT_DB_MAX_OVERFLOW (queuepool only)
- SQLite URLs (tests, local tooling) get check_same_thread disabled
"""

import logging
import os
import re
from typing import Any

from sqlalchemy import Engine, NullPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from insight_api.config.env import get_database_url

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def build_engine(database_url: str | None = None) -> Engine:
    """
    Build SQLAlchemy engine.

    Args:
        database_url: Database URL. If None, resolved via config.env.get_database_url().

    Returns:
        SQLAlchemy Engine instance.

    Raises:
        ValueError: If INSIGHT_DB_POOL has an unknown value.
    """
    url = database_url or get_database_url()

    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    else:
        app_name = os.getenv("INSIGHT_DB_APPLICATION_NAME", "insight-api")
        if app_name:
            connect_args["application_name"] = app_name

    pool_mode = os.getenv("INSIGHT_DB_POOL", "queuepool").lower()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        if url.startswith("sqlite"):
            # SQLite uses its own singleton/file pools; size params do not apply
            engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        else:
            engine = create_engine(
                url,
                pool_pre_ping=True,
                pool_size=int(os.getenv("INSIGHT_DB_POOL_SIZE", "5")),
                max_overflow=int(os.getenv("INSIGHT_DB_MAX_OVERFLOW", "10")),
                connect_args=connect_args,
            )
    else:
        raise ValueError(
            f"Invalid INSIGHT_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )

    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """
    Build SQLAlchemy sessionmaker.

    Examples:
        >>> engine = build_engine()
        >>> SessionLocal = build_sessionmaker(engine)
        >>> with SessionLocal() as session:
        ...     # use session
    """
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
