# src/social_repository/db_implementations/pool.py
import json
import logging
from typing import Optional

import asyncpg

from social_repository.config import DatabaseSettings

log = logging.getLogger(__name__)


async def register_codecs(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns into Python objects and encode them back."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
            format="text",
        )


async def _init_connection(conn: asyncpg.Connection) -> None:
    try:
        await register_codecs(conn)
    except Exception as e:
        log.error(f"Failed to set JSON codecs on {conn}: {e}", exc_info=True)
        raise RuntimeError("Failed to configure necessary PostgreSQL codecs.") from e


async def create_pool(settings: Optional[DatabaseSettings] = None) -> asyncpg.Pool:
    """
    Create the process-wide connection pool.

    The search path and the JSON codecs are applied to every connection the
    pool opens, so no statement has to set them itself.
    """
    settings = settings or DatabaseSettings.from_env()
    log.info(
        f"Creating pool for {settings.user}@{settings.host}:{settings.port} "
        f"(schema '{settings.schema}', size {settings.pool_min_size}-{settings.pool_max_size})"
    )
    return await asyncpg.create_pool(
        **settings.connect_kwargs(),
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        server_settings={"search_path": settings.schema},
        init=_init_connection,
    )
