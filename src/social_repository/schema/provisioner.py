# src/social_repository/schema/provisioner.py
"""
Create the database objects described by a ``SchemaRegistry``.

Every step looks in the PostgreSQL catalogs first and only creates what is
missing, so ``initialize`` can run at every process start.
"""

import logging
from contextlib import asynccontextmanager
from logging import LoggerAdapter
from typing import AsyncGenerator, List, Optional

import asyncpg

from social_repository.base.compiler import quote_identifier
from social_repository.config import DatabaseSettings
from social_repository.schema.registry import REGISTRY, Column, Constraint, SchemaRegistry

_QUOTED_DEFAULT_TYPES = ("varchar", "text")


def _literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class SchemaProvisioner:
    def __init__(
        self,
        pool: asyncpg.Pool,
        registry: SchemaRegistry = REGISTRY,
        settings: Optional[DatabaseSettings] = None,
    ):
        self._pool = pool
        self._registry = registry
        self._settings = settings or DatabaseSettings.from_env()
        self._schema = self._settings.schema
        self._enum_names = {e.name for e in registry.enum_types()}
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[asyncpg.Connection, None]:
        conn: Optional[asyncpg.Connection] = None
        try:
            conn = await self._pool.acquire()
            self._logger.debug(f"Acquired connection {conn} from pool.")
            yield conn
        finally:
            if conn is not None:
                await self._pool.release(conn)
                self._logger.debug(f"Released connection {conn} back to pool.")

    def _qualified(self, name: str) -> str:
        return f"{quote_identifier(self._schema)}.{quote_identifier(name)}"

    # --- DDL rendering ---
    def column_definition(self, name: str, column: Column) -> str:
        if column.type in self._enum_names:
            type_sql = self._qualified(column.type)
        elif column.length is not None:
            type_sql = f"{column.type}({column.length})"
        else:
            type_sql = column.type
        parts = [quote_identifier(name), type_sql]
        if column.default is not None:
            quoted = column.type in self._enum_names or column.type in _QUOTED_DEFAULT_TYPES
            parts.append(
                "DEFAULT " + (_literal(column.default) if quoted else column.default)
            )
        if column.not_null:
            parts.append("NOT NULL")
        return " ".join(parts)

    def create_table_sql(self, table_name: str) -> str:
        table = self._registry.tables[table_name]
        columns = ",\n\t".join(
            self.column_definition(name, col) for name, col in table.columns.items()
        )
        return f"CREATE TABLE {self._qualified(table_name)} (\n\t{columns}\n)"

    def constraint_sql(self, constraint: Constraint) -> str:
        cols = ", ".join(quote_identifier(c) for c in constraint.columns)
        text = (
            f"ALTER TABLE {self._qualified(constraint.table)} "
            f"ADD CONSTRAINT {quote_identifier(constraint.name)} "
        )
        if constraint.kind == "p":
            return text + f"PRIMARY KEY ({cols})"
        if constraint.kind == "u":
            return text + f"UNIQUE ({cols})"
        ref = constraint.references
        text += (
            f"FOREIGN KEY ({cols}) REFERENCES {self._qualified(ref.table)} "
            f"({quote_identifier(ref.column)})"
        )
        if ref.on_delete:
            text += f" ON DELETE {ref.on_delete}"
        if ref.on_update:
            text += f" ON UPDATE {ref.on_update}"
        return text

    # --- Checks and creation steps ---
    async def alive_check(self, logger: LoggerAdapter) -> bool:
        try:
            async with self._get_session() as conn:
                await conn.fetchval("SELECT 1")
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Database is not reachable: {e}", exc_info=True)
            return False
        logger.info("Database connection is alive.")
        return True

    async def check_schema(self, logger: LoggerAdapter) -> bool:
        async with self._get_session() as conn:
            exists = await conn.fetchval(
                "SELECT EXISTS (SELECT FROM pg_namespace WHERE nspname = $1)",
                self._schema,
            )
        if exists:
            logger.info(f"Schema check PASSED for '{self._schema}'.")
        else:
            logger.warning(f"Schema check FAILED: schema '{self._schema}' not found.")
        return bool(exists)

    async def create_schema(self, logger: LoggerAdapter) -> None:
        if await self.check_schema(logger):
            return
        async with self._get_session() as conn:
            await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(self._schema)}")
        logger.info(f"Created schema '{self._schema}'.")

    async def grant_schema(self, logger: LoggerAdapter) -> None:
        user = quote_identifier(self._settings.user)
        schema = quote_identifier(self._schema)
        async with self._get_session() as conn:
            await conn.execute(f"GRANT ALL ON SCHEMA {schema} TO {user}")
            await conn.execute(f"GRANT ALL ON ALL TABLES IN SCHEMA {schema} TO {user}")
            await conn.execute(f"GRANT ALL ON ALL SEQUENCES IN SCHEMA {schema} TO {user}")
        logger.info(f"Granted privileges on schema '{self._schema}' to '{self._settings.user}'.")

    async def create_types(self, logger: LoggerAdapter) -> List[str]:
        created: List[str] = []
        async with self._get_session() as conn:
            existing = {
                r["typname"]
                for r in await conn.fetch(
                    "SELECT t.typname FROM pg_type t "
                    "JOIN pg_namespace n ON n.oid = t.typnamespace "
                    "WHERE n.nspname = $1",
                    self._schema,
                )
            }
            for enum in self._registry.enum_types():
                if enum.name in existing:
                    continue
                labels = ", ".join(_literal(v) for v in enum.values)
                await conn.execute(f"CREATE TYPE {self._qualified(enum.name)} AS ENUM ({labels})")
                created.append(enum.name)
        if created:
            logger.info(f"Created enum types: {', '.join(created)}")
        return created

    async def create_tables(self, logger: LoggerAdapter) -> List[str]:
        created: List[str] = []
        async with self._get_session() as conn:
            existing = {
                r["tablename"]
                for r in await conn.fetch(
                    "SELECT tablename FROM pg_tables WHERE schemaname = $1", self._schema
                )
            }
            for name in self._registry.tables:
                if name in existing:
                    continue
                sql = self.create_table_sql(name)
                logger.debug(f"Table creation SQL: {sql}")
                await conn.execute(sql)
                created.append(name)
        if created:
            logger.info(f"Created tables: {', '.join(created)}")
        return created

    async def create_constraints(self, logger: LoggerAdapter) -> List[str]:
        """Keys before foreign keys, so every referenced column is already unique."""
        created: List[str] = []
        async with self._get_session() as conn:
            existing = {
                r["conname"]
                for r in await conn.fetch(
                    "SELECT c.conname FROM pg_constraint c "
                    "JOIN pg_namespace n ON n.oid = c.connamespace "
                    "WHERE n.nspname = $1",
                    self._schema,
                )
            }
            for constraint in self._registry.constraints():
                if constraint.name in existing:
                    continue
                await conn.execute(self.constraint_sql(constraint))
                created.append(constraint.name)
        if created:
            logger.info(f"Created constraints: {', '.join(created)}")
        return created

    async def create_views(self, logger: LoggerAdapter) -> List[str]:
        created: List[str] = []
        async with self._get_session() as conn:
            existing = {
                r["viewname"]
                for r in await conn.fetch(
                    "SELECT viewname FROM pg_views WHERE schemaname = $1", self._schema
                )
            }
            # Views read each other, so they are created in registry order.
            for name, view in self._registry.views.items():
                if name in existing:
                    continue
                await conn.execute(view.definition(self._schema))
                created.append(name)
        if created:
            logger.info(f"Created views: {', '.join(created)}")
        return created

    async def initialize(self, logger: LoggerAdapter, create_if_needed: bool = True) -> bool:
        """
        Bring the database up to the registry's shape.

        With ``create_if_needed=False`` only the connection and the schema are
        checked. Returns whether the schema is usable.
        """
        if not await self.alive_check(logger):
            return False
        if not create_if_needed:
            return await self.check_schema(logger)
        try:
            await self.create_schema(logger)
            await self.grant_schema(logger)
            await self.create_types(logger)
            await self.create_tables(logger)
            await self.create_constraints(logger)
            await self.create_views(logger)
        except asyncpg.PostgresError as e:
            logger.error(f"Error initializing schema '{self._schema}': {e}", exc_info=True)
            raise
        logger.info(f"Schema '{self._schema}' is ready.")
        return True
