# src/social_repository/config.py
import os
import ssl
from dataclasses import dataclass
from typing import Any, Dict, Optional


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on", "require")


@dataclass
class DatabaseSettings:
    """Connection settings for the PostgreSQL pool."""

    host: str = "localhost"
    port: int = 5432
    user: str = "xclone"
    password: Optional[str] = None
    database: Optional[str] = None
    schema: str = "public"
    ssl: bool = False
    ssl_root_cert: Optional[str] = None
    pool_min_size: int = 1
    pool_max_size: int = 10

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """Build settings from the libpq environment variables."""
        return cls(
            host=os.getenv("PGHOST", "localhost"),
            port=int(os.getenv("PGPORT", "5432")),
            user=os.getenv("PGUSER", "xclone"),
            password=os.getenv("PGPASSWORD"),
            database=os.getenv("PGDATABASE"),
            schema=os.getenv("PGSCHEMA", "public"),
            ssl=_env_bool("PGSSL"),
            ssl_root_cert=os.getenv("PGSSLROOTCERT"),
            pool_min_size=int(os.getenv("PGPOOL_MIN", "1")),
            pool_max_size=int(os.getenv("PGPOOL_MAX", "10")),
        )

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for asyncpg.connect / asyncpg.create_pool."""
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": self.database or self.user,
        }
        if self.ssl:
            if self.ssl_root_cert:
                kwargs["ssl"] = ssl.create_default_context(cafile=self.ssl_root_cert)
            else:
                kwargs["ssl"] = "require"
        return kwargs
