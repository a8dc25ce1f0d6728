# src/social_repository/__init__.py

"""
Social Repository Library Initialization.

Query construction and data access for the social-network PostgreSQL schema:
filter/order descriptors, a parameterized SQL compiler, a catalog of named
queries, a per-request data-access object and schema provisioning.

The package logger uses a NullHandler, so nothing is emitted unless the
consuming application configures logging.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Exceptions and results
# --------------------------------------------------------------------------
from .base.exceptions import (
    DAOReleasedError,
    EmptyUpdate,
    FieldValueMismatch,
    InvalidField,
    InvalidMethod,
    InvalidPagination,
    InvalidParameter,
    KeyAlreadyExistsException,
    ObjectNotFoundException,
    QueryConstructionError,
    UnguardedStatement,
)
from .base.result import Err, NotFound, Ok, Result

# --------------------------------------------------------------------------
# Query building
# --------------------------------------------------------------------------
from .base.query import (
    UNSET,
    CursorPagination,
    Logic,
    OffsetPagination,
    Operator,
    Order,
    SortDirection,
    Where,
)
from .base.compiler import (
    CompiledQuery,
    Increment,
    compile_delete,
    compile_insert,
    compile_select,
    compile_update,
)
from .base.pagination import Page, paginate_after_cursor

# --------------------------------------------------------------------------
# Database access
# --------------------------------------------------------------------------
from .config import DatabaseSettings
from .db_implementations.pool import create_pool
from .db_implementations.postgresql_dao import PostgresDAO
from .schema.provisioner import SchemaProvisioner
from .schema.registry import REGISTRY, SchemaRegistry

__all__ = [
    # Exceptions
    "DAOReleasedError",
    "EmptyUpdate",
    "FieldValueMismatch",
    "InvalidField",
    "InvalidMethod",
    "InvalidPagination",
    "InvalidParameter",
    "KeyAlreadyExistsException",
    "ObjectNotFoundException",
    "QueryConstructionError",
    "UnguardedStatement",
    # Results
    "Ok",
    "NotFound",
    "Err",
    "Result",
    # Query
    "UNSET",
    "Where",
    "Order",
    "Operator",
    "Logic",
    "SortDirection",
    "OffsetPagination",
    "CursorPagination",
    "CompiledQuery",
    "Increment",
    "compile_select",
    "compile_insert",
    "compile_update",
    "compile_delete",
    "Page",
    "paginate_after_cursor",
    # Database
    "DatabaseSettings",
    "create_pool",
    "PostgresDAO",
    "SchemaProvisioner",
    "SchemaRegistry",
    "REGISTRY",
    # Logging
    "logger",
]
