# src/social_repository/base/compiler.py
"""
Descriptor to SQL compilation.

Pure functions: nothing here touches a connection. Every statement builder
returns a ``CompiledQuery`` holding the SQL text and the positional values
for its ``$n`` placeholders.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

from .exceptions import (
    EmptyUpdate,
    FieldValueMismatch,
    InvalidParameter,
    UnguardedStatement,
)
from .query import (
    JSON_EXTRACT_OPERATORS,
    MEMBERSHIP_OPERATORS,
    Operator,
    Order,
    Where,
    WhereGroups,
    _check_non_negative,
    validate_param,
)
from social_repository.schema.registry import REGISTRY, SchemaRegistry

log = logging.getLogger(__name__)


@dataclass
class CompiledQuery:
    """SQL text plus the values bound to its placeholders, in order."""

    text: str
    values: List[Any] = field(default_factory=list)

    def __iter__(self) -> Iterator[Any]:
        yield self.text
        yield self.values


@dataclass(frozen=True)
class Increment:
    """SET value marker: ``"field" = "field" + $n``."""

    by: Union[int, float] = 1


def quote_identifier(identifier: str) -> str:
    safe_identifier = identifier.replace('"', '""')
    return f'"{safe_identifier}"'


def _quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _json_path_literal(operator: Operator, sub_field: Union[str, Sequence[str]]) -> str:
    if operator == Operator.JSON_PATH_TEXT:
        keys = [sub_field] if isinstance(sub_field, str) else list(sub_field)
        return _quote_literal("{" + ",".join(str(k) for k in keys) + "}")
    if not isinstance(sub_field, str):
        raise InvalidParameter(f"'->>' expects a single key, got {sub_field!r}")
    return _quote_literal(sub_field)


def _column_ref(name: str, table_alias: Optional[str]) -> str:
    quoted = quote_identifier(name)
    return f"{table_alias}.{quoted}" if table_alias else quoted


# --- WHERE ---
def _render_condition(cond: Where, index: int) -> Tuple[str, List[Any], int]:
    lhs = _column_ref(cond.field, cond.table_alias)
    op = cond.operator
    if op in JSON_EXTRACT_OPERATORS:
        lhs = f"({lhs} {op.value} {_json_path_literal(op, cond.sub_field)})"
        op = cond.compare

    values: List[Any] = []
    if cond.is_nullary:
        expr = f"{lhs} {op.value}"
    elif op in MEMBERSHIP_OPERATORS:
        items = validate_param(cond.value)
        if not isinstance(items, list):
            items = [items]
        if not items:
            # Empty membership: 'in ()' is not valid SQL.
            expr = "FALSE" if op == Operator.IN else "TRUE"
        else:
            placeholders = ", ".join(f"${index + i}" for i in range(len(items)))
            expr = f"{lhs} {op.value} ({placeholders})"
            values.extend(items)
            index += len(items)
    elif op == Operator.CONTAINS:
        values.append(validate_param(cond.value))
        expr = f"{lhs} @> ${index}::jsonb"
        index += 1
    else:
        values.append(validate_param(cond.value))
        expr = f"{lhs} {op.value} ${index}"
        index += 1

    if cond.not_:
        expr = f"NOT ({expr})"
    return expr, values, index


def make_where(
    groups: Optional[WhereGroups], start_index: int = 1
) -> Tuple[str, List[Any], int]:
    """
    Compile a group list into a WHERE clause.

    Groups are joined with AND; conditions inside a group are joined by their
    own ``logic``. Skipped conditions and empty groups emit nothing.

    Returns:
        (clause, values, next_index). ``clause`` is '' when no condition
        was emitted.
    """
    text = ""
    values: List[Any] = []
    index = start_index
    first_group = True

    for group in groups or ():
        if not group:
            continue
        lines: List[str] = []
        for cond in group:
            if cond is None or cond.is_skipped:
                continue
            expr, cond_values, index = _render_condition(cond, index)
            prefix = f"{cond.logic.value} " if lines else ""
            lines.append(f"\t\t{prefix}{expr}\n")
            values.extend(cond_values)
        if not lines:
            continue
        text += "WHERE\n\t(\n" if first_group else "\tAND (\n"
        text += "".join(lines)
        text += "\t)\n"
        first_group = False

    return text, values, index


def _unaliased_fields(groups: Optional[WhereGroups]) -> List[str]:
    return [
        cond.field
        for group in groups or ()
        for cond in group or ()
        if cond is not None and not cond.is_skipped and cond.table_alias is None
    ]


# --- ORDER / LIMIT ---
def _render_order(order: Order) -> str:
    term = _column_ref(order.field, order.table_alias)
    if order.operator is not None:
        term = f"{term} {order.operator.value} {_json_path_literal(order.operator, order.sub_field)}"
    if order.func:
        term = f"{order.func}({term})"
    term = f"{term} {order.by.value}"
    if order.nulls_last:
        term += " NULLS LAST"
    return term


def make_order(order: Optional[Sequence[Order]]) -> str:
    if not order:
        return ""
    return "ORDER BY\n" + ",\n".join(f"\t{_render_order(o)}" for o in order) + "\n"


def make_limit(limit: Optional[int] = None, offset: Optional[int] = None) -> str:
    text = ""
    if limit is not None:
        text += f"LIMIT {_check_non_negative('limit', limit)}\n"
    if offset is not None:
        text += f"OFFSET {_check_non_negative('offset', offset)}\n"
    return text


# --- Statements ---
def compile_select(
    table: str,
    fields: Optional[Sequence[str]] = None,
    where: Optional[WhereGroups] = None,
    order: Optional[Sequence[Order]] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    count_only: bool = False,
    registry: SchemaRegistry = REGISTRY,
) -> CompiledQuery:
    registry.validate_relation(table)
    if fields:
        registry.validate_fields(table, fields)
    registry.validate_fields(table, _unaliased_fields(where))
    if order and not count_only:
        registry.validate_fields(
            table, [o.field for o in order if o.table_alias is None]
        )

    if count_only:
        select_list = "\tcount(*)\n"
    elif fields:
        select_list = ",\n".join(f"\t{quote_identifier(f)}" for f in fields) + "\n"
    else:
        select_list = "\t*\n"

    text = f"SELECT\n{select_list}FROM\n\t{quote_identifier(table)}\n"
    where_text, values, _ = make_where(where)
    text += where_text
    if not count_only:
        text += make_order(order)
        text += make_limit(limit, offset)

    log.debug(f"Compiled SELECT on '{table}': {text!r} {values!r}")
    return CompiledQuery(text, values)


def compile_insert(
    table: str,
    fields: Optional[Sequence[str]],
    values: Sequence[Any],
    registry: SchemaRegistry = REGISTRY,
) -> CompiledQuery:
    """
    INSERT ... RETURNING *.

    When ``fields`` is None the values are matched positionally against the
    table's natural column order.
    """
    registry.validate_relation(table)
    if fields is None:
        fields = registry.columns(table)[: len(values)]
        if len(fields) != len(values):
            raise FieldValueMismatch(len(fields), len(values))
        column_list = ""
    else:
        if len(fields) != len(values):
            raise FieldValueMismatch(len(fields), len(values))
        registry.validate_fields(table, fields)
        column_list = (
            " (" + ", ".join(quote_identifier(f) for f in fields) + ")" if fields else ""
        )

    params = [validate_param(v) for v in values]
    text = f"INSERT INTO {quote_identifier(table)}{column_list}\n"
    if params:
        placeholders = ", ".join(f"${i + 1}" for i in range(len(params)))
        text += f"VALUES ({placeholders})\n"
    else:
        text += "DEFAULT VALUES\n"
    text += "RETURNING *"

    log.debug(f"Compiled INSERT on '{table}': {text!r} {params!r}")
    return CompiledQuery(text, params)


def compile_update(
    table: str,
    fields: Sequence[str],
    values: Sequence[Any],
    where: Optional[WhereGroups],
    allow_all: bool = False,
    returning: bool = True,
    registry: SchemaRegistry = REGISTRY,
) -> CompiledQuery:
    """
    UPDATE ... SET ... WHERE ...

    WHERE placeholders continue numbering after the SET placeholders. A value
    wrapped in ``Increment`` adds to the current column value instead of
    replacing it.
    """
    if len(fields) != len(values):
        raise FieldValueMismatch(len(fields), len(values))
    if not fields:
        raise EmptyUpdate()
    registry.validate_relation(table)
    registry.validate_fields(table, fields)
    registry.validate_fields(table, _unaliased_fields(where))

    assignments: List[str] = []
    params: List[Any] = []
    for i, (name, value) in enumerate(zip(fields, values), start=1):
        column = quote_identifier(name)
        if isinstance(value, Increment):
            assignments.append(f"\t{column} = {column} + ${i}")
            params.append(validate_param(value.by))
        else:
            assignments.append(f"\t{column} = ${i}")
            params.append(validate_param(value))

    where_text, where_values, _ = make_where(where, len(fields) + 1)
    if not where_text and not allow_all:
        raise UnguardedStatement("UPDATE", table)

    text = f"UPDATE\n\t{quote_identifier(table)}\nSET\n" + ",\n".join(assignments) + "\n"
    text += where_text
    if returning:
        text += "RETURNING *"

    params.extend(where_values)
    log.debug(f"Compiled UPDATE on '{table}': {text!r} {params!r}")
    return CompiledQuery(text, params)


def compile_delete(
    table: str,
    where: Optional[WhereGroups],
    allow_all: bool = False,
    returning: bool = False,
    registry: SchemaRegistry = REGISTRY,
) -> CompiledQuery:
    registry.validate_relation(table)
    registry.validate_fields(table, _unaliased_fields(where))

    where_text, values, _ = make_where(where)
    if not where_text and not allow_all:
        raise UnguardedStatement("DELETE", table)

    text = f"DELETE FROM\n\t{quote_identifier(table)}\n" + where_text
    if returning:
        text += "RETURNING *"

    log.debug(f"Compiled DELETE on '{table}': {text!r} {values!r}")
    return CompiledQuery(text, values)
