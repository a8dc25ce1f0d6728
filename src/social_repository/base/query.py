# src/social_repository/base/query.py
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Sequence, Union

from .exceptions import InvalidPagination, InvalidParameter

# --- Setup Logging ---
log = logging.getLogger(__name__)


# --- Unset Sentinel ---
class _Unset:
    """Marks a value that was not supplied (distinct from SQL NULL / None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


UNSET: Any = _Unset()


def is_unset(value: Any) -> bool:
    return value is UNSET


# --- Operator Enums ---
class Operator(str, Enum):
    """SQL operators understood by the WHERE compiler."""

    # Comparison
    LT = "<"
    LTE = "<="
    NE = "<>"
    EQ = "="
    GT = ">"
    GTE = ">="
    # Membership
    IN = "in"
    NOT_IN = "not in"
    # Pattern
    LIKE = "like"
    ILIKE = "ilike"
    NOT_LIKE = "not like"
    # Null checks
    IS_NULL = "is null"
    IS_NOT_NULL = "is not null"
    # JSON
    CONTAINS = "@>"
    JSON_TEXT = "->>"
    JSON_PATH_TEXT = "#>>"


NULLARY_OPERATORS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})
MEMBERSHIP_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN})
JSON_EXTRACT_OPERATORS = frozenset({Operator.JSON_TEXT, Operator.JSON_PATH_TEXT})


class Logic(str, Enum):
    AND = "AND"
    OR = "OR"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


def _coerce_enum(enum_cls, value: Any, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    if isinstance(value, str):
        # Accept case-insensitive spellings ('desc', 'or', 'IS NULL').
        lowered = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == lowered:
                log.debug(f"Coerced {what} {value!r} to {member.value!r}")
                return member
    raise InvalidParameter(f"Unsupported {what}: {value!r}")


# --- Parameter Values ---
# Closed set of values the compiler will bind as parameters.
_PRIMITIVES = (str, int, float, bool, datetime, date, type(None))


def _is_json_value(value: Any) -> bool:
    if isinstance(value, (str, int, float, bool, type(None))):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_json_value(v) for v in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and _is_json_value(v) for k, v in value.items())
    return False


def validate_param(value: Any) -> Any:
    """
    Check that a value belongs to the supported parameter variants.

    Supported: str, int, float, bool, None, datetime/date, JSON-serializable
    dicts, and lists/tuples of primitives or JSON values. Tuples are
    normalized to lists. Raises InvalidParameter for anything else.
    """
    if value is UNSET:
        raise InvalidParameter("UNSET cannot be bound as a parameter value.")
    if isinstance(value, _PRIMITIVES):
        return value
    if isinstance(value, dict):
        if not _is_json_value(value):
            raise InvalidParameter(f"Object parameter is not JSON-serializable: {value!r}")
        return value
    if isinstance(value, (list, tuple)):
        if all(isinstance(v, _PRIMITIVES) for v in value) or _is_json_value(value):
            return list(value)
        raise InvalidParameter(f"Array parameter contains unsupported items: {value!r}")
    raise InvalidParameter(
        f"Unsupported parameter type {type(value).__name__}: {value!r}"
    )


# --- Descriptors ---
@dataclass
class Where:
    """
    One predicate of a WHERE clause.

    ``logic`` joins this condition to the previous emitted condition of the
    same group. A condition whose ``value`` is UNSET is omitted from the
    compiled statement unless the operator is a nullary null check.

    For JSON extraction operators (``->>``, ``#>>``) the predicate reads
    ``field <op> '<sub_field>' <compare> $n``. ``sub_field`` is emitted as a
    literal and must never carry user input.
    """

    field: str
    value: Any = UNSET
    operator: Union[Operator, str] = Operator.EQ
    logic: Union[Logic, str] = Logic.AND
    table_alias: Optional[str] = None
    not_: bool = False
    sub_field: Optional[Union[str, Sequence[str]]] = None
    compare: Union[Operator, str] = Operator.EQ

    def __post_init__(self):
        self.operator = _coerce_enum(Operator, self.operator, "operator")
        self.logic = _coerce_enum(Logic, self.logic, "logic")
        self.compare = _coerce_enum(Operator, self.compare, "comparison operator")
        if self.operator in JSON_EXTRACT_OPERATORS:
            if self.sub_field is None:
                raise InvalidParameter(
                    f"Operator '{self.operator.value}' requires a sub_field."
                )
            if self.compare in JSON_EXTRACT_OPERATORS or self.compare == Operator.CONTAINS:
                raise InvalidParameter(
                    f"Invalid comparison '{self.compare.value}' after JSON extraction."
                )

    @property
    def is_nullary(self) -> bool:
        op = self.compare if self.operator in JSON_EXTRACT_OPERATORS else self.operator
        return op in NULLARY_OPERATORS

    @property
    def is_skipped(self) -> bool:
        return self.value is UNSET and not self.is_nullary


@dataclass
class Order:
    """One ORDER BY term: ``[func(]alias."field"[ ->> 'sub'][)] ASC|DESC``."""

    field: str
    by: Union[SortDirection, str] = SortDirection.ASC
    table_alias: Optional[str] = None
    operator: Optional[Union[Operator, str]] = None
    sub_field: Optional[Union[str, Sequence[str]]] = None
    func: Optional[str] = None
    nulls_last: bool = False

    def __post_init__(self):
        self.by = _coerce_enum(SortDirection, self.by, "sort direction")
        if self.operator is not None:
            self.operator = _coerce_enum(Operator, self.operator, "operator")
            if self.operator not in JSON_EXTRACT_OPERATORS:
                raise InvalidParameter(
                    f"Order only supports JSON extraction operators, got "
                    f"'{self.operator.value}'."
                )
            if self.sub_field is None:
                raise InvalidParameter("Order with a JSON operator requires a sub_field.")
        if self.func is not None and not self.func.replace("_", "").isalnum():
            raise InvalidParameter(f"Invalid order function name: {self.func!r}")


WhereGroup = Sequence[Where]
WhereGroups = Sequence[Optional[WhereGroup]]


# --- Pagination ---
def _check_non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidPagination(f"{name} must be a non-negative integer, got {value!r}")
    return value


@dataclass
class OffsetPagination:
    """Page-numbered pagination. ``offset`` is a page index, not a row offset."""

    limit: int
    offset: int = 0

    def __post_init__(self):
        _check_non_negative("limit", self.limit)
        _check_non_negative("offset", self.offset)

    @property
    def row_offset(self) -> int:
        return self.limit * self.offset


@dataclass
class CursorPagination:
    """Infinite-scroll pagination keyed by the last-seen primary key."""

    size: int = 10
    cursor: Any = None

    def __post_init__(self):
        _check_non_negative("size", self.size)
        if self.size == 0:
            raise InvalidPagination("size must be greater than zero")

