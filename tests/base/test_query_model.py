# tests/base/test_query_model.py

import copy
from datetime import datetime

import pytest

from social_repository.base.exceptions import InvalidPagination, InvalidParameter
from social_repository.base.query import (
    UNSET,
    CursorPagination,
    Logic,
    OffsetPagination,
    Operator,
    Order,
    SortDirection,
    Where,
    is_unset,
    validate_param,
)


# --- UNSET ---
def test_unset_is_falsy_singleton():
    assert not UNSET
    assert is_unset(UNSET)
    assert not is_unset(None)
    assert copy.deepcopy(UNSET) is UNSET
    assert repr(UNSET) == "UNSET"


# --- Where ---
def test_where_defaults():
    cond = Where("id", 5)
    assert cond.operator is Operator.EQ
    assert cond.logic is Logic.AND
    assert cond.table_alias is None
    assert not cond.is_skipped


@pytest.mark.parametrize(
    "spelling, expected",
    [
        ("=", Operator.EQ),
        ("<>", Operator.NE),
        ("ILIKE", Operator.ILIKE),
        ("is not null", Operator.IS_NOT_NULL),
        ("Not In", Operator.NOT_IN),
        ("@>", Operator.CONTAINS),
    ],
)
def test_where_accepts_operator_spellings(spelling, expected):
    assert Where("id", 1, spelling).operator is expected


def test_where_logic_from_string():
    assert Where("id", 1, logic="or").logic is Logic.OR


def test_unknown_operator_is_rejected():
    with pytest.raises(InvalidParameter):
        Where("id", 1, "~~*")


def test_unset_value_is_skipped_unless_nullary():
    assert Where("id").is_skipped
    assert not Where("id", None).is_skipped
    assert not Where("parentid", operator=Operator.IS_NULL).is_skipped
    assert Where("parentid", operator=Operator.IS_NULL).is_nullary


def test_json_extraction_requires_sub_field():
    with pytest.raises(InvalidParameter):
        Where("birth", "public", Operator.JSON_TEXT)


def test_json_extraction_rejects_nested_extraction_compare():
    with pytest.raises(InvalidParameter):
        Where("birth", "x", Operator.JSON_TEXT, sub_field="date", compare=Operator.JSON_TEXT)


def test_json_extraction_with_null_compare_is_nullary():
    cond = Where("verified", operator="->>", sub_field="type", compare="is null")
    assert cond.is_nullary
    assert not cond.is_skipped


# --- Order ---
def test_order_direction_coercion():
    assert Order("createat", "desc").by is SortDirection.DESC
    assert Order("createat").by is SortDirection.ASC


def test_order_rejects_non_json_operator():
    with pytest.raises(InvalidParameter):
        Order("createat", operator="=")


def test_order_rejects_unsafe_function_name():
    with pytest.raises(InvalidParameter):
        Order("Hearts", func="length); drop table users; --")


# --- validate_param ---
@pytest.mark.parametrize(
    "value",
    ["text", 1, 2.5, True, None, datetime(2024, 1, 1), {"a": [1, {"b": None}]}, [1, 2]],
)
def test_validate_param_accepts_supported_values(value):
    assert validate_param(value) == value


def test_validate_param_normalizes_tuples():
    assert validate_param((1, 2)) == [1, 2]


@pytest.mark.parametrize("value", [object(), {1: "a"}, [object()], b"raw", UNSET])
def test_validate_param_rejects_other_values(value):
    with pytest.raises(InvalidParameter):
        validate_param(value)


# --- Pagination ---
def test_offset_pagination_is_page_index():
    assert OffsetPagination(limit=10, offset=3).row_offset == 30
    assert OffsetPagination(limit=10).row_offset == 0


@pytest.mark.parametrize("limit, offset", [(-1, 0), (10, -2), (1.5, 0), (True, 0)])
def test_offset_pagination_rejects_bad_values(limit, offset):
    with pytest.raises(InvalidPagination):
        OffsetPagination(limit=limit, offset=offset)


def test_cursor_pagination_requires_positive_size():
    assert CursorPagination().size == 10
    with pytest.raises(InvalidPagination):
        CursorPagination(size=0)
