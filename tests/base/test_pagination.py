# tests/base/test_pagination.py

from dataclasses import dataclass

import pytest

from social_repository.base.exceptions import InvalidPagination
from social_repository.base.pagination import Page, paginate_after_cursor


@dataclass
class Row:
    postid: int


@pytest.fixture
def rows():
    return [{"postid": i} for i in range(100, 75, -1)]  # 25 rows, newest first


def test_walks_all_pages(rows):
    first = paginate_after_cursor(rows, None, 10, "postid")
    assert len(first.items) == 10
    assert first.next_cursor == 91

    second = paginate_after_cursor(rows, first.next_cursor, 10, "postid")
    assert len(second.items) == 10
    assert second.items[0]["postid"] == 90
    assert second.next_cursor == 81

    third = paginate_after_cursor(rows, second.next_cursor, 10, "postid")
    assert len(third.items) == 5
    assert third.next_cursor is None


def test_unknown_cursor_starts_from_first_row(rows):
    page = paginate_after_cursor(rows, 9999, 10, "postid")
    assert page.items[0]["postid"] == 100


def test_query_string_cursor_matches_integer_key(rows):
    page = paginate_after_cursor(rows, "91", 10, "postid")
    assert page.items[0]["postid"] == 90
    assert page.next_cursor == 81


def test_exact_fit_has_no_next_cursor():
    page = paginate_after_cursor([{"id": 1}, {"id": 2}], None, 2, "id")
    assert page.next_cursor is None


def test_empty_rows():
    assert paginate_after_cursor([], None, 10, "id") == Page(items=[], next_cursor=None)


def test_attribute_and_callable_keys():
    objects = [Row(3), Row(2), Row(1)]
    page = paginate_after_cursor(objects, 3, 1, "postid")
    assert page.items == [Row(2)]
    assert page.next_cursor == 2

    page = paginate_after_cursor(objects, None, 2, lambda r: r.postid * 10)
    assert page.next_cursor == 20


def test_invalid_size():
    with pytest.raises(InvalidPagination):
        paginate_after_cursor([], None, 0, "id")
