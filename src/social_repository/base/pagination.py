# src/social_repository/base/pagination.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar, Union

from .query import CursorPagination

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    next_cursor: Optional[Any] = None


def _key_getter(key: Union[str, Callable[[Any], Any]]) -> Callable[[Any], Any]:
    if callable(key):
        return key

    def get(row: Any) -> Any:
        try:
            return row[key]
        except (TypeError, KeyError):
            return getattr(row, key)

    return get


def _same_key(key: Any, cursor: Any) -> bool:
    if key == cursor:
        return True
    return isinstance(cursor, str) and not isinstance(key, str) and str(key) == cursor


def paginate_after_cursor(
    rows: Sequence[T],
    cursor: Optional[Any],
    size: int,
    key: Union[str, Callable[[Any], Any]],
) -> Page[T]:
    """
    Slice already-sorted rows into one page.

    The page starts right after the row whose key equals ``cursor``; a missing
    or unknown cursor starts from the first row. A string cursor, as read from
    a query string, also matches a key with the same text, so "12" finds 12.
    ``next_cursor`` is the key of the last returned row when more rows follow
    it, otherwise None.
    """
    CursorPagination(size=size, cursor=cursor)
    get_key = _key_getter(key)

    start = 0
    if cursor is not None:
        for i, row in enumerate(rows):
            if _same_key(get_key(row), cursor):
                start = i + 1
                break
        else:
            log.debug(f"Cursor {cursor!r} not found; starting from the first row.")

    items = list(rows[start:start + size])
    has_more = start + size < len(rows)
    next_cursor = get_key(items[-1]) if items and has_more else None
    return Page(items=items, next_cursor=next_cursor)
