import logging
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Any, List, Mapping, Tuple

from .query import UNSET

logger = logging.getLogger(__name__)


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert models and containers into values the driver can bind.

    Handles:
    - Pydantic models (dumped in JSON mode with aliases, so nested datetimes
      become ISO strings inside jsonb columns)
    - dataclasses
    - dicts, lists, tuples and sets

    Top-level datetimes and dates are left untouched; asyncpg binds them
    natively to timestamp columns.
    """
    if data is None or isinstance(data, (datetime, date)):
        return data

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        return data.model_dump(mode="json", by_alias=True)

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, (list, tuple, set)):
        return [prepare_for_storage(item) for item in data]

    return data


def split_changes(changes: Mapping[str, Any]) -> Tuple[List[str], List[Any]]:
    """Turn a column -> value mapping into parallel field/value lists, dropping UNSET."""
    fields: List[str] = []
    values: List[Any] = []
    for name, value in changes.items():
        if value is UNSET:
            continue
        fields.append(name)
        values.append(prepare_for_storage(value))
    logger.debug(f"Prepared changes for fields {fields}")
    return fields, values
