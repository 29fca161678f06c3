from __future__ import annotations

from typing import Any, Iterable, Mapping, TypeVar

from compliance.core.schema import FilterState

T = TypeVar("T")

ALL = "all"

_MISSING = object()


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name, _MISSING)
    return getattr(item, name, _MISSING)


def _text(item: Any, name: str) -> str:
    value = _field(item, name)
    if value is _MISSING or value is None:
        return ""
    return str(value).lower()


def filter_records(rows: Iterable[T], filters: FilterState) -> list[T]:
    """Apply contractor, category and free-text filters, preserving input order."""

    filtered = list(rows)

    if filters.contractor != ALL:
        filtered = [item for item in filtered if _field(item, "contractor_id") == filters.contractor]

    if filters.category != ALL:
        filtered = [
            item
            for item in filtered
            if _field(item, "category") is _MISSING or _field(item, "category") == filters.category
        ]

    search_term = (filters.search or "").strip().lower()
    if search_term:
        filtered = [
            item
            for item in filtered
            if search_term in _text(item, "doc_type_name")
            or search_term in _text(item, "doc_type_code")
            or search_term in _text(item, "contractor_name")
        ]

    return filtered
