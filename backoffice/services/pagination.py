"""List state carried in page URLs and turned into banking API parameters."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

DEFAULT_PAGE_SIZES = (10, 20, 50, 100)
API_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


class SortDirection(str, enum.Enum):
    asc = "asc"
    desc = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.desc if self is SortDirection.asc else SortDirection.asc


@dataclass(frozen=True)
class SortState:
    field: str
    direction: SortDirection = SortDirection.asc

    def to_param(self) -> str:
        return f"{self.field},{self.direction.value}"

    @classmethod
    def parse(cls, value: str | None) -> "SortState | None":
        """Parse ``"field,dir"``; a bare field sorts ascending."""
        if not value:
            return None
        field_name, _, direction = value.partition(",")
        field_name = field_name.strip()
        if not field_name:
            return None
        try:
            parsed = SortDirection((direction or "asc").strip().lower())
        except ValueError:
            return None
        return cls(field_name, parsed)


def clean_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` and empty-string values."""
    return {key: value for key, value in params.items() if value is not None and value != ""}


def pad_datetime_input(value: str | None) -> str | None:
    """Complete a ``datetime-local`` input value (``YYYY-MM-DDTHH:mm``) with seconds."""
    if not value:
        return None
    if len(value) == 16:
        return f"{value}:00"
    return value


def format_api_datetime(value: datetime) -> str:
    return value.strftime(API_DATETIME_FORMAT)


def _as_int(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ListState:
    """Page, size, sort and filters of one list panel.

    Built from the browser query string and written back into the URLs the
    list controls request, so reloading a page restores the same view.
    """

    page: int = 0
    size: int = 10
    sort: SortState | None = None
    filters: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_query(
        cls,
        params: Mapping[str, Any],
        *,
        default_size: int = 10,
        page_sizes: Iterable[int] = DEFAULT_PAGE_SIZES,
        default_sort: SortState | None = None,
        sort_fields: Iterable[str] = (),
        filter_names: Iterable[str] = (),
    ) -> "ListState":
        page = max(_as_int(params.get("page"), 0), 0)
        size = _as_int(params.get("size"), default_size)
        if size not in tuple(page_sizes):
            size = default_size

        sort = SortState.parse(params.get("sort")) or default_sort
        allowed = set(sort_fields)
        if sort is not None and allowed and sort.field not in allowed:
            sort = default_sort

        filters = {
            name: str(params[name]).strip()
            for name in filter_names
            if params.get(name) not in (None, "") and str(params[name]).strip()
        }
        return cls(page=page, size=size, sort=sort, filters=filters)

    def with_page(self, page: int) -> "ListState":
        return replace(self, page=max(page, 0))

    def with_size(self, size: int) -> "ListState":
        return replace(self, page=0, size=size)

    def with_sort(self, field_name: str, direction: SortDirection | str) -> "ListState":
        return replace(self, sort=SortState(field_name, SortDirection(direction)))

    def with_filters(self, filters: Mapping[str, Any]) -> "ListState":
        cleaned = {key: str(value) for key, value in clean_params(filters).items()}
        return replace(self, page=0, filters=cleaned)

    def to_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {"page": self.page, "size": self.size}
        if self.sort is not None:
            query["sort"] = self.sort.to_param()
        query.update(clean_params(self.filters))
        return query

    def to_api_params(self, **filters: Any) -> dict[str, Any]:
        """Parameters for a paged API query.

        Keyword arguments override the stored filters, which lets callers
        pass converted values (padded datetimes, enum values).
        """
        params: dict[str, Any] = {"page": self.page, "size": self.size}
        if self.sort is not None:
            params["sort"] = self.sort.to_param()
        merged = dict(self.filters)
        merged.update(filters)
        params.update(clean_params(merged))
        return params

    def url(self, base: str) -> str:
        return f"{base}?{urlencode(self.to_query())}"
