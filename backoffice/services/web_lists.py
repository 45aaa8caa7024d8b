"""Wiring between page containers, the resource cache and ``PaginatedList``.

A list panel is described once by a ``ListPanel``. The page shell renders the
panel from ``ResourceCache.peek`` and HTMX then loads ``<base>/table``, which
queries the cache and renders the panel partial. Every pagination and sort
control on the panel requests that partial URL with the next ``ListState``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import Request

from backoffice.services.api_errors import describe_error
from backoffice.services.data_table import ColumnDescriptor, PaginatedList
from backoffice.services.pagination import (
    DEFAULT_PAGE_SIZES,
    ListState,
    SortState,
    pad_datetime_input,
)
from backoffice.services.resource_cache import QueryResult, ResourceCache


def _same(data: Any) -> Any:
    return data


@dataclass(frozen=True)
class ListPanel:
    endpoint: str
    panel_id: str
    resource_name: str
    row_id: str
    page_sizes: Sequence[int] = DEFAULT_PAGE_SIZES
    default_size: int = 10
    default_sort: SortState | None = None
    sort_fields: Sequence[str] = ()
    filter_names: Sequence[str] = ()
    date_filters: Sequence[str] = ()
    page_of: Callable[[Any], Any] = _same

    def state_from(self, request: Request) -> ListState:
        return ListState.from_query(
            request.query_params,
            default_size=self.default_size,
            page_sizes=self.page_sizes,
            default_sort=self.default_sort,
            sort_fields=self.sort_fields,
            filter_names=self.filter_names,
        )

    def api_params(self, state: ListState, **extra: Any) -> dict[str, Any]:
        converted = {
            name: pad_datetime_input(state.filters.get(name)) for name in self.date_filters
        }
        params = state.to_api_params(**converted)
        params.update(extra)
        return params

    def build(
        self,
        state: ListState,
        result: QueryResult,
        columns: Sequence[ColumnDescriptor],
        table_path: str,
    ) -> PaginatedList:
        page = self.page_of(result.data) if result.data is not None else None
        sort = state.sort
        return PaginatedList(
            columns,
            page.content if page is not None else [],
            row_id=self.row_id,
            loading=result.is_loading,
            error=result.error,
            page_index=state.page,
            page_size=state.size,
            total_elements=page.totalElements if page is not None else 0,
            on_page_change=lambda p: state.with_page(p).url(table_path),
            on_page_size_change=lambda n: state.with_size(n).url(table_path),
            available_page_sizes=self.page_sizes,
            on_sort_change=(
                (lambda f, d: state.with_sort(f, d).url(table_path)) if self.sort_fields else None
            ),
            current_sort_field=sort.field if sort else None,
            current_sort_direction=sort.direction if sort else None,
            panel_id=self.panel_id,
        )

    def context(
        self,
        state: ListState,
        result: QueryResult,
        columns: Sequence[ColumnDescriptor],
        table_path: str,
    ) -> dict[str, Any]:
        """Template context for one panel."""
        paginated = self.build(state, result, columns, table_path)
        return {
            "view": paginated.build_view(),
            "state": state,
            "panel": self,
            "table_url": state.url(table_path),
            "table_path": table_path,
            "error_detail": (
                describe_error(result.error, self.resource_name)
                if result.error is not None
                else None
            ),
            "is_fetching": result.is_fetching,
        }


async def load_panel(
    cache: ResourceCache,
    panel: ListPanel,
    state: ListState,
    path_args: Mapping[str, Any] | None = None,
) -> QueryResult:
    path_args = dict(path_args or {})
    params = panel.api_params(state, **path_args)
    slot = ":".join([panel.panel_id, *(str(v) for v in path_args.values())])
    return await cache.query(panel.endpoint, params, slot=slot, await_refresh=True)


def peek_panel(
    cache: ResourceCache,
    panel: ListPanel,
    state: ListState,
    path_args: Mapping[str, Any] | None = None,
) -> QueryResult:
    return cache.peek(panel.endpoint, panel.api_params(state, **dict(path_args or {})))
