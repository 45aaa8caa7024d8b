"""Paginated resource list.

``PaginatedList`` turns one page of rows plus the owning page's pagination and
sort state into a ``TableView`` that ``components/data_table.html`` renders as
a table, a stacked card list and a pagination strip.

The list never changes its own state. Each control maps to an intent
(``PageChange``, ``PageSizeChange``, ``SortChange``); the owning page supplies
callbacks that turn an intent into the URL the control requests.
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from backoffice.services.api_errors import error_status
from backoffice.services.pagination import DEFAULT_PAGE_SIZES, SortDirection

logger = logging.getLogger(__name__)

MAX_VISIBLE_PAGE_BUTTONS = 5
NOT_AVAILABLE = "N/A"
LOADING_MESSAGE = "Loading data..."
EMPTY_MESSAGE = "No data found."
ERROR_MESSAGE = "Error loading data. Please try again."
ELLIPSIS_START = "ellipsis-start"
ELLIPSIS_END = "ellipsis-end"


@dataclass(frozen=True)
class PageChange:
    page: int


@dataclass(frozen=True)
class PageSizeChange:
    size: int


@dataclass(frozen=True)
class SortChange:
    field: str
    direction: SortDirection


ListEvent = Union[PageChange, PageSizeChange, SortChange]


def read_field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def display_value(value: Any) -> Any:
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "__html__"):
        return value
    return str(value)


@dataclass
class ColumnDescriptor:
    header: str
    accessor: str | None = None
    render: Callable[[Any], Any] | None = None
    sortable: bool = False
    sort_key: str | None = None
    cell_class: str | Callable[[Any], str] | None = None
    header_class: str = ""

    @property
    def sort_field(self) -> str | None:
        return self.sort_key or self.accessor

    def content(self, row: Any) -> Any:
        if self.render is not None:
            try:
                return display_value(self.render(row))
            except Exception:
                logger.warning("Cell renderer for %r failed", self.header, exc_info=True)
                return NOT_AVAILABLE
        if self.accessor:
            return display_value(read_field(row, self.accessor))
        return NOT_AVAILABLE

    def css(self, row: Any) -> str:
        if callable(self.cell_class):
            try:
                return self.cell_class(row) or ""
            except Exception:
                logger.warning("Cell class for %r failed", self.header, exc_info=True)
                return ""
        return self.cell_class or ""


@dataclass(frozen=True)
class Cell:
    header: str
    content: Any
    css: str = ""


@dataclass(frozen=True)
class RowView:
    key: str
    cells: list[Cell]


@dataclass(frozen=True)
class HeaderView:
    label: str
    css: str = ""
    indicator: str | None = None
    href: str | None = None

    @property
    def clickable(self) -> bool:
        return self.href is not None


@dataclass(frozen=True)
class PageButton:
    kind: str
    page: int | None = None
    current: bool = False
    href: str | None = None

    @property
    def label(self) -> str:
        return "..." if self.page is None else str(self.page + 1)


@dataclass(frozen=True)
class PageSizeOption:
    size: int
    selected: bool
    href: str | None


@dataclass(frozen=True)
class PaginationView:
    page_sizes: list[PageSizeOption]
    page_index: int
    showing_from: int
    showing_to: int
    total_elements: int
    total_pages: int
    previous_href: str | None
    next_href: str | None
    buttons: list[PageButton] = field(default_factory=list)

    @property
    def previous_disabled(self) -> bool:
        return self.previous_href is None

    @property
    def next_disabled(self) -> bool:
        return self.next_href is None

    @property
    def show_strip(self) -> bool:
        return self.total_pages > 1

    @property
    def compact_summary(self) -> str:
        if self.total_pages > 1:
            return f"Page {self.page_index + 1} of {self.total_pages} ({self.total_elements} results)"
        return f"({self.total_elements} results)"


@dataclass(frozen=True)
class TableView:
    state: str
    panel_id: str
    message: str = ""
    headers: list[HeaderView] = field(default_factory=list)
    rows: list[RowView] = field(default_factory=list)
    pagination: PaginationView | None = None


class PaginatedList:
    """One page of a server-paginated resource.

    ``rows`` is rendered as given; the list does no slicing, filtering or
    sorting of its own. ``row_id`` is required: either a callable returning a
    stable identity for a row or the name of the field holding it.
    """

    def __init__(
        self,
        columns: Sequence[ColumnDescriptor],
        rows: Sequence[Any] | None,
        *,
        row_id: Callable[[Any], Any] | str | None = None,
        loading: bool = False,
        error: Any = None,
        page_index: int = 0,
        page_size: int = 10,
        total_elements: int | None = 0,
        on_page_change: Callable[[int], Any],
        on_page_size_change: Callable[[int], Any],
        available_page_sizes: Sequence[int] = DEFAULT_PAGE_SIZES,
        on_sort_change: Callable[[str, SortDirection], Any] | None = None,
        current_sort_field: str | None = None,
        current_sort_direction: SortDirection | str | None = None,
        panel_id: str = "data-table",
    ):
        if row_id is None:
            raise ValueError("PaginatedList requires a row_id extractor")
        if isinstance(row_id, str):
            row_id = _field_reader(row_id)
        self.columns = list(columns)
        self.rows = list(rows or [])
        self.row_id = row_id
        self.loading = loading
        self.error = error
        self.page_index = max(int(page_index), 0)
        self.page_size = page_size
        self.total_elements = max(int(total_elements or 0), 0)
        self.on_page_change = on_page_change
        self.on_page_size_change = on_page_size_change
        self.available_page_sizes = list(available_page_sizes)
        self.on_sort_change = on_sort_change
        self.current_sort_field = current_sort_field
        self.current_sort_direction = (
            SortDirection(current_sort_direction) if current_sort_direction else None
        )
        self.panel_id = panel_id

    @property
    def safe_page_size(self) -> int:
        return max(1, self.page_size)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.safe_page_size)

    # Intents

    def href(self, event: ListEvent) -> Any:
        """Ask the owner where an intent leads, without validating it."""
        if isinstance(event, PageChange):
            return self.on_page_change(event.page)
        if isinstance(event, PageSizeChange):
            return self.on_page_size_change(event.size)
        if isinstance(event, SortChange):
            if self.on_sort_change is None:
                return None
            return self.on_sort_change(event.field, event.direction)
        raise TypeError(f"Unsupported list event: {event!r}")

    def page_event(self, target: int) -> PageChange | None:
        if target == self.page_index:
            return None
        if 0 <= target < self.total_pages:
            return PageChange(target)
        return None

    def sort_event(self, column: ColumnDescriptor) -> SortChange | None:
        if self.on_sort_change is None or not column.sortable:
            return None
        sort_field = column.sort_field
        if not sort_field:
            return None
        if self.current_sort_field == sort_field:
            direction = (
                SortDirection.desc
                if self.current_sort_direction is SortDirection.asc
                else SortDirection.asc
            )
        else:
            direction = SortDirection.asc
        return SortChange(sort_field, direction)

    def go_to_page(self, target: int) -> Any:
        event = self.page_event(target)
        return self.href(event) if event else None

    def previous_page(self) -> Any:
        return self.go_to_page(self.page_index - 1)

    def next_page(self) -> Any:
        return self.go_to_page(self.page_index + 1)

    def change_page_size(self, size: int) -> Any:
        if size <= 0:
            return None
        return self.href(PageSizeChange(size))

    def click_header(self, column: ColumnDescriptor) -> Any:
        event = self.sort_event(column)
        return self.href(event) if event else None

    # View

    def page_window(self) -> list[int | str]:
        """Page indexes for the number strip, with ellipsis markers."""
        total_pages = self.total_pages
        if total_pages <= 1:
            return []
        page = self.page_index
        half_way = math.ceil(MAX_VISIBLE_PAGE_BUTTONS / 2)
        start = page - half_way + 1
        end = page + half_way - 1
        if total_pages <= MAX_VISIBLE_PAGE_BUTTONS:
            start, end = 0, total_pages - 1
        elif page < half_way:
            start, end = 0, MAX_VISIBLE_PAGE_BUTTONS - 1
        elif page >= total_pages - half_way:
            start, end = total_pages - MAX_VISIBLE_PAGE_BUTTONS, total_pages - 1

        window: list[int | str] = []
        if start > 0:
            window.append(0)
            if start > 1:
                window.append(ELLIPSIS_START)
        window.extend(i for i in range(start, end + 1) if 0 <= i < total_pages)
        if end < total_pages - 1:
            if end < total_pages - 2:
                window.append(ELLIPSIS_END)
            window.append(total_pages - 1)
        return window

    def error_message(self) -> str:
        status = error_status(self.error)
        if status is not None:
            return f"{ERROR_MESSAGE} (Status: {status})"
        return ERROR_MESSAGE

    def _headers(self) -> list[HeaderView]:
        headers = []
        for column in self.columns:
            event = self.sort_event(column)
            indicator = None
            if event is not None:
                if self.current_sort_field == column.sort_field:
                    indicator = (
                        "asc" if self.current_sort_direction is SortDirection.asc else "desc"
                    )
                else:
                    indicator = "unsorted"
            headers.append(
                HeaderView(
                    label=column.header,
                    css=column.header_class,
                    indicator=indicator,
                    href=self.href(event) if event else None,
                )
            )
        return headers

    def _rows(self) -> list[RowView]:
        rows = []
        for row in self.rows:
            cells = [Cell(col.header, col.content(row), col.css(row)) for col in self.columns]
            rows.append(RowView(key=str(self.row_id(row)), cells=cells))
        return rows

    def _pagination(self) -> PaginationView | None:
        if self.total_elements <= 0:
            return None
        size = self.safe_page_size
        sizes = [
            PageSizeOption(option, option == size, self.href(PageSizeChange(option)))
            for option in self.available_page_sizes
        ]
        buttons = []
        for item in self.page_window():
            if isinstance(item, str):
                buttons.append(PageButton(kind=item))
                continue
            event = self.page_event(item)
            buttons.append(
                PageButton(
                    kind="page",
                    page=item,
                    current=item == self.page_index,
                    href=self.href(event) if event else None,
                )
            )
        previous_event = self.page_event(self.page_index - 1)
        next_event = self.page_event(self.page_index + 1)
        return PaginationView(
            page_sizes=sizes,
            page_index=self.page_index,
            showing_from=self.page_index * size + 1,
            showing_to=min((self.page_index + 1) * size, self.total_elements),
            total_elements=self.total_elements,
            total_pages=self.total_pages,
            previous_href=self.href(previous_event) if previous_event else None,
            next_href=self.href(next_event) if next_event else None,
            buttons=buttons,
        )

    def build_view(self) -> TableView:
        if self.loading:
            return TableView(state="loading", panel_id=self.panel_id, message=LOADING_MESSAGE)
        if self.error is not None:
            return TableView(state="error", panel_id=self.panel_id, message=self.error_message())
        if not self.rows:
            return TableView(state="empty", panel_id=self.panel_id, message=EMPTY_MESSAGE)
        return TableView(
            state="table",
            panel_id=self.panel_id,
            headers=self._headers(),
            rows=self._rows(),
            pagination=self._pagination(),
        )


def _field_reader(name: str) -> Callable[[Any], Any]:
    def read(row: Any) -> Any:
        return read_field(row, name)

    return read
