from unittest.mock import Mock

import pytest

from backoffice.services.api_errors import HttpStatusError, NetworkError
from backoffice.services.data_table import (
    ELLIPSIS_END,
    ELLIPSIS_START,
    EMPTY_MESSAGE,
    ERROR_MESSAGE,
    LOADING_MESSAGE,
    NOT_AVAILABLE,
    ColumnDescriptor,
    PageChange,
    PaginatedList,
    SortChange,
)
from backoffice.services.pagination import SortDirection

ROWS = [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]
NAME = ColumnDescriptor("Name", accessor="name")


def _list(**overrides) -> PaginatedList:
    options = {
        "columns": [NAME],
        "rows": ROWS,
        "row_id": "id",
        "page_index": 0,
        "page_size": 10,
        "total_elements": 2,
        "on_page_change": Mock(name="on_page_change", side_effect=lambda p: f"page={p}"),
        "on_page_size_change": Mock(name="on_page_size_change", side_effect=lambda n: f"size={n}"),
    }
    options.update(overrides)
    columns = options.pop("columns")
    rows = options.pop("rows")
    return PaginatedList(columns, rows, **options)


def test_missing_row_id_is_a_construction_error():
    with pytest.raises(ValueError):
        PaginatedList(
            [NAME],
            ROWS,
            on_page_change=lambda p: None,
            on_page_size_change=lambda n: None,
        )


def test_two_rows_on_single_page_render_without_page_strip():
    view = _list().build_view()

    assert view.state == "table"
    assert [row.key for row in view.rows] == ["1", "2"]
    assert [row.cells[0].content for row in view.rows] == ["A", "B"]
    assert view.pagination is not None
    assert view.pagination.show_strip is False
    assert view.pagination.buttons == []
    assert (view.pagination.showing_from, view.pagination.showing_to) == (1, 2)
    assert view.pagination.total_elements == 2


def test_empty_rows_render_no_data_state():
    view = _list(rows=[], total_elements=0).build_view()

    assert view.state == "empty"
    assert view.message == EMPTY_MESSAGE
    assert view.pagination is None
    assert view.rows == []


def test_loading_takes_precedence_over_error():
    view = _list(loading=True, error=NetworkError("down")).build_view()

    assert view.state == "loading"
    assert view.message == LOADING_MESSAGE


def test_error_line_includes_status_when_present():
    view = _list(error=HttpStatusError("boom", status=500)).build_view()

    assert view.state == "error"
    assert view.message == f"{ERROR_MESSAGE} (Status: 500)"
    assert view.rows == []


def test_error_line_without_status_is_generic():
    view = _list(error={"message": "opaque"}).build_view()

    assert view.message == ERROR_MESSAGE


@pytest.mark.parametrize("error", [{}, "", 0])
def test_falsy_error_value_still_counts_as_an_error(error):
    view = _list(rows=[], total_elements=0, error=error).build_view()

    assert view.state == "error"
    assert view.message == ERROR_MESSAGE


def test_column_without_accessor_or_render_shows_marker():
    empty_column = ColumnDescriptor("Notes")
    view = _list(columns=[NAME, empty_column]).build_view()

    assert [row.cells[1].content for row in view.rows] == [NOT_AVAILABLE, NOT_AVAILABLE]


def test_failing_renderer_shows_marker_instead_of_raising():
    def explode(row):
        raise KeyError("missing")

    column = ColumnDescriptor("Broken", render=explode)
    view = _list(columns=[column]).build_view()

    assert view.rows[0].cells[0].content == NOT_AVAILABLE


def test_none_values_render_as_marker():
    view = _list(rows=[{"id": 1, "name": None}], total_elements=1).build_view()

    assert view.rows[0].cells[0].content == NOT_AVAILABLE


@pytest.mark.parametrize(
    ("total", "size", "pages"),
    [(1, 10, 1), (10, 10, 1), (11, 10, 2), (95, 20, 5), (3, 0, 3)],
)
def test_total_pages_floors_page_size_to_one(total, size, pages):
    assert _list(total_elements=total, page_size=size).total_pages == pages


@pytest.mark.parametrize(
    ("page", "expected"),
    [
        (0, [0, 1, 2, 3, 4, ELLIPSIS_END, 9]),
        (9, [0, ELLIPSIS_START, 5, 6, 7, 8, 9]),
        (5, [0, ELLIPSIS_START, 3, 4, 5, 6, 7, ELLIPSIS_END, 9]),
        (2, [0, 1, 2, 3, 4, ELLIPSIS_END, 9]),
        (3, [0, 1, 2, 3, 4, 5, ELLIPSIS_END, 9]),
        (7, [0, ELLIPSIS_START, 5, 6, 7, 8, 9]),
    ],
)
def test_page_window_for_ten_pages(page, expected):
    paginated = _list(page_index=page, total_elements=100)

    assert paginated.page_window() == expected


def test_page_window_shows_every_page_when_few():
    assert _list(page_index=2, total_elements=40).page_window() == [0, 1, 2, 3]


def test_previous_and_next_disabled_at_edges():
    first = _list(page_index=0, total_elements=30).build_view().pagination
    middle = _list(page_index=1, total_elements=30).build_view().pagination
    last = _list(page_index=2, total_elements=30).build_view().pagination

    assert first.previous_disabled and not first.next_disabled
    assert not middle.previous_disabled and not middle.next_disabled
    assert last.next_disabled and not last.previous_disabled
    assert middle.previous_href == "page=0"
    assert middle.next_href == "page=2"


def test_out_of_range_navigation_never_calls_back():
    on_page_change = Mock()
    paginated = _list(page_index=0, total_elements=5, on_page_change=on_page_change)

    assert paginated.previous_page() is None
    assert paginated.next_page() is None
    assert paginated.go_to_page(7) is None
    on_page_change.assert_not_called()


def test_page_button_calls_only_page_change():
    on_page_change = Mock(return_value="/table?page=3")
    on_size_change = Mock()
    on_sort_change = Mock()
    paginated = _list(
        page_index=0,
        total_elements=100,
        on_page_change=on_page_change,
        on_page_size_change=on_size_change,
        on_sort_change=on_sort_change,
    )

    assert paginated.go_to_page(3) == "/table?page=3"
    on_page_change.assert_called_once_with(3)
    on_size_change.assert_not_called()
    on_sort_change.assert_not_called()


def test_clicking_current_page_is_a_no_op():
    on_page_change = Mock()
    paginated = _list(page_index=2, total_elements=100, on_page_change=on_page_change)

    assert paginated.page_event(2) is None
    assert paginated.go_to_page(2) is None
    on_page_change.assert_not_called()


def test_current_page_button_has_no_link():
    view = _list(page_index=1, total_elements=30).build_view()
    current = [b for b in view.pagination.buttons if b.current]

    assert len(current) == 1
    assert current[0].page == 1
    assert current[0].href is None
    assert current[0].label == "2"


def test_showing_range_on_last_partial_page():
    pagination = _list(page_index=2, page_size=10, total_elements=25).build_view().pagination

    assert (pagination.showing_from, pagination.showing_to) == (21, 25)
    assert pagination.compact_summary == "Page 3 of 3 (25 results)"


def test_page_size_options_mark_selection():
    pagination = _list(
        page_size=20, total_elements=50, available_page_sizes=(10, 20, 50)
    ).build_view().pagination

    assert [(o.size, o.selected, o.href) for o in pagination.page_sizes] == [
        (10, False, "size=10"),
        (20, True, "size=20"),
        (50, False, "size=50"),
    ]


def test_non_positive_page_size_is_ignored():
    on_size_change = Mock()
    paginated = _list(on_page_size_change=on_size_change)

    assert paginated.change_page_size(0) is None
    on_size_change.assert_not_called()


class TestSorting:
    username = ColumnDescriptor("Username", accessor="username", sortable=True)
    email = ColumnDescriptor("Email", accessor="email", sortable=True, sort_key="contact.email")
    plain = ColumnDescriptor("Role", accessor="role")
    keyless = ColumnDescriptor("Computed", render=lambda row: "x", sortable=True)

    def _sortable(self, field=None, direction=None, on_sort_change=None):
        return _list(
            columns=[self.username, self.email, self.plain, self.keyless],
            on_sort_change=on_sort_change or (lambda f, d: (f, d)),
            current_sort_field=field,
            current_sort_direction=direction,
        )

    def test_first_click_sorts_ascending_then_toggles(self):
        unset = self._sortable()
        assert unset.sort_event(self.username) == SortChange("username", SortDirection.asc)

        ascending = self._sortable("username", SortDirection.asc)
        assert ascending.sort_event(self.username) == SortChange("username", SortDirection.desc)

        descending = self._sortable("username", SortDirection.desc)
        assert descending.sort_event(self.username) == SortChange("username", SortDirection.asc)

    def test_other_column_resets_to_ascending(self):
        paginated = self._sortable("username", SortDirection.desc)

        assert paginated.sort_event(self.email) == SortChange("contact.email", SortDirection.asc)

    def test_non_sortable_and_keyless_columns_are_inert(self):
        on_sort_change = Mock()
        paginated = self._sortable(on_sort_change=on_sort_change)

        assert paginated.click_header(self.plain) is None
        assert paginated.click_header(self.keyless) is None
        on_sort_change.assert_not_called()

    def test_headers_are_inert_without_sort_callback(self):
        paginated = _list(columns=[self.username])
        headers = paginated.build_view().headers

        assert headers[0].clickable is False
        assert headers[0].indicator is None

    def test_header_indicators(self):
        view = self._sortable("username", SortDirection.desc).build_view()
        indicators = {h.label: h.indicator for h in view.headers}

        assert indicators == {
            "Username": "desc",
            "Email": "unsorted",
            "Role": None,
            "Computed": None,
        }
        assert view.headers[0].href == ("username", SortDirection.asc)


def test_href_dispatches_each_intent():
    paginated = _list(on_sort_change=lambda f, d: f"{f}:{d.value}")

    assert paginated.href(PageChange(1)) == "page=1"
    assert paginated.href(SortChange("name", SortDirection.desc)) == "name:desc"
    with pytest.raises(TypeError):
        paginated.href("page")
