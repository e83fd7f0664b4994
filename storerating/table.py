import math
from typing import Any, Callable, Mapping, NamedTuple, Sequence

ASC = "asc"
DESC = "desc"

LOADING = "loading"
EMPTY = "empty"
ROWS = "rows"


class Column(NamedTuple):
    key: str
    label: str
    sortable: bool = True
    render: Callable[[Any, Mapping], Any] | None = None


def _sort_key(value):
    # numbers before strings; strings case-insensitive, original text breaks ties
    if isinstance(value, str):
        return (1, value.casefold(), value)
    return (0, value)


class Table:
    """Sort and pagination state over an in-memory list of rows.

    When ``on_sort`` is given, sorting is delegated to it (the backend sorts)
    and rows are shown in the order they were supplied.
    """

    def __init__(
        self,
        columns: Sequence[Column],
        rows: Sequence[Mapping] = (),
        page_size: int = 10,
        on_sort: Callable[[str, str], None] | None = None,
        sortable: bool = True,
        paginate: bool = True,
        loading: bool = False,
        empty_message: str = "No data available",
        sort_key: str | None = None,
        direction: str = ASC,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.columns = list(columns)
        self.rows = list(rows)
        self.page_size = page_size
        self.on_sort = on_sort
        self.sortable = sortable
        self.paginate = paginate
        self.loading = loading
        self.empty_message = empty_message
        self.sort_key = sort_key
        self.direction = direction if direction in (ASC, DESC) else ASC
        self.page = 1

    def column(self, key: str) -> Column | None:
        for column in self.columns:
            if column.key == key:
                return column
        return None

    def is_sortable(self, key: str) -> bool:
        column = self.column(key)
        return bool(self.sortable and column is not None and column.sortable)

    def next_direction(self, key: str) -> str:
        if self.sort_key == key and self.direction == ASC:
            return DESC
        return ASC

    def sort_by(self, key: str):
        if not self.is_sortable(key):
            return
        self.direction = self.next_direction(key)
        self.sort_key = key
        if self.on_sort is not None:
            self.on_sort(key, self.direction)

    def set_rows(self, rows: Sequence[Mapping]):
        self.rows = list(rows)
        self.page = min(self.page, max(self.page_count, 1))

    @property
    def sorted_rows(self) -> list:
        if not self.sortable or self.sort_key is None or self.on_sort is not None:
            return list(self.rows)
        key = self.sort_key
        present = [r for r in self.rows if r.get(key) is not None]
        missing = [r for r in self.rows if r.get(key) is None]
        present.sort(key=lambda r: _sort_key(r[key]), reverse=self.direction == DESC)
        return present + missing

    @property
    def page_count(self) -> int:
        if not self.paginate:
            return 1
        return math.ceil(len(self.rows) / self.page_size)

    def go_to(self, page: int) -> int:
        self.page = max(1, min(int(page), max(self.page_count, 1)))
        return self.page

    def next_page(self) -> int:
        return self.go_to(self.page + 1)

    def previous_page(self) -> int:
        return self.go_to(self.page - 1)

    @property
    def pages(self) -> list[int]:
        return list(range(1, self.page_count + 1))

    @property
    def page_rows(self) -> list:
        rows = self.sorted_rows
        if not self.paginate:
            return rows
        start = (self.page - 1) * self.page_size
        return rows[start:start + self.page_size]

    @property
    def range_label(self) -> str:
        total = len(self.rows)
        first = (self.page - 1) * self.page_size + 1
        last = min(self.page * self.page_size, total)
        return f"Showing {first} to {last} of {total} results"

    @property
    def view_state(self) -> str:
        if self.loading:
            return LOADING
        if not self.rows:
            return EMPTY
        return ROWS

    def cell(self, row: Mapping, column: Column):
        value = row.get(column.key)
        if column.render is not None:
            return column.render(value, row)
        return value
