"""
Tests for sheet row models and row grouping.
"""
import pytest
from datetime import datetime, timezone

from bqcluster.jobs.clustering_job import group_rows
from bqcluster.models import (
    ClusterSpec,
    RowStatus,
    SheetLayout,
    SheetRange,
    TableIdentifier,
    parse_bool,
)


class TestGroupRows:
    """Test grouping of configuration rows into clustering specs."""

    @pytest.fixture
    def rows(self):
        """Rows as returned by the Sheets API for range B:H."""
        return [
            ["p.d.t1", "a", "b", "NONE", "NONE", "", "FALSE"],
            ["p.d.t2", "c", "d", "e", "f", "", "TRUE"],
            ["q.d.t3", "NONE", "x", "NONE", "y"],
        ]

    def test_skips_already_clustered_rows(self, rows):
        grouped = group_rows(rows)

        names = [identifier.table_name for identifier in grouped]
        assert "p.d.t2" not in names
        assert names == ["p.d.t1", "q.d.t3"]

    def test_preserves_order_and_drops_sentinel(self, rows):
        grouped = group_rows(rows)

        assert grouped[TableIdentifier(0, "p.d.t1")] == ClusterSpec(("a", "b"))
        assert grouped[TableIdentifier(2, "q.d.t3")].as_list() == ["x", "y"]

    def test_missing_flag_cell_means_not_clustered(self):
        # The Sheets API drops trailing empty cells
        grouped = group_rows([["p.d.t1", "a"]])

        assert grouped == {TableIdentifier(0, "p.d.t1"): ClusterSpec(("a",))}

    def test_blank_rows_are_skipped(self):
        grouped = group_rows([[], ["", "", "", "", "", "", ""], ["p.d.t1", "a"]])

        assert list(grouped) == [TableIdentifier(2, "p.d.t1")]

    def test_same_table_on_two_rows_kept_separately(self):
        grouped = group_rows([["p.d.t", "a"], ["p.d.t", "b"]])

        assert len(grouped) == 2
        assert [spec.columns for spec in grouped.values()] == [("a",), ("b",)]

    def test_custom_layout(self):
        layout = SheetLayout(clustered_flag_index=5)
        rows = [
            ["p.d.t1", "a", "b", "NONE", "NONE", False],
            ["p.d.t2", "c", "d", "e", "f", True],
        ]

        grouped = group_rows(rows, layout)

        assert grouped == {TableIdentifier(0, "p.d.t1"): ClusterSpec(("a", "b"))}


class TestTableIdentifier:
    """Test table identifier parsing."""

    def test_split(self):
        assert TableIdentifier(0, "my-project.sales.orders").split() == ("my-project", "sales", "orders")

    @pytest.mark.parametrize("name", ["sales.orders", "a.b.c.d", "p..t", ""])
    def test_split_invalid(self, name):
        with pytest.raises(ValueError, match="project.dataset.table"):
            TableIdentifier(0, name).split()

    def test_str(self):
        assert str(TableIdentifier(3, "p.d.t")) == "3. p.d.t"


class TestSheetRange:
    """Test A1 range parsing and row mapping."""

    def test_parse(self):
        sheet_range = SheetRange.parse("B29:H29")

        assert sheet_range.start_column == "B"
        assert sheet_range.start_row == 29
        assert sheet_range.end_column == "H"
        assert sheet_range.end_row == 29

    def test_parse_keeps_worksheet(self):
        sheet_range = SheetRange.parse("Sheet2!b12:h40")

        assert sheet_range.worksheet == "Sheet2"
        assert sheet_range.start_row == 12
        assert SheetRange.parse("'Config Sheet'!B2:H9").worksheet == "Config Sheet"
        assert SheetRange.parse("B2:H9").worksheet is None

    def test_range_without_row_starts_at_one(self):
        assert SheetRange.parse("B:H").start_row == 1

    def test_invalid_range(self):
        with pytest.raises(ValueError, match="Invalid A1 range"):
            SheetRange.parse("29:H")

    def test_sheet_row(self):
        sheet_range = SheetRange.parse("B12:H28")

        assert sheet_range.sheet_row(0) == 12
        assert sheet_range.sheet_row(5) == 17

    def test_a1(self):
        assert SheetRange.parse("B29:H29").a1("Sheet1") == "Sheet1!B29:H29"
        assert SheetRange.parse("B29:H").a1() == "B29:H"


class TestRowStatus:
    """Test status values written back to the sheet."""

    @pytest.fixture
    def now(self):
        return datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_success(self, now):
        status = RowStatus.from_error(None, now)

        assert status.to_cells() == [True, "2024-01-15T10:30:00+00:00", ""]

    def test_failure(self, now):
        status = RowStatus.from_error(RuntimeError("Not found: Table p:d.t"), now)

        assert status.to_cells() == [False, "2024-01-15T10:30:00+00:00", "Not found: Table p:d.t"]

    def test_failure_message_never_empty(self, now):
        status = RowStatus.from_error(RuntimeError(), now)

        assert not status.success
        assert status.error_message == "RuntimeError"

    def test_default_timestamp_is_aware(self):
        assert RowStatus.from_error(None).timestamp.tzinfo is not None


@pytest.mark.parametrize("value,expected", [
    ("TRUE", True), ("true", True), ("T", True), ("1", True), (True, True),
    ("True", True), (" true ", True),
    ("FALSE", False), ("0", False), ("", False), (None, False), ("yes", False), (False, False),
    ("tRuE", False), ("tRUE", False),
])
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected
