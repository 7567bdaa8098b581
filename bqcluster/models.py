"""
Data models shared by the sheet reader, the BigQuery updater and the job.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from bqcluster.bigquery.utils import split_table_name
from config.settings import (
    TABLE_NAME_INDEX,
    CLUSTER_COLUMN_INDICES,
    CLUSTERED_FLAG_INDEX,
    NONE_SENTINEL,
)

_A1_RANGE = re.compile(r'^([A-Za-z]+)(\d*)(?::([A-Za-z]+)(\d*))?$')

# Spellings accepted as true in the clustered flag column
_TRUE_VALUES = {'1', 't', 'T', 'TRUE', 'true', 'True'}


@dataclass(frozen=True)
class TableIdentifier:
    """A table named on one row of the configuration range."""
    row_index: int  # zero-based within the configured range
    table_name: str  # project.dataset.table

    def split(self) -> Tuple[str, str, str]:
        """
        Split the table name into its parts.

        Returns:
            Tuple of (project_id, dataset_id, table_id)

        Raises:
            ValueError: If the name is not of the form project.dataset.table
        """
        return split_table_name(self.table_name)

    def __str__(self) -> str:
        return f"{self.row_index}. {self.table_name}"


@dataclass(frozen=True)
class ClusterSpec:
    """Ordered clustering columns for one table, highest precedence first."""
    columns: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.columns)

    def as_list(self) -> List[str]:
        return list(self.columns)


@dataclass(frozen=True)
class RowStatus:
    """Outcome of one table update, written back to its source row."""
    success: bool
    timestamp: datetime
    error_message: str = ''

    @classmethod
    def from_error(cls, error: Optional[Exception], now: Optional[datetime] = None) -> 'RowStatus':
        """Build a status from the error raised by the update, or None on success."""
        timestamp = now or datetime.now().astimezone()
        if error is None:
            return cls(success=True, timestamp=timestamp)
        return cls(success=False, timestamp=timestamp, error_message=str(error) or type(error).__name__)

    def to_cells(self) -> list:
        """Cell values in sheet order: success flag, timestamp, error message."""
        return [self.success, self.timestamp.isoformat(), self.error_message]


@dataclass(frozen=True)
class SheetRange:
    """An A1 range such as B29:H29, with the worksheet prefix if one was given."""
    start_column: str
    start_row: int
    end_column: Optional[str] = None
    end_row: Optional[int] = None
    worksheet: Optional[str] = None

    @classmethod
    def parse(cls, range_a1: str) -> 'SheetRange':
        """
        Parse an A1 range with an optional worksheet prefix.

        A range without a start row number (e.g. B:H) starts at row 1.

        Args:
            range_a1: Range such as "B29:H29" or "Sheet1!B29:H40"

        Returns:
            Parsed SheetRange

        Raises:
            ValueError: If the range is not valid A1 notation
        """
        worksheet, _, text = range_a1.rpartition('!')
        worksheet = worksheet.strip().strip("'") or None
        match = _A1_RANGE.match(text.strip())
        if not match:
            raise ValueError(f"Invalid A1 range: {range_a1!r}")

        start_col, start_row, end_col, end_row = match.groups()
        return cls(
            start_column=start_col.upper(),
            start_row=int(start_row) if start_row else 1,
            end_column=end_col.upper() if end_col else None,
            end_row=int(end_row) if end_row else None,
            worksheet=worksheet,
        )

    def sheet_row(self, row_index: int) -> int:
        """Sheet row number of the zero-based row index inside this range."""
        return self.start_row + row_index

    def a1(self, worksheet: Optional[str] = None) -> str:
        text = f"{self.start_column}{self.start_row}"
        if self.end_column:
            text += f":{self.end_column}{self.end_row or ''}"
        return f"{worksheet}!{text}" if worksheet else text


@dataclass(frozen=True)
class SheetLayout:
    """Positions of the configuration columns inside the range."""
    table_name_index: int = TABLE_NAME_INDEX
    cluster_column_indices: Tuple[int, ...] = field(default=CLUSTER_COLUMN_INDICES)
    clustered_flag_index: int = CLUSTERED_FLAG_INDEX
    none_sentinel: str = NONE_SENTINEL


def parse_bool(value) -> bool:
    """Interpret a sheet cell as a boolean; anything unrecognised is False."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip() in _TRUE_VALUES


def cell(row: list, index: int) -> str:
    """Return a cell as stripped text. The Sheets API drops trailing empty cells."""
    if index >= len(row) or row[index] is None:
        return ''
    return str(row[index]).strip()
