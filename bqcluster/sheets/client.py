"""
Google Sheets access for the clustering configuration range.
"""
from typing import Any, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.auth.exceptions import GoogleAuthError
from loguru import logger

from config.settings import WORKSHEET_ID, STATUS_COLUMN
from bqcluster.exceptions import SheetReadError, WriteStatusError
from bqcluster.models import RowStatus


class SpreadsheetClient:
    """Reads the configuration range and writes per-row status cells."""

    def __init__(
            self,
            credentials=None,
            service: Optional[Any] = None,
            worksheet_id: str = WORKSHEET_ID,
            status_column: str = STATUS_COLUMN
    ):
        """
        Initialize the Sheets client.

        Args:
            credentials: Service account credentials with the spreadsheets scope
            service: Pre-built Sheets v4 service, mainly for tests
            worksheet_id: Worksheet holding the configuration range
            status_column: Column where the status cells of a row start
        """
        self._credentials = credentials
        self._service = service
        self.worksheet_id = worksheet_id
        self.status_column = status_column

    @property
    def service(self):
        """Get or create the Sheets v4 service."""
        if self._service is None:
            self._service = build("sheets", "v4", credentials=self._credentials, cache_discovery=False)
            logger.info("Initialized Google Sheets service")
        return self._service

    def read_range(self, spreadsheet_id: str, range_a1: str) -> List[List[Any]]:
        """
        Read a rectangular range of values.

        Args:
            spreadsheet_id: Spreadsheet ID
            range_a1: Range in A1 notation, qualified with the worksheet

        Returns:
            Rows of cell values, empty when the range holds no data

        Raises:
            SheetReadError: If the Sheets API call fails
        """
        try:
            result = self.service.spreadsheets().values().get(
                spreadsheetId=spreadsheet_id,
                range=range_a1,
            ).execute()
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            raise SheetReadError(f"Unable to retrieve data from sheet {range_a1}: {e}") from e

        values = result.get("values", [])
        if not values:
            logger.warning(f"No data found in {range_a1}.")
        return values

    def status_cell(self, row_no: int) -> str:
        return f"{self.worksheet_id}!{self.status_column}{row_no}"

    def write_row_status(self, spreadsheet_id: str, row_no: int, status: RowStatus) -> dict:
        """
        Write the outcome of a table update to its source row.

        Args:
            spreadsheet_id: Spreadsheet ID
            row_no: Sheet row number (1-based)
            status: Outcome to write

        Returns:
            The Sheets API update response

        Raises:
            WriteStatusError: If the Sheets API call fails
        """
        cell = self.status_cell(row_no)
        try:
            return self.service.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=cell,
                valueInputOption="RAW",
                body={"values": [status.to_cells()]},
            ).execute()
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            raise WriteStatusError(row_no, str(e)) from e
