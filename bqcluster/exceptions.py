"""
Error types raised by the clustering job.
"""


class ClusteringError(Exception):
    """Base class for all clustering job errors."""


class ConfigError(ClusteringError):
    """Environment or service account configuration is missing or malformed."""


class ClientInitError(ClusteringError):
    """A BigQuery client could not be constructed for a project."""

    def __init__(self, project_id: str, message: str):
        super().__init__(f"Unable to create BigQuery client for project {project_id}: {message}")
        self.project_id = project_id


class UpdateError(ClusteringError):
    """Setting clustering columns on a table failed."""

    def __init__(self, table_name: str, message: str):
        super().__init__(message)
        self.table_name = table_name


class SheetReadError(ClusteringError):
    """The configuration range could not be read from the spreadsheet."""


class WriteStatusError(ClusteringError):
    """A status row could not be written back to the spreadsheet."""

    def __init__(self, row_no: int, message: str):
        super().__init__(f"Error updating row {row_no}: {message}")
        self.row_no = row_no
