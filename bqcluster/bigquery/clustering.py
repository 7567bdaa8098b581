"""
Clustering metadata updates for existing BigQuery tables.
"""
from typing import List, Sequence
import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery
from loguru import logger

from config.settings import MAX_CLUSTER_COLUMNS, UPDATE_MAX_RETRIES, UPDATE_RETRY_DELAY
from bqcluster.exceptions import UpdateError
from .base import BigQueryBase
from .utils import retry_on_conflict, format_table_id, validate_dataset_name, validate_table_name


class TableUpdateClient(BigQueryBase):
    """Sets clustering columns on tables of a single project."""

    def __init__(
            self,
            project_id: str,
            credentials=None,
            client=None,
            max_retries: int = UPDATE_MAX_RETRIES,
            retry_delay: float = UPDATE_RETRY_DELAY
    ):
        super().__init__(project_id, credentials=credentials, client=client)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    def set_clustering(self, dataset_id: str, table_id: str, columns: Sequence[str]) -> bigquery.Table:
        """
        Replace the clustering columns of a table.

        The table is fetched first so the update carries its ETag; BigQuery
        rejects the update with 412 when the table changed in between, in
        which case the table is refetched and the update retried.

        Args:
            dataset_id: BigQuery dataset ID
            table_id: Table name
            columns: Clustering columns, highest precedence first

        Returns:
            The updated table

        Raises:
            UpdateError: If the columns are invalid or BigQuery rejects the update
        """
        table_name = format_table_id(self.project_id, dataset_id, table_id)
        if not validate_dataset_name(dataset_id) or not validate_table_name(table_id):
            raise UpdateError(table_name, f"Invalid dataset or table name: {dataset_id}.{table_id}")

        fields = list(columns)
        if not fields:
            raise UpdateError(table_name, "No clustering columns specified")
        if len(fields) > MAX_CLUSTER_COLUMNS:
            raise UpdateError(
                table_name,
                f"At most {MAX_CLUSTER_COLUMNS} clustering columns are allowed, got {len(fields)}"
            )

        apply = retry_on_conflict(self.max_retries, self.retry_delay)(self._apply_clustering)
        try:
            return apply(dataset_id, table_id, fields)
        except (GoogleAPIError, GoogleAuthError, requests.exceptions.RequestException) as e:
            raise UpdateError(table_name, getattr(e, 'message', None) or str(e)) from e

    def _apply_clustering(self, dataset_id: str, table_id: str, fields: List[str]) -> bigquery.Table:
        table_ref = self.get_table_reference(dataset_id, table_id)
        table = self.client.get_table(table_ref)
        logger.debug(
            f"Fetched {table.full_table_id} (etag={table.etag}), "
            f"current clustering: {table.clustering_fields}"
        )

        table.clustering_fields = fields
        return self.client.update_table(table, ["clustering_fields"])
