"""
Base BigQuery client with core functionality.
"""
from typing import Optional
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery
from google.oauth2 import service_account
from loguru import logger

from bqcluster.exceptions import ClientInitError


class BigQueryBase:
    """Base class for BigQuery operations scoped to one project."""

    def __init__(
            self,
            project_id: str,
            credentials: Optional[service_account.Credentials] = None,
            client: Optional[bigquery.Client] = None
    ):
        """
        Initialize BigQuery client.

        Args:
            project_id: GCP project ID
            credentials: Service account credentials, None uses application defaults
            client: Pre-built client, mainly for tests
        """
        self.project_id = project_id
        self._credentials = credentials
        self._client: Optional[bigquery.Client] = client
        self._closed = False

    @property
    def client(self) -> bigquery.Client:
        """Get or create BigQuery client."""
        if self._closed:
            raise ClientInitError(self.project_id, "client has been closed")
        if self._client is None:
            try:
                self._client = bigquery.Client(project=self.project_id, credentials=self._credentials)
            except (GoogleAuthError, GoogleAPIError, ValueError) as e:
                raise ClientInitError(self.project_id, str(e)) from e
            logger.info(f"Initialized BigQuery client for project: {self.project_id}")
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self) -> 'BigQueryBase':
        """Create the underlying client now instead of on first use."""
        _ = self.client
        return self

    def get_table_reference(self, dataset_id: str, table_id: str) -> bigquery.TableReference:
        """Get table reference."""
        dataset_ref = bigquery.DatasetReference(self.project_id, dataset_id)
        return dataset_ref.table(table_id)

    def close(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info(f"Closed BigQuery client for project: {self.project_id}")
