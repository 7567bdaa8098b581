"""
Clustering job: apply the clustering columns listed in the configuration sheet.

Each row of the configured range names a table and up to four clustering
columns. Rows already flagged as clustered are skipped; for every other row
the table's clustering metadata is updated and the outcome is written back
to the row.
"""
import click
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger

from config.settings import (
    ENVIRONMENTS,
    SPREADSHEET_ID,
    SHEET_RANGE,
    SHEETS_SCOPES,
    MAX_CACHED_CLIENTS,
    MAX_CLUSTER_COLUMNS,
)
from bqcluster.bigquery import ClientCache, TableUpdateClient
from bqcluster.credentials import get_environment, load_service_account, validate_environment
from bqcluster.exceptions import (
    ClientInitError,
    ConfigError,
    SheetReadError,
    UpdateError,
    WriteStatusError,
)
from bqcluster.models import (
    ClusterSpec,
    RowStatus,
    SheetLayout,
    SheetRange,
    TableIdentifier,
    cell,
    parse_bool,
)
from bqcluster.sheets import SpreadsheetClient
from bqcluster.shared_logging import setup_logging, log_exception

ABORT = 'abort'
SKIP = 'skip'


def group_rows(rows: List[List[Any]], layout: SheetLayout = None) -> Dict[TableIdentifier, ClusterSpec]:
    """
    Group configuration rows into clustering specs keyed by table.

    Rows flagged as already clustered and rows without a table name are
    left out. Sentinel and blank column cells are dropped, the remaining
    columns keep their sheet order.

    Args:
        rows: Cell values as returned by the Sheets API
        layout: Column positions, defaults to the standard sheet layout

    Returns:
        Ordered mapping of table identifier to clustering spec
    """
    layout = layout or SheetLayout()
    grouped: Dict[TableIdentifier, ClusterSpec] = {}

    for row_index, row in enumerate(rows):
        if parse_bool(row[layout.clustered_flag_index] if layout.clustered_flag_index < len(row) else None):
            continue

        table_name = cell(row, layout.table_name_index)
        if not table_name:
            if any(cell(row, i) for i in range(len(row))):
                logger.warning(f"Row {row_index} has no table name, skipping")
            continue

        columns = []
        for index in layout.cluster_column_indices[:MAX_CLUSTER_COLUMNS]:
            value = cell(row, index)
            if value and value != layout.none_sentinel:
                columns.append(value)

        grouped[TableIdentifier(row_index, table_name)] = ClusterSpec(tuple(columns))

    return grouped


class ClusteringJob:
    """Orchestrate one clustering run."""

    def __init__(
            self,
            env: str,
            sheet_client: SpreadsheetClient,
            client_cache: ClientCache,
            spreadsheet_id: str = SPREADSHEET_ID,
            sheet_range: str = SHEET_RANGE,
            layout: Optional[SheetLayout] = None,
            on_client_error: str = ABORT,
            dry_run: bool = False
    ):
        if on_client_error not in (ABORT, SKIP):
            raise ValueError(f"on_client_error must be {ABORT!r} or {SKIP!r}, got {on_client_error!r}")

        self.env = env
        self.sheet_client = sheet_client
        self.client_cache = client_cache
        self.spreadsheet_id = spreadsheet_id
        try:
            self.sheet_range = SheetRange.parse(sheet_range)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        # Status cells are written to the client's worksheet, so rows must come from it too
        worksheet = self.sheet_range.worksheet
        if worksheet and worksheet != sheet_client.worksheet_id:
            raise ConfigError(
                f"Range {sheet_range!r} is on worksheet {worksheet!r}, "
                f"expected {sheet_client.worksheet_id!r}"
            )
        self.layout = layout or SheetLayout()
        self.on_client_error = on_client_error
        self.dry_run = dry_run
        self.table_clusters: Dict[TableIdentifier, ClusterSpec] = {}

    @classmethod
    def from_environment(
            cls,
            env: str,
            credentials_root: Optional[Path] = None,
            max_clients: int = MAX_CACHED_CLIENTS,
            **kwargs
    ) -> 'ClusteringJob':
        """
        Build a job wired to the real Google services.

        Args:
            env: Cluster environment selecting the service account
            credentials_root: Directory holding the credentials folder
            max_clients: Maximum number of BigQuery clients kept open
            **kwargs: Passed through to the constructor

        Raises:
            ConfigError: If the service account cannot be loaded
        """
        service_account = load_service_account(env, credentials_root)
        bq_credentials = service_account.to_google_credentials()
        sheet_credentials = service_account.to_google_credentials(scopes=SHEETS_SCOPES)

        def create_client(project_id: str) -> TableUpdateClient:
            return TableUpdateClient(project_id, credentials=bq_credentials).connect()

        return cls(
            env=env,
            sheet_client=SpreadsheetClient(credentials=sheet_credentials),
            client_cache=ClientCache(create_client, max_clients=max_clients),
            **kwargs
        )

    def run(self) -> Dict[str, Any]:
        """
        Run the clustering job.

        Returns:
            Results with per-table outcomes and counts

        Raises:
            SheetReadError: If the configuration range cannot be read
            ClientInitError: If a client cannot be built and on_client_error is abort
        """
        results = {
            'env': self.env,
            'start_time': datetime.now(),
            'dry_run': self.dry_run,
            'tables': {},
            'succeeded': 0,
            'failed': 0,
            'skipped': 0,
            'status_write_failures': 0,
        }

        range_a1 = self.sheet_range.a1(self.sheet_client.worksheet_id)
        logger.info(f"Starting clustering run ({self.env}) for {self.spreadsheet_id} {range_a1}")

        try:
            rows = self.sheet_client.read_range(self.spreadsheet_id, range_a1)
            self.table_clusters = group_rows(rows, self.layout)
            results['skipped'] = len(rows) - len(self.table_clusters)
            logger.info(f"{len(self.table_clusters)} of {len(rows)} rows need clustering")

            for identifier, spec in self.table_clusters.items():
                if self.dry_run:
                    logger.info(f"[dry run] {identifier.table_name} would be clustered by {', '.join(spec.columns)}")
                    results['tables'][self._row_number(identifier)] = {'table': identifier.table_name, 'planned': spec.as_list()}
                    continue

                error = self._process(identifier, spec, results)
                if isinstance(error, ClientInitError) and self.on_client_error == ABORT:
                    raise error
        finally:
            self.client_cache.close_all()
            results['end_time'] = datetime.now()

        logger.info(
            f"Clustering run finished: {results['succeeded']} succeeded, {results['failed']} failed, "
            f"{results['skipped']} skipped, {results['status_write_failures']} status writes failed"
        )
        return results

    def _process(self, identifier: TableIdentifier, spec: ClusterSpec, results: Dict[str, Any]) -> Optional[Exception]:
        error = None
        try:
            self.update_table(identifier, spec)
        except (UpdateError, ClientInitError) as e:
            error = e
            logger.error(f"Clustering failed for {identifier.table_name}: {e}")
        except Exception as e:
            error = e
            log_exception(f"Unexpected error clustering {identifier.table_name}", table=identifier.table_name)

        status = RowStatus.from_error(error)
        results['tables'][self._row_number(identifier)] = {
            'table': identifier.table_name,
            'columns': spec.as_list(),
            'success': status.success,
            'error': status.error_message,
        }
        results['succeeded' if status.success else 'failed'] += 1

        if not self.write_status(identifier, status):
            results['status_write_failures'] += 1
        return error

    def update_table(self, identifier: TableIdentifier, spec: ClusterSpec) -> None:
        """
        Apply one clustering spec.

        Raises:
            UpdateError: If the row is invalid or BigQuery rejects the update
            ClientInitError: If no client can be built for the table's project
        """
        try:
            project_id, dataset_id, table_id = identifier.split()
        except ValueError as e:
            raise UpdateError(identifier.table_name, str(e)) from e
        if not spec.columns:
            raise UpdateError(identifier.table_name, "No clustering columns specified")

        client = self.client_cache.get_or_create(project_id)

        start = time.perf_counter()
        client.set_clustering(dataset_id, table_id, spec.as_list())
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"{identifier.table_name} column {', '.join(spec.columns)} has been clustered at "
            f"{datetime.now().isoformat()}. Clustering was done for {elapsed_ms:.0f}ms"
        )

    def write_status(self, identifier: TableIdentifier, status: RowStatus) -> bool:
        """
        Write a row's status back to the sheet.

        Returns:
            True if the write succeeded, failures are logged and not retried
        """
        row_no = self._row_number(identifier)
        try:
            self.sheet_client.write_row_status(self.spreadsheet_id, row_no, status)
        except WriteStatusError as e:
            logger.error(str(e))
            return False
        except Exception:
            log_exception(f"Unexpected error updating row {row_no}", row=row_no)
            return False
        return True

    def _row_number(self, identifier: TableIdentifier) -> int:
        return self.sheet_range.sheet_row(identifier.row_index)


@click.command()
@click.option('--env', type=click.Choice(ENVIRONMENTS), default=None,
              help='Cluster environment, defaults to $CLUSTERENV or staging')
@click.option('--spreadsheet-id', default=SPREADSHEET_ID, show_default=True,
              help='Spreadsheet holding the clustering configuration')
@click.option('--range', 'sheet_range', default=SHEET_RANGE, show_default=True,
              help='A1 range of the configuration rows')
@click.option('--max-clients', type=click.IntRange(min=1), default=MAX_CACHED_CLIENTS, show_default=True,
              help='Maximum number of BigQuery clients kept open')
@click.option('--on-client-error', type=click.Choice([ABORT, SKIP]), default=ABORT, show_default=True,
              help='Abort the run or skip the table when a BigQuery client cannot be created')
@click.option('--dry-run', is_flag=True, help='Log planned updates without applying them')
@click.option('--json-logs', is_flag=True, help='Force JSON log output')
@click.option('--log-dir', default=None, help='Directory for the fatal/error/info log files')
def main(env, spreadsheet_id, sheet_range, max_clients, on_client_error, dry_run, json_logs, log_dir):
    """Run the BigQuery clustering job."""
    try:
        env = validate_environment(env) if env else get_environment()
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_logging(env, enable_json=json_logs or None, log_dir=log_dir)

    try:
        job = ClusteringJob.from_environment(
            env,
            max_clients=max_clients,
            spreadsheet_id=spreadsheet_id,
            sheet_range=sheet_range,
            on_client_error=on_client_error,
            dry_run=dry_run,
        )
        job.run()
    except (ConfigError, SheetReadError, ClientInitError) as e:
        logger.critical(f"Clustering run aborted: {e}")
        sys.exit(1)
    except Exception:
        log_exception("Fatal error in clustering job")
        sys.exit(1)

    click.echo("Process DONE.")


if __name__ == '__main__':
    main()
