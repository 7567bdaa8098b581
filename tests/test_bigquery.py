"""
Tests for the BigQuery table-update client and the client cache.
"""
import pytest
import requests
from unittest.mock import Mock, patch

from google.api_core.exceptions import BadRequest, Forbidden, NotFound, PreconditionFailed
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError

from bqcluster.bigquery import ClientCache, TableUpdateClient, split_table_name, format_table_id
from bqcluster.exceptions import ClientInitError, UpdateError


class TestTableUpdateClient:
    """Test clustering updates against a mocked BigQuery client."""

    @pytest.fixture
    def table(self):
        return Mock(etag="etag-1", clustering_fields=None, full_table_id="p:d.t")

    @pytest.fixture
    def bq_client(self, table):
        client = Mock()
        client.get_table.return_value = table
        client.update_table.side_effect = lambda t, fields: t
        return client

    @pytest.fixture
    def update_client(self, bq_client):
        return TableUpdateClient("p", client=bq_client, max_retries=3, retry_delay=0)

    def test_set_clustering(self, update_client, bq_client, table):
        result = update_client.set_clustering("d", "t", ["a", "b"])

        table_ref = bq_client.get_table.call_args[0][0]
        assert (table_ref.project, table_ref.dataset_id, table_ref.table_id) == ("p", "d", "t")
        bq_client.update_table.assert_called_once_with(table, ["clustering_fields"])
        assert result.clustering_fields == ["a", "b"]

    def test_conflict_refetches_and_retries(self, update_client, bq_client, table):
        bq_client.update_table.side_effect = [PreconditionFailed("etag mismatch"), table]

        with patch("time.sleep") as mock_sleep:
            update_client.set_clustering("d", "t", ["a"])

        assert bq_client.get_table.call_count == 2
        assert bq_client.update_table.call_count == 2
        mock_sleep.assert_called_once()

    def test_conflict_retries_are_bounded(self, update_client, bq_client):
        bq_client.update_table.side_effect = PreconditionFailed("etag mismatch")

        with patch("time.sleep"):
            with pytest.raises(UpdateError, match="etag mismatch"):
                update_client.set_clustering("d", "t", ["a"])

        assert bq_client.update_table.call_count == 3

    @pytest.mark.parametrize("error", [
        NotFound("Not found: Table p:d.t"),
        Forbidden("Access Denied: Table p:d.t"),
    ])
    def test_fetch_errors_surface_verbatim(self, update_client, bq_client, error):
        bq_client.get_table.side_effect = error

        with pytest.raises(UpdateError) as exc_info:
            update_client.set_clustering("d", "t", ["a"])

        assert str(exc_info.value) == error.message
        assert exc_info.value.table_name == "p.d.t"
        bq_client.update_table.assert_not_called()

    def test_invalid_column_is_not_retried(self, update_client, bq_client):
        bq_client.update_table.side_effect = BadRequest("The field specified for clustering cannot be found: zz")

        with pytest.raises(UpdateError, match="cannot be found"):
            update_client.set_clustering("d", "t", ["zz"])

        assert bq_client.update_table.call_count == 1

    @pytest.mark.parametrize("error", [
        RefreshError("invalid_grant: account disabled"),
        TransportError("Failed to refresh access token"),
        requests.exceptions.ConnectionError("Connection aborted"),
    ])
    def test_auth_and_transport_errors_become_update_errors(self, update_client, bq_client, error):
        bq_client.get_table.side_effect = error

        with pytest.raises(UpdateError) as exc_info:
            update_client.set_clustering("d", "t", ["a"])

        assert str(error) in str(exc_info.value)
        assert exc_info.value.table_name == "p.d.t"
        bq_client.update_table.assert_not_called()

    def test_rejects_empty_and_oversized_specs(self, update_client, bq_client):
        with pytest.raises(UpdateError, match="No clustering columns"):
            update_client.set_clustering("d", "t", [])
        with pytest.raises(UpdateError, match="At most 4"):
            update_client.set_clustering("d", "t", ["a", "b", "c", "d", "e"])

        bq_client.get_table.assert_not_called()

    def test_rejects_invalid_dataset_name(self, update_client, bq_client):
        with pytest.raises(UpdateError, match="Invalid dataset or table name"):
            update_client.set_clustering("bad-dataset!", "t", ["a"])

        bq_client.get_table.assert_not_called()

    def test_close_is_idempotent(self, update_client, bq_client):
        update_client.close()
        update_client.close()

        bq_client.close.assert_called_once()
        assert update_client.closed

    def test_client_init_error(self):
        with patch("bqcluster.bigquery.base.bigquery.Client", side_effect=DefaultCredentialsError("no credentials")):
            with pytest.raises(ClientInitError, match="no credentials") as exc_info:
                TableUpdateClient("p").connect()

        assert exc_info.value.project_id == "p"


class TestClientCache:
    """Test the bounded per-project client cache."""

    @pytest.fixture
    def created(self):
        return {}

    @pytest.fixture
    def factory(self, created):
        def create(project_id):
            client = Mock(name=f"client-{project_id}")
            created.setdefault(project_id, []).append(client)
            return client
        return Mock(side_effect=create)

    @pytest.fixture
    def cache(self, factory):
        return ClientCache(factory, max_clients=5)

    def test_hit_returns_same_instance(self, cache, factory):
        first = cache.get_or_create("p1")
        second = cache.get_or_create("p1")

        assert first is second
        factory.assert_called_once_with("p1")

    def test_bound_is_never_exceeded(self, cache, created):
        for i in range(6):
            cache.get_or_create(f"p{i}")

        assert len(cache) == 5
        assert "p0" not in cache
        created["p0"][0].close.assert_called_once()
        for i in range(1, 6):
            created[f"p{i}"][0].close.assert_not_called()

    def test_evicts_least_recently_used(self, factory, created):
        cache = ClientCache(factory, max_clients=3)
        for project in ["a", "b", "c"]:
            cache.get_or_create(project)

        cache.get_or_create("a")  # b is now the least recently used
        cache.get_or_create("d")

        assert cache.projects() == ["c", "a", "d"]
        created["b"][0].close.assert_called_once()
        created["a"][0].close.assert_not_called()

    def test_evicted_project_is_recreated(self, factory, created):
        cache = ClientCache(factory, max_clients=1)
        cache.get_or_create("a")
        cache.get_or_create("b")
        cache.get_or_create("a")

        assert len(created["a"]) == 2
        created["a"][0].close.assert_called_once()
        created["b"][0].close.assert_called_once()

    def test_factory_error_becomes_client_init_error(self):
        cache = ClientCache(Mock(side_effect=RuntimeError("boom")))

        with pytest.raises(ClientInitError, match="boom"):
            cache.get_or_create("p")
        assert len(cache) == 0

    def test_client_init_error_passes_through(self):
        error = ClientInitError("p", "no credentials")
        cache = ClientCache(Mock(side_effect=error))

        with pytest.raises(ClientInitError) as exc_info:
            cache.get_or_create("p")
        assert exc_info.value is error

    def test_close_all(self, cache, created):
        cache.get_or_create("a")
        cache.get_or_create("b")

        cache.close_all()

        assert len(cache) == 0
        created["a"][0].close.assert_called_once()
        created["b"][0].close.assert_called_once()

    def test_context_manager_closes(self, factory, created):
        with ClientCache(factory) as cache:
            cache.get_or_create("a")

        created["a"][0].close.assert_called_once()

    def test_invalid_bound(self, factory):
        with pytest.raises(ValueError):
            ClientCache(factory, max_clients=0)


def test_split_table_name():
    assert split_table_name(" p.d.t ") == ("p", "d", "t")
    with pytest.raises(ValueError):
        split_table_name("d.t")


def test_format_table_id():
    assert format_table_id("p", "d", "t") == "p.d.t"
