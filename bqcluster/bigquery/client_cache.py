"""
Bounded cache of per-project BigQuery clients.
"""
from collections import OrderedDict
from typing import Callable, List

from loguru import logger

from config.settings import MAX_CACHED_CLIENTS
from bqcluster.exceptions import ClientInitError
from .clustering import TableUpdateClient

ClientFactory = Callable[[str], TableUpdateClient]


class ClientCache:
    """
    Keeps at most ``max_clients`` open clients, evicting the least recently used.

    Every lookup, hit or miss, makes the project the most recently used one.
    Evicted clients are closed before they are dropped.
    """

    def __init__(self, factory: ClientFactory, max_clients: int = MAX_CACHED_CLIENTS):
        if max_clients < 1:
            raise ValueError(f"max_clients must be at least 1, got {max_clients}")
        self._factory = factory
        self.max_clients = max_clients
        self._clients: 'OrderedDict[str, TableUpdateClient]' = OrderedDict()

    def get_or_create(self, project_id: str) -> TableUpdateClient:
        """
        Return the client for a project, creating it if needed.

        Args:
            project_id: GCP project ID

        Returns:
            Open client for the project

        Raises:
            ClientInitError: If the factory cannot build a client
        """
        client = self._clients.get(project_id)
        if client is not None:
            self._clients.move_to_end(project_id)
            return client

        if len(self._clients) >= self.max_clients:
            self._evict()

        try:
            client = self._factory(project_id)
        except ClientInitError:
            raise
        except Exception as e:
            raise ClientInitError(project_id, str(e)) from e

        self._clients[project_id] = client
        logger.debug(f"Cached BigQuery client for {project_id} ({len(self._clients)}/{self.max_clients})")
        return client

    def _evict(self) -> None:
        project_id, client = self._clients.popitem(last=False)
        logger.info(f"Evicting BigQuery client for {project_id}")
        client.close()

    def close_all(self) -> None:
        """Close and drop every cached client."""
        while self._clients:
            project_id, client = self._clients.popitem(last=False)
            try:
                client.close()
            except Exception as e:
                logger.warning(f"Failed to close BigQuery client for {project_id}: {e}")

    def projects(self) -> List[str]:
        """Cached project IDs, least recently used first."""
        return list(self._clients)

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def __enter__(self) -> 'ClientCache':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()
