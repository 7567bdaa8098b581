"""
BigQuery utilities module.

Per-project clients that update clustering metadata, and the bounded cache
that keeps them open across a run.
"""

from .base import BigQueryBase
from .clustering import TableUpdateClient
from .client_cache import ClientCache
from .utils import retry_on_conflict, split_table_name, format_table_id

__all__ = [
    'BigQueryBase',
    'TableUpdateClient',
    'ClientCache',

    # Utilities
    'retry_on_conflict',
    'split_table_name',
    'format_table_id',
]
