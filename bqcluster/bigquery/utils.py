"""
BigQuery utilities and decorators.
"""
import re
import time
from functools import wraps
from typing import Callable, TypeVar, Any, Tuple
from google.api_core.exceptions import PreconditionFailed
from loguru import logger

T = TypeVar('T')

# Datasets and tables: letters, digits and underscores. Table names may also use
# dashes and spaces but clustering is only configured on plain names here.
_DATASET_PATTERN = re.compile(r'^[A-Za-z0-9_]{1,1024}$')
_TABLE_PATTERN = re.compile(r'^[\w\- ]{1,1024}$')


def retry_on_conflict(max_retries: int = 3, delay: float = 1.0) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to retry a read-modify-write BigQuery call when its ETag is stale.

    The decorated function must refetch the resource on every call, so a
    retry works against fresh metadata.

    Args:
        max_retries: Maximum number of attempts
        delay: Initial delay between attempts in seconds, grows linearly

    Returns:
        Decorated function with retry logic
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except PreconditionFailed as e:
                    if attempt == max_retries - 1:
                        logger.error(f"Conflicting update persisted after {max_retries} attempts: {e}")
                        raise
                    logger.warning(f"Attempt {attempt + 1} hit a conflicting update: {e}. Refetching...")
                    time.sleep(delay * (attempt + 1))
            raise RuntimeError("Retry logic error")
        return wrapper
    return decorator


def split_table_name(table_name: str) -> Tuple[str, str, str]:
    """
    Split a fully-qualified table name.

    Args:
        table_name: Name of the form project.dataset.table

    Returns:
        Tuple of (project_id, dataset_id, table_id)

    Raises:
        ValueError: If the name does not have exactly three non-empty parts
    """
    parts = table_name.strip().split('.')
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Invalid table name {table_name!r}: expected project.dataset.table")
    return parts[0], parts[1], parts[2]


def validate_dataset_name(dataset_id: str) -> bool:
    return bool(_DATASET_PATTERN.match(dataset_id))


def validate_table_name(table_id: str) -> bool:
    return bool(_TABLE_PATTERN.match(table_id))


def format_table_id(project_id: str, dataset_id: str, table_id: str) -> str:
    """
    Format full table ID for BigQuery.

    Args:
        project_id: GCP project ID
        dataset_id: BigQuery dataset ID
        table_id: Table name

    Returns:
        Formatted table ID
    """
    return f"{project_id}.{dataset_id}.{table_id}"
