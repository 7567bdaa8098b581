"""
Shared logging setup for the clustering job.

Logs go to stderr plus three severity-segmented files per environment
(fatal, error and info), in structured JSON that Google Cloud Logging
understands or in a human-readable format for local runs.
"""
import sys
import json
import traceback
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from loguru import logger

from config.settings import LOG_DIR, LOG_BASE_NAME, LOG_SEGMENTS, LOGGING_CONFIG, APP_NAME

_SERIALIZED_KEY = "serialized"


def create_structured_log(record: Dict[str, Any]) -> str:
    """
    Create a structured log entry compatible with Google Cloud Logging.

    Args:
        record: Loguru record dictionary

    Returns:
        JSON string representation of the log entry
    """
    log_entry = {
        "timestamp": record["time"].isoformat(),
        "severity": record["level"].name,
        "message": record["message"],
        "sourceLocation": {
            "file": record["file"].name,
            "line": record["line"],
            "function": record["function"]
        }
    }

    if record["exception"] is not None:
        exc_type, exc_value, exc_traceback = record["exception"]
        log_entry["exception"] = {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc_value),
            "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
        }

    extra = {k: v for k, v in record["extra"].items() if k != _SERIALIZED_KEY}
    if extra:
        log_entry["extra"] = extra

    log_entry["module"] = record["name"]

    return json.dumps(log_entry, default=str, ensure_ascii=False)


def _json_format(record: Dict[str, Any]) -> str:
    record["extra"][_SERIALIZED_KEY] = create_structured_log(record)
    return "{extra[" + _SERIALIZED_KEY + "]}\n"


def log_file_path(env: str, segment: str, log_dir: Optional[str] = None) -> Path:
    """
    Build the path of one severity-segmented log file.

    Args:
        env: Cluster environment (production or staging)
        segment: One of the keys of LOG_SEGMENTS (fatal, error, info)
        log_dir: Directory override, defaults to LOG_DIR

    Returns:
        Path like <log_dir>/<base>.<env>.<segment>.log
    """
    return Path(log_dir or LOG_DIR) / f"{LOG_BASE_NAME}.{env}.{segment}.log"


def setup_logging(
    env: str,
    level: str = LOGGING_CONFIG["level"],
    enable_json: bool = None,
    log_dir: Optional[str] = None,
    rotation: str = LOGGING_CONFIG["rotation"],
    retention: str = LOGGING_CONFIG["retention"],
    compression: str = LOGGING_CONFIG["compression"],
    app_name: str = APP_NAME
) -> List[Path]:
    """
    Configure logging for the clustering job.

    Args:
        env: Cluster environment, part of every log file name
        level: Console logging level
        enable_json: Enable JSON logging format. If None, auto-detect based on environment
        log_dir: Directory for the segmented log files
        rotation: Log file rotation policy
        retention: Log file retention policy
        compression: Compression applied to rotated files
        app_name: Name of the application for logging context

    Returns:
        Paths of the log files that were configured
    """
    logger.remove()

    if enable_json is None:
        enable_json = is_cloud_run()

    logger.configure(extra={"app_name": app_name, "env": env})

    if enable_json:
        logger.add(sys.stderr, format=_json_format, level=level, backtrace=True, diagnose=False)
    else:
        format_str = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level>"
        format_str += f" | <cyan>{app_name}</cyan>"
        format_str += " | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
        logger.add(sys.stderr, format=format_str, level=level, backtrace=True, diagnose=False)

    log_files = []
    for segment, segment_level in LOG_SEGMENTS.items():
        path = log_file_path(env, segment, log_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(path),
            format=_json_format if enable_json else LOGGING_CONFIG["format"],
            level=segment_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=False
        )
        log_files.append(path)

    logger.info(f"Logging configured: level={level}, json_format={enable_json}, env={env}, dir={log_dir or LOG_DIR}")
    return log_files


def log_exception(message: str, **kwargs):
    """
    Log the exception currently being handled with its full traceback.

    Args:
        message: Error message
        **kwargs: Additional context to include in the log
    """
    logger.opt(exception=True).error(message, **kwargs)


def is_cloud_run() -> bool:
    """Check if running in Google Cloud Run."""
    return bool(os.environ.get("K_SERVICE") or os.environ.get("GOOGLE_CLOUD_PROJECT"))
