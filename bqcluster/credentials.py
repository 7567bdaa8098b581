"""
Service account loading for the clustering job.

The job authenticates to both BigQuery and Google Sheets with one service
account whose key file lives under <cwd>/credentials, one file per
environment.
"""
import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Dict, List, Optional

from google.oauth2 import service_account
from loguru import logger

from config.settings import (
    CLUSTER_ENV_VAR,
    ENVIRONMENTS,
    DEFAULT_ENVIRONMENT,
    CREDENTIALS_DIR,
    CREDENTIAL_FILE_PREFIX,
)
from bqcluster.exceptions import ConfigError


@dataclass(frozen=True)
class ServiceAccountCredential:
    """Fields of a Google service account key file."""
    type: str
    project_id: str
    private_key_id: str
    private_key: str
    client_email: str
    client_id: str
    auth_uri: str
    token_uri: str
    auth_provider_x509_cert_url: str
    client_x509_cert_url: str

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> 'ServiceAccountCredential':
        """
        Build a credential from a parsed key file.

        Raises:
            ConfigError: If a required field is missing
        """
        names = [f.name for f in fields(cls)]
        missing = [name for name in names if not data.get(name)]
        if missing:
            raise ConfigError(f"Service account is missing fields: {', '.join(missing)}")
        return cls(**{name: data[name] for name in names})

    def to_info(self) -> Dict[str, str]:
        return asdict(self)

    def to_google_credentials(self, scopes: Optional[List[str]] = None) -> service_account.Credentials:
        """
        Convert into credentials usable by the Google client libraries.

        Args:
            scopes: OAuth scopes to request, None keeps the library defaults

        Raises:
            ConfigError: If the private key cannot be parsed
        """
        try:
            return service_account.Credentials.from_service_account_info(self.to_info(), scopes=scopes)
        except ValueError as e:
            raise ConfigError(f"Invalid service account {self.client_email}: {e}") from e


def get_environment() -> str:
    """
    Resolve the cluster environment from CLUSTERENV.

    Returns:
        production or staging, staging when the variable is unset

    Raises:
        ConfigError: If the variable holds any other value
    """
    env = os.environ.get(CLUSTER_ENV_VAR, '').strip() or DEFAULT_ENVIRONMENT
    return validate_environment(env)


def validate_environment(env: str) -> str:
    if env not in ENVIRONMENTS:
        raise ConfigError(
            f"Unknown cluster environment {env!r}, expected one of: {', '.join(ENVIRONMENTS)}"
        )
    return env


def credential_path(env: str, root: Optional[Path] = None) -> Path:
    """Path of the service account key file for an environment."""
    base = Path(root) if root is not None else Path.cwd()
    return base / CREDENTIALS_DIR / f"{CREDENTIAL_FILE_PREFIX}.{env}.json"


def load_service_account(env: str, root: Optional[Path] = None) -> ServiceAccountCredential:
    """
    Load the service account for an environment.

    Args:
        env: Cluster environment
        root: Directory holding the credentials folder, defaults to the working directory

    Returns:
        Parsed service account credential

    Raises:
        ConfigError: If the file is missing, unreadable or not a valid key file
    """
    path = credential_path(env, root)
    logger.info(f"Cluster environment: {env}, loading service account from {path}")

    try:
        raw = path.read_text(encoding='utf-8')
    except FileNotFoundError as e:
        raise ConfigError(f"Service account file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read service account file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Malformed service account file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Malformed service account file {path}: expected a JSON object")

    return ServiceAccountCredential.from_dict(data)
