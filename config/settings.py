"""
Central configuration settings for the BigQuery clustering job.
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Environments
CLUSTER_ENV_VAR = "CLUSTERENV"
PRODUCTION = "production"
STAGING = "staging"
ENVIRONMENTS = (PRODUCTION, STAGING)
DEFAULT_ENVIRONMENT = STAGING

# Service account credentials, resolved against the working directory
CREDENTIALS_DIR = os.getenv("CREDENTIALS_DIR", "credentials")
CREDENTIAL_FILE_PREFIX = "clustering-service-account"

# Google Sheets settings
SPREADSHEET_ID = os.getenv("SPREADSHEET_ID", "1ROdcDV71who85wabn5fIV6K8ZjdinbhBOqyWzI25GjI")
SHEET_RANGE = os.getenv("SHEET_RANGE", "B29:H29")
WORKSHEET_ID = os.getenv("WORKSHEET_ID", "Sheet1")
STATUS_COLUMN = os.getenv("STATUS_COLUMN", "H")
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Sheet layout (zero-based positions inside SHEET_RANGE)
TABLE_NAME_INDEX = 0
CLUSTER_COLUMN_INDICES = (1, 2, 3, 4)
CLUSTERED_FLAG_INDEX = int(os.getenv("CLUSTERED_FLAG_INDEX", "6"))
NONE_SENTINEL = "NONE"

# BigQuery settings
MAX_CLUSTER_COLUMNS = 4
MAX_CACHED_CLIENTS = int(os.getenv("MAX_CACHED_CLIENTS", "5"))
UPDATE_MAX_RETRIES = int(os.getenv("UPDATE_MAX_RETRIES", "3"))
UPDATE_RETRY_DELAY = float(os.getenv("UPDATE_RETRY_DELAY", "1.0"))  # seconds, grows linearly per attempt

# Logging settings
LOG_DIR = os.getenv("LOG_DIR", "/var/log/bigquery-cluster")
LOG_BASE_NAME = os.getenv("LOG_BASE_NAME", "bigquery-cluster")
LOG_SEGMENTS = {
    "fatal": "CRITICAL",
    "error": "ERROR",
    "info": "INFO",
}
LOGGING_CONFIG = {
    "level": os.getenv("LOG_LEVEL", "INFO"),
    "format": "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} - {message}",
    "rotation": "100 MB",
    "retention": "30 days",
    "compression": "gz",
}
APP_NAME = "bigquery-cluster"
