"""BigQuery clustering job driven by a Google Sheets configuration range."""

__version__ = '0.1.0'
