"""Google Sheets module for the clustering configuration."""
from .client import SpreadsheetClient

__all__ = ['SpreadsheetClient']
