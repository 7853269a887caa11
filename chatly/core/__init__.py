"""Core module - configuration and utilities."""

from chatly.core.config import settings
from chatly.core.exceptions import (
    AppException,
    ConfigurationError,
    CrawlError,
    InvalidInput,
    NotFound,
    ProviderError,
    StoreError,
)

__all__ = [
    "settings",
    "AppException",
    "ConfigurationError",
    "CrawlError",
    "InvalidInput",
    "NotFound",
    "ProviderError",
    "StoreError",
]
