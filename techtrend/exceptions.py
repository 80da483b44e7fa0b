"""
TechTrend exception hierarchy.

All custom exceptions inherit from TechTrendException so callers can
catch a single base type when they want a broad safety net.
"""


class TechTrendException(Exception):
    """Base exception for all TechTrend errors."""


class ConfigurationError(TechTrendException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class CacheError(TechTrendException):
    """Base class for cache layer failures."""


class BackendUnavailableError(CacheError):
    """Raised when the key-value backend cannot be reached or errors out."""


class CacheSerializationError(CacheError, ValueError):
    """Raised when a value cannot be encoded for storage."""
