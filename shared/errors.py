"""
Shared error types for the cache proxy.
"""

from typing import Dict, Any, Optional


class ProxyCacheError(Exception):
    """Base exception for cache proxy errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form used in log events."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(ProxyCacheError):
    """Invalid runtime configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class UpstreamFetchError(ProxyCacheError):
    """Network/transport failure or unreadable body while fetching from the origin."""

    def __init__(self, url: str, message: str = "Upstream fetch failed", details: Optional[Dict[str, Any]] = None):
        self.url = url
        super().__init__("UPSTREAM_FETCH_ERROR", message, {"url": url, **(details or {})})


class NormalizeError(ProxyCacheError):
    """Response body is not well-formed JSON."""

    def __init__(self, message: str = "Body is not well-formed JSON", details: Optional[Dict[str, Any]] = None):
        super().__init__("NORMALIZE_ERROR", message, details)


class PersistenceLoadError(ProxyCacheError):
    """Snapshot is missing, unreadable, corrupt or of an unknown schema."""

    def __init__(self, path: str, message: str = "Failed to load snapshot", details: Optional[Dict[str, Any]] = None):
        self.path = path
        super().__init__("PERSISTENCE_LOAD_ERROR", message, {"path": path, **(details or {})})


class PersistenceSaveError(ProxyCacheError):
    """Snapshot could not be written."""

    def __init__(self, path: str, message: str = "Failed to save snapshot", details: Optional[Dict[str, Any]] = None):
        self.path = path
        super().__init__("PERSISTENCE_SAVE_ERROR", message, {"path": path, **(details or {})})


class CacheMissAfterInterceptorError(ProxyCacheError):
    """The terminal handler found no entry after the caching stage ran."""

    def __init__(self, key: str, message: str = "resource not found in cache"):
        self.key = key
        super().__init__("CACHE_MISS_AFTER_INTERCEPTOR", message, {"key": key})
