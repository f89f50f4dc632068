"""Exception types for DocVault.

Fetch, extraction and persistence failures are recovered inside the
library and logged. Embedding and configuration failures propagate to the
caller.
"""

from typing import Optional


class DocVaultError(Exception):
    """Base class for all DocVault errors."""
    pass


class FetchError(DocVaultError):
    """Raised when a single URL cannot be fetched."""

    def __init__(self, message: str, url: str, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class ExtractionError(DocVaultError):
    """Raised by an extraction strategy that cannot parse its input."""
    pass


class EmbeddingError(DocVaultError):
    """Raised when the embedding provider fails (auth, rate limit, network)."""
    pass


class PersistenceError(DocVaultError):
    """Raised when a store file cannot be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigurationError(DocVaultError):
    """Raised when a required setting is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(message)
        self.setting = setting
