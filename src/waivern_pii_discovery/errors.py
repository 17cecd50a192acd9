"""Error classes for PII discovery.

This module provides:
- PIIDiscoveryError: Base exception class for all discovery errors
- SourceError, SourceConfigError, ExtractionError: Source reader exceptions
- LLMServiceError, LLMConfigurationError, LLMConnectionError: Text classification exceptions
- ConfirmationError, ConfirmationValidationError, ConfirmationNotFoundError: Workflow exceptions
- StoreError: Relational store exception
- GraphStoreError, GraphEntityNotFoundError: Provenance graph exceptions
"""


class PIIDiscoveryError(Exception):
    """Base exception for all PII discovery errors."""

    pass


class ConfigurationError(PIIDiscoveryError):
    """Raised when discovery configuration is invalid."""

    pass


class SourceError(PIIDiscoveryError):
    """Base exception for source reader errors."""

    pass


class SourceConfigError(SourceError):
    """Raised when source reader configuration is invalid."""

    pass


class ExtractionError(SourceError):
    """Raised when values or text cannot be extracted from a source."""

    pass


class LLMServiceError(PIIDiscoveryError):
    """Base exception for text classification service errors."""

    pass


class LLMConfigurationError(LLMServiceError):
    """Raised when the text classification service is misconfigured."""

    pass


class LLMConnectionError(LLMServiceError):
    """Raised when a text classification request fails."""

    pass


class ConfirmationError(PIIDiscoveryError):
    """Base exception for confirmation workflow errors."""

    pass


class ConfirmationValidationError(ConfirmationError):
    """Raised when a resolve or override request is not allowed.

    No state is mutated when this error is raised.
    """

    pass


class ConfirmationNotFoundError(ConfirmationError):
    """Raised when a confirmation request does not exist."""

    pass


class StoreError(PIIDiscoveryError):
    """Raised when a relational store operation fails."""

    pass


class GraphStoreError(PIIDiscoveryError):
    """Base exception for provenance graph errors."""

    pass


class GraphEntityNotFoundError(GraphStoreError):
    """Raised when a referenced graph node does not exist."""

    pass
