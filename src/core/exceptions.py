"""Custom exceptions for the realty CRM application."""
from __future__ import annotations

from typing import Any, Optional


class RealtyCRMError(Exception):
    """Base exception for all application errors."""

    error_code = "internal_error"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(RealtyCRMError):
    """Raised when required configuration is missing or invalid."""

    error_code = "configuration_error"


# =============================================================================
# Store Errors
# =============================================================================


class DatabaseError(RealtyCRMError):
    """Base exception for database-related errors."""

    error_code = "database_error"


class NotFoundError(DatabaseError):
    """Raised when an entity does not exist (or is soft deleted)."""

    error_code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class MissingReferenceError(DatabaseError):
    """Raised when a write references a row that does not exist."""

    error_code = "missing_reference"

    def __init__(self, entity: str, field: str, reference_id: Any) -> None:
        self.entity = entity
        self.field = field
        self.reference_id = reference_id
        super().__init__(f"{entity}.{field} references missing id {reference_id}")


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(RealtyCRMError):
    """Raised when a payload or status value is rejected."""

    error_code = "validation_error"


class InvalidTransitionError(ValidationError):
    """Raised when an allow-list transition policy rejects a status move."""

    error_code = "invalid_transition"

    def __init__(self, kind: str, current: Optional[str], target: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"{kind} cannot move from '{current}' to '{target}'")


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(RealtyCRMError):
    """Base exception for LLM-related errors."""

    error_code = "llm_error"


class LLMAPIError(LLMError):
    """Raised when the LLM API returns an error."""


class LLMRateLimitError(LLMAPIError):
    """Raised when the LLM API rate limit is exceeded."""


class LLMTimeoutError(LLMAPIError):
    """Raised when the LLM API request times out."""


# =============================================================================
# External Service Errors
# =============================================================================


class ExternalServiceError(RealtyCRMError):
    """Base exception for all external service errors."""

    error_code = "external_service_error"


class RateLimitError(ExternalServiceError):
    """Raised when an external API rate limit is hit."""

    error_code = "rate_limited"


class ServiceUnavailableError(ExternalServiceError):
    """Raised when an external service is temporarily unavailable."""

    error_code = "service_unavailable"


__all__ = [
    # Base
    "RealtyCRMError",
    # Configuration
    "ConfigurationError",
    # Store
    "DatabaseError",
    "NotFoundError",
    "MissingReferenceError",
    # Validation
    "ValidationError",
    "InvalidTransitionError",
    # LLM
    "LLMError",
    "LLMAPIError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    # External Services
    "ExternalServiceError",
    "RateLimitError",
    "ServiceUnavailableError",
]
