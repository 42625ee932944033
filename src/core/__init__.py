"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.exceptions import (
    # Base
    RealtyCRMError,
    # Configuration
    ConfigurationError,
    # Store
    DatabaseError,
    NotFoundError,
    MissingReferenceError,
    # Validation
    ValidationError,
    InvalidTransitionError,
    # LLM
    LLMError,
    LLMAPIError,
    LLMRateLimitError,
    LLMTimeoutError,
    # External Services
    ExternalServiceError,
    RateLimitError,
    ServiceUnavailableError,
)
from core.logging_config import (
    setup_logging,
    get_logger,
    get_context_logger,
    log_external_call,
    JSONFormatter,
    ContextLogger,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Exceptions
    "RealtyCRMError",
    "ConfigurationError",
    "DatabaseError",
    "NotFoundError",
    "MissingReferenceError",
    "ValidationError",
    "InvalidTransitionError",
    "LLMError",
    "LLMAPIError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "ExternalServiceError",
    "RateLimitError",
    "ServiceUnavailableError",
    # Logging
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "log_external_call",
    "JSONFormatter",
    "ContextLogger",
]
