"""
Custom Exception Hierarchy for the Download Link Fixer

This module provides the exception hierarchy used across the fixer, carrying
error context and recovery hints so failures surface with enough detail to
act on from the command line.
"""

from typing import Any, Dict, Optional

from pymongo.errors import (
    ConfigurationError as PyMongoConfigurationError,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)


class LinkFixerError(Exception):
    """
    Base exception class for all link fixer related errors.

    Provides structured error information including context, error codes,
    and optional recovery suggestions.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recovery_suggestion: Optional[str] = None,
    ) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context
            cause: Optional underlying exception that caused this error
            recovery_suggestion: Optional suggestion for error recovery
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.recovery_suggestion = recovery_suggestion

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        result = self.message
        if self.error_code:
            result = f"[{self.error_code}] {result}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            result += f" (context: {context_str})"
        if self.cause:
            result += f" (caused by: {self.cause})"
        if self.recovery_suggestion:
            result += f" (suggestion: {self.recovery_suggestion})"
        return result


# Document store exceptions
class DocumentStoreError(LinkFixerError):
    """Base class for document store errors."""

    pass


class DocumentStoreConnectionError(DocumentStoreError):
    """Raised when the MongoDB connection fails."""

    def __init__(self, message: str, uri: Optional[str] = None, **kwargs: Any) -> None:
        context = kwargs.get("context", {})
        if uri:
            # Don't include credentials in context
            context["uri"] = _strip_credentials(uri)
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MONGODB_CONNECTION_FAILED")
        kwargs.setdefault(
            "recovery_suggestion",
            "Check MONGODB_BIND_ADDR and credentials, and ensure the database is reachable",
        )
        super().__init__(message, **kwargs)


class DocumentStoreQueryError(DocumentStoreError):
    """Raised when a find or update against the collection fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        field_path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if operation:
            context["operation"] = operation
        if field_path:
            context["field_path"] = field_path
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MONGODB_QUERY_FAILED")
        super().__init__(message, **kwargs)


class MalformedDocumentError(LinkFixerError):
    """Raised when a matched document does not hold the expected string field."""

    def __init__(
        self,
        message: str,
        document_id: Optional[Any] = None,
        field_path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if document_id is not None:
            context["document_id"] = str(document_id)
        if field_path:
            context["field_path"] = field_path
        kwargs["context"] = context
        kwargs.setdefault("error_code", "MALFORMED_DOCUMENT")
        super().__init__(message, **kwargs)


def _strip_credentials(uri: str) -> str:
    if "@" not in uri:
        return uri
    scheme, sep, rest = uri.partition("://")
    if not sep:
        return uri.split("@")[-1]
    return f"{scheme}://{rest.split('@')[-1]}"


def wrap_pymongo_exception(
    exc: Exception, context: Optional[Dict[str, Any]] = None
) -> DocumentStoreError:
    """
    Wrap a pymongo exception in our custom exception hierarchy.

    Args:
        exc: The original exception
        context: Optional context information

    Returns:
        DocumentStoreError: Wrapped exception with enhanced context
    """
    error_message = str(exc)

    if isinstance(
        exc,
        (ConnectionFailure, ServerSelectionTimeoutError, PyMongoConfigurationError),
    ):
        return DocumentStoreConnectionError(
            f"MongoDB connection failed: {error_message}", context=context, cause=exc
        )
    elif isinstance(exc, OperationFailure):
        return DocumentStoreQueryError(
            f"MongoDB operation failed: {error_message}", context=context, cause=exc
        )
    elif isinstance(exc, PyMongoError):
        return DocumentStoreError(
            f"MongoDB error: {error_message}", context=context, cause=exc
        )
    return DocumentStoreError(
        f"Document store operation failed: {error_message}",
        context=context,
        cause=exc,
    )
