"""Structured exception hierarchy for campaign exports.

Every error raised on purpose by this package derives from CampaignError,
which the CLI reports as a warning line and a non-zero exit status.

Propagation policy:
- ValidationError, WriteError, ConfigurationError, AuthenticationError are
  fatal and bubble up to the caller.
- QueryError is absorbed per page / per schema by the extractor and the
  preflight checker and only logged.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "CampaignError",
    "AuthenticationError",
    "ConfigurationError",
    "QueryError",
    "ValidationError",
    "WriteError",
]


class CampaignError(Exception):
    """Base exception for all campaign CLI errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        schema: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.schema = schema
        self.details = details or {}
        self.suggestion = suggestion
        self.base_message = message

        parts = [f"[{schema}] {message}" if schema else message]

        if details:
            detail_lines = [f"  {k}: {v}" for k, v in details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.base_message,
            "schema": self.schema,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class AuthenticationError(CampaignError):
    """Error while registering an instance or logging in to it."""

    def __init__(
        self,
        message: str,
        *,
        alias: Optional[str] = None,
        host: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.alias = alias
        self.host = host
        self.cause = cause

        details = kwargs.pop("details", {})
        if host:
            details["host"] = host
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class ConfigurationError(CampaignError):
    """Error in the export configuration document."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class QueryError(CampaignError):
    """Remote query or count failed.

    Carries the server fault code when the failure came back as a SOAP fault.
    """

    def __init__(
        self,
        message: str,
        *,
        fault_code: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.fault_code = fault_code
        self.status_code = status_code
        self.cause = cause
        super().__init__(message, **kwargs)


class WriteError(CampaignError):
    """Filesystem failure while materializing a record."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        self.cause = cause

        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class ValidationError(CampaignError):
    """Destination or configuration failed a preflight validation."""

    def __init__(
        self,
        message: str,
        *,
        issues: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.issues = issues or []

        if issues:
            issue_lines = "\n".join(f"  - {issue}" for issue in issues)
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, **kwargs)
