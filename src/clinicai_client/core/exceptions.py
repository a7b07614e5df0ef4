"""
Exception handling for the Clinic-AI client.

Every error raised by the client derives from ClinicAIClientError and carries
a human-readable message, a stable error code and optional details. The
taxonomy mirrors what the backend can do to a polling session: no response,
an error response, an explicit failed state, a malformed success body, a
session deadline, or a failed (non-fatal) enrichment call.
"""

from typing import Any, Dict, Optional


def format_duration_ms(duration_ms: int) -> str:
    """Whole minutes when the duration is an exact number of them, else seconds rounded up."""
    if duration_ms >= 60000 and duration_ms % 60000 == 0:
        count, unit = duration_ms // 60000, "minute"
    else:
        count, unit = max(1, -(-duration_ms // 1000)), "second"
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


class ClinicAIClientError(Exception):
    """Base exception class for the Clinic-AI client."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ClinicAIClientError):
    """Raised when the client configuration is invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "CONFIG_ERROR", details)


class TransportError(ClinicAIClientError):
    """Raised when no response was received from the backend."""

    def __init__(
        self,
        message: str = "Network error - please check your connection and try again",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, "TRANSPORT_ERROR", details)


class ServerError(ClinicAIClientError):
    """Raised on a non-2xx response; the server's message is kept verbatim."""

    def __init__(
        self,
        status_code: int,
        body: str = "",
        server_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.server_message = server_message
        message = f"Server error ({status_code}): {server_message or body or 'no response body'}"
        super().__init__(message, "SERVER_ERROR", details)


class StateError(ClinicAIClientError):
    """Raised when the backend reports an explicit failed job state."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "JOB_FAILED", details)


class ParseError(ClinicAIClientError):
    """Raised when a success response carries a malformed body."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "PARSE_ERROR", details)


class JobTimeoutError(ClinicAIClientError):
    """Raised when a polling session exceeds its deadline."""

    def __init__(
        self, elapsed_ms: int, deadline_ms: int, details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.elapsed_ms = elapsed_ms
        self.deadline_ms = deadline_ms
        message = (
            f"Transcription did not finish within {format_duration_ms(deadline_ms)} "
            f"(elapsed {elapsed_ms / 1000:.0f}s)"
        )
        super().__init__(message, "JOB_TIMEOUT", details)

    @property
    def deadline_text(self) -> str:
        return format_duration_ms(self.deadline_ms)


class EnrichmentError(ClinicAIClientError):
    """Raised when dialogue structuring fails. Never surfaced to callers."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, "ENRICHMENT_ERROR", details)


class SubmissionError(ClinicAIClientError):
    """Raised when the backend rejects a transcription submission."""

    def __init__(
        self, status_code: int, body: str = "", details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.status_code = status_code
        self.body = body
        message = f"Upload failed {status_code}: {body}"
        super().__init__(message, "SUBMISSION_FAILED", details)


class WorkflowResolutionError(ClinicAIClientError):
    """Raised when available workflow steps cannot be resolved."""

    def __init__(
        self,
        message: str,
        error_code: str = "WORKFLOW_RESOLUTION_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)


class VisitNotFoundError(WorkflowResolutionError):
    """Visit not found."""

    def __init__(self, visit_id: str) -> None:
        message = f"Visit with ID '{visit_id}' not found"
        super().__init__(message, "VISIT_NOT_FOUND", {"visit_id": visit_id})
