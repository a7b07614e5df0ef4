"""Helpers for the backend's standardized response envelope.

Successful responses look like ``{"success": true, "message": "...", "data": {...}}``
and errors like ``{"success": false, "error": "...", "message": "..."}``. Some
endpoints answer without the envelope, so every reader accepts both shapes.
Error envelopes may arrive with a 2xx status, so the `success` flag is checked
regardless of the HTTP code.

Bodies are handled as raw bytes; decoding happens here so that invalid UTF-8
is reported the same way as malformed JSON.
"""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ...core.exceptions import ParseError, ServerError

Body = Union[str, bytes]


class ApiResponse(BaseModel):
    """Success envelope."""

    success: bool = Field(True, description="Operation success status")
    message: Optional[str] = Field(None, description="Response message")
    timestamp: Optional[str] = Field(None, description="Response timestamp")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")
    data: Optional[Any] = Field(None, description="Response payload")


class ErrorResponse(BaseModel):
    """Standardized error envelope."""

    success: bool = Field(False, description="Operation success status")
    error: Optional[str] = Field(None, description="Error type/code")
    message: Optional[str] = Field(None, description="Human-readable error message")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")
    detail: Optional[Any] = Field(None, description="FastAPI-style error detail")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


def body_text(body: Optional[Body]) -> str:
    """Body as text for messages and logs; undecodable bytes are replaced."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def decode_json(body: Body, context: str) -> Any:
    """Decode a JSON body, raising ParseError on invalid UTF-8 or malformed content."""
    if isinstance(body, bytes):
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(
                f"Malformed {context} response: body is not valid UTF-8 ({exc.reason})",
                details={"body": body_text(body)[:500]},
            ) from exc
    else:
        text = body
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(
            f"Malformed {context} response: {exc}",
            details={"body": text[:500]},
        ) from exc


def raise_for_error_envelope(payload: Any, http_status: int) -> None:
    """Raise ServerError when the payload is an error envelope (``success: false``)."""
    if not isinstance(payload, dict) or payload.get("success") is not False:
        return
    try:
        error = ErrorResponse.model_validate(payload)
    except ValidationError:
        error = ErrorResponse()
    raw = json.dumps(payload, default=str)
    raise ServerError(
        http_status,
        raw,
        error.message or _detail_message(error.detail) or error.error,
        details={"error": error.error, "request_id": error.request_id},
    )


def unwrap_envelope(payload: Any, http_status: int = 200) -> Any:
    """Return the `data` member of an envelope, or the payload itself when not enveloped.

    Raises ServerError for an error envelope.
    """
    raise_for_error_envelope(payload, http_status)
    if isinstance(payload, dict) and payload.get("data"):
        try:
            envelope = ApiResponse.model_validate(payload)
        except ValidationError:
            return payload
        return envelope.data
    return payload


def require_object(payload: Any, context: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ParseError(
            f"Malformed {context} response: expected a JSON object, got {type(payload).__name__}"
        )
    return payload


def _detail_message(detail: Any) -> Optional[str]:
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    if isinstance(detail, str) and detail:
        return detail
    return None


def extract_error_message(body: Optional[Body]) -> Optional[str]:
    """Pull the caller-facing message out of an error body, verbatim.

    Falls back to the raw body text when it is not a JSON error envelope.
    """
    text = body_text(body).strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except ValueError:
        return text
    if not isinstance(payload, dict):
        return text
    try:
        error = ErrorResponse.model_validate(payload)
    except ValidationError:
        return text
    return error.message or _detail_message(error.detail) or error.error or text
