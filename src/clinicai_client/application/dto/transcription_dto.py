"""Transcription DTOs exchanged between use cases and service adapters."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ...domain.entities.transcript import DialogueTurn


@dataclass
class SubmitTranscriptionRequest:
    """Request DTO for submitting consultation audio."""

    audio: Union[str, Path, bytes]
    filename: Optional[str] = None
    content_type: Optional[str] = None
    language: str = "en"


@dataclass
class SubmitTranscriptionResponse:
    """Response DTO for an accepted submission."""

    http_status: int
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FetchResult:
    """Outcome of a transcript fetch.

    `ready` is False when the backend answered 202 (still processing).
    """

    ready: bool
    text: str = ""
    structured_dialogue: Optional[List[DialogueTurn]] = None
    retry_after_ms: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StructuredDialogue:
    """Result of a successful dialogue structuring call."""

    text: str
    turns: List[DialogueTurn] = field(default_factory=list)
