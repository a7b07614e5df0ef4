"""Transcription job domain entities.

A Job is identified by its JobKey. StatusCheck is the normalized result of one
status query, PollAttempt records one scheduled wait inside a polling session,
and PollOutcome is the terminal result a session reports.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ...core.exceptions import ClinicAIClientError
from ..enums.workflow import DelaySource, JobState, PollerState
from ..value_objects.job_key import JobKey
from .transcript import TranscriptArtifact


@dataclass
class Job:
    """One server-side transcription task."""

    key: JobKey
    state: JobState = JobState.PENDING
    message: Optional[str] = None

    @property
    def subject_id(self) -> str:
        return self.key.subject_id

    @property
    def visit_id(self) -> str:
        return self.key.visit_id

    def apply(self, check: "StatusCheck") -> None:
        """Record the latest observed state."""
        self.state = check.state
        self.message = check.message


@dataclass(frozen=True)
class StatusCheck:
    """Normalized outcome of a single status query."""

    state: JobState
    message: Optional[str] = None
    retry_after_ms: Optional[int] = None
    http_status: Optional[int] = None
    anomaly: Optional[str] = None  # e.g. "empty_body"
    error: Optional[ClinicAIClientError] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


@dataclass(frozen=True)
class PollAttempt:
    """One scheduled wait between status checks."""

    attempt_index: int
    elapsed_ms: int
    delay_ms: int
    delay_source: DelaySource

    def __post_init__(self) -> None:
        if self.attempt_index < 0:
            raise ValueError("attempt_index must be >= 0")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")


@dataclass
class PollOutcome:
    """Terminal result of a polling session."""

    status: PollerState
    key: JobKey
    artifact: Optional[TranscriptArtifact] = None
    message: Optional[str] = None
    error: Optional[ClinicAIClientError] = None
    attempts: List[PollAttempt] = field(default_factory=list)
    elapsed_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == PollerState.SUCCEEDED
