"""
Workflow type, step and job state enums.
"""

from enum import Enum
from typing import Optional


class WorkflowType(str, Enum):
    """Types of visit workflows."""
    SCHEDULED = "scheduled"  # With intake
    WALK_IN = "walk_in"      # Without intake, vitals first

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["WorkflowType"]:
        """Parse a server workflow type, accepting the spellings seen on the wire."""
        if not value:
            return None
        normalized = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if member.value == normalized:
                return member
        return None


class StepId(str, Enum):
    """Known workflow steps. Servers may send others; those pass through as plain strings."""
    INTAKE = "intake"
    PRE_VISIT_SUMMARY = "pre_visit_summary"
    TRANSCRIPTION = "transcription"
    VITALS = "vitals"
    SOAP_GENERATION = "soap_generation"
    POST_VISIT_SUMMARY = "post_visit_summary"


class JobState(str, Enum):
    """Normalized transcription job state."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETE, JobState.FAILED)


class PollerState(str, Enum):
    """Lifecycle of a polling session."""
    IDLE = "idle"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    @property
    def is_final(self) -> bool:
        return self not in (PollerState.IDLE, PollerState.POLLING)


class DelaySource(str, Enum):
    """Where the wait before the next attempt came from."""
    SERVER_HINT = "server_hint"
    COMPUTED = "computed"


class WorkflowAction(str, Enum):
    """Mutating actions after which step availability must be refreshed."""
    TRANSCRIPTION_COMPLETED = "transcription_completed"
    VITALS_SAVED = "vitals_saved"
    PRE_VISIT_SUMMARY_GENERATED = "pre_visit_summary_generated"
    SOAP_GENERATED = "soap_generated"
    POST_VISIT_SUMMARY_GENERATED = "post_visit_summary_generated"
