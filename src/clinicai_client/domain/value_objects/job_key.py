"""
Job key value object identifying one transcription job by subject and visit.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class JobKey:
    """Immutable (subject, visit) identity of a transcription job."""

    subject_id: str
    visit_id: str

    def __post_init__(self) -> None:
        """Validate both parts are non-empty strings."""
        for name, value in (("Subject ID", self.subject_id), ("Visit ID", self.visit_id)):
            if not isinstance(value, str):
                raise ValueError(f"{name} must be a string")
            if not value.strip():
                raise ValueError(f"{name} cannot be empty")

    def __str__(self) -> str:
        return f"{self.subject_id}/{self.visit_id}"

    @classmethod
    def of(cls, value: Any) -> "JobKey":
        """Accept a JobKey, a Job, or a (subject_id, visit_id) pair."""
        if isinstance(value, JobKey):
            return value
        key = getattr(value, "key", None)
        if isinstance(key, JobKey):
            return key
        if isinstance(value, tuple) and len(value) == 2:
            return cls(*value)
        raise ValueError(f"Cannot build a JobKey from {value!r}")
