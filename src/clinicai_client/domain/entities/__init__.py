"""
Domain entities package.
"""

from .job import Job, PollAttempt, PollOutcome, StatusCheck
from .transcript import DialogueTurn, TranscriptArtifact
from .workflow_state import WalkInVisit, WorkflowState

__all__ = [
    "Job",
    "StatusCheck",
    "PollAttempt",
    "PollOutcome",
    "DialogueTurn",
    "TranscriptArtifact",
    "WorkflowState",
    "WalkInVisit",
]
