"""Workflow state of a visit as reported by the backend."""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from ..enums.workflow import StepId, WorkflowType


def _dedupe(steps: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    ordered = []
    for step in steps:
        value = step.value if isinstance(step, StepId) else str(step)
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return tuple(ordered)


@dataclass(frozen=True)
class WorkflowState:
    """Snapshot of a visit's workflow. Replaced wholesale on every fetch."""

    visit_id: str
    workflow_type: WorkflowType
    current_status: str
    available_steps: Tuple[str, ...] = ()
    workflow_type_inferred: bool = False
    # Server value that could not be parsed, kept when the type was inferred.
    raw_workflow_type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "available_steps", _dedupe(self.available_steps))

    def has_step(self, step: Union[StepId, str]) -> bool:
        value = step.value if isinstance(step, StepId) else step
        return value in self.available_steps

    @property
    def next_step(self) -> Optional[str]:
        return self.available_steps[0] if self.available_steps else None


@dataclass(frozen=True)
class WalkInVisit:
    """Visit created through the walk-in flow (or listed from it)."""

    patient_id: str
    visit_id: str
    workflow_type: str
    status: str
    message: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
