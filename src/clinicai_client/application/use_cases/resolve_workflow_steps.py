"""
Resolve which workflow steps a visit currently allows.
"""

import logging
from typing import Any, Dict, Iterable, Optional, Union

from ...core.exceptions import (
    ClinicAIClientError,
    VisitNotFoundError,
    WorkflowResolutionError,
)
from ...core.structured_logger import log_fields
from ...domain.entities.workflow_state import WorkflowState
from ...domain.enums.workflow import StepId, WorkflowAction, WorkflowType
from ..ports.services.workflow_service import WorkflowService

logger = logging.getLogger(__name__)


def infer_workflow_type(steps: Iterable[str]) -> WorkflowType:
    """Walk-in visits start with vitals; anything else is a scheduled visit."""
    values = {step.value if isinstance(step, StepId) else str(step) for step in steps}
    if StepId.VITALS.value in values:
        return WorkflowType.WALK_IN
    return WorkflowType.SCHEDULED


class WorkflowStepResolver:
    """Fetches step availability and keeps the latest observed state per visit."""

    def __init__(self, workflow_service: WorkflowService):
        self._workflow_service = workflow_service
        self._latest: Dict[str, WorkflowState] = {}

    async def fetch_steps(self, visit_id: str) -> WorkflowState:
        """Fetch the available steps and replace the stored state for the visit."""
        try:
            payload = await self._workflow_service.get_available_steps(visit_id)
        except VisitNotFoundError:
            raise
        except ClinicAIClientError as exc:
            raise WorkflowResolutionError(
                exc.message,
                details={"visit_id": visit_id, "cause": exc.error_code},
            ) from exc

        state = self._build_state(visit_id, payload)
        self._latest[visit_id] = state
        logger.info(
            "Workflow steps for visit %s: %s",
            visit_id,
            ", ".join(state.available_steps) or "none",
            extra=log_fields(
                visit_id=visit_id,
                workflow_type=state.workflow_type.value,
                inferred=state.workflow_type_inferred,
                current_status=state.current_status,
            ),
        )
        return state

    async def refresh_after(
        self, visit_id: str, action: Union[WorkflowAction, str]
    ) -> WorkflowState:
        """Refetch after a mutating action so the caller never acts on stale availability."""
        action_value = action.value if isinstance(action, WorkflowAction) else str(action)
        logger.info("Refreshing workflow steps for visit %s after %s", visit_id, action_value)
        return await self.fetch_steps(visit_id)

    def latest(self, visit_id: str) -> Optional[WorkflowState]:
        return self._latest.get(visit_id)

    def is_step_available(self, visit_id: str, step: Union[StepId, str]) -> bool:
        state = self._latest.get(visit_id)
        return state is not None and state.has_step(step)

    def forget(self, visit_id: str) -> None:
        self._latest.pop(visit_id, None)

    def _build_state(self, visit_id: str, payload: Dict[str, Any]) -> WorkflowState:
        raw_steps = payload.get("available_steps") or []
        if not isinstance(raw_steps, list):
            raise WorkflowResolutionError(
                "Malformed available steps response: available_steps is not a list",
                details={"visit_id": visit_id},
            )
        steps = [str(step) for step in raw_steps]

        raw_type = payload.get("workflow_type")
        raw_type = str(raw_type).strip() if raw_type is not None else ""
        workflow_type = WorkflowType.parse(raw_type or None)
        inferred = workflow_type is None
        if inferred:
            workflow_type = infer_workflow_type(steps)
            if raw_type:
                logger.warning(
                    "Unknown workflow type %r for visit %s; inferred %s from its steps",
                    raw_type,
                    visit_id,
                    workflow_type.value,
                    extra=log_fields(visit_id=visit_id, raw_workflow_type=raw_type),
                )
            else:
                logger.debug("Inferred workflow type %s for visit %s", workflow_type.value, visit_id)

        return WorkflowState(
            visit_id=str(payload.get("visit_id") or visit_id),
            workflow_type=workflow_type,
            current_status=str(payload.get("current_status") or ""),
            available_steps=tuple(steps),
            workflow_type_inferred=inferred,
            raw_workflow_type=raw_type if inferred and raw_type else None,
        )
