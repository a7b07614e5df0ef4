"""
Workflow service interface for visit step availability.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ....domain.entities.workflow_state import WalkInVisit


class WorkflowService(ABC):
    """Abstract access to the backend workflow endpoints."""

    @abstractmethod
    async def get_available_steps(self, visit_id: str) -> Dict[str, Any]:
        """
        Fetch the raw available-steps payload for a visit.

        Returns:
            Dict with visit_id, workflow_type (may be missing), current_status,
            available_steps
        """
        pass

    @abstractmethod
    async def create_walk_in_visit(
        self,
        name: str,
        mobile: str,
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> WalkInVisit:
        """Create a walk-in visit for a patient without intake."""
        pass

    @abstractmethod
    async def list_walk_in_visits(self, limit: int = 100, offset: int = 0) -> List[WalkInVisit]:
        """List walk-in visits with pagination."""
        pass
