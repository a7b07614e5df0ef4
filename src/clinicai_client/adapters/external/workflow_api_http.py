"""
Clinic-AI workflow endpoints over aiohttp.

Available steps for a visit, walk-in visit creation and the walk-in visit list.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ...application.ports.services.workflow_service import WorkflowService
from ...core.exceptions import ParseError, ServerError, TransportError, VisitNotFoundError
from ...domain.entities.workflow_state import WalkInVisit
from ..http.base import BaseHttpAdapter
from ..http.responses import (
    body_text,
    decode_json,
    extract_error_message,
    require_object,
    unwrap_envelope,
)

logger = logging.getLogger(__name__)

AVAILABLE_STEPS_PATH = "/workflow/visit/{}/available-steps"
CREATE_WALK_IN_PATH = "/workflow/walk-in/create-visit"
LIST_WALK_IN_PATH = "/workflow/visits/walk-in"


def _walk_in_from_payload(payload: Dict[str, Any]) -> WalkInVisit:
    if not payload.get("patient_id") or not payload.get("visit_id"):
        raise ParseError(
            "Missing patient_id or visit_id in walk-in visit response",
            details={"payload": payload},
        )
    return WalkInVisit(
        patient_id=str(payload["patient_id"]),
        visit_id=str(payload["visit_id"]),
        workflow_type=str(payload.get("workflow_type") or "walk_in"),
        status=str(payload.get("status") or ""),
        message=payload.get("message") or "",
        created_at=payload.get("created_at"),
        updated_at=payload.get("updated_at"),
    )


class HttpWorkflowClient(BaseHttpAdapter, WorkflowService):
    """WorkflowService backed by the /workflow endpoints."""

    async def _request(
        self,
        method: str,
        url: str,
        context: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        """Send one request and return (status, raw body); transport failures raise TransportError."""
        headers = self._headers({"Content-Type": "application/json"} if json_body is not None else None)
        try:
            async with self._session.request(
                method, url, json=json_body, params=params, headers=headers, timeout=self._timeout
            ) as response:
                return response.status, await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Error calling %s: %r", context, exc)
            raise TransportError(details={"reason": str(exc) or type(exc).__name__}) from exc

    async def get_available_steps(self, visit_id: str) -> Dict[str, Any]:
        url = self._url(AVAILABLE_STEPS_PATH, visit_id)
        status, body = await self._request("GET", url, "available steps")
        if status == 404:
            raise VisitNotFoundError(visit_id)
        if not 200 <= status < 300:
            raise ServerError(status, body_text(body), extract_error_message(body))
        payload = decode_json(body, "available steps")
        try:
            data = unwrap_envelope(payload, status)
        except ServerError as exc:
            # Error envelopes arrive with 200, e.g. VISIT_NOT_FOUND from the workflow router.
            if exc.details.get("error") == "VISIT_NOT_FOUND":
                raise VisitNotFoundError(visit_id) from exc
            raise
        return require_object(data, "available steps")

    async def create_walk_in_visit(
        self,
        name: str,
        mobile: str,
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> WalkInVisit:
        request: Dict[str, Any] = {"name": name, "mobile": mobile}
        if age is not None:
            request["age"] = age
        if gender:
            request["gender"] = gender

        status, body = await self._request(
            "POST", self._url(CREATE_WALK_IN_PATH), "walk-in visit creation", json_body=request
        )
        if not 200 <= status < 300:
            raise ServerError(status, body_text(body), extract_error_message(body))

        payload = require_object(unwrap_envelope(decode_json(body, "walk-in visit"), status), "walk-in visit")
        visit = _walk_in_from_payload(payload)
        logger.info("Walk-in visit created: patient=%s visit=%s", visit.patient_id, visit.visit_id)
        return visit

    async def list_walk_in_visits(self, limit: int = 100, offset: int = 0) -> List[WalkInVisit]:
        status, body = await self._request(
            "GET",
            self._url(LIST_WALK_IN_PATH),
            "walk-in visit list",
            params={"limit": limit, "offset": offset},
        )
        if not 200 <= status < 300:
            raise ServerError(status, body_text(body), extract_error_message(body))

        payload = unwrap_envelope(decode_json(body, "walk-in visit list"), status)
        if isinstance(payload, dict):
            items = payload.get("visits") or []
        elif isinstance(payload, list):
            items = payload
        else:
            raise ParseError("Malformed walk-in visit list response")
        if not isinstance(items, list):
            raise ParseError("Malformed walk-in visit list response: visits is not a list")
        return [_walk_in_from_payload(require_object(item, "walk-in visit")) for item in items]
