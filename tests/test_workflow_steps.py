"""
Workflow step resolution: HTTP adapter and resolver.
"""

import logging

import pytest
from aiohttp import web

from clinicai_client.adapters.external.workflow_api_http import HttpWorkflowClient
from clinicai_client.application.ports.services.workflow_service import WorkflowService
from clinicai_client.application.use_cases.resolve_workflow_steps import (
    WorkflowStepResolver,
    infer_workflow_type,
)
from clinicai_client.application.utils.messages import (
    NETWORK_ERROR_MESSAGE,
    VISIT_NOT_FOUND_MESSAGE,
    describe_resolution_error,
)
from clinicai_client.core.exceptions import (
    ParseError,
    ServerError,
    TransportError,
    VisitNotFoundError,
    WorkflowResolutionError,
)
from clinicai_client.domain.enums.workflow import StepId, WorkflowAction, WorkflowType


class FakeWorkflowService(WorkflowService):
    """Returns queued payloads (or raises queued errors) for get_available_steps."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def get_available_steps(self, visit_id):
        self.calls.append(visit_id)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def create_walk_in_visit(self, name, mobile, age=None, gender=None):
        raise NotImplementedError

    async def list_walk_in_visits(self, limit=100, offset=0):
        raise NotImplementedError


def test_infer_workflow_type():
    assert infer_workflow_type(["vitals", "transcription"]) == WorkflowType.WALK_IN
    assert infer_workflow_type([StepId.VITALS]) == WorkflowType.WALK_IN
    assert infer_workflow_type(["intake", "pre_visit_summary"]) == WorkflowType.SCHEDULED
    assert infer_workflow_type([]) == WorkflowType.SCHEDULED


@pytest.mark.asyncio
async def test_fetch_steps_uses_server_workflow_type():
    service = FakeWorkflowService(
        {
            "visit_id": "v1",
            "workflow_type": "scheduled",
            "current_status": "intake_completed",
            "available_steps": ["vitals", "transcription"],
        }
    )
    resolver = WorkflowStepResolver(service)

    state = await resolver.fetch_steps("v1")

    # vitals would suggest walk-in, but an explicit server value wins
    assert state.workflow_type == WorkflowType.SCHEDULED
    assert state.workflow_type_inferred is False
    assert state.available_steps == ("vitals", "transcription")
    assert resolver.latest("v1") is state


@pytest.mark.asyncio
async def test_fetch_steps_infers_missing_workflow_type():
    service = FakeWorkflowService({"current_status": "walk_in_patient", "available_steps": ["vitals"]})
    state = await WorkflowStepResolver(service).fetch_steps("v1")

    assert state.workflow_type == WorkflowType.WALK_IN
    assert state.workflow_type_inferred is True
    assert state.visit_id == "v1"


@pytest.mark.asyncio
async def test_state_is_replaced_not_merged():
    service = FakeWorkflowService(
        {"workflow_type": "walk_in", "current_status": "walk_in_patient", "available_steps": ["vitals", "vitals"]},
        {"workflow_type": "walk_in", "current_status": "transcription_completed", "available_steps": ["soap_generation"]},
    )
    resolver = WorkflowStepResolver(service)

    first = await resolver.fetch_steps("v1")
    assert first.available_steps == ("vitals",)
    assert resolver.is_step_available("v1", StepId.VITALS)

    second = await resolver.refresh_after("v1", WorkflowAction.TRANSCRIPTION_COMPLETED)

    assert second.available_steps == ("soap_generation",)
    assert second.current_status == "transcription_completed"
    assert not resolver.is_step_available("v1", "vitals")
    assert resolver.is_step_available("v1", "soap_generation")
    assert first.available_steps == ("vitals",)
    assert service.calls == ["v1", "v1"]


@pytest.mark.asyncio
async def test_unknown_workflow_type_is_inferred_with_warning_and_kept(caplog):
    service = FakeWorkflowService(
        {"workflow_type": "emergency", "current_status": "open", "available_steps": ["vitals"]}
    )

    with caplog.at_level(logging.WARNING, logger="clinicai_client"):
        state = await WorkflowStepResolver(service).fetch_steps("v1")

    assert state.workflow_type == WorkflowType.WALK_IN
    assert state.workflow_type_inferred is True
    assert state.raw_workflow_type == "emergency"
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("emergency" in r.getMessage() for r in warnings)


@pytest.mark.asyncio
async def test_missing_workflow_type_has_no_raw_value():
    service = FakeWorkflowService({"current_status": "open", "available_steps": ["intake"]})
    state = await WorkflowStepResolver(service).fetch_steps("v1")

    assert state.workflow_type == WorkflowType.SCHEDULED
    assert state.raw_workflow_type is None

def test_unknown_visit_has_no_steps():
    resolver = WorkflowStepResolver(FakeWorkflowService())
    assert resolver.latest("nope") is None
    assert resolver.is_step_available("nope", "vitals") is False


@pytest.mark.asyncio
async def test_not_found_propagates_as_visit_not_found():
    resolver = WorkflowStepResolver(FakeWorkflowService(VisitNotFoundError("v9")))

    with pytest.raises(VisitNotFoundError) as exc_info:
        await resolver.fetch_steps("v9")

    assert describe_resolution_error(exc_info.value) == VISIT_NOT_FOUND_MESSAGE
    assert resolver.latest("v9") is None


@pytest.mark.asyncio
async def test_transport_error_is_wrapped_and_described_as_network_error():
    resolver = WorkflowStepResolver(FakeWorkflowService(TransportError()))

    with pytest.raises(WorkflowResolutionError) as exc_info:
        await resolver.fetch_steps("v1")

    assert isinstance(exc_info.value.__cause__, TransportError)
    assert describe_resolution_error(exc_info.value) == NETWORK_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_failed_fetch_keeps_previous_state():
    service = FakeWorkflowService(
        {"workflow_type": "scheduled", "current_status": "open", "available_steps": ["intake"]},
        ServerError(500, "", "boom"),
    )
    resolver = WorkflowStepResolver(service)
    first = await resolver.fetch_steps("v1")

    with pytest.raises(WorkflowResolutionError):
        await resolver.fetch_steps("v1")

    assert resolver.latest("v1") is first


@pytest.mark.asyncio
async def test_malformed_steps_list_rejected():
    resolver = WorkflowStepResolver(FakeWorkflowService({"available_steps": "vitals"}))
    with pytest.raises(WorkflowResolutionError):
        await resolver.fetch_steps("v1")


@pytest.mark.asyncio
async def test_http_available_steps(fake_backend):
    async def steps(request):
        if request.match_info["visit_id"] == "missing":
            return web.json_response({"detail": "Visit not found"}, status=404)
        if request.match_info["visit_id"] == "broken":
            return web.json_response({"message": "Database unavailable"}, status=503)
        return web.json_response(
            {
                "success": True,
                "data": {
                    "visit_id": request.match_info["visit_id"],
                    "workflow_type": "walk-in",
                    "current_status": "walk_in_patient",
                    "available_steps": ["vitals"],
                },
            }
        )

    routes = [web.get("/workflow/visit/{visit_id}/available-steps", steps)]
    async with fake_backend(routes) as (session, settings):
        client = HttpWorkflowClient(session, settings)

        payload = await client.get_available_steps("v1")
        assert payload["available_steps"] == ["vitals"]

        state = await WorkflowStepResolver(client).fetch_steps("v1")
        assert state.workflow_type == WorkflowType.WALK_IN

        with pytest.raises(VisitNotFoundError):
            await client.get_available_steps("missing")

        with pytest.raises(ServerError) as exc_info:
            await client.get_available_steps("broken")
        assert exc_info.value.message == "Server error (503): Database unavailable"


@pytest.mark.asyncio
async def test_http_create_walk_in_visit(fake_backend):
    received = {}

    async def create(request):
        received.update(await request.json())
        return web.json_response(
            {
                "success": True,
                "message": "Walk-in visit created",
                "data": {
                    "patient_id": "PAT-1",
                    "visit_id": "VIS-1",
                    "workflow_type": "walk_in",
                    "status": "walk_in_patient",
                    "message": "Walk-in visit created successfully",
                },
            }
        )

    routes = [web.post("/workflow/walk-in/create-visit", create)]
    async with fake_backend(routes) as (session, settings):
        visit = await HttpWorkflowClient(session, settings).create_walk_in_visit("Jane Doe", "5550100", age=42)

    assert received == {"name": "Jane Doe", "mobile": "5550100", "age": 42}
    assert visit.patient_id == "PAT-1"
    assert visit.visit_id == "VIS-1"
    assert visit.status == "walk_in_patient"


@pytest.mark.asyncio
async def test_http_create_walk_in_visit_requires_ids(fake_backend):
    async def create(request):
        return web.json_response({"success": True, "data": {"patient_id": "PAT-1"}})

    routes = [web.post("/workflow/walk-in/create-visit", create)]
    async with fake_backend(routes) as (session, settings):
        with pytest.raises(ParseError):
            await HttpWorkflowClient(session, settings).create_walk_in_visit("Jane Doe", "5550100")


@pytest.mark.asyncio
async def test_http_list_walk_in_visits(fake_backend):
    seen = {}

    async def visits(request):
        seen.update(request.query)
        return web.json_response(
            {
                "visits": [
                    {
                        "visit_id": "VIS-1",
                        "patient_id": "PAT-1",
                        "workflow_type": "walk_in",
                        "status": "vitals_completed",
                        "created_at": "2024-01-01T10:00:00",
                        "updated_at": "2024-01-01T10:05:00",
                    }
                ],
                "limit": 10,
                "offset": 5,
                "count": 1,
            }
        )

    routes = [web.get("/workflow/visits/walk-in", visits)]
    async with fake_backend(routes) as (session, settings):
        result = await HttpWorkflowClient(session, settings).list_walk_in_visits(limit=10, offset=5)

    assert seen == {"limit": "10", "offset": "5"}
    assert [visit.visit_id for visit in result] == ["VIS-1"]
    assert result[0].created_at == "2024-01-01T10:00:00"


@pytest.mark.asyncio
async def test_http_available_steps_error_envelope(fake_backend):
    async def steps(request):
        visit_id = request.match_info["visit_id"]
        if visit_id == "coded":
            return web.json_response({"success": False, "error": "VISIT_NOT_FOUND", "message": "Visit not found"})
        if visit_id == "text-only":
            return web.json_response({"success": False, "error": "NOT_FOUND", "message": "Visit not found"})
        return web.json_response({"success": False, "error": "INTERNAL_ERROR", "message": "An unexpected error occurred"})

    routes = [web.get("/workflow/visit/{visit_id}/available-steps", steps)]
    async with fake_backend(routes) as (session, settings):
        client = HttpWorkflowClient(session, settings)
        resolver = WorkflowStepResolver(client)

        with pytest.raises(VisitNotFoundError):
            await resolver.fetch_steps("coded")

        with pytest.raises(WorkflowResolutionError) as exc_info:
            await resolver.fetch_steps("text-only")
        assert isinstance(exc_info.value.__cause__, ServerError)
        assert describe_resolution_error(exc_info.value) == VISIT_NOT_FOUND_MESSAGE

        with pytest.raises(WorkflowResolutionError) as exc_info:
            await resolver.fetch_steps("internal")
        assert "An unexpected error occurred" in exc_info.value.message
        assert resolver.latest("internal") is None
