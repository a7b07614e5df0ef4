"""
Clinic-AI client facade.

Wires the aiohttp adapters into the StatusPoller and WorkflowStepResolver from
explicit Settings. One ClientSession is owned per client instance unless the
caller injects its own.

    async with ClinicAIClient(get_settings()) as client:
        outcome = await client.transcribe(JobKey("p1", "v1"), "consult.webm")
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import aiohttp

from .adapters.external.transcription_api_http import (
    HttpDialogueStructurer,
    HttpJobStatusClient,
    HttpJobSubmitter,
    HttpResultFetcher,
)
from .adapters.external.workflow_api_http import HttpWorkflowClient
from .application.dto.transcription_dto import (
    SubmitTranscriptionRequest,
    SubmitTranscriptionResponse,
)
from .application.use_cases.poll_transcription import StatusPoller, TransitionListener
from .application.use_cases.resolve_workflow_steps import WorkflowStepResolver
from .application.utils.backoff import BackoffPolicy
from .core.config import Settings, get_settings
from .core.exceptions import ConfigurationError, WorkflowResolutionError
from .domain.entities.job import PollOutcome, StatusCheck
from .domain.entities.workflow_state import WalkInVisit, WorkflowState
from .domain.enums.workflow import WorkflowAction
from .domain.value_objects.job_key import JobKey

logger = logging.getLogger(__name__)


class ClinicAIClient:
    """Async client for transcription jobs and visit workflow steps."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._session = session
        self._owns_session = session is None
        self._submitter: Optional[HttpJobSubmitter] = None
        self._status_client: Optional[HttpJobStatusClient] = None
        self._poller: Optional[StatusPoller] = None
        self._workflow_client: Optional[HttpWorkflowClient] = None
        self._resolver: Optional[WorkflowStepResolver] = None

    async def __aenter__(self) -> "ClinicAIClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the HTTP session (if not injected) and the adapters."""
        if self._poller is not None:
            return
        if self._session is None:
            self._session = aiohttp.ClientSession()
        api = self.settings.api
        polling = self.settings.polling

        self._submitter = HttpJobSubmitter(self._session, api)
        self._status_client = HttpJobStatusClient(self._session, api)
        self._poller = StatusPoller(
            status_service=self._status_client,
            result_service=HttpResultFetcher(self._session, api),
            structuring_service=HttpDialogueStructurer(self._session, api),
            policy=BackoffPolicy.from_settings(polling),
            deadline_ms=polling.deadline_ms,
        )
        self._workflow_client = HttpWorkflowClient(self._session, api)
        self._resolver = WorkflowStepResolver(self._workflow_client)
        logger.debug("Clinic-AI client opened against %s", api.base_url)

    async def close(self) -> None:
        """Cancel live polling sessions and close an owned HTTP session."""
        if self._poller is not None:
            self._poller.cancel_all()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None if self._owns_session else self._session
        self._poller = None

    @property
    def poller(self) -> StatusPoller:
        self._require_open()
        return self._poller

    @property
    def resolver(self) -> WorkflowStepResolver:
        self._require_open()
        return self._resolver

    def _require_open(self) -> None:
        if self._poller is None:
            raise ConfigurationError(
                "Client is not open; use 'async with ClinicAIClient(...)' or call open()"
            )

    async def submit(
        self,
        key: JobKey,
        audio: Union[str, Path, bytes],
        filename: Optional[str] = None,
        language: str = "en",
        content_type: Optional[str] = None,
    ) -> SubmitTranscriptionResponse:
        self._require_open()
        request = SubmitTranscriptionRequest(
            audio=audio, filename=filename, content_type=content_type, language=language
        )
        return await self._submitter.submit(key, request)

    async def check_status(self, key: JobKey) -> StatusCheck:
        self._require_open()
        return await self._status_client.check(key)

    async def poll(
        self,
        key: JobKey,
        deadline_ms: Optional[int] = None,
        on_transition: Optional[TransitionListener] = None,
    ) -> PollOutcome:
        """Poll an already-submitted job to its terminal outcome."""
        return await self.poller.run(key, deadline_ms=deadline_ms, on_transition=on_transition)

    def cancel(self, key: JobKey) -> bool:
        return self.poller.cancel(key)

    async def transcribe(
        self,
        key: JobKey,
        audio: Union[str, Path, bytes],
        filename: Optional[str] = None,
        language: str = "en",
        content_type: Optional[str] = None,
        deadline_ms: Optional[int] = None,
        on_transition: Optional[TransitionListener] = None,
    ) -> PollOutcome:
        """Submit audio, poll to completion and refresh the visit's workflow steps on success."""
        await self.submit(key, audio, filename=filename, language=language, content_type=content_type)
        outcome = await self.poll(key, deadline_ms=deadline_ms, on_transition=on_transition)
        if outcome.succeeded:
            try:
                await self.resolver.refresh_after(key.visit_id, WorkflowAction.TRANSCRIPTION_COMPLETED)
            except WorkflowResolutionError as exc:
                logger.warning(
                    "Could not refresh workflow steps for visit %s: %s", key.visit_id, exc.message
                )
        return outcome

    async def fetch_steps(self, visit_id: str) -> WorkflowState:
        return await self.resolver.fetch_steps(visit_id)

    async def create_walk_in_visit(
        self,
        name: str,
        mobile: str,
        age: Optional[int] = None,
        gender: Optional[str] = None,
    ) -> WalkInVisit:
        self._require_open()
        return await self._workflow_client.create_walk_in_visit(name, mobile, age=age, gender=gender)

    async def list_walk_in_visits(self, limit: int = 100, offset: int = 0) -> List[WalkInVisit]:
        self._require_open()
        return await self._workflow_client.list_walk_in_visits(limit=limit, offset=offset)
