"""
Clinic-AI transcription endpoints over aiohttp.

Submission, status polling, transcript retrieval and dialogue structuring for
one (patient, visit) pair. Status queries never raise: every outcome, including
transport failures, is folded into a StatusCheck so the poller can decide.
"""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Optional

import aiohttp

from ...application.dto.transcription_dto import (
    FetchResult,
    StructuredDialogue,
    SubmitTranscriptionRequest,
    SubmitTranscriptionResponse,
)
from ...application.ports.services.transcription_service import (
    DialogueStructuringService,
    JobStatusService,
    JobSubmissionService,
    ResultService,
)
from ...application.utils.backoff import parse_retry_after
from ...application.utils.structure_dialogue import (
    extract_transcript_text,
    parse_dialogue,
    serialize_dialogue,
)
from ...core.exceptions import (
    ClinicAIClientError,
    EnrichmentError,
    ParseError,
    ServerError,
    StateError,
    SubmissionError,
    TransportError,
)
from ...domain.entities.job import StatusCheck
from ...domain.enums.workflow import JobState
from ...domain.value_objects.job_key import JobKey
from ..http.base import BaseHttpAdapter
from ..http.responses import (
    Body,
    body_text,
    decode_json,
    extract_error_message,
    require_object,
    unwrap_envelope,
)

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/notes/transcribe"
STATUS_PATH = "/notes/transcribe/status/{}/{}"
TRANSCRIPT_PATH = "/notes/{}/visits/{}/transcript"
STRUCTURE_PATH = "/notes/{}/visits/{}/dialogue/structure"

DEFAULT_FAILURE_MESSAGE = "Transcription failed. Please try again."

# Server status values that keep the job in flight or end it. Anything else,
# including an absent status, sends the poller to the transcript endpoint,
# whose 202 answer keeps the session polling.
_STATUS_MAP = {
    "pending": JobState.PENDING,
    "queued": JobState.PENDING,
    "processing": JobState.PROCESSING,
    "failed": JobState.FAILED,
    "complete": JobState.COMPLETE,
    "completed": JobState.COMPLETE,
}

_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def _is_success(status: int) -> bool:
    return 200 <= status < 300


def interpret_status_response(
    http_status: int, body: Body, retry_after_ms: Optional[int] = None
) -> StatusCheck:
    """Map one status-endpoint response onto a normalized StatusCheck.

    Precedence: 202 means still working; any other non-2xx fails with the code
    and body embedded; a 2xx with an empty body is an anomaly and keeps polling;
    a malformed 2xx body or an error envelope fails immediately. Otherwise the
    payload `status` decides: pending and processing keep polling, failed ends
    the job, and everything else (completed, unknown, or absent) is treated as
    complete so the transcript is fetched.
    """
    if http_status == 202:
        return StatusCheck(
            state=JobState.PROCESSING, retry_after_ms=retry_after_ms, http_status=http_status
        )

    if not _is_success(http_status):
        error = ServerError(http_status, body_text(body), extract_error_message(body))
        return StatusCheck(
            state=JobState.FAILED,
            message=error.message,
            retry_after_ms=retry_after_ms,
            http_status=http_status,
            error=error,
        )

    if not body_text(body).strip():
        logger.warning(
            "Status endpoint returned %s with an empty body; treating as still processing",
            http_status,
        )
        return StatusCheck(
            state=JobState.PROCESSING,
            retry_after_ms=retry_after_ms,
            http_status=http_status,
            anomaly="empty_body",
        )

    try:
        payload = require_object(
            unwrap_envelope(decode_json(body, "status"), http_status), "status"
        )
    except ServerError as exc:
        failure = exc.server_message or DEFAULT_FAILURE_MESSAGE
        return StatusCheck(
            state=JobState.FAILED,
            message=failure,
            retry_after_ms=retry_after_ms,
            http_status=http_status,
            error=exc,
        )
    except ParseError as exc:
        return StatusCheck(
            state=JobState.FAILED,
            message=exc.message,
            http_status=http_status,
            error=exc,
        )

    message = payload.get("message")
    raw_status = payload.get("status")
    anomaly = None
    if not raw_status:
        state = JobState.COMPLETE
        anomaly = "no_status"
    else:
        state = _STATUS_MAP.get(str(raw_status).strip().lower())
        if state is None:
            state = JobState.COMPLETE
            anomaly = "unrecognized_status"
    if anomaly is not None:
        logger.info(
            "Status payload has %s status %r; checking for a transcript",
            "no" if anomaly == "no_status" else "an unrecognized",
            raw_status,
        )

    if state == JobState.FAILED:
        failure = message or payload.get("error_message") or DEFAULT_FAILURE_MESSAGE
        return StatusCheck(
            state=JobState.FAILED,
            message=failure,
            retry_after_ms=retry_after_ms,
            http_status=http_status,
            error=StateError(failure, details={"status": raw_status}),
        )

    return StatusCheck(
        state=state,
        message=message,
        retry_after_ms=retry_after_ms,
        http_status=http_status,
        anomaly=anomaly,
    )


class HttpJobSubmitter(BaseHttpAdapter, JobSubmissionService):
    """POST /notes/transcribe with multipart audio."""

    async def submit(
        self, key: JobKey, request: SubmitTranscriptionRequest
    ) -> SubmitTranscriptionResponse:
        if isinstance(request.audio, (str, Path)):
            path = Path(request.audio)
            with open(path, "rb") as audio_file:
                audio_data = audio_file.read()
            filename = request.filename or path.name
        else:
            audio_data = request.audio
            filename = request.filename or "recording.webm"
        content_type = (
            request.content_type
            or mimetypes.guess_type(filename)[0]
            or "application/octet-stream"
        )

        form = aiohttp.FormData()
        form.add_field("patient_id", key.subject_id)
        form.add_field("visit_id", key.visit_id)
        form.add_field("language", request.language)
        form.add_field("audio_file", audio_data, filename=filename, content_type=content_type)

        logger.info(
            "Uploading audio for transcription: %s (%s, %d bytes)",
            key,
            filename,
            len(audio_data),
        )
        timeout = aiohttp.ClientTimeout(total=self._settings.upload_timeout_seconds)
        try:
            async with self._session.post(
                self._url(SUBMIT_PATH), data=form, headers=self._headers(), timeout=timeout
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as exc:
            raise TransportError(
                "Upload timed out. Please try again with a shorter audio file.",
                details={"reason": "timeout"},
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(details={"reason": str(exc)}) from exc

        if not _is_success(status):
            text = body_text(body)
            logger.error("Upload failed for %s: %s %s", key, status, text)
            raise SubmissionError(status, text)

        data: dict = {}
        message = ""
        if body.strip():
            try:
                decoded = decode_json(body, "submission")
            except ParseError:
                logger.warning("Submission for %s accepted with a non-JSON body", key)
            else:
                if isinstance(decoded, dict):
                    try:
                        unwrapped = unwrap_envelope(decoded, status)
                    except ServerError as exc:
                        logger.error("Upload rejected for %s: %s", key, exc.server_message)
                        raise SubmissionError(status, exc.body) from exc
                    message = decoded.get("message") or ""
                    data = unwrapped if isinstance(unwrapped, dict) else {}
        return SubmitTranscriptionResponse(http_status=status, message=message, data=data)


class HttpJobStatusClient(BaseHttpAdapter, JobStatusService):
    """GET /notes/transcribe/status/{patient_id}/{visit_id}"""

    async def check(self, key: JobKey) -> StatusCheck:
        url = self._url(STATUS_PATH, key.subject_id, key.visit_id)
        try:
            async with self._session.get(url, headers=self._headers(), timeout=self._timeout) as response:
                status = response.status
                retry_after_ms = parse_retry_after(response.headers.get("Retry-After"))
                body = await response.read()
        except _TRANSPORT_ERRORS as exc:
            error = TransportError(details={"reason": str(exc) or type(exc).__name__})
            logger.error("Status check for %s received no response: %r", key, exc)
            return StatusCheck(state=JobState.FAILED, message=error.message, error=error)
        return interpret_status_response(status, body, retry_after_ms)


class HttpResultFetcher(BaseHttpAdapter, ResultService):
    """GET /notes/{patient_id}/visits/{visit_id}/transcript"""

    async def fetch(self, key: JobKey) -> FetchResult:
        url = self._url(TRANSCRIPT_PATH, key.subject_id, key.visit_id)
        try:
            async with self._session.get(url, headers=self._headers(), timeout=self._timeout) as response:
                status = response.status
                retry_after_ms = parse_retry_after(response.headers.get("Retry-After"))
                body = await response.read()
        except _TRANSPORT_ERRORS as exc:
            raise TransportError(details={"reason": str(exc) or type(exc).__name__}) from exc

        if status == 202:
            return FetchResult(ready=False, retry_after_ms=retry_after_ms)
        if not _is_success(status):
            raise ServerError(status, body_text(body), extract_error_message(body))
        if not body.strip():
            logger.warning("Transcript endpoint returned %s with an empty body for %s", status, key)
            return FetchResult(ready=False, retry_after_ms=retry_after_ms)

        payload = require_object(unwrap_envelope(decode_json(body, "transcript"), status), "transcript")
        text, dialogue = extract_transcript_text(payload)
        return FetchResult(ready=True, text=text, structured_dialogue=dialogue, payload=payload)


class HttpDialogueStructurer(BaseHttpAdapter, DialogueStructuringService):
    """POST /notes/{patient_id}/visits/{visit_id}/dialogue/structure"""

    async def structure(self, key: JobKey) -> StructuredDialogue:
        url = self._url(STRUCTURE_PATH, key.subject_id, key.visit_id)
        try:
            async with self._session.post(
                url,
                headers=self._headers({"Content-Type": "application/json"}),
                timeout=self._timeout,
            ) as response:
                status = response.status
                body = await response.read()
        except _TRANSPORT_ERRORS as exc:
            raise EnrichmentError(f"Dialogue structuring request failed: {exc!r}") from exc

        if status != 200:
            raise EnrichmentError(
                f"Dialogue structuring returned {status}",
                details={"status": status, "body": body_text(body)[:500]},
            )
        try:
            payload = require_object(unwrap_envelope(decode_json(body, "dialogue")), "dialogue")
        except ClinicAIClientError as exc:
            raise EnrichmentError(exc.message) from exc

        dialogue = payload.get("dialogue")
        if not isinstance(dialogue, (list, dict)):
            raise EnrichmentError("Dialogue structuring response has no dialogue")
        return StructuredDialogue(text=serialize_dialogue(dialogue), turns=parse_dialogue(dialogue))
