"""Poll a transcription job until it reaches a terminal outcome.

A StatusPoller owns one PollSession per JobKey. Each session runs as an
asyncio task: status check, then either a terminal outcome or a scheduled
wait computed by the BackoffPolicy. The deadline is fixed when the session
starts. Once the deadline has passed, exactly one more status check is made
before the session reports a timeout.

Cancellation only interrupts the wait between attempts. A request already in
flight is allowed to finish, but its result is discarded and the session makes
no further transitions.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Union

from ...core.exceptions import (
    ClinicAIClientError,
    EnrichmentError,
    JobTimeoutError,
    StateError,
)
from ...core.structured_logger import log_fields
from ...domain.entities.job import Job, PollAttempt, PollOutcome, StatusCheck
from ...domain.entities.transcript import TranscriptArtifact
from ...domain.enums.workflow import JobState, PollerState
from ...domain.value_objects.job_key import JobKey
from ..ports.services.transcription_service import (
    DialogueStructuringService,
    JobStatusService,
    ResultService,
)
from ..utils.backoff import BackoffPolicy, phase_label
from ..utils.structure_dialogue import is_structured

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_MS = 1_500_000

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
TransitionListener = Callable[["PollSession", PollerState], None]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class CancellationToken:
    """Flag shared between a session and whoever may cancel it."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class PollSession:
    """State of one polling session: identity, attempt counter, deadline and cancellation."""

    def __init__(
        self,
        key: JobKey,
        deadline_ms: int,
        started_at_ms: float,
        clock: Clock,
        on_transition: Optional[TransitionListener] = None,
    ) -> None:
        self.key = key
        self.job = Job(key=key)
        self.deadline_ms = deadline_ms
        self.started_at_ms = started_at_ms
        self.attempt_index = 0
        self.attempts: List[PollAttempt] = []
        self.status_checks = 0
        self.final_check_performed = False
        self.state = PollerState.IDLE
        self.outcome: Optional[PollOutcome] = None
        self.token = CancellationToken()
        self._clock = clock
        self._last_elapsed_ms = 0
        self._on_transition = on_transition
        self._task: Optional[asyncio.Task] = None
        self._wait_task: Optional[asyncio.Future] = None
        self._finished: asyncio.Future = asyncio.get_running_loop().create_future()

    def __repr__(self) -> str:
        return (
            f"PollSession(key={self.key}, state={self.state.value}, "
            f"attempt_index={self.attempt_index})"
        )

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def is_live(self) -> bool:
        return not self.state.is_final

    @property
    def phase_label(self) -> str:
        """Cosmetic progress narration derived from the attempt index."""
        return phase_label(self.attempt_index)

    def elapsed_ms(self) -> int:
        """Elapsed time since start; never regresses even if the clock does."""
        elapsed = int(self._clock() - self.started_at_ms)
        if elapsed < self._last_elapsed_ms:
            elapsed = self._last_elapsed_ms
        self._last_elapsed_ms = elapsed
        return elapsed

    def cancel(self) -> None:
        """Stop scheduling attempts. Any in-flight result will be discarded."""
        if self.token.cancelled or self.state.is_final:
            return
        self.token.cancel()
        if self._wait_task is not None and not self._wait_task.done():
            self._wait_task.cancel()
        self._finish(PollerState.CANCELLED, message="Polling cancelled", force=True)

    async def wait(self) -> PollOutcome:
        """Wait until the session reaches a final state and return its outcome."""
        return await asyncio.shield(self._finished)

    def _record_attempt(self, delay_ms: int, delay_source) -> PollAttempt:
        attempt = PollAttempt(
            attempt_index=self.attempt_index,
            elapsed_ms=self.elapsed_ms(),
            delay_ms=delay_ms,
            delay_source=delay_source,
        )
        self.attempts.append(attempt)
        return attempt

    def _transition(self, state: PollerState) -> bool:
        if self.state.is_final or (self.token.cancelled and state != PollerState.CANCELLED):
            return False
        self.state = state
        if self._on_transition is not None:
            try:
                self._on_transition(self, state)
            except Exception:
                logger.exception("Poll transition listener failed for %s", self.key)
        return True

    def _finish(
        self,
        state: PollerState,
        artifact: Optional[TranscriptArtifact] = None,
        message: Optional[str] = None,
        error: Optional[ClinicAIClientError] = None,
        force: bool = False,
    ) -> None:
        if self.token.cancelled and not force:
            return
        outcome = PollOutcome(
            status=state,
            key=self.key,
            artifact=artifact,
            message=message,
            error=error,
            attempts=list(self.attempts),
            elapsed_ms=self.elapsed_ms(),
        )
        if not self._transition(state):
            return
        self.outcome = outcome
        if not self._finished.done():
            self._finished.set_result(outcome)


class StatusPoller:
    """Drives JobStatusService, ResultService and DialogueStructuringService to a terminal outcome."""

    def __init__(
        self,
        status_service: JobStatusService,
        result_service: ResultService,
        structuring_service: Optional[DialogueStructuringService] = None,
        policy: Optional[BackoffPolicy] = None,
        deadline_ms: int = DEFAULT_DEADLINE_MS,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if deadline_ms <= 0:
            raise ValueError("deadline_ms must be positive")
        self._status_service = status_service
        self._result_service = result_service
        self._structuring_service = structuring_service
        self._policy = policy or BackoffPolicy()
        self._deadline_ms = deadline_ms
        self._clock = clock or monotonic_ms
        self._sleep = sleep or asyncio.sleep
        self._sessions: Dict[JobKey, PollSession] = {}

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    def active_session(self, key: Union[JobKey, Job, tuple]) -> Optional[PollSession]:
        session = self._sessions.get(JobKey.of(key))
        if session is not None and session.is_live:
            return session
        return None

    def start(
        self,
        job: Union[JobKey, Job, tuple],
        deadline_ms: Optional[int] = None,
        on_transition: Optional[TransitionListener] = None,
    ) -> PollSession:
        """Begin a new session, cancelling any live session for the same job first."""
        key = JobKey.of(job)
        previous = self._sessions.get(key)
        if previous is not None and previous.is_live:
            logger.info(
                "Cancelling previous polling session for %s before starting a new one",
                key,
                extra=log_fields(subject_id=key.subject_id, visit_id=key.visit_id),
            )
            previous.cancel()

        deadline = deadline_ms if deadline_ms is not None else self._deadline_ms
        if deadline <= 0:
            raise ValueError("deadline_ms must be positive")
        session = PollSession(
            key=key,
            deadline_ms=deadline,
            started_at_ms=self._clock(),
            clock=self._clock,
            on_transition=on_transition,
        )
        self._sessions[key] = session
        session._task = asyncio.ensure_future(self._drive(session))
        return session

    async def run(
        self,
        job: Union[JobKey, Job, tuple],
        deadline_ms: Optional[int] = None,
        on_transition: Optional[TransitionListener] = None,
    ) -> PollOutcome:
        """Start a session and wait for its outcome."""
        session = self.start(job, deadline_ms=deadline_ms, on_transition=on_transition)
        return await session.wait()

    def cancel(self, job: Union[JobKey, Job, tuple]) -> bool:
        session = self.active_session(job)
        if session is None:
            return False
        session.cancel()
        return True

    def cancel_all(self) -> None:
        for session in list(self._sessions.values()):
            session.cancel()

    async def _drive(self, session: PollSession) -> None:
        try:
            await self._poll(session)
        except asyncio.CancelledError:
            if not session.cancelled:
                session.cancel()
            raise
        except Exception as exc:
            logger.error("Unexpected error while polling %s: %s", session.key, exc, exc_info=True)
            if not session.cancelled:
                if isinstance(exc, ClinicAIClientError):
                    error = exc
                else:
                    error = ClinicAIClientError(
                        f"Unexpected error while polling: {exc!r}", "UNEXPECTED_ERROR"
                    )
                    error.__cause__ = exc
                session._finish(PollerState.FAILED, message=error.message, error=error)
        finally:
            if self._sessions.get(session.key) is session:
                del self._sessions[session.key]

    async def _poll(self, session: PollSession) -> None:
        session._transition(PollerState.POLLING)
        key = session.key

        while True:
            final_check = session.elapsed_ms() >= session.deadline_ms
            if final_check:
                session.final_check_performed = True

            check = await self._status_service.check(key)
            session.status_checks += 1
            if session.cancelled:
                logger.debug("Discarding status result for cancelled session %s", key)
                return
            session.job.apply(check)

            logger.info(
                "Transcription status poll #%d for %s: state=%s (%s)",
                session.status_checks,
                key,
                check.state.value,
                session.phase_label,
                extra=log_fields(
                    subject_id=key.subject_id,
                    visit_id=key.visit_id,
                    attempt_index=session.attempt_index,
                    state=check.state.value,
                    final_check=final_check,
                ),
            )

            if check.state == JobState.FAILED:
                self._report_failure(session, check)
                return

            retry_after_ms = check.retry_after_ms
            if check.state == JobState.COMPLETE:
                finished, retry_after_ms = await self._complete(session)
                if finished or session.cancelled:
                    return

            if final_check:
                self._report_timeout(session)
                return

            elapsed = session.elapsed_ms()
            if elapsed >= session.deadline_ms:
                # Deadline passed during this attempt; the next check is the final one.
                continue

            delay_ms, source = self._policy.next_delay(session.attempt_index, retry_after_ms)
            delay_ms = min(delay_ms, session.deadline_ms - elapsed)
            session._record_attempt(delay_ms, source)

            if not await self._wait(session, delay_ms):
                return
            session.attempt_index += 1

    async def _wait(self, session: PollSession, delay_ms: int) -> bool:
        """Sleep between attempts; False if the session was cancelled meanwhile."""
        if session.cancelled:
            return False
        session._wait_task = asyncio.ensure_future(self._sleep(delay_ms / 1000.0))
        try:
            await session._wait_task
        except asyncio.CancelledError:
            if session.cancelled:
                return False
            raise
        finally:
            session._wait_task = None
        return not session.cancelled

    async def _complete(self, session: PollSession):
        """Fetch the transcript and enrich it. Returns (finished, retry_after_ms)."""
        key = session.key
        try:
            result = await self._result_service.fetch(key)
        except ClinicAIClientError as exc:
            if session.cancelled:
                return True, None
            logger.error("Transcript fetch failed for %s: %s", key, exc.message)
            session._finish(PollerState.FAILED, message=exc.message, error=exc)
            return True, None

        if session.cancelled:
            return True, None
        if not result.ready:
            logger.info("Transcript for %s not ready yet (202), continuing to poll", key)
            return False, result.retry_after_ms

        raw_text = result.text
        text = raw_text
        dialogue = result.structured_dialogue
        enriched = False
        structured = is_structured(raw_text)

        if not structured and raw_text.strip() and self._structuring_service is not None:
            try:
                structured_result = await self._structuring_service.structure(key)
            except EnrichmentError as exc:
                logger.warning(
                    "Failed to structure dialogue for %s, keeping raw transcript: %s",
                    key,
                    exc.message,
                )
            else:
                text = structured_result.text
                dialogue = structured_result.turns or None
                enriched = True
                structured = is_structured(text)
            if session.cancelled:
                return True, None

        artifact = TranscriptArtifact(
            raw_text=raw_text,
            text=text,
            is_structured=structured,
            structured_dialogue=dialogue,
            enriched=enriched,
            extra=result.payload,
        )
        logger.info(
            "Transcription completed for %s after %d status checks",
            key,
            session.status_checks,
            extra=log_fields(
                subject_id=key.subject_id,
                visit_id=key.visit_id,
                enriched=enriched,
                is_structured=structured,
                chars=len(text),
            ),
        )
        session._finish(PollerState.SUCCEEDED, artifact=artifact, message="Transcription completed.")
        return True, None

    def _report_failure(self, session: PollSession, check: StatusCheck) -> None:
        error = check.error or StateError(check.message or "Transcription failed. Please try again.")
        message = check.message or error.message
        logger.error(
            "Transcription failed for %s: %s",
            session.key,
            message,
            extra=log_fields(error_code=error.error_code, http_status=check.http_status),
        )
        session._finish(PollerState.FAILED, message=message, error=error)

    def _report_timeout(self, session: PollSession) -> None:
        error = JobTimeoutError(elapsed_ms=session.elapsed_ms(), deadline_ms=session.deadline_ms)
        logger.warning(
            "Transcription polling timed out for %s: %s",
            session.key,
            error.message,
            extra=log_fields(status_checks=session.status_checks),
        )
        session._finish(PollerState.TIMED_OUT, message=error.message, error=error)
