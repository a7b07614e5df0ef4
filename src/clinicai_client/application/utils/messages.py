"""User-facing text for workflow steps, poll outcomes and resolver errors."""

from typing import Union

from ...core.exceptions import (
    JobTimeoutError,
    TransportError,
    VisitNotFoundError,
)
from ...domain.entities.job import PollOutcome
from ...domain.enums.workflow import PollerState, StepId

_STEP_NAMES = {
    StepId.INTAKE.value: "Intake Form",
    StepId.PRE_VISIT_SUMMARY.value: "Pre-Visit Summary",
    StepId.TRANSCRIPTION.value: "Audio Transcription",
    StepId.VITALS.value: "Vitals Form",
    StepId.SOAP_GENERATION.value: "SOAP Generation",
    StepId.POST_VISIT_SUMMARY.value: "Post-Visit Summary",
}

_STEP_DESCRIPTIONS = {
    StepId.INTAKE.value: "Complete the patient intake questionnaire",
    StepId.PRE_VISIT_SUMMARY.value: "Generate clinical summary from intake data",
    StepId.TRANSCRIPTION.value: "Upload and transcribe consultation audio",
    StepId.VITALS.value: "Enter patient vital signs and measurements",
    StepId.SOAP_GENERATION.value: "Generate SOAP note from transcription",
    StepId.POST_VISIT_SUMMARY.value: "Create final visit summary for patient",
}

VISIT_NOT_FOUND_MESSAGE = "Visit not found. Please check the visit ID."
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
RETRY_SUFFIX = "Please try again."


def _step_value(step: Union[StepId, str]) -> str:
    return step.value if isinstance(step, StepId) else str(step)


def step_display_name(step: Union[StepId, str]) -> str:
    """Display name for a step; unknown steps are title-cased."""
    value = _step_value(step)
    if value in _STEP_NAMES:
        return _STEP_NAMES[value]
    return " ".join(word.capitalize() for word in value.replace("_", " ").split())


def step_description(step: Union[StepId, str]) -> str:
    return _STEP_DESCRIPTIONS.get(_step_value(step), "Complete this step")


def describe_poll_outcome(outcome: PollOutcome) -> str:
    """Short explanation of how a polling session ended."""
    if outcome.status == PollerState.SUCCEEDED:
        return "Transcription completed."
    if outcome.status == PollerState.CANCELLED:
        return "Transcription polling was cancelled."
    if outcome.status == PollerState.TIMED_OUT:
        limit = ""
        if isinstance(outcome.error, JobTimeoutError):
            limit = f" (over {outcome.error.deadline_text})"
        return (
            f"Transcription is taking longer than expected{limit}. "
            "The file is still being processed. Please check back in a few minutes "
            "or try with a shorter audio file."
        )
    if isinstance(outcome.error, TransportError):
        return NETWORK_ERROR_MESSAGE
    message = (outcome.message or "Transcription failed.").strip()
    if RETRY_SUFFIX.lower() in message.lower():
        return message
    return f"{message} {RETRY_SUFFIX}"


def describe_resolution_error(exc: Exception) -> str:
    """Map a step-resolution failure to text, telling a missing visit from a network problem."""
    if isinstance(exc, VisitNotFoundError):
        return VISIT_NOT_FOUND_MESSAGE
    text = str(exc)
    if "404" in text or "not found" in text.lower():
        return VISIT_NOT_FOUND_MESSAGE
    if isinstance(exc, TransportError) or "Network error" in text:
        return NETWORK_ERROR_MESSAGE
    return text or "Failed to load workflow status"
