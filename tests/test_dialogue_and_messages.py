"""
Dialogue detection/serialization helpers and user-facing messages.
"""

import pytest

from clinicai_client.application.utils.messages import (
    NETWORK_ERROR_MESSAGE,
    VISIT_NOT_FOUND_MESSAGE,
    describe_poll_outcome,
    describe_resolution_error,
    step_description,
    step_display_name,
)
from clinicai_client.application.utils.structure_dialogue import (
    extract_transcript_text,
    is_structured,
    parse_dialogue,
    serialize_dialogue,
)
from clinicai_client.core.exceptions import (
    JobTimeoutError,
    ServerError,
    TransportError,
    VisitNotFoundError,
    WorkflowResolutionError,
)
from clinicai_client.domain.entities.job import PollOutcome
from clinicai_client.domain.entities.transcript import DialogueTurn
from clinicai_client.domain.enums.workflow import PollerState, StepId
from clinicai_client.domain.value_objects.job_key import JobKey

KEY = JobKey("p1", "v1")


@pytest.mark.parametrize(
    "text,expected",
    [
        ('[{"Doctor":"Hi"},{"Patient":"Hello"}]', True),
        ('[{"Doctor":"Hola"}]', True),
        ('[{"Paciente":"Me duele"}]', True),
        ("Doctor: hi. Patient: hello.", False),
        ("hello", False),
        ("", False),
        (None, False),
    ],
)
def test_is_structured(text, expected):
    assert is_structured(text) is expected


def test_serialize_dialogue_is_compact_and_keeps_unicode():
    dialogue = [{"Doctor": "¿Cómo está?"}, {"Paciente": "Bien"}]
    assert serialize_dialogue(dialogue) == '[{"Doctor":"¿Cómo está?"},{"Paciente":"Bien"}]'


def test_parse_dialogue_accepts_both_turn_shapes():
    turns = parse_dialogue(
        [{"Doctor": "Hi"}, {"speaker": "Patient", "text": "Hello"}, {"bogus": 1}, "noise"]
    )
    assert turns == [DialogueTurn("Doctor", "Hi"), DialogueTurn("Patient", "Hello")]
    assert turns[1].to_wire() == {"Patient": "Hello"}


def test_extract_prefers_structured_dialogue():
    text, turns = extract_transcript_text(
        {"transcript": "raw", "structured_dialogue": [{"Doctor": "Hi"}]}
    )
    assert text == '[{"Doctor":"Hi"}]'
    assert turns == [DialogueTurn("Doctor", "Hi")]


def test_extract_falls_back_to_transcript_then_empty():
    assert extract_transcript_text({"transcript": "hello", "structured_dialogue": []}) == ("hello", None)
    assert extract_transcript_text({}) == ("", None)


def test_step_display_helpers():
    assert step_display_name(StepId.SOAP_GENERATION) == "SOAP Generation"
    assert step_display_name("vitals") == "Vitals Form"
    assert step_display_name("lab_orders") == "Lab Orders"
    assert step_description("transcription") == "Upload and transcribe consultation audio"
    assert step_description("lab_orders") == "Complete this step"


def test_describe_failed_outcome_adds_retry_hint():
    outcome = PollOutcome(status=PollerState.FAILED, key=KEY, message="bad audio codec")
    assert describe_poll_outcome(outcome) == "bad audio codec Please try again."


def test_describe_failed_outcome_does_not_repeat_retry_hint():
    outcome = PollOutcome(
        status=PollerState.FAILED, key=KEY, message="Transcription failed. Please try again."
    )
    assert describe_poll_outcome(outcome) == "Transcription failed. Please try again."


def test_describe_transport_failure():
    outcome = PollOutcome(status=PollerState.FAILED, key=KEY, error=TransportError())
    assert describe_poll_outcome(outcome) == NETWORK_ERROR_MESSAGE


def test_describe_timeout_mentions_minutes_and_shorter_audio():
    error = JobTimeoutError(elapsed_ms=1_500_200, deadline_ms=1_500_000)
    outcome = PollOutcome(status=PollerState.TIMED_OUT, key=KEY, error=error, message=error.message)
    text = describe_poll_outcome(outcome)
    assert "25 minutes" in text
    assert "shorter audio file" in text


@pytest.mark.parametrize(
    "deadline_ms,expected",
    [(30_000, "30 seconds"), (1_000, "1 second"), (90_500, "91 seconds"), (60_000, "1 minute"), (1_500_000, "25 minutes")],
)
def test_timeout_text_never_rounds_down_to_zero(deadline_ms, expected):
    error = JobTimeoutError(elapsed_ms=deadline_ms, deadline_ms=deadline_ms)
    assert error.deadline_text == expected
    assert f"within {expected} " in error.message
    outcome = PollOutcome(status=PollerState.TIMED_OUT, key=KEY, error=error, message=error.message)
    assert f"(over {expected})" in describe_poll_outcome(outcome)


def test_describe_resolution_errors():
    assert describe_resolution_error(VisitNotFoundError("v9")) == VISIT_NOT_FOUND_MESSAGE
    assert describe_resolution_error(WorkflowResolutionError(ServerError(404).message)) == VISIT_NOT_FOUND_MESSAGE
    assert describe_resolution_error(WorkflowResolutionError(TransportError().message)) == NETWORK_ERROR_MESSAGE
    assert describe_resolution_error(WorkflowResolutionError("Server error (500): boom")) == "Server error (500): boom"
