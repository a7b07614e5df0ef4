"""
Helpers for telling raw transcripts from structured Doctor/Patient dialogue.

The backend does not flag whether a transcript is already structured, so the
client sniffs the text: structured dialogue is serialized as JSON objects keyed
by the speaker role, which puts the quoted role names in the text. This is a
heuristic.
"""

import json
from typing import Any, Iterable, List, Optional, Tuple

from ...domain.entities.transcript import DialogueTurn

DOCTOR_MARKER = '"Doctor"'
PATIENT_MARKERS: Tuple[str, ...] = ('"Patient"', '"Paciente"')


def is_structured(text: Optional[str]) -> bool:
    """True when the text carries a quoted Doctor or Patient role marker."""
    if not text:
        return False
    if DOCTOR_MARKER in text:
        return True
    return any(marker in text for marker in PATIENT_MARKERS)


def serialize_dialogue(dialogue: Any) -> str:
    """Serialize a dialogue payload compactly, as the web client stores it."""
    return json.dumps(dialogue, ensure_ascii=False, separators=(",", ":"))


def parse_dialogue(dialogue: Any) -> List[DialogueTurn]:
    """Turn a wire dialogue (list of turns, or mapping of turns) into DialogueTurns."""
    items: Iterable[Any]
    if isinstance(dialogue, list):
        items = dialogue
    elif isinstance(dialogue, dict):
        nested = dialogue.get("dialogue") or dialogue.get("turns")
        items = nested if isinstance(nested, list) else [dialogue]
    else:
        return []
    turns = []
    for item in items:
        turn = DialogueTurn.from_wire(item)
        if turn is not None:
            turns.append(turn)
    return turns


def extract_transcript_text(payload: dict) -> Tuple[str, Optional[List[DialogueTurn]]]:
    """Pick the artifact text from a transcript payload.

    A non-empty `structured_dialogue` list wins and is serialized; otherwise the
    plain `transcript` field is used; otherwise the text is empty.
    """
    dialogue = payload.get("structured_dialogue")
    if isinstance(dialogue, list) and dialogue:
        return serialize_dialogue(dialogue), parse_dialogue(dialogue)
    transcript = payload.get("transcript")
    if isinstance(transcript, str):
        return transcript, None
    return "", None
