"""Transcript artifact produced by a completed transcription job."""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class DialogueTurn:
    """A single utterance attributed to a speaker role."""

    speaker_role: str
    utterance: str

    @classmethod
    def from_wire(cls, item: Any) -> Optional["DialogueTurn"]:
        """Parse `{"Doctor": "..."}` or `{"speaker": ..., "text": ...}` shaped turns."""
        if not isinstance(item, dict) or not item:
            return None
        if len(item) == 1:
            role, text = next(iter(item.items()))
            if isinstance(text, str):
                return cls(speaker_role=str(role), utterance=text)
            return None
        role = item.get("speaker") or item.get("role") or item.get("speaker_role")
        text = item.get("text") or item.get("utterance") or item.get("content")
        if isinstance(role, str) and isinstance(text, str):
            return cls(speaker_role=role, utterance=text)
        return None

    def to_wire(self) -> dict:
        return {self.speaker_role: self.utterance}


@dataclass
class TranscriptArtifact:
    """Final transcript handed to the caller.

    `raw_text` is what the result endpoint returned; `text` is the working text
    after optional enrichment. `is_structured` comes from content inspection.
    """

    raw_text: str
    text: str
    is_structured: bool
    structured_dialogue: Optional[List[DialogueTurn]] = None
    enriched: bool = False
    extra: dict = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()
