"""
Backoff policy and retry-hint parsing for transcription status polling.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ...core.config import PollingSettings
from ...domain.enums.workflow import DelaySource

# (last attempt index inclusive, label). Cosmetic narration only.
_PHASES: Tuple[Tuple[int, str], ...] = (
    (2, "Transcribing audio..."),
    (7, "Processing transcript..."),
    (14, "Structuring dialogue..."),
)
_FINAL_PHASE = "Finalizing transcript..."


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class BackoffPolicy:
    """delay(n) = min(cap_ms, round(base_ms * growth_factor ** n))"""

    base_ms: int = 1500
    growth_factor: float = 1.6
    cap_ms: int = 15000

    @classmethod
    def from_settings(cls, settings: PollingSettings) -> "BackoffPolicy":
        return cls(
            base_ms=settings.base_ms,
            growth_factor=settings.growth_factor,
            cap_ms=settings.cap_ms,
        )

    def delay_ms(self, attempt_index: int) -> int:
        if attempt_index < 0:
            raise ValueError("attempt_index must be >= 0")
        try:
            raw = self.base_ms * (self.growth_factor ** attempt_index)
        except OverflowError:
            return self.cap_ms
        if math.isinf(raw) or raw >= self.cap_ms:
            return self.cap_ms
        return min(self.cap_ms, _round_half_up(raw))

    def next_delay(
        self, attempt_index: int, retry_after_ms: Optional[int] = None
    ) -> Tuple[int, DelaySource]:
        """Delay for this attempt; a server hint overrides it for this attempt only."""
        if retry_after_ms is not None and retry_after_ms >= 0:
            return retry_after_ms, DelaySource.SERVER_HINT
        return self.delay_ms(attempt_index), DelaySource.COMPUTED


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header expressed in seconds into milliseconds.

    Negative, non-numeric (including HTTP-date) or missing values yield None.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        seconds = float(text)
    except ValueError:
        return None
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return None
    return _round_half_up(seconds * 1000)


def phase_label(attempt_index: int) -> str:
    """Coarse progress label for an attempt index."""
    for last_index, label in _PHASES:
        if attempt_index <= last_index:
            return label
    return _FINAL_PHASE
