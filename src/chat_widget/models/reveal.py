"""
Reveal speed presets and pacing.
"""

from enum import Enum
from pydantic import BaseModel


class RevealSpeed(str, Enum):
    VERY_SLOW = "verySlow"
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"
    VERY_FAST = "veryFast"
    ULTRA_FAST = "ultraFast"


class RevealMode(str, Enum):
    PLAIN_TEXT = "plainText"
    RICH_TEXT = "richText"


class SpeedPreset(BaseModel):
    chars: int
    delay_ms: int


# Ordered slowest to fastest.
SPEED_PRESETS: dict[RevealSpeed, SpeedPreset] = {
    RevealSpeed.VERY_SLOW: SpeedPreset(chars=1, delay_ms=200),   # ~5 chars/s
    RevealSpeed.SLOW: SpeedPreset(chars=1, delay_ms=100),        # ~10 chars/s
    RevealSpeed.NORMAL: SpeedPreset(chars=1, delay_ms=30),       # ~33 chars/s
    RevealSpeed.FAST: SpeedPreset(chars=3, delay_ms=30),         # ~100 chars/s
    RevealSpeed.VERY_FAST: SpeedPreset(chars=5, delay_ms=20),    # ~250 chars/s
    RevealSpeed.ULTRA_FAST: SpeedPreset(chars=10, delay_ms=10),  # ~1000 chars/s
}


class TypingConfig(BaseModel):
    """Effective pacing for one reveal."""
    chars_per_chunk: int
    delay_ms: int
    large: bool = False

    @property
    def words_per_chunk(self) -> int:
        return max(1, round_half_up(self.chars_per_chunk / 5))

    @property
    def units_per_tick(self) -> int:
        return self.chars_per_chunk * 3


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
