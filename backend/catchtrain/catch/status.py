"""
Catch-status classifier: seconds of buffer -> how comfortably the rider reaches the platform.

Bounds are open below and closed above, and every caller goes through classify_catch_status:
    buffer > 90          EASY
    20 < buffer <= 90    HURRY
    -30 < buffer <= 20   TOUGH
    buffer <= -30        MISSED
"""
from enum import Enum

EASY_ABOVE_SEC = 90.0
HURRY_ABOVE_SEC = 20.0
TOUGH_ABOVE_SEC = -30.0


class CatchStatus(Enum):
    EASY = "easy"
    HURRY = "hurry"
    TOUGH = "tough"
    MISSED = "missed"

    @property
    def display_text(self) -> str:
        return _DISPLAY_TEXT[self]

    @property
    def rank(self) -> int:
        """0 is best. Used to tell improvement from degradation."""
        return _RANK[self]

    def is_better_than(self, other: "CatchStatus") -> bool:
        return self.rank < other.rank


_DISPLAY_TEXT = {
    CatchStatus.EASY: "EASY",
    CatchStatus.HURRY: "HURRY",
    CatchStatus.TOUGH: "TOUGH!",
    CatchStatus.MISSED: "MISSED",
}

_RANK = {
    CatchStatus.EASY: 0,
    CatchStatus.HURRY: 1,
    CatchStatus.TOUGH: 2,
    CatchStatus.MISSED: 3,
}


def classify_catch_status(buffer_seconds: float) -> CatchStatus:
    if buffer_seconds > EASY_ABOVE_SEC:
        return CatchStatus.EASY
    if buffer_seconds > HURRY_ABOVE_SEC:
        return CatchStatus.HURRY
    if buffer_seconds > TOUGH_ABOVE_SEC:
        return CatchStatus.TOUGH
    return CatchStatus.MISSED
