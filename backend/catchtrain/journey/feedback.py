"""Rider feedback cues. Only when to fire them lives here; playback is the client's job."""
from enum import Enum
from typing import NamedTuple

# Target train this close (seconds) while the rider is not yet aboard
ARRIVING_NOW_WITHIN_SEC = 30.0
# Share of a ride after which the next transfer is announced
TRANSFER_SOON_AT_PROGRESS = 0.9


class FeedbackKind(Enum):
    SPEED_UP = "speed_up"
    ON_TIME = "on_time"
    LIKELY_MISSED = "likely_missed"
    TRAIN_ARRIVING_NOW = "train_arriving_now"
    TRANSFER_SOON = "transfer_soon"


class Feedback(NamedTuple):
    kind: FeedbackKind
    speech_text: str
    visual_text: str


def speed_up() -> Feedback:
    return Feedback(FeedbackKind.SPEED_UP, "Speed up to catch your train.", "Speed up")


def on_time() -> Feedback:
    return Feedback(FeedbackKind.ON_TIME, "You're back on time.", "On time")


def likely_missed() -> Feedback:
    return Feedback(
        FeedbackKind.LIKELY_MISSED,
        "You will probably miss this train. Looking for the next one.",
        "Likely missed",
    )


def train_arriving_now(line_name: str | None = None) -> Feedback:
    line = f"{line_name} train" if line_name else "Your train"
    return Feedback(FeedbackKind.TRAIN_ARRIVING_NOW, f"{line} is arriving now.", "Arriving now")


def transfer_soon(next_line: str) -> Feedback:
    return Feedback(
        FeedbackKind.TRANSFER_SOON,
        "Transfer is coming up soon.",
        f"Transfer to {next_line}",
    )
