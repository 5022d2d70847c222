"""Listener interface for journey progress. Subclass and override what you need."""
from catchtrain.catch.status import CatchStatus
from catchtrain.journey.feedback import Feedback
from catchtrain.journey.phases import ProgressPhase


class JourneyProgressListener:
    def on_progress(
        self,
        overall_progress: float,
        phase_progress: float,
        catch_status: CatchStatus | None,
        delta: float,
        uncertainty: float,
        phase: ProgressPhase,
    ) -> None:
        pass

    def on_phase_change(self, phase: ProgressPhase) -> None:
        pass

    def on_feedback(self, feedback: Feedback) -> None:
        pass

    def on_journey_error(self, message: str) -> None:
        pass
