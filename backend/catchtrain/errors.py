"""Error taxonomy. Subsystems degrade locally; only the journey session decides what is user-visible."""


class CatchTrainError(Exception):
    """Base class for catchtrain errors."""


class SensorUnavailable(CatchTrainError):
    """Motion hardware absent or refusing updates. Not fatal: callers fall back to GPS only."""


class NetworkFailure(CatchTrainError, RuntimeError):
    """An upstream fetch failed after retries. Never propagated past the aggregator."""


class UnresolvableStation(CatchTrainError, LookupError):
    """A station name could not be matched to a TfL stop point."""

    def __init__(self, name: str):
        super().__init__(f"Could not resolve station '{name}'")
        self.name = name


class MissingRouteData(CatchTrainError, ValueError):
    """Origin, destination or route not set before a journey is started."""
