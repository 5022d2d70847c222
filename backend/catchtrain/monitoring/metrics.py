"""In-memory request and upstream-call metrics for the /metrics endpoint."""
import time
from collections.abc import MutableMapping
from threading import Lock

_start_time = time.monotonic()
_counts: MutableMapping[str, int] = {}
_upstream: MutableMapping[str, dict[str, int]] = {}
_lock = Lock()


def record_request(status_code: int) -> None:
    if 200 <= status_code < 300:
        bucket = "2xx"
    elif 400 <= status_code < 500:
        bucket = "4xx"
    elif status_code >= 500:
        bucket = "5xx"
    else:
        bucket = "other"
    with _lock:
        _counts[bucket] = _counts.get(bucket, 0) + 1


def record_upstream_call(service: str, ok: bool) -> None:
    """Count one upstream call outcome (after retries) per service: tfl, directions, weather."""
    outcome = "ok" if ok else "failed"
    with _lock:
        per_service = _upstream.setdefault(service, {"ok": 0, "failed": 0})
        per_service[outcome] += 1


def reset_metrics() -> None:
    with _lock:
        _counts.clear()
        _upstream.clear()


def get_metrics() -> dict:
    with _lock:
        counts = dict(_counts)
        upstream = {name: dict(c) for name, c in _upstream.items()}
    uptime_seconds = time.monotonic() - _start_time
    return {
        "requests_total": sum(counts.values()),
        "requests_2xx": counts.get("2xx", 0),
        "requests_4xx": counts.get("4xx", 0),
        "requests_5xx": counts.get("5xx", 0),
        "upstream": upstream,
        "uptime_seconds": round(uptime_seconds, 1),
    }
