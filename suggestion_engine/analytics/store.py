from __future__ import annotations

import time
from typing import Any

_events: list[dict[str, Any]] = []


def record_event(event_type: str, data: dict[str, Any], timestamp: float | None = None) -> None:
    _events.append({
        "type": event_type,
        "timestamp": time.time() if timestamp is None else timestamp,
        **data,
    })


def get_events(event_type: str | None = None, since: float | None = None) -> list[dict[str, Any]]:
    return [
        e for e in _events
        if (event_type is None or e["type"] == event_type)
        and (since is None or e["timestamp"] >= since)
    ]


def clear_events() -> None:
    _events.clear()
