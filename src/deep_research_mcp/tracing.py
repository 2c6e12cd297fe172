"""Per-request execution trace.

Every research run and job resume owns one :class:`Trace`. Stages and the
job manager append phase events (``plan``, ``search``, ``extract``,
``stop``, ``poll``, ``rate_limit`` …); the caller receives the whole list
for diagnostics. Events are also mirrored to the module logger at DEBUG.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """ISO-8601 UTC timestamp used for trace events and result timestamps."""
    return datetime.now(timezone.utc).isoformat()


class Trace:
    """Append-only ordered event log for one request lifecycle."""

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []

    def record(self, phase: str, **data: Any) -> None:
        """Append an event; ``phase`` and ``at`` are always present."""
        event = {"phase": phase, "at": utc_now(), **data}
        self._events.append(event)
        logger.debug("trace %s %s", phase, data)

    def phases(self) -> list[str]:
        return [e["phase"] for e in self._events]

    @property
    def events(self) -> list[dict[str, Any]]:
        """Copy of the events; the log itself cannot be edited from outside."""
        return [dict(e) for e in self._events]

    def __len__(self) -> int:
        return len(self._events)
