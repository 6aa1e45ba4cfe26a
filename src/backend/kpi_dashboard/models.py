from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

Event = Tuple[str, int]

# Year 5138 in seconds; any millisecond timestamp after 1973 is larger.
MAX_SECONDS_TIMESTAMP = 10**11


@dataclass(frozen=True)
class UserAgent:
    os: Optional[str] = None
    browser: Optional[str] = None


@dataclass(frozen=True)
class Record:
    """
    One interaction bundle reported by the sign-in dialog.

    ``timestamp`` is always seconds since epoch here; sources that deliver
    milliseconds convert at the boundary (see ``Record.from_payload``).
    ``event_stream`` keeps the (event_name, offset_millis) pairs in the order
    they were emitted.
    """

    timestamp: int
    event_stream: Tuple[Event, ...] = ()
    locale: Optional[str] = None
    user_agent: Optional[UserAgent] = None
    number_sites_logged_in: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], timestamp_unit: str = "ms") -> "Record":
        """
        Build a record from the JSON shape served by the data remote.

        CouchDB dumps wrap each document as ``{"id": ..., "value": {...}}``;
        the wrapper is dropped when present.
        """

        value = payload.get("value")
        if isinstance(value, Mapping):
            payload = value

        raw_timestamp = payload.get("timestamp") or 0
        if timestamp_unit == "ms":
            timestamp = math.floor(raw_timestamp / 1000)
        else:
            timestamp = int(raw_timestamp)
            if timestamp > MAX_SECONDS_TIMESTAMP:
                raise ValueError(
                    f"timestamp {raw_timestamp} is too large to be in seconds "
                    f"(timestamp_unit={timestamp_unit!r}); is the source sending milliseconds?"
                )

        user_agent = None
        raw_agent = payload.get("user_agent")
        if isinstance(raw_agent, Mapping):
            user_agent = UserAgent(os=raw_agent.get("os"), browser=raw_agent.get("browser"))

        events = tuple(
            (str(event[0]), int(event[1]) if len(event) > 1 and event[1] is not None else 0)
            for event in payload.get("event_stream") or ()
            if event
        )

        return cls(
            timestamp=timestamp,
            event_stream=events,
            locale=payload.get("lang"),
            user_agent=user_agent,
            number_sites_logged_in=int(payload.get("number_sites_logged_in") or 0),
        )

    def as_payload(self) -> Dict[str, Any]:
        """Inverse of ``from_payload`` with ``timestamp_unit="s"``."""
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "event_stream": [[name, offset] for name, offset in self.event_stream],
            "lang": self.locale,
            "number_sites_logged_in": self.number_sites_logged_in,
        }
        if self.user_agent is not None:
            payload["user_agent"] = {"os": self.user_agent.os, "browser": self.user_agent.browser}
        return payload


@dataclass(frozen=True)
class SummarizedPoint:
    category: str
    value: float

    def as_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "value": self.value}


@dataclass(frozen=True)
class StepFractions:
    """
    Partial aggregate of the weighted-fraction form.

    ``steps`` holds fractions, not counts, so ``total`` (the number of users
    the fractions were computed over) has to travel with them for merges.
    """

    steps: Dict[str, float] = field(default_factory=dict)
    total: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {"steps": dict(self.steps), "total": self.total}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StepFractions":
        return cls(steps=dict(payload.get("steps") or {}), total=int(payload.get("total") or 0))


@dataclass(frozen=True)
class ViewRow:
    key: Optional[str]
    value: Any


Report = Dict[str, List[SummarizedPoint]]
TimeReport = Dict[str, Dict[str, float]]


def report_as_dict(report: Mapping[str, Sequence[SummarizedPoint]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Convert a segment report into plain JSON-serialisable structures.
    """

    return {segment: [point.as_dict() for point in points] for segment, points in report.items()}
