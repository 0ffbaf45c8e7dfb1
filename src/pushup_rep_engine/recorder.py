from __future__ import annotations
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Span used for the best-cadence window; reps in it are scaled to per-minute.
BEST_WINDOW_S = 30.0


class EventKind(str, Enum):
    REP = "rep"
    TOO_FAST = "too_fast"


@dataclass(frozen=True)
class RecordedSample:
    t_rel: float
    smoothed_cm: float
    threshold_cm: float
    armed: bool


@dataclass(frozen=True)
class RecordedEvent:
    t_rel: float
    kind: EventKind


@dataclass(frozen=True)
class SessionMeta:
    id: uuid.UUID
    started_at: datetime
    ended_at: datetime
    total_reps: int
    height_delta_cm: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "total_reps": self.total_reps,
            "height_delta_cm": self.height_delta_cm,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SessionMeta":
        return cls(
            id=uuid.UUID(d["id"]),
            started_at=datetime.fromisoformat(d["started_at"]),
            ended_at=datetime.fromisoformat(d["ended_at"]),
            total_reps=int(d["total_reps"]),
            height_delta_cm=float(d["height_delta_cm"]),
        )


@dataclass(frozen=True)
class Session:
    """Summary of one finished recording. Equality and hashing go by ``id``."""

    id: uuid.UUID = field(compare=True)
    started_at: datetime = field(compare=False)
    ended_at: datetime = field(compare=False)
    total_reps: int = field(compare=False)
    duration_s: float = field(compare=False)
    avg_cadence_rpm: float = field(compare=False)
    best_cadence_30s_rpm: float = field(compare=False)
    height_delta_cm: float = field(compare=False)
    percent_clean: float = field(compare=False)
    samples: Tuple[RecordedSample, ...] = field(default=(), compare=False)
    events: Tuple[RecordedEvent, ...] = field(default=(), compare=False)

    def meta(self) -> SessionMeta:
        return SessionMeta(
            id=self.id,
            started_at=self.started_at,
            ended_at=self.ended_at,
            total_reps=self.total_reps,
            height_delta_cm=self.height_delta_cm,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "total_reps": self.total_reps,
            "duration_s": self.duration_s,
            "avg_cadence_rpm": self.avg_cadence_rpm,
            "best_cadence_30s_rpm": self.best_cadence_30s_rpm,
            "height_delta_cm": self.height_delta_cm,
            "percent_clean": self.percent_clean,
            "samples": [
                {"t": s.t_rel, "cm": s.smoothed_cm, "threshold": s.threshold_cm, "armed": s.armed}
                for s in self.samples
            ],
            "events": [{"t": e.t_rel, "kind": e.kind.value} for e in self.events],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Session":
        return cls(
            id=uuid.UUID(d["id"]),
            started_at=datetime.fromisoformat(d["started_at"]),
            ended_at=datetime.fromisoformat(d["ended_at"]),
            total_reps=int(d["total_reps"]),
            duration_s=float(d["duration_s"]),
            avg_cadence_rpm=float(d["avg_cadence_rpm"]),
            best_cadence_30s_rpm=float(d["best_cadence_30s_rpm"]),
            height_delta_cm=float(d["height_delta_cm"]),
            percent_clean=float(d["percent_clean"]),
            samples=tuple(
                RecordedSample(float(s["t"]), float(s["cm"]), float(s["threshold"]), bool(s["armed"]))
                for s in d.get("samples", [])
            ),
            events=tuple(RecordedEvent(float(e["t"]), EventKind(e["kind"])) for e in d.get("events", [])),
        )


def best_window_count(times: Sequence[float], window_s: float = BEST_WINDOW_S) -> int:
    """Largest number of timestamps inside any closed span of ``window_s`` seconds.

    Two-pointer sweep over the sorted times; both indices only move forward.
    """
    ts = sorted(times)
    best = 0
    j = 0
    for i, start in enumerate(ts):
        if j < i:
            j = i
        while j < len(ts) and ts[j] - start <= window_s:
            j += 1
        best = max(best, j - i)
    return best


class SessionRecorder:
    """Collects downsampled telemetry and every rep event for one session.

    The wall clock is passed in at ``start``/``finish``; sample timestamps
    are the detector's monotonic seconds, made relative to the first one
    recorded after ``start``.
    """

    def __init__(self):
        self.started_at: Optional[datetime] = None
        self.start_t: Optional[float] = None
        self.height_delta_cm = 0.0
        self.samples: List[RecordedSample] = []
        self.events: List[RecordedEvent] = []
        self.last_sample_write_t: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.started_at is not None

    def start(self, height_delta_cm: float, now: datetime):
        self.started_at = now
        self.start_t = None
        self.height_delta_cm = float(height_delta_cm)
        self.samples = []
        self.events = []
        self.last_sample_write_t = None

    def _rel(self, t: float) -> float:
        if self.start_t is None:
            self.start_t = t
        return max(0.0, t - self.start_t)

    def record_sample(self, smoothed_cm: float, threshold_cm: float, armed: bool, t: float,
                      min_interval_s: float = 0.3) -> bool:
        """Append a telemetry point unless one was written less than ``min_interval_s`` ago.

        Returns True when the sample was kept.
        """
        if self.started_at is None:
            return False
        rel = self._rel(t)
        if self.last_sample_write_t is not None and (rel - self.last_sample_write_t) < min_interval_s:
            return False
        self.samples.append(RecordedSample(rel, float(smoothed_cm), float(threshold_cm), bool(armed)))
        self.last_sample_write_t = rel
        return True

    def record_event(self, kind: EventKind, t: float):
        if self.started_at is None:
            return
        self.events.append(RecordedEvent(self._rel(t), EventKind(kind)))

    def finish(self, now: datetime, session_id: Optional[uuid.UUID] = None) -> Session:
        start = self.started_at if self.started_at is not None else now
        duration = max(0.0, (now - start).total_seconds())

        rep_times = [e.t_rel for e in self.events if e.kind is EventKind.REP]
        too_fast = sum(1 for e in self.events if e.kind is EventKind.TOO_FAST)
        total = len(rep_times)

        avg_rpm = total / (duration / 60.0) if duration > 0 else 0.0
        best_rpm = best_window_count(rep_times, BEST_WINDOW_S) * (60.0 / BEST_WINDOW_S)
        if total > 0:
            percent_clean = min(1.0, max(0.0, 1.0 - too_fast / total))
        else:
            percent_clean = 1.0

        session = Session(
            id=session_id or uuid.uuid4(),
            started_at=start,
            ended_at=now,
            total_reps=total,
            duration_s=duration,
            avg_cadence_rpm=avg_rpm,
            best_cadence_30s_rpm=best_rpm,
            height_delta_cm=self.height_delta_cm,
            percent_clean=percent_clean,
            samples=tuple(self.samples),
            events=tuple(self.events),
        )

        # ready for the next start()
        self.started_at = None
        self.start_t = None
        self.samples = []
        self.events = []
        self.last_sample_write_t = None
        return session
