from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from .config import RepConfig


class Phase(str, Enum):
    UP = "up"
    REARMING = "rearming"


@dataclass(frozen=True)
class Rep:
    count: int


@dataclass(frozen=True)
class TooFast:
    pass


Event = Union[Rep, TooFast]


@dataclass(frozen=True)
class Telemetry:
    smoothed_cm: float
    threshold_cm: float
    top_cm: float
    phase: Phase
    armed: bool
    # descent from the top, never negative
    swing_cm: float = 0.0
    # the signal has to climb back to this level to re-arm
    rearm_cm: float = math.nan


class RepDetector:
    """Edge-triggered rep counter over a camera-to-body distance stream.

    Feed one (cm, t) sample at a time. The top of the movement is tracked
    adaptively: it follows the smoothed signal up immediately and relaxes
    downward at ``top_decay_per_sec``. A rep counts the first time the
    signal drops to ``top - height_delta_cm`` while armed; the detector
    then re-arms only once the signal is back within ``rearm_eps_cm`` of
    the top. Crossings closer than ``min_rep_duration_s`` to the previous
    rep are reported as TooFast and not counted.
    """

    def __init__(self, cfg: Optional[RepConfig] = None):
        self.cfg = cfg or RepConfig()
        self.reset()

    def reset(self, cfg: Optional[RepConfig] = None):
        """Zero all state; adopt ``cfg`` when given."""
        if cfg is not None:
            self.cfg = cfg
        self.count = 0
        self.smoothed_cm: Optional[float] = None
        self.last_timestamp: Optional[float] = None
        self.top_cm: Optional[float] = None
        self.armed = False
        self.last_rep_time: Optional[float] = None
        self.telemetry: Optional[Telemetry] = None

    def ingest(self, raw_cm: float, t: float) -> List[Event]:
        try:
            raw_cm = float(raw_cm)
            t = float(t)
        except (TypeError, ValueError):
            return []
        if not (math.isfinite(raw_cm) and math.isfinite(t)):
            return []
        p = self.cfg

        cm = min(max(raw_cm, p.clamp_min_cm), p.clamp_max_cm)

        if self.smoothed_cm is None or self.top_cm is None:
            smoothed = cm
            top = smoothed
            self.armed = True
        else:
            smoothed = self.smoothed_cm + p.smoothing_alpha * (cm - self.smoothed_cm)
            top = self.top_cm

        last_t = self.last_timestamp if self.last_timestamp is not None else t
        dt = max(0.0, t - last_t)
        if smoothed > top:
            top = smoothed
        else:
            top = max(smoothed, top - p.top_decay_per_sec * dt)

        threshold = top - p.height_delta_cm

        if not self.armed and smoothed >= top - p.rearm_eps_cm:
            self.armed = True

        events: List[Event] = []
        if self.armed and smoothed <= threshold:
            if self.last_rep_time is None or t - self.last_rep_time >= p.min_rep_duration_s:
                self.count += 1
                events.append(Rep(self.count))
                self.last_rep_time = t
            else:
                events.append(TooFast())
            self.armed = False

        self.smoothed_cm = smoothed
        self.top_cm = top
        self.last_timestamp = t
        self.telemetry = Telemetry(
            smoothed_cm=smoothed,
            threshold_cm=threshold,
            top_cm=top,
            phase=Phase.UP if self.armed else Phase.REARMING,
            armed=self.armed,
            swing_cm=max(0.0, top - smoothed),
            rearm_cm=top - p.rearm_eps_cm,
        )
        return events
