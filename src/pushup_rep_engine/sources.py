from __future__ import annotations
import asyncio, csv, math, pathlib, random
from dataclasses import dataclass
from typing import AsyncIterator, Iterator, Optional, Union


@dataclass(frozen=True)
class DistanceSample:
    """One camera-to-body distance reading (cm) at monotonic time ``t`` (s)."""
    cm: float
    t: float


class SyntheticDistanceSource:
    """Sine-wave push-up generator for demos and offline runs.

    cm = center + amplitude * sin(2*pi*freq*t), plus optional gaussian noise.
    With ``realtime`` the async stream sleeps between samples like a live
    sensor; otherwise it replays as fast as the consumer reads.
    """

    def __init__(self, rate_hz: float = 30.0, center_cm: float = 10.0, amplitude_cm: float = 5.0,
                 freq_hz: float = 0.5, noise_cm: float = 0.0, seed: Optional[int] = None,
                 realtime: bool = False):
        if rate_hz <= 0:
            raise ValueError(f"rate_hz must be > 0, got {rate_hz}")
        if noise_cm < 0:
            raise ValueError(f"noise_cm must be >= 0, got {noise_cm}")
        self.rate_hz = rate_hz
        self.center_cm = center_cm
        self.amplitude_cm = amplitude_cm
        self.freq_hz = freq_hz
        self.noise_cm = noise_cm
        self.realtime = realtime
        self._rng = random.Random(seed)
        self.running = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def value_at(self, t: float) -> float:
        cm = self.center_cm + self.amplitude_cm * math.sin(2 * math.pi * self.freq_hz * t)
        if self.noise_cm > 0:
            cm += self._rng.gauss(0.0, self.noise_cm)
        return cm

    def samples(self, duration_s: Optional[float] = None) -> Iterator[DistanceSample]:
        """Yield samples until ``duration_s`` has elapsed, or until stop() when None."""
        i = 0
        while self.running:
            t = i / self.rate_hz
            if duration_s is not None and t > duration_s:
                return
            yield DistanceSample(self.value_at(t), t)
            i += 1

    async def stream(self, duration_s: Optional[float] = None) -> AsyncIterator[DistanceSample]:
        period = 1.0 / self.rate_hz
        for s in self.samples(duration_s):
            yield s
            await asyncio.sleep(period if self.realtime else 0)


class CsvDistanceSource:
    """Replays a captured stream from CSV with ``t`` (or ``t_sec``) and ``cm`` columns."""

    def __init__(self, path: Union[str, pathlib.Path]):
        self.path = pathlib.Path(path)
        with self.path.open("r", newline="", encoding="utf-8") as f:
            header = next(csv.reader(f), [])
        cols = [h.strip() for h in header]
        self.t_col = "t" if "t" in cols else ("t_sec" if "t_sec" in cols else None)
        if self.t_col is None or "cm" not in cols:
            raise ValueError(f"{self.path}: expected columns 't' (or 't_sec') and 'cm', got {cols}")
        self.running = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def samples(self, duration_s: Optional[float] = None) -> Iterator[DistanceSample]:
        with self.path.open("r", newline="", encoding="utf-8") as f:
            rd = csv.DictReader(f, skipinitialspace=True)
            t0: Optional[float] = None
            for row in rd:
                if not self.running:
                    return
                try:
                    t = float(row[self.t_col])
                except (TypeError, ValueError):
                    continue
                if t0 is None:
                    t0 = t
                if duration_s is not None and t - t0 > duration_s:
                    return
                try:
                    cm = float(row["cm"])
                except (TypeError, ValueError):
                    # glitched reading; the detector drops non-finite input
                    cm = math.nan
                yield DistanceSample(cm, t)

    async def stream(self, duration_s: Optional[float] = None) -> AsyncIterator[DistanceSample]:
        for s in self.samples(duration_s):
            yield s
            await asyncio.sleep(0)
