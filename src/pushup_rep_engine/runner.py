from __future__ import annotations
import dataclasses
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .config import AppCfg, RepConfig, load_config
from .detector import RepDetector, Rep, TooFast, Event
from .logs import NdjsonLogger
from .recorder import EventKind, Session, SessionRecorder
from .sources import DistanceSample, SyntheticDistanceSource
from .store import SessionStore


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionRunner:
    """Capture loop for one session: source -> detector -> recorder -> store.

    Samples are fed serially; nothing here is thread-safe, so concurrent
    sessions need their own runner.
    """

    def __init__(self, cfg: AppCfg, logger: NdjsonLogger, store: Optional[SessionStore] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.cfg = cfg
        self.logger = logger
        self.store = store
        self.clock = clock
        self.detector = RepDetector(cfg.detector)
        self.recorder = SessionRecorder()
        self.t0: Optional[float] = None

    @property
    def count(self) -> int:
        return self.detector.count

    def start(self):
        self.detector.reset(self.cfg.detector)
        self.recorder.start(self.cfg.detector.height_delta_cm, self.clock())
        self.t0 = None
        self.logger.write({
            "type": "status",
            "msg": "session_start",
            "data": {"height_delta_cm": self.cfg.detector.height_delta_cm},
        })

    def reconfigure(self, detector_cfg: RepConfig):
        """Adopt new detector settings. Counting and recording start over."""
        self.cfg.detector = detector_cfg
        self.detector.reset(detector_cfg)
        self.recorder.start(detector_cfg.height_delta_cm, self.clock())
        self.t0 = None
        self.logger.write({"type": "status", "msg": "config_reset", "data": dataclasses.asdict(detector_cfg)})

    def _t_rel_ms(self, t: float) -> float:
        if self.t0 is None:
            self.t0 = t
        return (t - self.t0) * 1000.0

    def feed(self, sample: DistanceSample) -> List[Event]:
        prev = self.detector.telemetry
        events = self.detector.ingest(sample.cm, sample.t)
        snap = self.detector.telemetry
        # unchanged snapshot means the detector dropped the sample
        if snap is None or snap is prev:
            return events
        kept = self.recorder.record_sample(
            snap.smoothed_cm, snap.threshold_cm, snap.armed, sample.t,
            min_interval_s=self.cfg.recorder.min_sample_interval_s,
        )
        if kept:
            self.logger.write({
                "type": "debug",
                "msg": "telemetry",
                "t_rel_ms": self._t_rel_ms(sample.t),
                "data": {
                    "cm": snap.smoothed_cm,
                    "threshold": snap.threshold_cm,
                    "top": snap.top_cm,
                    "phase": snap.phase.value,
                    "armed": snap.armed,
                },
            })
        for ev in events:
            if isinstance(ev, Rep):
                self.recorder.record_event(EventKind.REP, sample.t)
                self.logger.write({"type": "event", "msg": "REP", "t_rel_ms": self._t_rel_ms(sample.t),
                                   "data": {"count": ev.count}})
            elif isinstance(ev, TooFast):
                self.recorder.record_event(EventKind.TOO_FAST, sample.t)
                self.logger.write({"type": "event", "msg": "TOO_FAST", "t_rel_ms": self._t_rel_ms(sample.t),
                                   "data": {"count": self.detector.count}})
        return events

    def finish(self) -> Session:
        session = self.recorder.finish(self.clock())
        self.logger.write({
            "type": "status",
            "msg": "session_end",
            "data": {
                "id": str(session.id),
                "total_reps": session.total_reps,
                "duration_s": round(session.duration_s, 3),
                "avg_cadence_rpm": round(session.avg_cadence_rpm, 2),
                "best_cadence_30s_rpm": session.best_cadence_30s_rpm,
                "percent_clean": round(session.percent_clean, 3),
            },
        })
        if self.store is not None:
            try:
                path = self.store.save(session)
            except OSError as e:
                self.logger.write({"type": "error", "msg": "session_save_failed", "data": {"error": str(e)}})
                raise
            self.logger.write({"type": "info", "msg": "session_saved", "data": {"path": str(path)}})
        return session

    async def run_source(self, source, duration_s: Optional[float] = None) -> Session:
        self.start()
        source.start()
        try:
            async for s in source.stream(duration_s):
                self.feed(s)
        finally:
            source.stop()
            session = self.finish()
        return session


async def run(config_path: Optional[str] = None, source=None, duration_s: Optional[float] = 30.0,
              save: bool = True, realtime: bool = False) -> Session:
    cfg = load_config(config_path) if config_path else AppCfg()
    logger = NdjsonLogger.from_cfg(cfg.logging)
    store = SessionStore(cfg.store.dir, cfg.store.index_limit) if save else None
    if source is None:
        syn = cfg.synthetic
        source = SyntheticDistanceSource(
            rate_hz=syn.rate_hz,
            center_cm=syn.center_cm,
            amplitude_cm=syn.amplitude_cm,
            freq_hz=syn.freq_hz,
            noise_cm=syn.noise_cm,
            seed=syn.seed,
            realtime=realtime,
        )
    runner = SessionRunner(cfg, logger, store)
    try:
        return await runner.run_source(source, duration_s)
    finally:
        logger.close()
