from __future__ import annotations
import dataclasses, math, yaml
from dataclasses import dataclass, field
from typing import Optional, List, Any, Dict


class ConfigError(ValueError):
    """Raised when a configuration value would leave the detector inconsistent."""


@dataclass(frozen=True)
class RepConfig:
    # required descent from the tracked top to count one rep
    height_delta_cm: float = 8.0
    # how close to the top the signal must come back before the next rep can count
    rearm_eps_cm: float = 0.5
    # crossings closer together than this are flagged TooFast, not counted
    min_rep_duration_s: float = 0.6
    # exponential smoothing coefficient, 1.0 disables smoothing
    smoothing_alpha: float = 0.25
    # raw samples are clipped into [clamp_min_cm, clamp_max_cm] before smoothing
    clamp_min_cm: float = 0.0
    clamp_max_cm: float = 300.0
    # how fast the tracked top relaxes down toward the current reading (cm/s)
    top_decay_per_sec: float = 1.0

    def __post_init__(self):
        for f in dataclasses.fields(self):
            v = getattr(self, f.name)
            if not isinstance(v, (int, float)) or isinstance(v, bool) or not math.isfinite(v):
                raise ConfigError(f"{f.name} must be a finite number, got {v!r}")
        if self.height_delta_cm <= 0:
            raise ConfigError(f"height_delta_cm must be > 0, got {self.height_delta_cm}")
        if self.rearm_eps_cm < 0:
            raise ConfigError(f"rearm_eps_cm must be >= 0, got {self.rearm_eps_cm}")
        if self.min_rep_duration_s < 0:
            raise ConfigError(f"min_rep_duration_s must be >= 0, got {self.min_rep_duration_s}")
        if not (0.0 < self.smoothing_alpha <= 1.0):
            raise ConfigError(f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha}")
        if self.clamp_min_cm >= self.clamp_max_cm:
            raise ConfigError(
                f"clamp_min_cm ({self.clamp_min_cm}) must be below clamp_max_cm ({self.clamp_max_cm})"
            )
        if self.top_decay_per_sec < 0:
            raise ConfigError(f"top_decay_per_sec must be >= 0, got {self.top_decay_per_sec}")

    def replace(self, **changes: Any) -> "RepConfig":
        """Return a validated copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)


@dataclass
class RecorderCfg:
    # telemetry is written at most this often; events are never downsampled
    min_sample_interval_s: float = 0.3


@dataclass
class LoggingCfg:
    dir: str = "./logs"
    file_prefix: str = "session"
    # 'regular' drops debug records unless whitelisted; 'verbose' emits everything.
    mode: str = "regular"
    # Message names emitted even in regular mode, e.g. ["telemetry"].
    verbose_whitelist: Optional[List[str]] = None
    # Write a full unfiltered copy of every record under dir/debug_subdir.
    dual_file: bool = True
    debug_subdir: Optional[str] = "debug"


@dataclass
class StoreCfg:
    dir: str = "./sessions"
    index_limit: int = 50


@dataclass
class SyntheticCfg:
    rate_hz: float = 30.0
    center_cm: float = 10.0
    amplitude_cm: float = 5.0
    freq_hz: float = 0.5
    noise_cm: float = 0.0
    seed: Optional[int] = None


@dataclass
class AppCfg:
    detector: RepConfig = field(default_factory=RepConfig)
    recorder: RecorderCfg = field(default_factory=RecorderCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    synthetic: SyntheticCfg = field(default_factory=SyntheticCfg)


def _as_float(d: Dict[str, Any], key: str, default: float) -> float:
    v = d.get(key, default)
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def detector_from_dict(raw: Optional[Dict[str, Any]]) -> RepConfig:
    # Coerce numeric fields so YAML/ENV strings like "8" still load
    det_raw = dict(raw or {})
    kwargs = {}
    for f in dataclasses.fields(RepConfig):
        kwargs[f.name] = _as_float(det_raw, f.name, f.default)
    return RepConfig(**kwargs)


def _section(cls, raw: Dict[str, Any], name: str):
    try:
        return cls(**(raw.get(name) or {}))
    except TypeError as e:
        raise ConfigError(f"bad '{name}' section: {e}") from e


def config_from_dict(raw: Optional[Dict[str, Any]]) -> AppCfg:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config root must be a mapping, got {type(raw).__name__}")
    det = detector_from_dict(raw.get("detector"))
    rec_raw = dict(raw.get("recorder") or {})
    rec = RecorderCfg(
        min_sample_interval_s=_as_float(rec_raw, "min_sample_interval_s", RecorderCfg.min_sample_interval_s),
    )
    if rec.min_sample_interval_s < 0:
        raise ConfigError(f"recorder.min_sample_interval_s must be >= 0, got {rec.min_sample_interval_s}")
    log = _section(LoggingCfg, raw, "logging")
    store = _section(StoreCfg, raw, "store")
    syn = _section(SyntheticCfg, raw, "synthetic")
    return AppCfg(detector=det, recorder=rec, logging=log, store=store, synthetic=syn)


def load_config(path: str) -> AppCfg:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return config_from_dict(raw)
