from __future__ import annotations
import os, json, time, pathlib, uuid
from typing import Optional, IO, Iterable

class NdjsonLogger:
    """Append-only NDJSON log for a capture run.

    Each record is a dict such as {"type": "event", "msg": "REP", "data": {...}}.
    The logger stamps hms/seq/schema/session_id/pid and rotates the file when
    the local day changes. Write failures are swallowed so logging can never
    break the capture loop.
    """

    def __init__(self, directory: str, file_prefix: str, *, dual_file: bool = False,
                 debug_subdir: Optional[str] = None, mode: Optional[str] = None,
                 verbose_whitelist: Optional[Iterable[str]] = None):
        self.dir = pathlib.Path(directory)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.prefix = file_prefix
        self.dual_file = bool(dual_file)
        self.debug_subdir = debug_subdir or "debug"
        self.seq = 0
        self._fh: Optional[IO[str]] = None
        self._debug_fh: Optional[IO[str]] = None
        self._rot_day: Optional[str] = None
        self.path: Optional[pathlib.Path] = None
        self.debug_path: Optional[pathlib.Path] = None
        # 'regular' drops debug records unless whitelisted; 'verbose' keeps all
        self.mode: str = mode or os.getenv("LOG_MODE", "regular")
        if verbose_whitelist is None:
            wl = os.getenv("LOG_VERBOSE_WHITELIST", "")
            verbose_whitelist = [s.strip() for s in wl.split(",") if s.strip()]
        self.verbose_whitelist = set(verbose_whitelist)
        self.session_id: str = os.getenv("SESSION_ID") or uuid.uuid4().hex[:12]
        self.pid: int = os.getpid()
        self.rotate()

    @classmethod
    def from_cfg(cls, cfg) -> "NdjsonLogger":
        return cls(
            cfg.dir,
            cfg.file_prefix,
            dual_file=cfg.dual_file,
            debug_subdir=cfg.debug_subdir,
            mode=cfg.mode,
            verbose_whitelist=cfg.verbose_whitelist,
        )

    def rotate(self):
        self.close()
        stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime())
        self.path = self.dir / f"{self.prefix}_{stamp}.ndjson"
        self._fh = open(self.path, "a", buffering=1, encoding="utf-8")
        if self.dual_file:
            ddir = self.dir / self.debug_subdir
            try:
                ddir.mkdir(parents=True, exist_ok=True)
                self.debug_path = ddir / f"{self.prefix}_debug_{stamp}.ndjson"
                self._debug_fh = open(self.debug_path, "a", buffering=1, encoding="utf-8")
            except OSError:
                self._debug_fh = None
        self._rot_day = stamp[:8]

    def close(self):
        for fh in (self._fh, self._debug_fh):
            if fh:
                try:
                    fh.close()
                except OSError:
                    pass
        self._fh = None
        self._debug_fh = None

    def _keep_in_main(self, obj: dict) -> bool:
        if self.mode != "regular":
            return True
        if obj.get("type") != "debug":
            return True
        return obj.get("msg") in self.verbose_whitelist

    def write(self, obj: dict):
        obj = dict(obj)
        self.seq += 1
        now = time.time()
        hms = time.strftime("%H:%M:%S", time.localtime(now)) + f".{int((now % 1.0) * 1000):03d}"
        obj.setdefault("hms", hms)
        # machine timestamps are not part of the record format
        obj.pop("ts_ms", None)
        obj.pop("t_iso", None)
        obj.setdefault("seq", self.seq)
        obj.setdefault("schema", "v1")
        obj.setdefault("session_id", self.session_id)
        obj.setdefault("pid", self.pid)
        if time.strftime("%Y%m%d") != self._rot_day:
            try:
                self.rotate()
            except OSError:
                pass

        line = json.dumps(obj, default=str) + "\n"

        try:
            if self.dual_file and self._debug_fh:
                self._debug_fh.write(line)
        except OSError:
            pass
        if not self._keep_in_main(obj):
            return
        try:
            if self._fh:
                self._fh.write(line)
        except OSError:
            pass
