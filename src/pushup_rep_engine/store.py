from __future__ import annotations
import csv, io, json, os, pathlib, shutil, tempfile, uuid
from typing import List, Union

from .recorder import Session, SessionMeta

CSV_HEADER = ["t_sec", "cm", "threshold", "armed"]


class SessionNotFound(KeyError):
    pass


def session_to_csv(session: Session) -> str:
    """Render recorded samples as ``t_sec,cm,threshold,armed`` CSV text."""
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(CSV_HEADER)
    for s in session.samples:
        w.writerow([
            f"{s.t_rel:.3f}",
            f"{s.smoothed_cm:.3f}",
            f"{s.threshold_cm:.3f}",
            "true" if s.armed else "false",
        ])
    return buf.getvalue()


def _atomic_write(path: pathlib.Path, text: str):
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class SessionStore:
    """Sessions on local disk: one JSON file per session plus ``index.json``.

    The index holds a SessionMeta per saved session, newest first.
    """

    def __init__(self, base_dir: Union[str, pathlib.Path], index_limit: int = 50):
        self.dir = pathlib.Path(base_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.dir / "index.json"
        self.index_limit = index_limit
        if not self.index_path.exists():
            _atomic_write(self.index_path, "[]")

    def session_path(self, session_id: uuid.UUID) -> pathlib.Path:
        return self.dir / f"session-{session_id}.json"

    def save(self, session: Session) -> pathlib.Path:
        path = self.session_path(session.id)
        _atomic_write(path, json.dumps(session.to_dict(), indent=2))

        metas = [m for m in self._read_index() if m.id != session.id]
        metas.append(session.meta())
        self._write_index(metas)
        return path

    def load(self, session_id: Union[str, uuid.UUID]) -> Session:
        try:
            sid = session_id if isinstance(session_id, uuid.UUID) else uuid.UUID(str(session_id))
        except ValueError:
            raise SessionNotFound(str(session_id)) from None
        path = self.session_path(sid)
        if not path.exists():
            raise SessionNotFound(str(sid))
        with path.open("r", encoding="utf-8") as f:
            return Session.from_dict(json.load(f))

    def load_all_metas(self, limit: Union[int, None] = None) -> List[SessionMeta]:
        limit = self.index_limit if limit is None else limit
        metas = self._read_index()
        return metas[:limit]

    def delete(self, session_id: Union[str, uuid.UUID]):
        sid = session_id if isinstance(session_id, uuid.UUID) else uuid.UUID(str(session_id))
        try:
            self.session_path(sid).unlink()
        except FileNotFoundError:
            pass
        self._write_index([m for m in self._read_index() if m.id != sid])

    def delete_all(self):
        shutil.rmtree(self.dir, ignore_errors=True)
        self.dir.mkdir(parents=True, exist_ok=True)
        self._write_index([])

    def export_csv(self, session: Session, filename: str = "export-latest.csv") -> pathlib.Path:
        path = self.dir / filename
        _atomic_write(path, session_to_csv(session))
        return path

    def _read_index(self) -> List[SessionMeta]:
        if not self.index_path.exists():
            return []
        with self.index_path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        metas = [SessionMeta.from_dict(d) for d in raw]
        metas.sort(key=lambda m: m.started_at, reverse=True)
        return metas

    def _write_index(self, metas: List[SessionMeta]):
        metas = sorted(metas, key=lambda m: m.started_at, reverse=True)
        _atomic_write(self.index_path, json.dumps([m.to_dict() for m in metas], indent=2))
