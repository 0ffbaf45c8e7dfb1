#!/usr/bin/env python3
import argparse
from pathlib import Path
from typing import Iterable, List

from pushup_rep_engine.recorder import SessionMeta
from pushup_rep_engine.store import SessionStore, SessionNotFound


def format_meta_table(metas: Iterable[SessionMeta]) -> List[str]:
    lines = ["started_at,ended_at,total_reps,height_delta_cm,id"]
    for m in metas:
        lines.append(
            f"{m.started_at.isoformat(timespec='seconds')},{m.ended_at.isoformat(timespec='seconds')},"
            f"{m.total_reps},{m.height_delta_cm:.1f},{m.id}"
        )
    return lines


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="List stored sessions or export one to CSV")
    ap.add_argument("--store", default="./sessions", help="session store directory")
    ap.add_argument("--limit", type=int, default=50)
    ap.add_argument("--export", metavar="ID", help="session id to export as t_sec,cm,threshold,armed CSV")
    ap.add_argument("--out", help="CSV filename inside the store (default export-latest.csv)")
    args = ap.parse_args(argv)

    store = SessionStore(Path(args.store))
    if args.export:
        try:
            session = store.load(args.export)
        except SessionNotFound:
            print(f"ERROR: no session {args.export} in {store.dir}")
            return 1
        path = store.export_csv(session, args.out or "export-latest.csv")
        print(path)
        return 0

    for line in format_meta_table(store.load_all_metas(args.limit)):
        print(line)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
