import asyncio, argparse
from pushup_rep_engine.runner import run
from pushup_rep_engine.sources import CsvDistanceSource


def main():
    ap = argparse.ArgumentParser(description="Count push-ups from a distance stream and save the session")
    ap.add_argument("--config", help="YAML config (defaults used when omitted)")
    ap.add_argument("--csv", help="replay a captured t,cm CSV instead of the synthetic source")
    ap.add_argument("--duration", type=float, default=30.0, help="seconds of stream to consume")
    ap.add_argument("--realtime", action="store_true", help="pace the synthetic source like a live sensor")
    ap.add_argument("--no-save", action="store_true", help="do not write the session to the store")
    args = ap.parse_args()

    source = CsvDistanceSource(args.csv) if args.csv else None
    session = asyncio.run(run(
        args.config,
        source=source,
        duration_s=args.duration,
        save=not args.no_save,
        realtime=args.realtime,
    ))
    print(f"reps={session.total_reps} duration={session.duration_s:.1f}s "
          f"avg={session.avg_cadence_rpm:.1f}rpm best30={session.best_cadence_30s_rpm:.1f}rpm "
          f"clean={session.percent_clean:.0%} id={session.id}")


if __name__ == "__main__":
    main()
