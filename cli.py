import argparse
import datetime
import json
import logging
import shutil

from config import configure_logging
from rest_api import ProgressionAPI

logger = logging.getLogger(__name__)


def export_state(api: ProgressionAPI, output: str) -> None:
    with open(output, "w", encoding="utf-8") as f:
        f.write(api.export_state())
    logger.info("exported state to %s", output)


def import_state(api: ProgressionAPI, path: str) -> None:
    with open(path, "r", encoding="utf-8") as f:
        api.import_state(f.read())
    logger.info("imported state from %s", path)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def log_session(api: ProgressionAPI, machine: str, result: str, date: str | None, notes: str, confirm: bool) -> None:
    target = next(
        (m for m in api.state.machines if m.id == machine or m.name == machine),
        None,
    )
    if target is None:
        print(f"Unknown machine: {machine}")
        return
    try:
        outcome = api.log_session(target.id, result, date, notes=notes, confirm=confirm)
    except ValueError as e:
        print(str(e))
        return
    if outcome.confirmation_required:
        print(f"{outcome.message} Re-run with --confirm.")
        return
    print(f"{target.name}: streak {outcome.streak}/{target.streak_requirement}, level {outcome.level}")
    if outcome.leveled_up:
        print(outcome.message)


def print_stats(api: ProgressionAPI, year: int | None) -> None:
    overview = api.statistics.overview(api.state, api.clock())
    print(json.dumps(overview, indent=2))
    year = year or api.clock().year
    for machine in api.state.machines:
        progress = api.statistics.machine_progress(api.state, machine.id, year)
        print(
            f"{machine.name}: {progress['yes']} YES / {progress['no']} NO, "
            f"longest streak {progress['longest_streak']}, "
            f"{progress['level_ups']} level-ups, {progress['consistency_percent']}%"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--db", default="progression.db")
    parser.add_argument("--yaml", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--out", default=f"warrior-progression-{datetime.date.today().isoformat()}.json")

    imp = sub.add_parser("import")
    imp.add_argument("--in", dest="src", required=True)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    sub.add_parser("flush")

    log = sub.add_parser("log")
    log.add_argument("--machine", required=True)
    log.add_argument("--result", choices=["YES", "NO"], required=True)
    log.add_argument("--date")
    log.add_argument("--notes", default="")
    log.add_argument("--confirm", action="store_true")

    stats = sub.add_parser("stats")
    stats.add_argument("--year", type=int)

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    if args.cmd == "backup":
        backup_db(args.db, args.out)
        return
    if args.cmd == "restore":
        restore_db(args.src, args.db)
        return

    api = ProgressionAPI(db_path=args.db, yaml_path=args.yaml)
    configure_logging(api.settings.log_level)
    if args.cmd == "export":
        export_state(api, args.out)
    elif args.cmd == "import":
        import_state(api, args.src)
    elif args.cmd == "flush":
        result = api.flush_sync()
        print(f"sent {result.sent}, {result.remaining} pending {result.reason}".strip())
    elif args.cmd == "log":
        log_session(api, args.machine, args.result, args.date, args.notes, args.confirm)
    elif args.cmd == "stats":
        print_stats(api, args.year)
    elif args.cmd == "serve":
        import uvicorn

        uvicorn.run(api.app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
