from __future__ import annotations
import argparse, logging, sys
from dataclasses import replace
from cmem.config import Settings
from cmem.cli.doctor import run_doctor
from cmem.components import build_components

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cmem", description="Combined memory store - admin CLI")
    p.add_argument("--redis-url", default=None, help="overrides DRAGONFLY_HOST/DRAGONFLY_PORT")
    p.add_argument("--log-level", default=None)
    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("doctor", help="Check backend connectivity and the primary/fallback round trip; emit a JSON report")
    d.add_argument("--user-id", default="cmem_doctor")
    d.add_argument("--report-out", default="./cmem_doctor_report.json")
    d.add_argument("--strict", action="store_true")

    a = sub.add_parser("add", help="Store one memory and print the confirmation")
    a.add_argument("--content", required=True)
    a.add_argument("--user-id", default=None)

    s = sub.add_parser("search", help="Search memories and print the digest")
    s.add_argument("--query", required=True)
    s.add_argument("--user-id", default=None)
    return p

def _settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.redis_url:
        overrides["redis_url"] = args.redis_url
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if overrides:
        settings = replace(settings, **overrides)
    return settings

def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    settings = _settings(args)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.cmd == "doctor":
        return run_doctor(settings, user_id=args.user_id, report_out=args.report_out, strict=args.strict)

    service, _, _ = build_components(settings)
    if args.cmd == "add":
        print(service.add_memory_text(args.content, args.user_id))
        return 0
    if args.cmd == "search":
        print(service.search_memories_text(args.query, args.user_id))
        return 0
    return 2

if __name__ == "__main__":
    raise SystemExit(main())
