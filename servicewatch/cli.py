"""Command line entry point."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from datetime import datetime
from typing import List, Optional

import structlog
import uvicorn

from servicewatch.app import ServiceWatch, build_service
from servicewatch.config import load_config
from servicewatch.errors import InvalidScheduleError
from servicewatch.logging_setup import configure_logging
from servicewatch.scheduler.schedule import CronSchedule


logger = structlog.get_logger(__name__)


def _serve_api(service: ServiceWatch) -> tuple[uvicorn.Server, threading.Thread]:
    from servicewatch.api import create_app

    settings = service.config.api
    server = uvicorn.Server(
        uvicorn.Config(create_app(service), host=settings.host, port=settings.port, log_level="warning")
    )
    thread = threading.Thread(target=server.run, name="StatusApi", daemon=True)
    thread.start()
    logger.info("Status API listening", host=settings.host, port=settings.port)
    return server, thread


def cmd_run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    configure_logging(args.log_level or config.log_level, config.log_format)

    service = build_service(config)
    service.register_jobs()

    stop_event = threading.Event()

    def _handle_signal(signum, _frame):
        logger.info("Received shutdown signal", signal=signal.Signals(signum).name)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    service.start()
    api = _serve_api(service) if (config.api.enabled or args.api) else None

    logger.info("servicewatch running", environment=config.environment, targets=len(config.targets))
    try:
        while not stop_event.wait(1.0):
            pass
    finally:
        if api is not None:
            server, api_thread = api
            server.should_exit = True
            api_thread.join(timeout=5)
        service.stop()
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    configure_logging(args.log_level or config.log_level, config.log_format)

    service = build_service(config)
    try:
        summary = service.monitoring_job.run_cycle()
        tls_summary = None if args.skip_tls else service.tls_job.run_cycle()
    finally:
        service.stop()

    for result in summary["results"]:
        code = result["status_code"] if result["status_code"] is not None else "-"
        detail = result["error_message"] or f"{result['response_time_ms']}ms"
        print(f"{result['target_id']:>5}  {result['status']:<4}  {code:>4}  {detail}")
    if tls_summary is not None:
        for result in tls_summary["results"]:
            days = result["days_remaining"] if result["days_remaining"] is not None else "-"
            print(f"{result['target_id']:>5}  TLS   {result['host']}  days_remaining={days}  {result['error'] or ''}")

    print(f"{summary['up']}/{summary['total']} targets up")
    return 1 if summary["down"] else 0


def cmd_validate_schedule(args: argparse.Namespace) -> int:
    try:
        schedule = CronSchedule(args.expression)
    except InvalidScheduleError as e:
        print(f"Invalid schedule: {e}", file=sys.stderr)
        return 2

    print(schedule.describe())
    moment = datetime.now()
    for _ in range(args.count):
        moment = schedule.next_due_time(moment)
        print(moment.strftime("%Y-%m-%d %H:%M"))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="servicewatch", description="Uptime and TLS certificate monitor")
    parser.add_argument("--config", default=None, help="Path to YAML config (default: $SERVICEWATCH_CONFIG)")
    parser.add_argument("--log-level", default=None, help="Logging level (INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the scheduler until interrupted")
    run.add_argument("--api", action="store_true", help="Serve the status API")
    run.set_defaults(func=cmd_run)

    check = sub.add_parser("check", help="Probe every active target once and exit")
    check.add_argument("--skip-tls", action="store_true", help="Skip the TLS certificate pass")
    check.set_defaults(func=cmd_check)

    validate = sub.add_parser("validate-schedule", help="Print the next due times of a schedule")
    validate.add_argument("expression", help='Five-field schedule, e.g. "*/5 * * * *"')
    validate.add_argument("--count", type=int, default=5, help="How many due times to print")
    validate.set_defaults(func=cmd_validate_schedule)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "run"])
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
