"""Command-line front end: accounts, logging readings, stats and exports."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from dateutil import parser as date_parser
from dateutil import tz

from glucotracker import assistant
from glucotracker.entry import build_reading, emergency_advice
from glucotracker.errors import AuthError, GlucoTrackerError
from glucotracker.export import ExcelLayout, write_csv, write_doctor_xlsx
from glucotracker.insights import generate_insights
from glucotracker.model import Reading, RiskLevel
from glucotracker.repository import ReadingRepository, Session
from glucotracker.risk import classify
from glucotracker.stats import (
    ChartView,
    chart_series,
    daily_summary,
    filter_by_window,
    quick_stats,
    readings_on_day,
    readings_to_frame,
    recent_readings,
)
from glucotracker.storage import SQLiteStore

logger = logging.getLogger(__name__)

_LOCAL_TZ = tz.tzlocal()

DB_ENV_VAR = "GLUCOTRACKER_DB"


def default_db_path() -> Path:
    env = os.environ.get(DB_ENV_VAR, "").strip()
    if env:
        return Path(env).expanduser()
    return Path.home() / ".glucotracker" / "glucotracker.sqlite3"


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per action."""
    parser = argparse.ArgumentParser(
        prog="glucotracker",
        description="Personal blood-glucose tracker.",
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"SQLite database path (default: ${DB_ENV_VAR} or ~/.glucotracker).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    signup = sub.add_parser("signup", help="Create an account.")
    signup.add_argument("email")
    signup.add_argument("--name", default="", help="Full name.")
    signup.add_argument("--password", default=None)

    login = sub.add_parser("login", help="Sign in.")
    login.add_argument("email")
    login.add_argument("--password", default=None)

    sub.add_parser("logout", help="Sign out.")
    sub.add_parser("whoami", help="Show the signed-in user.")

    forgot = sub.add_parser("forgot-password", help="Request a reset token.")
    forgot.add_argument("email")

    reset = sub.add_parser("reset-password", help="Set a new password.")
    reset.add_argument("token")
    reset.add_argument("--password", default=None)

    log = sub.add_parser("log", help="Log a glucose reading.")
    log.add_argument("value", help="Glucose in mg/dL.")
    log.add_argument(
        "--type",
        dest="reading_type",
        required=True,
        help="fasting, before-meal, after-meal, bedtime or random.",
    )
    log.add_argument("--notes", default=None)
    log.add_argument("--meal", default=None)
    log.add_argument("--medication", default=None)
    log.add_argument(
        "--at", default=None, help="Timestamp (ISO 8601); default: now."
    )

    recent = sub.add_parser("recent", help="Show the latest readings.")
    recent.add_argument("--limit", type=_positive_int, default=5)

    sub.add_parser("stats", help="Show 7-day quick stats.")
    sub.add_parser("insights", help="Show insights over all readings.")
    sub.add_parser("summary", help="Show per-day count, min, max and average.")

    day = sub.add_parser("day", help="Show readings of one day.")
    day.add_argument("date", help="YYYY-MM-DD")

    chart = sub.add_parser("chart", help="Print the chart series for a view.")
    chart.add_argument(
        "--view", choices=[v.value for v in ChartView], default="daily"
    )

    export = sub.add_parser("export", help="Export readings.")
    export.add_argument("--format", choices=["csv", "xlsx"], default="csv")
    export.add_argument("--out-dir", default=None)

    ask = sub.add_parser("ask", help="Ask the assistant a question.")
    ask.add_argument("message", nargs="+")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _password(value: str | None) -> str:
    if value is not None:
        return value
    return getpass.getpass("Password: ")


def _require_session(store: ReadingRepository) -> Session:
    session = store.get_session()
    if session is None:
        raise AuthError("Not signed in. Run: glucotracker login EMAIL")
    return session


def _format_reading(reading: Reading) -> str:
    risk = classify(reading.value, reading.type)
    ts = reading.timestamp.strftime("%b %d, %H:%M")
    return (
        f"{reading.value:g} mg/dL  {reading.type_name.replace('-', ' ')}  "
        f"{ts}  [{risk.value}]"
    )


def _cmd_log(ns: argparse.Namespace, store: ReadingRepository) -> int:
    session = _require_session(store)
    now = date_parser.isoparse(ns.at) if ns.at else datetime.now(tz=_LOCAL_TZ)
    if now.tzinfo is None:
        now = now.replace(tzinfo=_LOCAL_TZ)
    reading = build_reading(
        ns.value,
        ns.reading_type,
        notes=ns.notes,
        meal=ns.meal,
        medication=ns.medication,
        now=now,
    )
    saved = store.insert_reading(session.user.id, reading)
    print(f"Saved: {_format_reading(saved)}")
    if classify(saved.value, saved.type) is RiskLevel.CRITICAL:
        headline, steps = emergency_advice(saved.value)
        print(f"EMERGENCY: {headline}")
        for step in steps:
            print(f"  - {step}")
    return 0


def _cmd_stats(store: ReadingRepository) -> int:
    session = _require_session(store)
    readings = store.list_readings(session.user.id)
    stats = quick_stats(readings)

    def fmt(value: int | None, unit: str) -> str:
        return "No data" if value is None else f"{value}{unit}"

    print(f"Total readings: {stats.total_readings}")
    print(f"7-day average: {fmt(stats.overall_average, ' mg/dL')}")
    print(f"Time in range (80-140): {fmt(stats.in_range_percentage, '%')}")
    for reading_type, avg in stats.average_by_type.items():
        print(f"  {reading_type.label}: {avg} mg/dL")
    return 0


def _cmd_export(ns: argparse.Namespace, store: ReadingRepository) -> int:
    session = _require_session(store)
    readings = store.list_readings(session.user.id)
    config = store.load_config() if isinstance(store, SQLiteStore) else None
    if ns.out_dir:
        out_dir = Path(ns.out_dir).expanduser()
    elif config is not None and config.export_dir:
        out_dir = Path(config.export_dir).expanduser()
    else:
        out_dir = Path.cwd()
    if ns.format == "xlsx":
        stamp = datetime.now(tz=_LOCAL_TZ).strftime("%Y-%m-%d_%H-%M-%S")
        out_path = out_dir / f"glucotracker-doctor-{stamp}.xlsx"
        write_doctor_xlsx(readings, out_path, ExcelLayout())
    else:
        out_path = write_csv(readings, out_dir)
    print(f"OK: {len(readings)} readings exported to {out_path}")
    return 0


def _dispatch(ns: argparse.Namespace, store: ReadingRepository) -> int:
    command = ns.command
    if command == "signup":
        user = store.sign_up(ns.email, _password(ns.password), ns.name)
        print(f"Account created for {user.email}")
        return 0
    if command == "login":
        session = store.sign_in(ns.email, _password(ns.password))
        if isinstance(store, SQLiteStore):
            config = store.load_config()
            store.save_config(replace(config, last_email=session.user.email))
        print(f"Welcome back, {session.user.display_name}")
        return 0
    if command == "logout":
        store.sign_out()
        print("Signed out.")
        return 0
    if command == "whoami":
        session = _require_session(store)
        count = len(store.list_readings(session.user.id))
        print(f"{session.user.display_name} <{session.user.email}> - {count} readings")
        return 0
    if command == "forgot-password":
        token = store.request_password_reset(ns.email)
        # Same message whether or not the account exists.
        print("If the account exists, a reset token has been issued.")
        if token is not None:
            logger.debug("Reset token issued: %s", token)
            print(f"Reset token: {token}")
        return 0
    if command == "reset-password":
        store.reset_password(ns.token, _password(ns.password))
        print("Password updated.")
        return 0
    if command == "log":
        return _cmd_log(ns, store)
    if command == "recent":
        session = _require_session(store)
        readings = recent_readings(store.list_readings(session.user.id), ns.limit)
        if not readings:
            print("No readings yet.")
        for reading in readings:
            print(_format_reading(reading))
        return 0
    if command == "stats":
        return _cmd_stats(store)
    if command == "insights":
        session = _require_session(store)
        for insight in generate_insights(store.list_readings(session.user.id)):
            print(f"[{insight.level.value}] {insight.title}: {insight.description}")
        return 0
    if command == "summary":
        session = _require_session(store)
        frame = readings_to_frame(store.list_readings(session.user.id))
        summary = daily_summary(frame)
        if summary.empty:
            print("No readings yet.")
        else:
            print(summary.to_string(index=False))
        return 0
    if command == "day":
        session = _require_session(store)
        day = date_parser.isoparse(ns.date).date()
        readings = readings_on_day(store.list_readings(session.user.id), day)
        suffix = "" if len(readings) == 1 else "s"
        print(f"Readings for {day:%B %d, %Y}: {len(readings)} reading{suffix} found")
        for reading in readings:
            print(_format_reading(reading))
        return 0
    if command == "chart":
        session = _require_session(store)
        view = ChartView(ns.view)
        readings = filter_by_window(store.list_readings(session.user.id), view.window)
        series = chart_series(readings, view)
        if series.empty:
            print("No readings in this period.")
        else:
            print(series[["time", "value", "type", "risk"]].to_string(index=False))
        return 0
    if command == "export":
        return _cmd_export(ns, store)
    if command == "ask":
        print(assistant.reply(" ".join(ns.message)))
        return 0
    raise ValueError(f"Unknown command: {command}")


def main(
    argv: list[str] | None = None, store: ReadingRepository | None = None
) -> int:
    """Run the CLI.

    Args:
        argv: Arguments (defaults to ``sys.argv[1:]``).
        store: Repository to use; defaults to a SQLite store at ``--db``.

    Returns:
        Exit code (0 on success, 1 on a handled error).
    """
    ns = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    if store is None:
        db_path = Path(ns.db).expanduser() if ns.db else default_db_path()
        store = SQLiteStore(db_path)
    try:
        return _dispatch(ns, store)
    except (GlucoTrackerError, ValueError) as exc:
        logger.debug("Command %s failed", ns.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
