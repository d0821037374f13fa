"""Entry point for the Kivy dashboard."""

from __future__ import annotations

from glucotracker.app import run_app
from glucotracker.cli import default_db_path
from glucotracker.storage import SQLiteStore


def main() -> int:
    """Run app entrypoint."""
    try:
        return run_app(SQLiteStore(default_db_path()))
    except ImportError as exc:
        print(f"Could not start Kivy: {exc}")
        print("Install the GUI dependencies: pip install 'glucotracker[gui]'")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
