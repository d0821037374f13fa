from __future__ import annotations

import sqlite3
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest
from dateutil import tz
from werkzeug.security import check_password_hash

from glucotracker.errors import AuthError
from glucotracker.model import Reading, ReadingType
from glucotracker.repository import ReadingRepository
from glucotracker.storage import AppConfig, SQLiteStore


def test_store_is_a_repository(store: SQLiteStore) -> None:
    assert isinstance(store, ReadingRepository)


def test_store_config_roundtrip(store: SQLiteStore) -> None:
    assert store.load_config() == AppConfig(
        export_dir="", last_email="", chart_view="daily"
    )
    config = AppConfig(
        export_dir="/data/out", last_email="ana@example.com", chart_view="weekly"
    )
    store.save_config(config)
    assert store.load_config() == config


def test_sign_up_and_sign_in(store: SQLiteStore) -> None:
    user = store.sign_up("Ana@Example.com ", "secret1", "Ana Perez")
    assert user.email == "ana@example.com"
    assert user.display_name == "Ana Perez"

    session = store.sign_in("ana@example.com", "secret1")
    assert session.user.id == user.id
    assert store.get_session() == session
    assert store.get_session(session.token) == session


def test_sign_up_duplicate_email_fails(store: SQLiteStore) -> None:
    store.sign_up("ana@example.com", "secret1")
    with pytest.raises(AuthError, match="already registered"):
        store.sign_up("ANA@example.com", "secret2")


@pytest.mark.parametrize(
    ("email", "password"), [("not-an-email", "secret1"), ("ana@example.com", "123")]
)
def test_sign_up_validates_input(store: SQLiteStore, email: str, password: str) -> None:
    with pytest.raises(AuthError):
        store.sign_up(email, password)


def test_sign_in_wrong_password(store: SQLiteStore) -> None:
    store.sign_up("ana@example.com", "secret1")
    with pytest.raises(AuthError, match="Invalid login credentials"):
        store.sign_in("ana@example.com", "wrong-password")
    with pytest.raises(AuthError):
        store.sign_in("nobody@example.com", "secret1")
    assert store.get_session() is None


def test_session_persists_across_instances(tmp_path: Path) -> None:
    db = tmp_path / "db.sqlite3"
    first = SQLiteStore(db)
    first.sign_up("ana@example.com", "secret1")
    session = first.sign_in("ana@example.com", "secret1")
    assert SQLiteStore(db).get_session() == session


def test_sign_out(store: SQLiteStore) -> None:
    store.sign_up("ana@example.com", "secret1")
    session = store.sign_in("ana@example.com", "secret1")
    store.sign_out()
    assert store.get_session() is None
    assert store.get_session(session.token) is None
    store.sign_out()


def test_password_reset_is_single_use(store: SQLiteStore) -> None:
    store.sign_up("ana@example.com", "secret1")
    assert store.request_password_reset("nobody@example.com") is None
    token = store.request_password_reset("ana@example.com")
    assert token is not None

    store.reset_password(token, "newsecret")
    with pytest.raises(AuthError):
        store.sign_in("ana@example.com", "secret1")
    assert store.sign_in("ana@example.com", "newsecret").user.email == "ana@example.com"

    with pytest.raises(AuthError, match="reset token"):
        store.reset_password(token, "another1")


def test_readings_newest_first_and_per_user(
    store: SQLiteStore, make_reading: Callable[..., Reading]
) -> None:
    ana = store.sign_up("ana@example.com", "secret1")
    bob = store.sign_up("bob@example.com", "secret1")

    store.insert_reading(ana.id, make_reading(100, "fasting", hours=0))
    store.insert_reading(ana.id, make_reading(150, "after-meal", hours=5))
    store.insert_reading(ana.id, make_reading(120, "bedtime", hours=2))
    store.insert_reading(bob.id, make_reading(90, hours=1))

    values = [r.value for r in store.list_readings(ana.id)]
    assert values == [150.0, 120.0, 100.0]
    assert [r.value for r in store.list_readings(bob.id)] == [90.0]
    assert store.list_readings("missing") == []


def test_insert_reading_roundtrip(
    store: SQLiteStore, make_reading: Callable[..., Reading]
) -> None:
    user = store.sign_up("ana@example.com", "secret1")
    reading = make_reading(
        145.5, "after-meal", notes="walk after", meal="Pasta", medication=None
    )
    saved = store.insert_reading(user.id, reading)
    assert saved.id
    assert saved.value == 145.5
    assert saved.type is ReadingType.AFTER_MEAL
    assert saved.timestamp == reading.timestamp
    assert saved.meal == "Pasta"
    assert saved.medication is None
    assert store.list_readings(user.id) == [saved]


def test_unknown_type_roundtrip(store: SQLiteStore) -> None:
    user = store.sign_up("ana@example.com", "secret1")
    reading = Reading(
        value=130,
        type=ReadingType.UNKNOWN,
        timestamp=datetime(2025, 12, 15, 8, 0, tzinfo=tz.UTC),
        raw_type="post-workout",
    )
    stored = store.insert_reading(user.id, reading)
    assert stored.type is ReadingType.UNKNOWN
    assert stored.type_name == "post-workout"
    assert store.list_readings(user.id)[0].type_name == "post-workout"


def test_readings_ordered_across_timezones(store: SQLiteStore) -> None:
    user = store.sign_up("ana@example.com", "secret1")
    buenos_aires = tz.gettz("America/Argentina/Buenos_Aires")
    # 08:00 in Buenos Aires is 11:00 UTC, later than 10:00 UTC.
    local = Reading(
        value=100,
        type=ReadingType.RANDOM,
        timestamp=datetime(2025, 12, 15, 8, 0, tzinfo=buenos_aires),
    )
    utc = Reading(
        value=110,
        type=ReadingType.RANDOM,
        timestamp=datetime(2025, 12, 15, 10, 0, tzinfo=tz.UTC),
    )
    store.insert_reading(user.id, local)
    store.insert_reading(user.id, utc)
    assert [r.value for r in store.list_readings(user.id)] == [100.0, 110.0]


def test_passwords_are_stored_hashed(store: SQLiteStore, tmp_path: Path) -> None:
    store.sign_up("ana@example.com", "secret1")
    with sqlite3.connect(tmp_path / "glucotracker.sqlite3") as conn:
        (stored,) = conn.execute("SELECT password_hash FROM users").fetchone()
    assert stored != "secret1"
    assert check_password_hash(stored, "secret1")


def test_password_reset_revokes_sessions(store: SQLiteStore) -> None:
    store.sign_up("ana@example.com", "secret1")
    old = store.sign_in("ana@example.com", "secret1")
    token = store.request_password_reset("ana@example.com")
    assert token is not None

    store.reset_password(token, "newsecret")

    assert store.get_session(old.token) is None
    assert store.get_session() is None
    fresh = store.sign_in("ana@example.com", "newsecret")
    assert store.get_session() == fresh


def test_case_variant_type_is_kept_verbatim(store: SQLiteStore) -> None:
    user = store.sign_up("ana@example.com", "secret1")
    reading = Reading(
        value=110,
        type=ReadingType.parse("FASTING"),
        timestamp=datetime(2025, 12, 15, 8, 0, tzinfo=tz.UTC),
        raw_type="FASTING",
    )
    store.insert_reading(user.id, reading)
    (stored,) = store.list_readings(user.id)
    assert stored.type is ReadingType.UNKNOWN
    assert stored.type_name == "FASTING"
