from __future__ import annotations
import json
import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from app import create_app
from extensions import db
from models import BookingRecord
from blueprints.booking.storage import SessionStorage

XMAS = "2025-12-25"
XMAS_SLOTS = ["17:00", "17:30", "18:30", "19:00", "20:00", "22:00", "22:30"]


def _body(**kw):
    base = {"date": XMAS, "time": "17:30", "guests": 4, "occasion": "Birthday"}
    base.update(kw)
    return base


@pytest.fixture()
def app_ctx():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()


# ---------- times ----------
def test_times_for_date(client):
    r = client.get("/api/v1/booking/times?date=2025-03-15")
    assert r.status_code == 200
    assert r.get_json() == {"date": "2025-03-15", "times": ["17:00", "17:30", "20:30", "22:30"]}


def test_times_default_today(client):
    r = client.get("/api/v1/booking/times")
    assert r.status_code == 200
    today = datetime.now(ZoneInfo("Europe/Berlin")).date().isoformat()
    assert r.get_json()["date"] == today


def test_times_bad_date(client):
    r = client.get("/api/v1/booking/times?date=25.12.2025")
    assert r.status_code == 400
    assert r.get_json()["error"] == "bad_date"


# ---------- submit ----------
def test_create_then_conflict(client):
    r = client.post("/api/v1/bookings", json=_body())
    assert r.status_code == 201, r.get_json()
    js = r.get_json()
    assert js["ok"] is True
    assert js["booking"] == {"date": XMAS, "time": "17:30", "guests": 4, "occasion": "Birthday"}

    r2 = client.post("/api/v1/bookings", json=_body(guests=2))
    assert r2.status_code == 409
    js2 = r2.get_json()
    assert js2["ok"] is False
    assert js2["errors"] == [{"code": "SLOT_TAKEN"}]
    # форма получает обновлённый список без занятого слота
    assert js2["times"] == [t for t in XMAS_SLOTS if t != "17:30"]


def test_times_exclude_booked(client):
    client.post("/api/v1/bookings", json=_body(time="19:00"))
    r = client.get(f"/api/v1/booking/times?date={XMAS}")
    assert r.get_json()["times"] == [t for t in XMAS_SLOTS if t != "19:00"]


@pytest.mark.parametrize("patch", [
    {"date": ""},
    {"date": "not-a-date"},
    {"time": "18:15"},
    {"time": "24:00"},
    {"guests": 0},
    {"guests": 11},
    {"occasion": "x" * 101},
])
def test_create_validation(client, patch):
    r = client.post("/api/v1/bookings", json=_body(**patch))
    assert r.status_code == 422
    assert r.get_json()["error"] == "validation_error"
    assert client.get("/api/v1/bookings").get_json()["count"] == 0


def test_create_without_body(client):
    r = client.post("/api/v1/bookings", data="nope", content_type="text/plain")
    assert r.status_code == 422


def test_occasion_optional(client):
    r = client.post("/api/v1/bookings", json={"date": XMAS, "time": "22:00", "guests": 2})
    assert r.status_code == 201
    items = client.get("/api/v1/bookings").get_json()["items"]
    assert items[0]["occasion"] == ""
    assert items[0]["created_at"]


# ---------- окно бронирования ----------
def test_booking_window(app_ctx, client):
    app_ctx.config["BOOKING_WINDOW_DAYS"] = 92
    today = datetime.now(ZoneInfo("Europe/Berlin")).date()

    r = client.post("/api/v1/bookings", json=_body(date=(today - timedelta(days=5)).isoformat()))
    assert r.status_code == 422
    assert r.get_json()["error"] == "date_in_past"

    r = client.post("/api/v1/bookings", json=_body(date=(today + timedelta(days=200)).isoformat()))
    assert r.status_code == 422
    assert r.get_json()["error"] == "date_too_far"

    r = client.post("/api/v1/bookings", json=_body(date=(today + timedelta(days=5)).isoformat()))
    assert r.status_code == 201


# ---------- list / clear ----------
def test_list_and_clear(client):
    client.post("/api/v1/bookings", json=_body(time="17:00"))
    client.post("/api/v1/bookings", json=_body(time="20:00"))
    js = client.get("/api/v1/bookings").get_json()
    assert js["count"] == 2
    assert [i["time"] for i in js["items"]] == ["17:00", "20:00"]

    r = client.delete("/api/v1/bookings")
    assert r.status_code == 200 and r.get_json() == {"ok": True}
    assert client.get("/api/v1/bookings").get_json() == {"items": [], "count": 0}


# ---------- хранилища ----------
def test_session_storage_is_per_client(app_ctx):
    app_ctx.config["BOOKING_STORAGE"] = "session"
    alice = app_ctx.test_client()
    bob = app_ctx.test_client()

    assert alice.post("/api/v1/bookings", json=_body()).status_code == 201
    assert alice.post("/api/v1/bookings", json=_body()).status_code == 409
    # у другой сессии свои брони
    assert bob.post("/api/v1/bookings", json=_body()).status_code == 201
    assert alice.get("/api/v1/bookings").get_json()["count"] == 1

    with alice.session_transaction() as sess:
        stored = json.loads(sess["littleLemonBookings"])
    assert stored[0]["date"] == XMAS and stored[0]["time"] == "17:30"


def test_file_storage_backend(app_ctx, tmp_path):
    path = tmp_path / "bookings.json"
    app_ctx.config.update(BOOKING_STORAGE="file", BOOKING_FILE_PATH=str(path))
    c = app_ctx.test_client()
    assert c.post("/api/v1/bookings", json=_body()).status_code == 201
    assert path.exists()
    assert "littleLemonBookings" in json.loads(path.read_text(encoding="utf-8"))


def test_sql_storage_backend(app_ctx):
    app_ctx.config["BOOKING_STORAGE"] = "sql"
    c = app_ctx.test_client()
    assert c.post("/api/v1/bookings", json=_body()).status_code == 201
    assert c.post("/api/v1/bookings", json=_body()).status_code == 409
    assert BookingRecord.query.count() == 1


def test_unknown_storage_kind(app_ctx):
    app_ctx.config["BOOKING_STORAGE"] = "redis"
    app_ctx.config["PROPAGATE_EXCEPTIONS"] = True
    with pytest.raises(ValueError):
        app_ctx.test_client().get(f"/api/v1/booking/times?date={XMAS}")


# ---------- CSRF ----------
def test_csrf_required_when_enabled(app_ctx):
    app_ctx.config["WTF_CSRF_ENABLED"] = True
    c = app_ctx.test_client()

    r = c.post("/api/v1/bookings", json=_body())
    assert r.status_code == 400
    assert r.get_json()["errors"][0]["code"] == "CSRF_FAILED"

    token = c.get("/api/v1/csrf").get_json()["csrf"]
    r = c.post("/api/v1/bookings", json=_body(), headers={"X-CSRF-Token": token})
    assert r.status_code == 201, r.get_json()


def test_session_storage_warns_near_cookie_limit(app_ctx, caplog):
    caplog.set_level(logging.WARNING, logger="blueprints.booking.storage")
    many = [{"date": XMAS, "time": "17:30", "guests": 4, "occasion": "x" * 100}] * 40
    with app_ctx.test_request_context():
        SessionStorage().save(many[:1])
        assert not [r for r in caplog.records if getattr(r, "event", None) == "session_cookie_large"]
        SessionStorage().save(many)
    assert [r for r in caplog.records if getattr(r, "event", None) == "session_cookie_large"]
