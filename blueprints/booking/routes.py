# blueprints/booking/routes.py
from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from flask import current_app, jsonify, request
from pydantic import ValidationError

from . import api_bp
from .schemas import BookingIn, BookingOut
from .services import ReservationStore, SubmitResult
from .storage import SessionStorage, make_storage

log = logging.getLogger(__name__)

# статус ответа на каждый отказ submit
_REJECT_HTTP = {
    SubmitResult.INVALID: ("INVALID", 400),
    SubmitResult.CONFLICT: ("SLOT_TAKEN", 409),
}


# ----------------------- Helpers -----------------------
def _json_err(code: str, http: int = 400, detail=None):
    body = {"error": code}
    if detail:
        body["detail"] = detail
    return jsonify(body), http


def _pydantic_errors_safe(ve: ValidationError):
    errs = ve.errors(include_url=False)
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
    return errs


def _today() -> date:
    return datetime.now(ZoneInfo(current_app.config["RESTAURANT_TZ"])).date()


def _store() -> ReservationStore:
    cfg = current_app.config
    kind = cfg["BOOKING_STORAGE"]
    # сессионное хранилище живёт в cookie клиента, поэтому store на запрос
    if kind == "session":
        return ReservationStore(SessionStorage(cfg["BOOKING_STORAGE_KEY"]))
    store = current_app.extensions.get("booking_store")
    if store is None:
        store = current_app.extensions.setdefault(
            "booking_store", ReservationStore(make_storage(kind, cfg)))
    return store


def _window_error(d: date) -> str | None:
    days = current_app.config.get("BOOKING_WINDOW_DAYS")
    if days is None:
        return None
    today = _today()
    if d < today:
        return "date_in_past"
    if d > today + timedelta(days=days):
        return "date_too_far"
    return None


# ----------------------- API -----------------------
@api_bp.get("/booking/times")
def booking_times():
    raw = request.args.get("date")
    try:
        d = date.fromisoformat(raw) if raw else _today()
    except ValueError:
        return _json_err("bad_date", 400, "date must be YYYY-MM-DD")
    return jsonify({"date": d.isoformat(), "times": _store().available_slots(d)})


@api_bp.post("/bookings")
def booking_create():
    payload = request.get_json(silent=True) or {}
    try:
        data = BookingIn.model_validate(payload)
    except ValidationError as ve:
        return jsonify({"error": "validation_error", "detail": _pydantic_errors_safe(ve)}), 422

    window_err = _window_error(data.date)
    if window_err:
        return _json_err(window_err, 422)

    store = _store()
    result = store.submit(data.as_form())
    if result:
        return jsonify({"ok": True, "booking": data.as_form()}), 201

    code, http = _REJECT_HTTP[result]
    body = {"ok": False, "errors": [{"code": code}]}
    if result is SubmitResult.CONFLICT:
        # отдаём свежий список, чтобы форма сразу перерисовала время
        body["times"] = store.available_slots(data.date)
    return jsonify(body), http


@api_bp.get("/bookings")
def booking_list():
    items = [BookingOut.model_validate(b.to_dict()).model_dump() for b in _store().bookings()]
    return jsonify({"items": items, "count": len(items)})


@api_bp.delete("/bookings")
def booking_clear():
    _store().clear()
    log.info("bookings cleared", extra={"event": "bookings_cleared"})
    return jsonify({"ok": True})
