from __future__ import annotations
import json, logging
from datetime import UTC, datetime

from flask import g, jsonify, request
from werkzeug.exceptions import BadRequest
from werkzeug.wrappers.response import Response

from flask_wtf.csrf import CSRFError, generate_csrf
from extensions import csrf

from . import bp                 # используем bp из __init__.py
from . import api_bp

_EXTRA_KEYS = ("event", "path", "method", "status", "duration_ms", "reason", "slot_date", "slot_time")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload, ensure_ascii=False)


def _setup_structured_logging(app):
    # логгер приложения + логгеры блюпринтов (blueprints.booking.*)
    propagate = app.config.get("LOG_PROPAGATE", False)
    for logger in (app.logger, logging.getLogger("blueprints")):
        logger.propagate = propagate
        has_json = any(
            isinstance(h, logging.StreamHandler)
            and isinstance(getattr(h, "formatter", None), JSONFormatter)
            for h in logger.handlers
        )
        if not has_json:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)
            logger.setLevel(logging.INFO)


@api_bp.get("/csrf")
@csrf.exempt          # токен выдаём без проверки
def get_csrf():
    return jsonify({"csrf": generate_csrf()})


@bp.before_app_request
def _start_timer():
    g._req_start = datetime.now(UTC)


@bp.after_app_request
def _log_request(response: Response):
    try:
        duration_ms = int((datetime.now(UTC) - g._req_start).total_seconds() * 1000)
    except AttributeError:
        duration_ms = None
    extra = {
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
    }
    # логгер уже настроен в _on_register
    logging.getLogger("blueprints.core").info("request handled", extra=extra)
    return response


@bp.app_errorhandler(CSRFError)
def handle_csrf_error(err):
    return jsonify({"ok": False, "errors": [{"code": "CSRF_FAILED", "details": err.description}]}), 400


@bp.app_errorhandler(BadRequest)
def handle_bad_request(err):
    return jsonify({"ok": False, "errors": [{"code": "BAD_REQUEST", "details": err.description}]}), 400


@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)


@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.now(UTC).isoformat(timespec="seconds"),
    })
