from __future__ import annotations
import os
from pathlib import Path


def _int_or_none(value: str | None, default: int | None) -> int | None:
    if value is None:
        return default
    value = value.strip().lower()
    if value in ("", "none", "off"):
        return None
    return int(value)


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'app.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # session | memory | file | sql
    BOOKING_STORAGE = os.getenv("BOOKING_STORAGE", "session")
    BOOKING_STORAGE_KEY = os.getenv("BOOKING_STORAGE_KEY", "littleLemonBookings")
    BOOKING_FILE_PATH = os.getenv("BOOKING_FILE_PATH", str(BASE_DIR / "instance" / "bookings.json"))
    # бронь не дальше чем на ~3 месяца вперёд; None: без ограничения
    BOOKING_WINDOW_DAYS = _int_or_none(os.getenv("BOOKING_WINDOW_DAYS"), 92)
    RESTAURANT_TZ = os.getenv("RESTAURANT_TZ", "Europe/Berlin")
    # JSON-логи пишем сами; в root не пропускаем, чтобы не было дублей
    LOG_PROPAGATE = False


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False
    JSON_SORT_KEYS = False
    SESSION_COOKIE_SECURE = True


class TestConfig(BaseConfig):
    TESTING = True
    WTF_CSRF_ENABLED = False
    BOOKING_STORAGE = "memory"
    BOOKING_WINDOW_DAYS = None
    # caplog слушает root-логгер
    LOG_PROPAGATE = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


config_map = {
    "dev": DevConfig,
    "prod": ProdConfig,
    "test": TestConfig,
    "default": DevConfig,
}
