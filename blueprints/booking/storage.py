# blueprints/booking/storage.py
from __future__ import annotations
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from flask import session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import BookingRecord
from .errors import CorruptedStorage, SlotConflictError, StorageError

log = logging.getLogger(__name__)

STORAGE_KEY = "littleLemonBookings"
# браузеры режут cookie больше ~4 КБ, подпись Flask тоже занимает место
SESSION_SOFT_LIMIT = 3500


class BookingStorage(Protocol):
    def load(self) -> List[Dict[str, Any]]:
        ...

    def add(self, record: Dict[str, Any]) -> None:
        """Дописывает одну бронь. Уже сохранённые записи не трогает."""
        ...

    def clear(self) -> None:
        ...


# ===== key-value: весь список броней хранится одной JSON-строкой под одним ключом =====
class KeyValueStorage:
    def __init__(self, key: str = STORAGE_KEY):
        self.key = key

    def _read(self) -> Optional[str]:
        raise NotImplementedError

    def _write(self, raw: str) -> None:
        raise NotImplementedError

    def _remove(self) -> None:
        raise NotImplementedError

    def _decode(self, raw: Optional[str]) -> List[Dict[str, Any]]:
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as ex:
            raise CorruptedStorage(f"corrupted bookings under {self.key!r}") from ex
        if not isinstance(data, list):
            raise CorruptedStorage(f"bookings under {self.key!r} are not a list")
        return data

    def load(self) -> List[Dict[str, Any]]:
        return self._decode(self._read())

    def add(self, record: Dict[str, Any]) -> None:
        # ошибка чтения (I/O) уходит наружу: запись отменяется, данные целы
        try:
            records = self.load()
        except CorruptedStorage:
            log.warning("bookings under %r are corrupted, starting a new list", self.key,
                        extra={"event": "storage_corrupted"})
            records = []
        records.append(record)
        self.save(records)

    def save(self, records: List[Dict[str, Any]]) -> None:
        try:
            raw = json.dumps(records, ensure_ascii=False)
        except (TypeError, ValueError) as ex:
            raise StorageError("bookings are not JSON-serializable") from ex
        self._write(raw)

    def clear(self) -> None:
        self._remove()


class MemoryStorage(KeyValueStorage):
    def __init__(self, key: str = STORAGE_KEY, data: Optional[Dict[str, str]] = None):
        super().__init__(key)
        self.data: Dict[str, str] = data if data is not None else {}

    def _read(self) -> Optional[str]:
        return self.data.get(self.key)

    def _write(self, raw: str) -> None:
        self.data[self.key] = raw

    def _remove(self) -> None:
        self.data.pop(self.key, None)


class SessionStorage(KeyValueStorage):
    """Брони живут в cookie-сессии Flask: сколько живёт сессия браузера, столько и они.

    Весь список лежит в подписанной cookie, а браузер хранит не больше ~4 КБ
    на cookie. Это несколько десятков броней; дальше браузер молча отбросит
    cookie. При приближении к пределу пишем warning. Для большего объёма
    нужен BOOKING_STORAGE=file или sql.
    """

    def _read(self) -> Optional[str]:
        try:
            return session.get(self.key)
        except RuntimeError as ex:  # вне контекста запроса
            raise StorageError("no request session") from ex

    def _write(self, raw: str) -> None:
        try:
            session[self.key] = raw
        except RuntimeError as ex:
            raise StorageError("no request session") from ex
        size = len(raw.encode("utf-8"))
        if size > SESSION_SOFT_LIMIT:
            log.warning("session bookings take %d bytes, the cookie may be dropped", size,
                        extra={"event": "session_cookie_large"})

    def _remove(self) -> None:
        try:
            session.pop(self.key, None)
        except RuntimeError as ex:
            raise StorageError("no request session") from ex


class JsonFileStorage(KeyValueStorage):
    """Файл: JSON-объект {ключ: строка}, как у браузерного storage."""

    def __init__(self, path: str | os.PathLike, key: str = STORAGE_KEY):
        super().__init__(key)
        self.path = Path(path)

    def _document(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except OSError as ex:
            raise StorageError(f"cannot read {self.path}") from ex
        except ValueError as ex:
            raise CorruptedStorage(f"corrupted storage file {self.path}") from ex
        if not isinstance(doc, dict):
            raise CorruptedStorage(f"corrupted storage file {self.path}")
        return doc

    def _dump(self, doc: Dict[str, str]) -> None:
        # пишем во временный файл рядом и атомарно подменяем
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as ex:
            raise StorageError(f"cannot write {self.path}") from ex

    def _read(self) -> Optional[str]:
        return self._document().get(self.key)

    def _write(self, raw: str) -> None:
        try:
            doc = self._document()
        except CorruptedStorage:
            # битый файл не должен блокировать запись навсегда;
            # сбой чтения (OSError) пробрасываем, иначе потеряем чужие ключи
            log.warning("storage file %s is corrupted, rewriting it", self.path,
                        extra={"event": "storage_corrupted"})
            doc = {}
        doc[self.key] = raw
        self._dump(doc)

    def _remove(self) -> None:
        doc = self._document()
        if self.key in doc:
            del doc[self.key]
            self._dump(doc)


# ===== SQL: таблица bookings с уникальностью (date, time) =====
def _created_at_to_db(value: Any) -> datetime:
    try:
        dt = datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        dt = datetime.now(UTC)
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def _row_to_dict(row: BookingRecord) -> Dict[str, Any]:
    return {
        "date": row.date,
        "time": row.time,
        "guests": row.guests,
        "occasion": row.occasion or "",
        "created_at": row.created_at.replace(tzinfo=UTC).isoformat(timespec="milliseconds"),
    }


class SqlStorage:
    def load(self) -> List[Dict[str, Any]]:
        try:
            rows = BookingRecord.query.order_by(BookingRecord.id.asc()).all()
        except SQLAlchemyError as ex:
            db.session.rollback()
            raise StorageError("cannot read bookings table") from ex
        return [_row_to_dict(r) for r in rows]

    def add(self, record: Dict[str, Any]) -> None:
        # только INSERT: строки других процессов не трогаем, гонку решает UNIQUE(date, time)
        try:
            db.session.add(BookingRecord(
                date=record["date"],
                time=record["time"],
                guests=record.get("guests"),
                occasion=record.get("occasion") or "",
                created_at=_created_at_to_db(record.get("created_at")),
            ))
            db.session.commit()
        except IntegrityError as ex:
            # слот успел занять другой процесс
            db.session.rollback()
            raise SlotConflictError("slot already taken") from ex
        except SQLAlchemyError as ex:
            db.session.rollback()
            raise StorageError("cannot write bookings table") from ex

    def clear(self) -> None:
        try:
            BookingRecord.query.delete()
            db.session.commit()
        except SQLAlchemyError as ex:
            db.session.rollback()
            raise StorageError("cannot clear bookings table") from ex


def make_storage(kind: str, config) -> BookingStorage:
    key = config.get("BOOKING_STORAGE_KEY", STORAGE_KEY)
    if kind == "session":
        return SessionStorage(key)
    if kind == "memory":
        return MemoryStorage(key)
    if kind == "file":
        return JsonFileStorage(config["BOOKING_FILE_PATH"], key)
    if kind == "sql":
        return SqlStorage()
    raise ValueError(f"unknown BOOKING_STORAGE: {kind!r}")
