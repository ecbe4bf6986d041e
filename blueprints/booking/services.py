# blueprints/booking/services.py
from __future__ import annotations
import enum
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime, time as dt_time
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import InvalidBooking, SlotConflictError, StorageError
from .slots import as_date, generate_slots
from .storage import BookingStorage

log = logging.getLogger(__name__)


# ===== DTO =====
@dataclass
class Booking:
    date: str
    time: str
    guests: Optional[int]
    occasion: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Booking":
        return cls(
            date=str(raw.get("date") or ""),
            time=str(raw.get("time") or ""),
            guests=raw.get("guests"),
            occasion=raw.get("occasion") or "",
            # старые записи из браузера хранили метку под ключом timestamp
            created_at=raw.get("created_at") or raw.get("timestamp") or "",
        )


class SubmitResult(str, enum.Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    INVALID = "invalid"

    def __bool__(self) -> bool:
        return self is SubmitResult.SUCCESS


def _date_str(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return as_date(value).isoformat()
    return str(value or "").strip()


def _time_str(value: Any) -> str:
    if isinstance(value, dt_time):
        return value.strftime("%H:%M")
    return str(value or "").strip()


class ReservationStore:
    """Брони одной сессии поверх подключаемого хранилища.

    Проверка конфликта и запись выполняются под одним локом, поэтому два
    параллельных submit на один и тот же (date, time) не пройдут оба.
    """

    def __init__(self, storage: BookingStorage, *, clock: Callable[[], datetime] | None = None):
        self.storage = storage
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.RLock()

    # ---------- storage ----------
    def _load(self) -> List[Booking]:
        try:
            raw = self.storage.load()
        except StorageError as ex:
            log.error("booking storage read failed, treating as empty: %s", ex,
                      extra={"event": "storage_read_failed"})
            return []
        return [Booking.from_dict(r) for r in raw if isinstance(r, Mapping)]

    def _add(self, booking: Booking) -> None:
        try:
            self.storage.add(booking.to_dict())
        except StorageError as ex:
            # запись теряется, но поток брони не прерываем
            log.warning("booking storage write dropped: %s", ex,
                        extra={"event": "storage_write_failed"})

    # ---------- queries ----------
    def available_slots(self, day) -> List[str]:
        d = as_date(day)
        key = d.isoformat()
        with self._lock:
            taken = {b.time for b in self._load() if b.date == key}
        return [t for t in generate_slots(d) if t not in taken]

    def bookings(self) -> List[Booking]:
        with self._lock:
            return self._load()

    def __len__(self) -> int:
        return len(self.bookings())

    # ---------- commands ----------
    def _build(self, candidate: Mapping[str, Any]) -> Booking:
        date_s = _date_str(candidate.get("date"))
        time_s = _time_str(candidate.get("time"))
        if not date_s or not time_s:
            raise InvalidBooking("date and time are required")

        guests = candidate.get("guests")
        if guests is None or guests == "":
            guests = None
        else:
            try:
                guests = int(guests)
            except (TypeError, ValueError) as ex:
                raise InvalidBooking("guests must be an integer") from ex

        return Booking(
            date=date_s,
            time=time_s,
            guests=guests,
            occasion=candidate.get("occasion") or "",
            created_at=self._clock().isoformat(timespec="milliseconds"),
        )

    def _reject(self, reason: str, date_s: str = "", time_s: str = "", detail: str = "") -> None:
        log.warning("booking rejected%s", f": {detail}" if detail else "", extra={
            "event": "booking_rejected", "reason": reason,
            "slot_date": date_s, "slot_time": time_s,
        })

    def submit(self, candidate: Mapping[str, Any]) -> SubmitResult:
        """Пытается занять слот. Исключения наружу не выпускает, только статус."""
        try:
            booking = self._build(candidate)
        except InvalidBooking as ex:
            self._reject("invalid", detail=str(ex))
            return SubmitResult.INVALID

        with self._lock:
            bookings = self._load()
            if any(b.date == booking.date and b.time == booking.time for b in bookings):
                self._reject("conflict", booking.date, booking.time)
                return SubmitResult.CONFLICT
            try:
                self._add(booking)
            except SlotConflictError:
                self._reject("conflict", booking.date, booking.time, detail="taken concurrently")
                return SubmitResult.CONFLICT

        log.info("booking committed", extra={
            "event": "booking_committed", "slot_date": booking.date, "slot_time": booking.time,
        })
        return SubmitResult.SUCCESS

    def clear(self) -> None:
        with self._lock:
            try:
                self.storage.clear()
            except StorageError as ex:
                log.warning("booking storage clear failed: %s", ex,
                            extra={"event": "storage_clear_failed"})
