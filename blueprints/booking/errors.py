from __future__ import annotations


class BookingError(Exception):
    """Базовая ошибка брони."""
    code = "BOOKING_ERROR"


class InvalidBooking(BookingError):
    code = "INVALID"


class SlotConflictError(BookingError):
    """Слот (date, time) уже занят."""
    code = "SLOT_TAKEN"


class StorageError(BookingError):
    """Хранилище недоступно или данные в нём повреждены."""
    code = "STORAGE_FAILURE"


class CorruptedStorage(StorageError):
    """Данные прочитаны, но разобрать их нельзя."""
    code = "STORAGE_CORRUPTED"
