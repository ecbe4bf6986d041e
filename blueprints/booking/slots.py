# blueprints/booking/slots.py
"""
Генератор слотов для брони.

Набор свободных времён на день псевдослучайный, но детерминированный:
генератор сидируется номером дня месяца, поэтому 5 марта и 5 июня
дают одинаковый набор.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Callable, List

# параметры линейного конгруэнтного генератора
LCG_MODULUS = 2**35 - 31
LCG_MULTIPLIER = 185852

FIRST_HOUR = 17   # первая посадка 17:00
LAST_HOUR = 23    # последняя посадка 23:30

ALL_SLOTS: List[str] = [
    f"{h:02d}:{m:02d}" for h in range(FIRST_HOUR, LAST_HOUR + 1) for m in (0, 30)
]


def seeded_random(seed: int) -> Callable[[], float]:
    """Возвращает функцию, которая на каждый вызов отдаёт следующее число из [0, 1)."""
    state = seed % LCG_MODULUS

    def _next() -> float:
        nonlocal state
        state = state * LCG_MULTIPLIER % LCG_MODULUS
        return state / LCG_MODULUS

    return _next


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def generate_slots(day) -> List[str]:
    """Кандидаты на посадку для даты, по возрастанию времени.

    Значение зависит только от day-of-month; может вернуть пустой список.
    """
    random = seeded_random(as_date(day).day)
    result: List[str] = []
    for hour in range(FIRST_HOUR, LAST_HOUR + 1):
        if random() < 0.5:
            result.append(f"{hour:02d}:00")
        if random() < 0.5:
            result.append(f"{hour:02d}:30")
    return result
