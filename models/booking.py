from __future__ import annotations
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db


class BookingRecord(db.Model):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)   # YYYY-MM-DD
    time: Mapped[str] = mapped_column(String(5), nullable=False)                # HH:MM
    guests: Mapped[int | None] = mapped_column(Integer)
    occasion: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("date", "time", name="uq_bookings_date_time"),
    )

    def __repr__(self):
        return f"<BookingRecord {self.date} {self.time}>"
