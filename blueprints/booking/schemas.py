from __future__ import annotations
from datetime import date as dt_date
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator

MAX_GUESTS = 10


class BookingIn(BaseModel):
    date: dt_date
    # только полчаса: 18:00, 18:30 ...
    time: str = Field(pattern=r"^([01]\d|2[0-3]):(00|30)$")
    guests: int = Field(ge=1, le=MAX_GUESTS)
    occasion: Optional[str] = Field(None, max_length=100)

    @field_validator("occasion")
    @classmethod
    def _strip(cls, v: Optional[str]):
        return v.strip() if v else ""

    def as_form(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "time": self.time,
            "guests": self.guests,
            "occasion": self.occasion or "",
        }


class BookingOut(BaseModel):
    date: str
    time: str
    guests: Optional[int] = None
    occasion: str = ""
    created_at: str = ""
