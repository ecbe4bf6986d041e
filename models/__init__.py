from extensions import db
from .booking import BookingRecord

__all__ = ["db", "BookingRecord"]
