"""Database module for the birthday bot."""

from .birthday import BirthdayRepository, validate_date
from .connection import Database
from .models import BirthdayMatch, BirthdayRecord, ListResult, WriteResult, WriteStatus

__all__ = [
    "Database",
    "BirthdayRepository",
    "BirthdayMatch",
    "BirthdayRecord",
    "ListResult",
    "WriteResult",
    "WriteStatus",
    "validate_date",
]
