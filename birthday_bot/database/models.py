"""Data models for the birthday store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class BirthdayRecord:
    """A stored birthday. `birth_date` is the canonical "DD.MM" text."""

    member_id: str
    display_name: str
    birth_date: str
    scope_id: str | None = None

    @property
    def day(self) -> int:
        return int(self.birth_date[:2])

    @property
    def month(self) -> int:
        return int(self.birth_date[3:])


@dataclass(frozen=True)
class BirthdayMatch:
    """Row returned by the daily date match."""

    member_id: str
    display_name: str


class WriteStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_FORMAT = "invalid_format"
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a store write. NOT_FOUND is a success variant."""

    status: WriteStatus
    affected: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (WriteStatus.OK, WriteStatus.NOT_FOUND)


@dataclass(frozen=True)
class ListResult:
    """Outcome of a listing; `error` is set when storage failed."""

    records: list[BirthdayRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
