from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of timezone-aware instants."""

    def now(self) -> datetime: ...

    def utc_now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now().astimezone()

    def utc_now(self) -> datetime:
        return datetime.now(UTC)


@dataclass(frozen=True)
class FixedClock:
    """Clock frozen at a wall-clock instant, ``utc_offset_hours`` ahead of UTC.

    A naive ``instant`` is taken to be in that offset; an aware one is used as is.
    """

    instant: datetime
    utc_offset_hours: int = 0

    def now(self) -> datetime:
        if self.instant.tzinfo is not None:
            return self.instant
        return self.instant.replace(tzinfo=timezone(timedelta(hours=self.utc_offset_hours)))

    def utc_now(self) -> datetime:
        return self.now().astimezone(UTC)
