"""Date arithmetic and chrono-style date formatting.

Test documents describe date formats with the chrono flavour of strftime,
which adds fractional-second directives that Python does not know:

- ``%.f``: a dot followed by 3, 6 or 9 digits, or nothing when the
  fraction is zero
- ``%.3f``, ``%.6f``, ``%.9f``: a dot followed by a fixed number of digits

Everything else is handed to :meth:`datetime.strftime`/:meth:`datetime.strptime`.
"""

import calendar
import re
from datetime import MAXYEAR, MINYEAR, UTC, date, datetime, timedelta
from enum import StrEnum

from httpstages_vars.exceptions import VariableFormatError

DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S%.f"

FRACTION_PATTERN = r"%\.(?P<digits>[369])?f"
FRACTION_REGEX = re.compile(FRACTION_PATTERN)
NANOS_REGEX = re.compile(r"(?P<micros>\.\d{6})\d{1,3}(?!\d)")


class DateOperation(StrEnum):
    ADD = "add"
    SUBTRACT = "subtract"


class DateUnit(StrEnum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


def add_months(value: date, months: int) -> date:
    """Shift by calendar months, clamping the day to the end of the target month."""
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    if not MINYEAR <= year <= MAXYEAR:
        raise VariableFormatError(f"Date out of range after shifting {value} by {months} months")
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift(value: date, operation: DateOperation, amount: int, unit: DateUnit) -> date:
    """Apply a modifier to a date or datetime, preserving its type."""
    sign = 1 if operation == DateOperation.ADD else -1
    try:
        match unit:
            case DateUnit.DAYS:
                return value + timedelta(days=sign * amount)
            case DateUnit.WEEKS:
                return value + timedelta(weeks=sign * amount)
            case DateUnit.MONTHS:
                return add_months(value, sign * amount)
            case DateUnit.YEARS:
                return add_months(value, sign * amount * 12)
    except OverflowError:
        raise VariableFormatError(f"Date out of range after {operation} {amount} {unit}") from None


def _fraction(value: date, digits: str | None) -> str:
    micros = value.microsecond if isinstance(value, datetime) else 0
    nanos = micros * 1000
    match digits:
        case "3":
            return f".{nanos // 1_000_000:03d}"
        case "6":
            return f".{micros:06d}"
        case "9":
            return f".{nanos:09d}"
        case _:
            if nanos == 0:
                return ""
            if nanos % 1_000_000 == 0:
                return f".{nanos // 1_000_000:03d}"
            if nanos % 1_000 == 0:
                return f".{micros:06d}"
            return f".{nanos:09d}"


def format_instant(value: date, fmt: str) -> str:
    """Format a date or datetime with a chrono-style format string."""
    parts: list[str] = []
    position = 0
    try:
        for match in FRACTION_REGEX.finditer(fmt):
            if match.start() > position:
                parts.append(value.strftime(fmt[position : match.start()]))
            parts.append(_fraction(value, match.group("digits")))
            position = match.end()
        if position < len(fmt):
            parts.append(value.strftime(fmt[position:]))
    except ValueError as e:
        raise VariableFormatError(f"Cannot format {value} with '{fmt}': {str(e)}") from None
    return "".join(parts)


def to_strptime(fmt: str) -> str:
    return FRACTION_REGEX.sub(".%f", fmt)


def parse_instant(text: str, fmt: str) -> datetime:
    """Parse a string with a chrono-style format.

    A fractional directive may be absent from the input, in which case the
    format is retried without it.
    """
    candidates = [to_strptime(fmt)]
    if FRACTION_REGEX.search(fmt):
        candidates.append(FRACTION_REGEX.sub("", fmt))
        # strptime reads at most microseconds
        text = NANOS_REGEX.sub(r"\g<micros>", text)

    for candidate in candidates:
        try:
            return datetime.strptime(text, candidate)
        except ValueError:
            continue

    raise VariableFormatError(f"Cannot parse '{text}' with format '{fmt}'")


def parse_any(text: str, formats: list[str]) -> datetime:
    """Parse with the first matching format, falling back to ISO 8601."""
    for fmt in formats:
        try:
            return parse_instant(text, fmt)
        except VariableFormatError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise VariableFormatError(f"Cannot parse '{text}' as a date (tried {', '.join(formats)})") from None


def check_format(fmt: str) -> str:
    """Validate a format by formatting and re-parsing a sample instant."""
    if "%" not in fmt:
        raise VariableFormatError(f"Format '{fmt}' contains no directives")
    sample = datetime(2001, 2, 3, 4, 5, 6, 789000, tzinfo=UTC)
    parse_instant(format_instant(sample, fmt), fmt)
    return fmt
