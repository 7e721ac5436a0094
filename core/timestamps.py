"""UTC timestamp formatting without a timezone database.

Converts seconds since the Unix epoch into ``YYYY-MM-DDTHH:MM:SSZ`` using
plain proleptic Gregorian calendar arithmetic. No locale, no ``tzinfo``:
the input is always treated as UTC.

Example:
    >>> format_timestamp(0)
    '1970-01-01T00:00:00Z'
    >>> format_date(951782400)
    '2000-02-29'
"""

from core.errors import PreconditionError

SECONDS_PER_DAY: int = 86_400

_DAYS_IN_MONTH: tuple[int, ...] = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


def is_leap_year(year: int) -> bool:
    """Return True for Gregorian leap years."""
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def format_timestamp(instant: float) -> str:
    """Format an epoch instant as ``YYYY-MM-DDTHH:MM:SSZ``.

    Fractional seconds are truncated.

    Args:
        instant: Seconds since 1970-01-01T00:00:00Z. Must be >= 0.

    Returns:
        ISO-8601-like UTC timestamp string.

    Raises:
        PreconditionError: If ``instant`` predates the epoch.
    """
    if instant < 0:
        raise PreconditionError(f"instant must not predate the epoch, got {instant}")

    secs: int = int(instant)
    days: int = secs // SECONDS_PER_DAY

    year: int = 1970
    while True:
        days_in_year: int = 366 if is_leap_year(year) else 365
        if days < days_in_year:
            break
        days -= days_in_year
        year += 1

    month: int = 1
    for index, days_in_month in enumerate(_DAYS_IN_MONTH):
        if index == 1 and is_leap_year(year):
            days_in_month += 1
        if days < days_in_month:
            break
        days -= days_in_month
        month += 1
    day: int = days + 1

    time_of_day: int = secs % SECONDS_PER_DAY
    hour: int = time_of_day // 3600
    minute: int = (time_of_day % 3600) // 60
    second: int = time_of_day % 60

    return (
        f"{year:04d}-{month:02d}-{day:02d}"
        f"T{hour:02d}:{minute:02d}:{second:02d}Z"
    )


def format_date(instant: float) -> str:
    """Return only the ``YYYY-MM-DD`` part of :func:`format_timestamp`."""
    return format_timestamp(instant).split("T", 1)[0]
