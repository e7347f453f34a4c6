"""Parsing helpers for Dune timestamps and stringly-typed numbers.

Dune reports execution timestamps as ``2022-12-23T10:34:06.129331594Z`` and
timestamp columns inside result rows as ``2022-05-04 00:00:00.000``. Numbers
in result rows may arrive as JSON strings. The ``Annotated`` aliases at the
bottom of this module plug these parsers into caller-defined row models.
"""

import re
from datetime import UTC, datetime
from typing import Annotated, Any, Final

from pydantic import BeforeValidator

API_TIME_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S.%fZ"
DATA_TIME_FORMATS: Final[tuple[str, ...]] = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")
PARAMETER_TIME_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# strptime's %f accepts at most six digits; the API emits nanoseconds.
_LONG_FRACTION_RE: Final[re.Pattern[str]] = re.compile(r"\.(\d{6})\d+")
_UTC_SUFFIX: Final[str] = " UTC"


def _truncate_fraction(date_str: str) -> str:
    return _LONG_FRACTION_RE.sub(r".\1", date_str)


def date_parse(date_str: str) -> datetime:
    """Parse the timestamp format of API response fields (e.g. ``submitted_at``).

    Args:
        date_str: Timestamp such as ``2022-01-01T01:02:03.123Z``

    Returns:
        Timezone-aware UTC datetime

    Raises:
        ValueError: If the string does not match the API format
    """
    parsed = datetime.strptime(_truncate_fraction(date_str), API_TIME_FORMAT)
    return parsed.replace(tzinfo=UTC)


def dune_date(date_str: str) -> datetime:
    """Parse the timestamp format returned for data fields of type timestamp.

    Args:
        date_str: Timestamp such as ``2022-05-04 00:00:00.000``

    Returns:
        Timezone-aware UTC datetime

    Raises:
        ValueError: If the string matches none of the data formats
    """
    value = _truncate_fraction(date_str.removesuffix(_UTC_SUFFIX))
    for fmt in DATA_TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    raise ValueError(f"time data {date_str!r} does not match any Dune data format")


def datetime_from_str(value: Any) -> datetime:
    """Parse either Dune timestamp format, trying the response format first."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected a date string, got {type(value).__name__}")
    try:
        return date_parse(value)
    except ValueError:
        return dune_date(value)


def optional_datetime_from_str(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime_from_str(value)


def f64_from_str(value: Any) -> float:
    """Parse a float that the API delivered as a JSON string.

    Raises:
        ValueError: If the value is not a string or is not numeric
    """
    if not isinstance(value, str):
        raise ValueError("Expected a string")
    return float(value)


def format_parameter_date(value: datetime) -> str:
    """Render a datetime as a query parameter value, truncated to seconds.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(PARAMETER_TIME_FORMAT)


DuneDatetime = Annotated[datetime, BeforeValidator(datetime_from_str)]
OptionalDuneDatetime = Annotated[datetime | None, BeforeValidator(optional_datetime_from_str)]
StrFloat = Annotated[float, BeforeValidator(f64_from_str)]
