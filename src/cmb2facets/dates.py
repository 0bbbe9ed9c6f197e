"""
Normalization of stored date and time values.

| Field type                         | Stored value                       | Normalized format     |
|------------------------------------|------------------------------------|-----------------------|
| `text_date`                        | string in the field's date format  | `YYYY-MM-DD`          |
| `text_date_timestamp`              | Unix timestamp                     | `YYYY-MM-DD`          |
| `text_datetime_timestamp`          | Unix timestamp                     | `YYYY-MM-DD HH:MM:SS` |
| `text_datetime_timestamp_timezone` | PHP-serialized `DateTime` object   | `YYYY-MM-DD HH:MM:SS` |

Timestamps are rendered in the given timezone (UTC unless configured
otherwise). Serialized `DateTime` objects carry their own timezone, and are
rendered in their own wall-clock time.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import phpserialize

from cmb2facets.fields import DEFAULT_DATE_FORMAT

DATE_TYPES = frozenset({
    'text_date',
    'text_date_timestamp',
    'text_datetime_timestamp',
    'text_datetime_timestamp_timezone',
})
"""Field types holding dates or times."""

DATE_FORMAT = '%Y-%m-%d'
DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

PHP_TO_STRPTIME = {
    'd': '%d',
    'j': '%d',
    'm': '%m',
    'n': '%m',
    'y': '%y',
    'Y': '%Y',
    'M': '%b',
    'F': '%B',
    'D': '%a',
    'l': '%A',
    'H': '%H',
    'G': '%H',
    'h': '%I',
    'g': '%I',
    'i': '%M',
    's': '%S',
    'A': '%p',
    'a': '%p',
}
"""PHP `date()` format characters and their `strptime()` equivalents."""


class UnsupportedDateValue(ValueError):
    """Raised when a stored value cannot be read as a date."""

    def __init__(self, *args, value: Any, reason: str = 'not a recognized date value'):
        super().__init__(*args)
        self.value: Any = value
        """The stored value that could not be read"""
        self.reason: str = reason
        """Why the `value` could not be read"""


def strptime_format(php_format: str) -> str:
    """Convert a PHP `date()` format string into a `strptime()` format string.
    A backslash makes the following character a literal. Characters without
    a `strptime()` equivalent are kept as literals."""
    result = []
    chars = iter(php_format)
    for char in chars:
        if char == '\\':
            char = next(chars, '')
            result.append(char.replace('%', '%%'))
        elif char in PHP_TO_STRPTIME:
            result.append(PHP_TO_STRPTIME[char])
        else:
            result.append(char.replace('%', '%%'))
    return ''.join(result)


def parse_date_string(value: str, php_format: str = DEFAULT_DATE_FORMAT) -> date:
    """Parse `value` using the PHP-style `php_format`, falling back to an
    ISO 8601 `YYYY-MM-DD` date."""
    value = value.strip()
    try:
        return datetime.strptime(value, strptime_format(php_format)).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise UnsupportedDateValue(value=value, reason=f'does not match the date format "{php_format}"') from e


def parse_timestamp(value: Any, tz: str = 'UTC') -> datetime:
    """Interpret `value` as a Unix timestamp and return it as an aware
    datetime in the `tz` timezone."""
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise UnsupportedDateValue(value=value, reason=f'unknown timezone "{tz}"') from e
    try:
        return datetime.fromtimestamp(int(float(value)), tz=zone)
    except (TypeError, ValueError) as e:
        raise UnsupportedDateValue(value=value, reason='not a Unix timestamp') from e
    except (OverflowError, OSError) as e:
        raise UnsupportedDateValue(value=value, reason='timestamp is out of range') from e


def _as_dict(_name, properties: dict) -> dict:
    return properties


def parse_serialized_datetime(value: str | bytes | Mapping[str, Any]) -> datetime:
    """Read a PHP-serialized `DateTime` object and return its wall-clock time.
    The timezone is discarded. A mapping that has already been unserialized
    is also accepted."""
    match value:
        case Mapping():
            obj = value
        case str() | bytes():
            data = value if isinstance(value, bytes) else value.encode('utf-8')
            try:
                obj = phpserialize.loads(data, decode_strings=True, object_hook=_as_dict)
            except ValueError as e:
                raise UnsupportedDateValue(value=value, reason='not a serialized DateTime object') from e
        case _:
            raise UnsupportedDateValue(value=value, reason='not a serialized DateTime object')

    if not isinstance(obj, Mapping) or 'date' not in obj:
        raise UnsupportedDateValue(value=value, reason='serialized value has no "date" property')
    try:
        return datetime.fromisoformat(str(obj['date']))
    except ValueError as e:
        raise UnsupportedDateValue(value=value, reason=f'cannot parse the date "{obj["date"]}"') from e


def is_timestamp(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if not isinstance(value, str):
        return False
    try:
        float(value)
    except ValueError:
        return False
    return True


def normalize_date(
    field_type: str,
    value: Any,
    date_format: str = DEFAULT_DATE_FORMAT,
    tz: str = 'UTC',
) -> str:
    """Convert the stored `value` of a date field of the given `field_type`
    into a `YYYY-MM-DD` or `YYYY-MM-DD HH:MM:SS` string.

    Raises an `UnsupportedDateValue` exception if the value is empty or
    cannot be read, and a `ValueError` if `field_type` is not one of the
    `DATE_TYPES`."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise UnsupportedDateValue(value=value, reason='no value stored')

    match field_type:
        case 'text_date':
            return parse_date_string(str(value), date_format).strftime(DATE_FORMAT)
        case 'text_date_timestamp':
            return parse_timestamp(value, tz).strftime(DATE_FORMAT)
        case 'text_datetime_timestamp':
            return parse_timestamp(value, tz).strftime(DATETIME_FORMAT)
        case 'text_datetime_timestamp_timezone':
            if is_timestamp(value):
                return parse_timestamp(value, tz).strftime(DATETIME_FORMAT)
            return parse_serialized_datetime(value).strftime(DATETIME_FORMAT)
        case _:
            raise ValueError(f'"{field_type}" is not a date field type')
