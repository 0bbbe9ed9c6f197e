"""Readers for values from the settings file.

Values in the settings file may be filled in from `${NAME}` placeholders
(see `cmb2facets.web.load_config_from_files()`), so a boolean setting may
arrive either as a YAML/JSON boolean or as a string such as `"false"`.
"""

from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cmb2facets.errors import ConfigurationError

TRUE_STRINGS = frozenset({'true', '1', 'yes', 'on'})
FALSE_STRINGS = frozenset({'false', '0', 'no', 'off', ''})


def as_bool(value: Any, key: str) -> bool:
    """Read the setting `key` as a boolean.

    Raises a `ConfigurationError` if `value` is not a boolean, the integer
    0 or 1, or one of the strings in `TRUE_STRINGS` or `FALSE_STRINGS`
    (compared case-insensitively)."""
    match value:
        case bool():
            return value
        case 0 | 1:
            return bool(value)
        case str() if value.strip().lower() in TRUE_STRINGS:
            return True
        case str() if value.strip().lower() in FALSE_STRINGS:
            return False
        case _:
            raise ConfigurationError(f'Setting "{key}" must be true or false, not "{value}"')


def as_timezone(value: Any, key: str = 'timezone') -> str:
    """Check that `value` is the name of a known IANA timezone, and return it.

    Raises a `ConfigurationError` if it is not."""
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ConfigurationError(f'Setting "{key}" is not a known timezone: "{name}"') from e
    return name
