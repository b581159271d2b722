"""Conversion between MySQL cell values and JSON-compatible values.

Rows come back from the driver already partly converted (``int``,
``Decimal``, ``datetime``, ``timedelta`` for TIME, ``bytes`` for binary data)
but the representation handed to callers must not depend on driver quirks,
so every cell is decoded by the type name the catalog declares for its column.
"""

import json
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Union

from dbbrowser.core.exceptions import DecodeError

JsonValue = Union[None, bool, int, float, str]

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

INTEGER_TYPES = {
    "TINYINT",
    "SMALLINT",
    "MEDIUMINT",
    "INT",
    "INTEGER",
    "BIGINT",
    "YEAR",
    "BIT",
}
FLOAT_TYPES = {"FLOAT", "DOUBLE", "REAL"}
DECIMAL_TYPES = {"DECIMAL", "NEWDECIMAL", "NUMERIC"}
BOOLEAN_TYPES = {"BOOLEAN", "BOOL"}
BINARY_TYPES = {
    "BINARY",
    "VARBINARY",
    "TINYBLOB",
    "BLOB",
    "MEDIUMBLOB",
    "LONGBLOB",
    "GEOMETRY",
}

_TIME_PATTERN = re.compile(r"^(-)?(\d+):(\d{2}):(\d{2})(?:\.(\d{1,6}))?$")


def normalize_type_name(type_name: Optional[str]) -> str:
    """Reduce ``int(11) unsigned`` style names to the bare upper-case family."""
    if not type_name:
        return ""
    base = type_name.strip().split("(", 1)[0]
    parts = base.split()
    return parts[0].upper() if parts else ""


def _text(raw: Any, type_name: str) -> str:
    if isinstance(raw, (bytes, bytearray)):
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            raise DecodeError(type_name, raw) from None
    return str(raw)


def _decode_integer(raw: Any, type_name: str) -> int:
    if isinstance(raw, bool):
        value = int(raw)
    elif isinstance(raw, int):
        value = raw
    elif isinstance(raw, (bytes, bytearray)) and type_name == "BIT":
        value = int.from_bytes(bytes(raw), "big")
    elif isinstance(raw, (float, Decimal)):
        try:
            value = int(raw)
        except (ValueError, OverflowError):
            raise DecodeError(type_name, raw) from None
        if value != raw:
            raise DecodeError(type_name, raw)
    else:
        try:
            value = int(_text(raw, type_name).strip())
        except ValueError:
            raise DecodeError(type_name, raw) from None

    if not INT64_MIN <= value <= INT64_MAX:
        raise DecodeError(type_name, raw)
    return value


def _decode_float(raw: Any, type_name: str) -> float:
    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        return float(raw)
    try:
        return float(_text(raw, type_name).strip())
    except ValueError:
        raise DecodeError(type_name, raw) from None


def _decode_decimal(raw: Any, type_name: str) -> str:
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = Decimal(str(raw))
    else:
        try:
            value = Decimal(_text(raw, type_name).strip())
        except InvalidOperation:
            raise DecodeError(type_name, raw) from None
    if not value.is_finite():
        raise DecodeError(type_name, raw)
    return format(value, "f")


def _to_datetime(raw: Any, type_name: str) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    try:
        return datetime.fromisoformat(_text(raw, type_name).strip())
    except ValueError:
        raise DecodeError(type_name, raw) from None


def _decode_datetime(raw: Any, type_name: str) -> str:
    value = _to_datetime(raw, type_name)
    return value.replace(tzinfo=None).isoformat(sep=" ")


def _decode_timestamp(raw: Any, type_name: str) -> str:
    value = _to_datetime(raw, type_name)
    # Naive values are in the session zone, which the holder pins to UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _decode_date(raw: Any, type_name: str) -> str:
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    try:
        return date.fromisoformat(_text(raw, type_name).strip()).isoformat()
    except ValueError:
        raise DecodeError(type_name, raw) from None


def _format_timedelta(value: timedelta) -> str:
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    total_seconds = value.days * 86400 + value.seconds
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{value.microseconds:06d}"
    return text


def _decode_time(raw: Any, type_name: str) -> str:
    if isinstance(raw, timedelta):
        return _format_timedelta(raw)
    if isinstance(raw, time):
        return raw.replace(tzinfo=None).isoformat()

    match = _TIME_PATTERN.match(_text(raw, type_name).strip())
    if not match:
        raise DecodeError(type_name, raw)
    negative, hours, minutes, seconds, fraction = match.groups()
    if int(minutes) > 59 or int(seconds) > 59:
        raise DecodeError(type_name, raw)
    value = timedelta(
        hours=int(hours),
        minutes=int(minutes),
        seconds=int(seconds),
        microseconds=int((fraction or "0").ljust(6, "0")),
    )
    return _format_timedelta(-value if negative else value)


def _decode_boolean(raw: Any, type_name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, (bytes, bytearray)) and len(raw) == 1 and raw[0] in (0, 1):
        return raw[0] == 1

    text = _text(raw, type_name).strip().lower()
    if text in ("1", "true"):
        return True
    if text in ("0", "false"):
        return False
    raise DecodeError(type_name, raw)


def _decode_string(raw: Any, type_name: str) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError:
            if type_name in BINARY_TYPES:
                return "0x" + bytes(raw).hex()
            raise DecodeError(type_name or "TEXT", raw) from None
    if isinstance(raw, (set, frozenset)):
        return ",".join(sorted(str(item) for item in raw))
    if isinstance(raw, (dict, list)):
        return json.dumps(raw)
    return str(raw)


_DECODERS = {}
for _name in INTEGER_TYPES:
    _DECODERS[_name] = _decode_integer
for _name in FLOAT_TYPES:
    _DECODERS[_name] = _decode_float
for _name in DECIMAL_TYPES:
    _DECODERS[_name] = _decode_decimal
for _name in BOOLEAN_TYPES:
    _DECODERS[_name] = _decode_boolean
_DECODERS["ENUM"] = _text
_DECODERS["DATETIME"] = _decode_datetime
_DECODERS["TIMESTAMP"] = _decode_timestamp
_DECODERS["DATE"] = _decode_date
_DECODERS["TIME"] = _decode_time


def decode_cell(raw_value: Any, declared_type_name: Optional[str]) -> JsonValue:
    """
    Decode a single cell into a JSON-compatible value.

    Args:
        raw_value: Value as returned by the driver (or its textual form)
        declared_type_name: Column type as declared in the catalog

    Returns:
        ``None``, ``bool``, ``int``, ``float`` or ``str``

    Raises:
        DecodeError: If the value cannot be represented as its declared type
    """
    if raw_value is None:
        return None
    type_name = normalize_type_name(declared_type_name)
    decoder = _DECODERS.get(type_name, _decode_string)
    return decoder(raw_value, type_name)


def decode_row(
    row: Mapping[str, Any], column_types: Mapping[str, str]
) -> Dict[str, JsonValue]:
    """Decode every cell of a row; a single bad cell fails the row."""
    decoded = {}
    for column, raw_value in row.items():
        try:
            decoded[column] = decode_cell(raw_value, column_types.get(column))
        except DecodeError as exc:
            raise DecodeError(exc.type_name, exc.value, column) from exc
    return decoded


def encode_value(value: Any) -> Any:
    """Convert a record value into a bound parameter."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)
