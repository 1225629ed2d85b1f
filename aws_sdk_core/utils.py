# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import base64
import binascii
import re
import string
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from math import isinf, isnan
from typing import Any, Final

from .exceptions import DeserializationError, SerializationError
from .schemas import ShapeType

RFC3339: Final = "%Y-%m-%dT%H:%M:%SZ"

# RFC 3986 unreserved characters. Bytes outside this set are percent-encoded in
# URI labels.
_UNRESERVED: Final = frozenset(
    (string.ascii_letters + string.digits + "-._~").encode("ascii")
)
_SLASH: Final = ord("/")


def ensure_utc(value: datetime) -> datetime:
    """Ensures that the given datetime is a UTC timezone-aware datetime.

    If the datetime isn't timezone-aware, its timezone is set to UTC. If it is aware,
    it's replaced with the equivalent datetime under UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    else:
        return value.astimezone(UTC)


def serialize_float(given: float | Decimal) -> str:
    """Serializes a float to the shortest decimal text that round-trips.

    Exponent notation is never used, and integral values have no fractional part, so
    ``1e16`` becomes ``10000000000000000`` and ``2.0`` becomes ``2``.
    """
    if isnan(given):
        return "NaN"
    if isinf(given):
        return "-Infinity" if given < 0 else "Infinity"

    if not isinstance(given, Decimal):
        given = Decimal(repr(given))
    result = format(given, "f")
    if "." in result:
        result = result.rstrip("0").rstrip(".")
    return result


def serialize_timestamp(given: datetime) -> str:
    """Serializes a datetime as ``YYYY-MM-DDThh:mm:ssZ`` in UTC."""
    return ensure_utc(given).strftime(RFC3339)


def serialize_scalar(value: Any) -> str:
    """Convert a scalar member value to its wire text.

    :param value: A str, bytes, bool, int, float or datetime.
    :returns: The text used for headers, query strings, form bodies and XML.
    :raises SerializationError: If the value's type has no text form.
    """
    match value:
        case str():
            return value
        case bytes() | bytearray():
            return base64.b64encode(value).decode("ascii")
        case bool():
            return "true" if value else "false"
        case int():
            return str(value)
        case float() | Decimal():
            return serialize_float(value)
        case datetime():
            return serialize_timestamp(value)
        case _:
            raise SerializationError(
                f"Unsupported value for serialization: {type(value).__name__}"
            )


def strict_parse_bool(given: str) -> bool:
    """Strictly parses a boolean from string.

    :raises DeserializationError: if the given string is neither "true" nor "false".
    """
    match given:
        case "true":
            return True
        case "false":
            return False
        case _:
            raise DeserializationError(f"Expected 'true' or 'false', found: {given}")


_FLOAT_REGEX: Final = re.compile(
    r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?|-?Infinity|NaN"
)


def strict_parse_float(given: str) -> float:
    """Strictly parses a float from a string.

    Unlike float(), this forbids the use of "inf" and case-sensitively matches Infinity
    and NaN.

    :raises DeserializationError: If the given string isn't a float.
    """
    if _FLOAT_REGEX.fullmatch(given):
        return float(given)
    raise DeserializationError(f"Expected float, found: {given}")


def strict_parse_int(given: str) -> int:
    """Parses a base 10 integer, rejecting surrounding garbage."""
    try:
        return int(given, 10)
    except ValueError as e:
        raise DeserializationError(f"Expected integer, found: {given}") from e


def parse_timestamp(given: str) -> datetime:
    """Parses an RFC 3339 / ISO 8601 timestamp into a UTC datetime.

    :raises DeserializationError: If the given string isn't a timestamp.
    """
    try:
        return ensure_utc(datetime.fromisoformat(given))
    except ValueError as e:
        raise DeserializationError(f"Expected timestamp, found: {given}") from e


def epoch_seconds_to_datetime(value: int | float) -> datetime:
    """Parse numerical epoch timestamps (seconds since 1970) into a datetime in UTC.

    Falls back to using ``timedelta`` when ``fromtimestamp`` raises ``OverflowError``.
    """
    try:
        return datetime.fromtimestamp(value, tz=UTC)
    except OverflowError:
        epoch_zero = datetime(1970, 1, 1, 0, 0, 0, tzinfo=UTC)
        return epoch_zero + timedelta(seconds=value)


def escape_path(value: str, encode_sep: bool) -> str:
    """Percent-encode a value for substitution into a URI path.

    :param value: The raw label value.
    :param encode_sep: Whether ``/`` is encoded. Segment labels encode it, greedy
        labels keep it so the value can span several segments.
    """
    escaped: list[str] = []
    for byte in value.encode("utf-8"):
        if byte in _UNRESERVED or (byte == _SLASH and not encode_sep):
            escaped.append(chr(byte))
        else:
            escaped.append(f"%{byte:02X}")
    return "".join(escaped)


def clean_path(path: str) -> str:
    """Collapse ``.``, ``..`` and repeated ``/`` segments of a URI path.

    The result is always absolute. A trailing slash on the input is kept unless the
    cleaned path is just ``/``. For example ``//a/./b/../c/`` becomes ``/a/c/``.
    """
    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)

    cleaned = "/" + "/".join(segments)
    if path.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


def deserialize_scalar(shape_type: ShapeType, text: str) -> Any:
    """Convert wire text back into a scalar value of the given shape type.

    :raises DeserializationError: If the text is not valid for the shape type.
    """
    match shape_type:
        case ShapeType.STRING:
            return text
        case ShapeType.BLOB:
            try:
                return base64.b64decode(text, validate=True)
            except binascii.Error as e:
                raise DeserializationError(f"Expected base64, found: {text}") from e
        case ShapeType.BOOLEAN:
            return strict_parse_bool(text)
        case ShapeType.INTEGER | ShapeType.LONG:
            return strict_parse_int(text)
        case ShapeType.FLOAT | ShapeType.DOUBLE:
            return strict_parse_float(text)
        case ShapeType.TIMESTAMP:
            return parse_timestamp(text)
        case _:
            raise DeserializationError(f"{shape_type.name} is not a scalar shape type")
