# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .interfaces import http as interfaces_http


class Field(interfaces_http.Field):
    """A name-value pair representing a single field in an HTTP Request or Response.

    All field names are case insensitive and case-variance must be treated as
    equivalent. Names are preserved for transmission.
    """

    def __init__(
        self,
        *,
        name: str,
        values: Iterable[str] | None = None,
    ):
        self.name = name
        self.values: list[str] = list(values) if values is not None else []

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        self.values = values

    def as_string(self, delimiter: str = ",") -> str:
        """Get delimited string of all values.

        If the ``Field`` has zero values, the empty string is returned. Values that
        already contain commas or double quotes are quoted when there is more than one
        value.
        """
        if len(self.values) == 1:
            return self.values[0]
        return delimiter.join(quote_and_escape_field_value(val) for val in self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples where each tuple represents one
        value."""
        return [(self.name, val) for val in self.values]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return self.name == other.name and self.values == other.values

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, value={self.values!r})"


class Fields(interfaces_http.Fields):
    def __init__(
        self,
        initial: Iterable[interfaces_http.Field] | None = None,
        *,
        encoding: str = "utf-8",
    ):
        """Collection of header and trailer entries mapped by name.

        :param initial: Initial list of ``Field`` objects. Names must be unique once
        normalized.
        :param encoding: The string encoding to be used when converting the ``Field``
        name and value from ``str`` to ``bytes`` for transmission.
        """
        self.entries: OrderedDict[str, interfaces_http.Field] = OrderedDict()
        self.encoding: str = encoding
        for fld in initial or ():
            if fld.name in self:
                raise ValueError(
                    f"Field names of the initial list of fields must be unique: "
                    f"{fld.name!r} appears more than once."
                )
            self.set_field(fld)

    def set_field(self, field: interfaces_http.Field) -> None:
        """Alias for __setitem__ to utilize the field.name for the entry key."""
        self[field.name] = field

    def set_value(self, name: str, value: str) -> None:
        """Replace any existing values of the header ``name`` with ``value``."""
        self.set_field(Field(name=name, values=[value]))

    def add_value(self, name: str, value: str) -> None:
        """Append ``value`` to the header ``name``, creating it if needed."""
        if name in self:
            self[name].add(value)
        else:
            self.set_field(Field(name=name, values=[value]))

    def get_value(self, name: str, default: str | None = None) -> str | None:
        """Get the delimited values of the header ``name``, or ``default``."""
        fld = self.get(name)
        return default if fld is None else fld.as_string()

    def __setitem__(self, name: str, field: interfaces_http.Field) -> None:
        """Set or override entry for a Field name."""
        normalized_name = self._normalize_field_name(name)
        if normalized_name != self._normalize_field_name(field.name):
            raise ValueError(
                f"Supplied key {name} does not match Field.name "
                f"provided: {field.name}"
            )
        self.entries[normalized_name] = field

    def get(
        self, key: str, default: interfaces_http.Field | None = None
    ) -> interfaces_http.Field | None:
        return self[key] if key in self else default

    def __getitem__(self, name: str) -> interfaces_http.Field:
        return self.entries[self._normalize_field_name(name)]

    def __delitem__(self, name: str) -> None:
        del self.entries[self._normalize_field_name(name)]

    def _normalize_field_name(self, name: str) -> str:
        return name.lower()

    def __eq__(self, other: object) -> bool:
        """Encoding must match.

        Entries must match in values and order.
        """
        if not isinstance(other, Fields):
            return False
        return self.encoding == other.encoding and self.entries == other.entries

    def __iter__(self) -> Iterator[interfaces_http.Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Fields({self.entries})"

    def __contains__(self, key: str) -> bool:
        return self._normalize_field_name(key) in self.entries


def tuples_to_fields(tuples: Iterable[tuple[str, str]]) -> Fields:
    """Build a ``Fields`` from ``(name, value)`` pairs, merging repeated names."""
    fields = Fields()
    for name, value in tuples:
        fields.add_value(name, value)
    return fields


@dataclass(kw_only=True, frozen=True)
class URI(interfaces_http.URI):
    """Universal Resource Identifier, target location for an :py:class:`AWSRequest`.

    ``path`` and ``query`` hold their final wire form and are never re-normalized.
    """

    scheme: str = "https"
    """For example ``http`` or ``https``."""

    host: str
    """The hostname, for example ``amazonaws.com``."""

    port: int | None = None
    """An explicit port number."""

    path: str | None = None
    """Path component of the URI."""

    query: str | None = None
    """Query component of the URI as string."""

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{host}:{port}``.

        ``port`` is only included if set.
        """
        if self.port is not None:
            return f"{self.host}:{self.port}"
        return self.host

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form ``{scheme}://{host}:{port}{path}?{query}``.
        """
        query = f"?{self.query}" if self.query else ""
        return f"{self.scheme}://{self.netloc}{self.path or ''}{query}"


class AWSRequest(interfaces_http.Request):
    def __init__(
        self,
        *,
        destination: URI,
        method: str = "POST",
        body: interfaces_http.RequestBody = None,
        fields: Fields | None = None,
    ):
        self.destination = destination
        self.method = method
        self.body = body
        self.fields = fields if fields is not None else Fields()

    def __repr__(self) -> str:
        return (
            f"AWSRequest(method={self.method!r}, "
            f"destination={self.destination.build()!r}, fields={self.fields!r})"
        )


@dataclass(kw_only=True)
class AWSResponse(interfaces_http.Response):
    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    fields: Fields = field(default_factory=Fields)
    """HTTP header fields."""

    body: bytes = b""

    reason: str | None = None
    """Optional string provided by the server explaining the status."""


def quote_and_escape_field_value(value: str) -> str:
    """Escapes and quotes a single :class:`Field` value if necessary.

    See :func:`Field.as_string` for quoting and escaping logic.
    """
    chars_to_quote = (",", '"')
    if any(char in chars_to_quote for char in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    else:
        return value
