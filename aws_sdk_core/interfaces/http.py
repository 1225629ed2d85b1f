# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterable, Iterator
from typing import Protocol, TypeAlias, runtime_checkable

from .io import ByteStream

RequestBody: TypeAlias = bytes | bytearray | ByteStream | Iterable[bytes] | None
"""Body types accepted on an outgoing request.

Streams are read once for signing; non-seekable streams are buffered and replaced.
"""


class Field(Protocol):
    """A name-value pair representing a single field in a request or response.

    All field names are case insensitive and case-variance must be treated as
    equivalent. Names may be normalized but should be preserved for accuracy during
    transmission.
    """

    name: str
    values: list[str]

    def add(self, value: str) -> None:
        """Append a value to a field."""
        ...

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        ...

    def as_string(self, delimiter: str = ",") -> str:
        """Serialize the ``Field``'s values into a single line string."""
        ...

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples where each tuple represents one
        value."""
        ...


class Fields(Protocol):
    """Mapping of key-value pair message metadata, such as HTTP headers."""

    # Entries are keyed off the normalized name of a provided Field
    entries: OrderedDict[str, Field]
    encoding: str = "utf-8"

    def set_field(self, field: Field) -> None:
        """Alias for __setitem__ to utilize the field.name for the entry key."""
        ...

    def get(self, key: str, default: Field | None = None) -> Field | None: ...

    def __setitem__(self, name: str, field: Field) -> None: ...

    def __getitem__(self, name: str) -> Field: ...

    def __delitem__(self, name: str) -> None: ...

    def __contains__(self, key: str) -> bool: ...

    def __iter__(self) -> Iterator[Field]: ...

    def __len__(self) -> int: ...


@runtime_checkable
class URI(Protocol):
    """Universal Resource Identifier, target location for a :py:class:`Request`."""

    scheme: str
    host: str
    port: int | None
    path: str | None
    """Path component of the URI, already percent-encoded for the wire."""

    query: str | None
    """Query component of the URI, already percent-encoded for the wire."""

    def build(self) -> str:
        """Construct URI string representation."""
        ...

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{host}:{port}``"""
        ...


class Request(Protocol):
    """An outgoing HTTP request."""

    destination: URI
    method: str
    fields: Fields
    body: RequestBody


class Response(Protocol):
    """An incoming HTTP response with a fully received body."""

    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    fields: Fields
    """HTTP header fields."""

    body: bytes

    reason: str | None
    """Optional string provided by the server explaining the status."""


class HTTPClient(Protocol):
    """A blocking HTTP client."""

    def send(self, request: Request) -> Response:
        """Send an HTTP request and wait for the complete response.

        :param request: The request including destination URI, fields, payload.
        :raises TransportError: If the request could not be delivered.
        """
        ...
