# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""HTTP bindings shared by REST protocols.

Members bound to headers, URI labels and the query string are placed here. The body
is left to the protocol.
"""

from dataclasses import replace
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode

from .._http import AWSRequest
from ..exceptions import DeserializationError, PayloadTypeError, SerializationError
from ..interfaces.http import RequestBody, Response
from ..interfaces.io import ByteStream
from ..schemas import Location, MemberSchema, Schema, ShapeType
from ..utils import clean_path, deserialize_scalar, escape_path, serialize_scalar


def serialize_bindings(schema: Schema, value: Any, request: AWSRequest) -> None:
    """Bind header, URI and query string members of ``value`` onto ``request``.

    The request path is treated as a template. ``{Name}`` is replaced with the value
    escaped as a single segment and ``{Name+}`` with the value escaped with ``/``
    kept. The final path is cleaned and stored in wire form.

    :raises SerializationError: If a URI label has no value.
    """
    path = request.destination.path or "/"
    query = parse_qsl(request.destination.query or "", keep_blank_values=True)

    for member in schema.members:
        member_value = getattr(value, member.name)
        match member.location:
            case Location.HEADER if member_value is not None:
                for text in _scalar_values(member, member_value):
                    request.fields.add_value(member.wire_name, text)
            case Location.URI:
                path = _replace_label(path, member, member_value)
            case Location.QUERYSTRING if member_value is not None:
                query = [(k, v) for k, v in query if k != member.wire_name]
                query.extend(
                    (member.wire_name, text)
                    for text in _scalar_values(member, member_value)
                )

    query.sort(key=lambda param: param[0])
    request.destination = replace(
        request.destination,
        path=clean_path(path),
        query=urlencode(query, quote_via=quote) or None,
    )


def _replace_label(path: str, member: MemberSchema, value: Any) -> str:
    segment, greedy = f"{{{member.wire_name}}}", f"{{{member.wire_name}+}}"
    if segment not in path and greedy not in path:
        return path
    if value is None:
        raise SerializationError(f"URI label {member.wire_name} requires a value.")
    text = serialize_scalar(value)
    path = path.replace(segment, escape_path(text, encode_sep=True))
    return path.replace(greedy, escape_path(text, encode_sep=False))


def _scalar_values(member: MemberSchema, value: Any) -> list[str]:
    if member.target.shape_type is ShapeType.LIST:
        return [serialize_scalar(item) for item in value]
    return [serialize_scalar(value)]


def payload_body(member: MemberSchema, value: Any) -> RequestBody:
    """Convert the value of a blob or string payload member into a request body.

    :raises PayloadTypeError: If the member or value can't be used as a raw body.
    """
    if member.target.shape_type not in (ShapeType.BLOB, ShapeType.STRING):
        raise PayloadTypeError(
            f"Payload member {member.name} has unsupported type "
            f"{member.target.shape_type.name}"
        )
    match value:
        case bytes() | bytearray():
            return value
        case str():
            return value.encode("utf-8")
        case ByteStream():
            return value
        case _:
            raise PayloadTypeError(
                f"Payload member {member.name} has unsupported value type "
                f"{type(value).__name__}"
            )


def deserialize_headers(schema: Schema, response: Response) -> dict[str, Any]:
    """Read members bound to response headers, keyed by member name."""
    values: dict[str, Any] = {}
    for member in schema.members_in(Location.HEADER):
        header = response.fields.get(member.wire_name)
        if header is None:
            continue
        if member.target.shape_type is ShapeType.LIST:
            target = member.target.member_target
            if target is None:
                raise DeserializationError(
                    f"List schema {member.target.name} has no target"
                )
            values[member.name] = [
                deserialize_scalar(target.shape_type, item.strip())
                for header_value in header.values
                for item in header_value.split(",")
            ]
        else:
            values[member.name] = deserialize_scalar(
                member.target.shape_type, header.as_string()
            )
    return values
