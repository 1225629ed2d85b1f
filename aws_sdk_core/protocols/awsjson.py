# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""The AWS JSON protocol: the whole input is a JSON document posted to ``/``."""

import json
from base64 import b64encode
from collections.abc import Iterator
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from math import isinf, isnan
from typing import TYPE_CHECKING, Any, Final, Literal, NamedTuple, TypeAlias

import ijson  # type: ignore

from ..exceptions import APIError, DeserializationError, SerializationError
from ..schemas import Schema, ShapeType
from ..utils import (
    deserialize_scalar,
    ensure_utc,
    epoch_seconds_to_datetime,
    parse_timestamp,
    serialize_float,
    strict_parse_float,
)
from . import ClientProtocol, status_error

if TYPE_CHECKING:
    from ..pipeline import RequestContext

JSONParseEventType: TypeAlias = Literal[
    "null",
    "string",
    "number",
    "boolean",
    "start_array",
    "end_array",
    "start_map",
    "map_key",
    "end_map",
]


class JSONParseEvent(NamedTuple):
    path: str
    type: JSONParseEventType
    value: Any


class AWSJSONClientProtocol(ClientProtocol):
    """An implementation of the aws.protocols#awsJson1_0 and awsJson1_1 protocols."""

    _ERROR_TYPE_HEADER: Final = "x-amzn-ErrorType"

    def __init__(self, *, target_prefix: str, json_version: str = "1.1") -> None:
        """
        :param target_prefix: The service prefix of the ``X-Amz-Target`` header.
        :param json_version: The version in the ``application/x-amz-json-*`` media type.
        """
        self._target_prefix = target_prefix
        self._content_type = f"application/x-amz-json-{json_version}"

    def build(self, context: "RequestContext") -> None:
        document: Any = {}
        if context.params is not None:
            document = serialize(context.operation.input_schema, context.params)

        request = context.request
        request.body = json.dumps(document, separators=(",", ":")).encode("utf-8")
        request.fields.set_value(
            "X-Amz-Target", f"{self._target_prefix}.{context.operation.name}"
        )
        request.fields.set_value("Content-Type", self._content_type)

    def unmarshal(self, context: "RequestContext") -> None:
        output_schema = context.operation.output_schema
        response = context.response
        context.request_id = response.fields.get_value("x-amzn-RequestId")
        if not response.body.strip():
            context.result = output_schema.create({})
            return
        context.result = deserialize(output_schema, response.body)

    def unmarshal_error(self, context: "RequestContext") -> APIError:
        response = context.response
        request_id = response.fields.get_value("x-amzn-RequestId")
        try:
            document = next(ijson.items(BytesIO(response.body), ""))
        except (ijson.JSONError, StopIteration):
            document = None
        if not isinstance(document, dict):
            error = status_error(response.status, response.body)
            error.request_id = request_id
            return error

        error_type = (
            document.get("__type")
            or document.get("code")
            or response.fields.get_value(self._ERROR_TYPE_HEADER)
            or ""
        )
        return APIError(
            document.get("message") or document.get("Message") or "",
            code=parse_error_code(error_type),
            type=error_type,
            request_id=request_id,
            status_code=response.status,
        )


def parse_error_code(error_type: str) -> str:
    """Reduce a reported error type to its short code.

    ``aws.protocoltests#Throttling:http://internal.amazon.com/`` becomes
    ``Throttling``.
    """
    return error_type.split(":")[0].rpartition("#")[2]


def serialize(schema: Schema, value: Any) -> Any:
    """Convert a typed value into plain JSON-compatible Python values."""
    match schema.shape_type:
        case ShapeType.STRUCTURE:
            document: dict[str, Any] = {}
            for member in schema.members:
                member_value = getattr(value, member.name)
                if member_value is not None:
                    document[member.wire_name] = serialize(member.target, member_value)
            return document
        case ShapeType.LIST:
            if schema.member_target is None:
                raise SerializationError(f"List schema {schema.name} has no target")
            target = schema.member_target
            return [serialize(target, item) for item in value]
        case ShapeType.STRING if isinstance(value, str):
            return value
        case ShapeType.BLOB if isinstance(value, bytes | bytearray):
            return b64encode(value).decode("ascii")
        case ShapeType.BOOLEAN if isinstance(value, bool):
            return value
        case ShapeType.INTEGER | ShapeType.LONG if _is_integer(value):
            return value
        case ShapeType.FLOAT | ShapeType.DOUBLE if _is_number(value):
            if isnan(value) or isinf(value):
                return serialize_float(value)
            return float(value)
        case ShapeType.TIMESTAMP if isinstance(value, datetime):
            seconds = ensure_utc(value).timestamp()
            return int(seconds) if seconds.is_integer() else seconds
        case _:
            raise SerializationError(
                f"Unsupported value for {schema.shape_type.name} member "
                f"{schema.name}: {type(value).__name__}"
            )


def deserialize(schema: Schema, body: bytes) -> Any:
    """Parse a JSON body into the typed container described by ``schema``.

    :raises DeserializationError: If the body is malformed or doesn't match the schema.
    """
    parser = _BufferedParser(ijson.parse(BytesIO(body)))
    try:
        return _JSONReader(parser).read(schema)
    except (ijson.JSONError, StopIteration) as e:
        raise DeserializationError(f"Unable to parse JSON body: {e}") from e


class _BufferedParser:
    """A wrapper around the ijson parser that allows peeking."""

    def __init__(self, stream: Iterator[tuple[str, JSONParseEventType, Any]]) -> None:
        self._stream = stream
        self._pending: JSONParseEvent | None = None

    def __iter__(self):
        return self

    def __next__(self) -> JSONParseEvent:
        if self._pending is not None:
            result = self._pending
            self._pending = None
            return result
        return JSONParseEvent(*next(self._stream))

    def peek(self) -> JSONParseEvent:
        if self._pending is None:
            self._pending = JSONParseEvent(*next(self._stream))
        return self._pending


class _JSONReader:
    def __init__(self, stream: _BufferedParser) -> None:
        self._stream = stream

    def read(self, schema: Schema) -> Any:
        match schema.shape_type:
            case ShapeType.STRUCTURE:
                return schema.create(self._read_struct(schema))
            case ShapeType.LIST:
                return self._read_list(schema)
            case _:
                return self._read_scalar(schema, next(self._stream))

    def _read_struct(self, schema: Schema) -> dict[str, Any]:
        self._expect(next(self._stream), "start_map")
        members = {member.wire_name: member for member in schema.members}
        values: dict[str, Any] = {}
        while self._stream.peek().type != "end_map":
            key = next(self._stream).value
            member = members.get(key)
            if member is None:
                self._skip()
                continue
            if self._stream.peek().type == "null":
                next(self._stream)
                continue
            values[member.name] = self.read(member.target)
        next(self._stream)
        return values

    def _read_list(self, schema: Schema) -> list[Any]:
        if schema.member_target is None:
            raise DeserializationError(f"List schema {schema.name} has no target")
        self._expect(next(self._stream), "start_array")
        items: list[Any] = []
        while self._stream.peek().type != "end_array":
            items.append(self.read(schema.member_target))
        next(self._stream)
        return items

    def _read_scalar(self, schema: Schema, event: JSONParseEvent) -> Any:
        value = event.value
        match schema.shape_type:
            case ShapeType.STRING if event.type == "string":
                return value
            case ShapeType.BLOB if event.type == "string":
                return deserialize_scalar(ShapeType.BLOB, value)
            case ShapeType.BOOLEAN if event.type == "boolean":
                return value
            case ShapeType.INTEGER | ShapeType.LONG if _is_integer(value):
                return value
            case ShapeType.FLOAT | ShapeType.DOUBLE if event.type == "number":
                return float(value)
            case ShapeType.FLOAT | ShapeType.DOUBLE if event.type == "string":
                return strict_parse_float(value)
            case ShapeType.TIMESTAMP if event.type == "number":
                return epoch_seconds_to_datetime(float(value))
            case ShapeType.TIMESTAMP if event.type == "string":
                return parse_timestamp(value)
            case _:
                raise DeserializationError(
                    f"Expected {schema.shape_type.name} at path `{event.path}`, "
                    f"found `{event.type}`: {value}"
                )

    def _expect(self, event: JSONParseEvent, expected: JSONParseEventType) -> None:
        if event.type != expected:
            raise DeserializationError(
                f"Error parsing JSON. Expected token of type `{expected}` at path "
                f"`{event.path}`, but found: `{event.type}`: {event.value}"
            )

    def _skip(self) -> None:
        start = next(self._stream)
        if start.type not in ("start_map", "start_array"):
            return

        end_type = "end_map" if start.type == "start_map" else "end_array"
        while (
            event := next(self._stream)
        ).path != start.path or event.type != end_type:
            continue


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_integer(value) or isinstance(value, float | Decimal)
