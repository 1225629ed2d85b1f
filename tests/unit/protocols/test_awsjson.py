# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import json
from dataclasses import dataclass
from datetime import UTC, datetime

import pytest

from aws_sdk_core._http import URI, AWSRequest, AWSResponse, tuples_to_fields
from aws_sdk_core.exceptions import DeserializationError, SerializationError
from aws_sdk_core.pipeline import RequestContext
from aws_sdk_core.prelude import BLOB, DOUBLE, INTEGER, STRING, TIMESTAMP
from aws_sdk_core.protocols.awsjson import (
    AWSJSONClientProtocol,
    deserialize,
    parse_error_code,
    serialize,
)
from aws_sdk_core.schemas import MemberSchema, OperationDescriptor, Schema


@dataclass
class Nested:
    name: str | None = None


@dataclass
class Thing:
    name: str | None = None
    data: bytes | None = None
    when: datetime | None = None
    ratio: float | None = None
    count: int | None = None
    items: list[str] | None = None
    nested: Nested | None = None


NESTED = Schema.structure(
    name="Nested",
    shape_class=Nested,
    members=[MemberSchema(name="name", target=STRING, location_name="Name")],
)
THING = Schema.structure(
    name="Thing",
    shape_class=Thing,
    members=[
        MemberSchema(name="name", target=STRING, location_name="Name"),
        MemberSchema(name="data", target=BLOB, location_name="Data"),
        MemberSchema(name="when", target=TIMESTAMP, location_name="When"),
        MemberSchema(name="ratio", target=DOUBLE, location_name="Ratio"),
        MemberSchema(name="count", target=INTEGER, location_name="Count"),
        MemberSchema(
            name="items", target=Schema.list_of(STRING), location_name="Items"
        ),
        MemberSchema(name="nested", target=NESTED, location_name="Nested"),
    ],
)
DO_THING = OperationDescriptor(name="DoThing", input_schema=THING, output_schema=THING)

PROTOCOL = AWSJSONClientProtocol(target_prefix="ThingService_20200101")


def _context(
    params: Thing | None = None, response: AWSResponse | None = None
) -> RequestContext:
    return RequestContext(
        operation=DO_THING,
        params=params,
        http_request=AWSRequest(destination=URI(host="example.com", path="/")),
        http_response=response,
    )


def test_build() -> None:
    context = _context(
        Thing(
            name="n",
            data=b"hi",
            when=datetime(2024, 1, 1, tzinfo=UTC),
            ratio=1.5,
            items=["x"],
        )
    )
    PROTOCOL.build(context)

    assert context.request.body == (
        b'{"Name":"n","Data":"aGk=","When":1704067200,"Ratio":1.5,"Items":["x"]}'
    )
    fields = context.request.fields
    assert fields.get_value("X-Amz-Target") == "ThingService_20200101.DoThing"
    assert fields.get_value("Content-Type") == "application/x-amz-json-1.1"


def test_build_json_1_0() -> None:
    protocol = AWSJSONClientProtocol(target_prefix="Svc", json_version="1.0")
    context = _context()
    protocol.build(context)

    assert context.request.body == b"{}"
    assert context.request.fields.get_value("Content-Type") == (
        "application/x-amz-json-1.0"
    )


def test_serialize_special_floats() -> None:
    assert serialize(THING, Thing(ratio=float("nan"))) == {"Ratio": "NaN"}
    assert serialize(THING, Thing(ratio=float("-inf"))) == {"Ratio": "-Infinity"}


def test_serialize_fractional_timestamp() -> None:
    when = datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=UTC)
    assert serialize(THING, Thing(when=when)) == {"When": 1704067200.5}


@pytest.mark.parametrize(
    "value",
    [
        Thing(name=5),  # type: ignore
        Thing(count=True),
        Thing(count="1"),  # type: ignore
        Thing(data="text"),  # type: ignore
    ],
)
def test_serialize_rejects_mismatched_types(value: Thing) -> None:
    with pytest.raises(SerializationError):
        serialize(THING, value)


def test_unmarshal() -> None:
    body = json.dumps(
        {
            "Name": "n",
            "Data": "aGk=",
            "Count": 3,
            "Ratio": 2.5,
            "When": 1704067200.5,
            "Items": ["a", "b"],
            "Unknown": {"nested": [1, {"x": 2}]},
            "Nested": {"Name": "inner", "Extra": [1]},
            "Missing": None,
        }
    ).encode()
    response = AWSResponse(
        status=200,
        fields=tuples_to_fields([("x-amzn-RequestId", "req-1")]),
        body=body,
    )
    context = _context(response=response)
    PROTOCOL.unmarshal(context)

    assert context.result == Thing(
        name="n",
        data=b"hi",
        count=3,
        ratio=2.5,
        when=datetime(2024, 1, 1, 0, 0, 0, 500000, tzinfo=UTC),
        items=["a", "b"],
        nested=Nested(name="inner"),
    )
    assert context.request_id == "req-1"


def test_unmarshal_null_members_are_unset() -> None:
    assert deserialize(THING, b'{"Name": null, "Count": 1}') == Thing(count=1)


def test_unmarshal_string_floats() -> None:
    result = deserialize(THING, b'{"Ratio": "Infinity"}')
    assert result.ratio == float("inf")


def test_unmarshal_empty_body() -> None:
    context = _context(response=AWSResponse(status=200, body=b""))
    PROTOCOL.unmarshal(context)
    assert context.result == Thing()


@pytest.mark.parametrize(
    "body",
    [
        b"{",
        b'{"Count": "three"}',
        b'{"Items": {}}',
        b"[]",
        b'{"Name": 1}',
        b'{"Data": "abc"}',
        b'{"Data": "not base64!"}',
    ],
)
def test_unmarshal_invalid_body(body: bytes) -> None:
    with pytest.raises(DeserializationError):
        deserialize(THING, body)


def test_unmarshal_invalid_blob() -> None:
    context = _context(response=AWSResponse(status=200, body=b'{"Data": "abc"}'))
    with pytest.raises(DeserializationError, match="base64"):
        PROTOCOL.unmarshal(context)


@pytest.mark.parametrize(
    "error_type, expected",
    [
        ("ValidationException", "ValidationException"),
        ("com.amazon.coral.validate#ValidationException", "ValidationException"),
        ("ThrottlingException:http://internal.amazon.com/", "ThrottlingException"),
        (
            "aws.protocoltests#Throttling:http://internal.amazon.com/",
            "Throttling",
        ),
        ("", ""),
    ],
)
def test_parse_error_code(error_type: str, expected: str) -> None:
    assert parse_error_code(error_type) == expected


def test_unmarshal_error_from_body() -> None:
    body = b'{"__type":"com.amazon.coral.validate#ValidationException","message":"bad"}'
    response = AWSResponse(
        status=400,
        fields=tuples_to_fields([("x-amzn-RequestId", "req-2")]),
        body=body,
    )
    error = PROTOCOL.unmarshal_error(_context(response=response))

    assert error.code == "ValidationException"
    assert error.type == "com.amazon.coral.validate#ValidationException"
    assert error.message == "bad"
    assert error.request_id == "req-2"
    assert error.status_code == 400


def test_unmarshal_error_from_header() -> None:
    response = AWSResponse(
        status=400,
        fields=tuples_to_fields(
            [("x-amzn-ErrorType", "ThrottlingException:http://internal.amazon.com/")]
        ),
        body=b'{"Message": "slow down"}',
    )
    error = PROTOCOL.unmarshal_error(_context(response=response))

    assert error.code == "ThrottlingException"
    assert error.message == "slow down"


def test_unmarshal_unreadable_error() -> None:
    response = AWSResponse(
        status=500,
        fields=tuples_to_fields([("x-amzn-RequestId", "req-3")]),
        body=b"",
    )
    error = PROTOCOL.unmarshal_error(_context(response=response))

    assert error.code == "InternalServerError"
    assert error.request_id == "req-3"
    assert error.status_code == 500
