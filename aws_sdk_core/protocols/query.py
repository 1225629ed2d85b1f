# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""The AWS query protocol: form-encoded requests and XML responses."""

from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlencode

from ..exceptions import APIError, SerializationError
from ..schemas import Schema, ShapeType
from ..utils import serialize_scalar
from . import ClientProtocol, xml

if TYPE_CHECKING:
    from ..pipeline import RequestContext


class AWSQueryClientProtocol(ClientProtocol):
    """An implementation of the aws.protocols#awsQuery protocol."""

    _CONTENT_TYPE: Final = "application/x-www-form-urlencoded"

    def __init__(self, *, api_version: str) -> None:
        """
        :param api_version: Sent as the ``Version`` parameter of every request.
        """
        self._api_version = api_version

    def build(self, context: "RequestContext") -> None:
        operation = context.operation
        params = [("Action", operation.name), ("Version", self._api_version)]
        if context.params is not None:
            params.extend(flatten(operation.input_schema, context.params))
        params.sort(key=lambda param: param[0])

        request = context.request
        request.body = urlencode(params).encode("utf-8")
        request.fields.set_value("Content-Type", self._CONTENT_TYPE)

    def unmarshal(self, context: "RequestContext") -> None:
        output_schema = context.operation.output_schema
        body = context.response.body
        if not body.strip():
            context.result = output_schema.create({})
            return

        root = xml.parse(body)
        context.request_id = xml.find_text(root, "ResponseMetadata", "RequestId")
        result = xml.find_child(root, f"{context.operation.name}Result")
        context.result = xml.deserialize_structure(
            output_schema, result if result is not None else root
        )

    def unmarshal_error(self, context: "RequestContext") -> APIError:
        response = context.response
        return xml.deserialize_error(
            response.body,
            status_code=response.status,
            request_id=response.fields.get_value("x-amzn-RequestId"),
        )


def flatten(schema: Schema, value: Any, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten a structure into form ``(key, value)`` pairs.

    Nested members are joined with ``.`` and list items are numbered from 1 with a
    ``.member.N`` suffix, so ``Names=["a", "b"]`` becomes ``Names.member.1=a`` and
    ``Names.member.2=b``.
    """
    pairs: list[tuple[str, str]] = []
    for member in schema.members:
        member_value = getattr(value, member.name)
        if member_value is None:
            continue
        key = f"{prefix}.{member.wire_name}" if prefix else member.wire_name
        _flatten_value(pairs, member.target, member_value, key)
    return pairs


def _flatten_value(
    pairs: list[tuple[str, str]], target: Schema, value: Any, key: str
) -> None:
    match target.shape_type:
        case ShapeType.STRUCTURE:
            pairs.extend(flatten(target, value, key))
        case ShapeType.LIST:
            if target.member_target is None:
                raise SerializationError(f"List schema {target.name} has no target")
            for index, item in enumerate(value, start=1):
                item_key = f"{key}.member.{index}"
                _flatten_value(pairs, target.member_target, item, item_key)
        case _:
            pairs.append((key, serialize_scalar(value)))
