# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""The AWS REST+XML protocol."""

from typing import TYPE_CHECKING, Any, Final

from ..exceptions import APIError, PayloadTypeError
from ..schemas import Location, ShapeType
from . import ClientProtocol, rest, xml

if TYPE_CHECKING:
    from ..pipeline import RequestContext


class RestXMLClientProtocol(ClientProtocol):
    """An implementation of the aws.protocols#restXml protocol."""

    _CONTENT_TYPE: Final = "application/xml"

    def build(self, context: "RequestContext") -> None:
        params = context.params
        if params is None:
            return
        schema = context.operation.input_schema
        request = context.request
        rest.serialize_bindings(schema, params, request)

        payload = schema.payload_member
        if payload is None:
            body_members = schema.members_in(Location.BODY)
            if any(getattr(params, m.name) is not None for m in body_members):
                request.body = xml.serialize_structure(schema, params)
                request.fields.set_value("Content-Type", self._CONTENT_TYPE)
            return

        value = getattr(params, payload.name)
        if value is None:
            return
        if payload.target.shape_type is ShapeType.STRUCTURE:
            request.body = xml.serialize_structure(
                payload.target, value, element_name=payload.wire_name
            )
            request.fields.set_value("Content-Type", self._CONTENT_TYPE)
        else:
            request.body = rest.payload_body(payload, value)

    def unmarshal(self, context: "RequestContext") -> None:
        schema = context.operation.output_schema
        response = context.response
        context.request_id = response.fields.get_value(
            "x-amz-request-id"
        ) or response.fields.get_value("x-amzn-RequestId")

        values: dict[str, Any] = rest.deserialize_headers(schema, response)
        payload = schema.payload_member
        body = response.body
        if payload is None:
            if body.strip():
                values.update(xml.read_members(schema, xml.parse(body)))
        else:
            match payload.target.shape_type:
                case ShapeType.STRUCTURE:
                    if body.strip():
                        values[payload.name] = xml.deserialize_structure(
                            payload.target, xml.parse(body)
                        )
                case ShapeType.BLOB:
                    values[payload.name] = body
                case ShapeType.STRING:
                    values[payload.name] = body.decode("utf-8")
                case _:
                    raise PayloadTypeError(
                        f"Payload member {payload.name} has unsupported type "
                        f"{payload.target.shape_type.name}"
                    )
        context.result = schema.create(values)

    def unmarshal_error(self, context: "RequestContext") -> APIError:
        response = context.response
        return xml.deserialize_error(
            response.body,
            status_code=response.status,
            request_id=response.fields.get_value("x-amz-request-id"),
        )
