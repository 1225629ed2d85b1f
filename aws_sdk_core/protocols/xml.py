# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Schema-driven XML encoding shared by the query and REST+XML protocols.

Lists are written as ``<Name><member>..</member></Name>``. When reading, every child
element of a list element is taken as an item, whatever its tag.
"""

import xml.etree.ElementTree as ET
from typing import Any

from ..exceptions import APIError, DeserializationError, SerializationError
from ..schemas import Location, Schema, ShapeType
from ..utils import deserialize_scalar, serialize_scalar
from . import status_error


def serialize_structure(
    schema: Schema, value: Any, *, element_name: str | None = None
) -> bytes:
    """Serialize the body members of a structure as an XML document.

    :param schema: The structure's schema.
    :param value: The typed container to read member values from.
    :param element_name: The root element name. Defaults to the schema name.
    """
    root = ET.Element(element_name or schema.name)
    if schema.xml_namespace:
        root.set("xmlns", schema.xml_namespace)
    _write_members(root, schema, value)
    # A raw CR is read back as LF.
    text = ET.tostring(root, encoding="unicode").replace("\r", "&#13;")
    return text.encode("utf-8")


def _write_members(parent: ET.Element, schema: Schema, value: Any) -> None:
    for member in schema.members_in(Location.BODY):
        member_value = getattr(value, member.name)
        if member_value is None:
            continue
        element = ET.SubElement(parent, member.wire_name)
        _write_value(element, member.target, member_value)


def _write_value(element: ET.Element, target: Schema, value: Any) -> None:
    match target.shape_type:
        case ShapeType.STRUCTURE:
            _write_members(element, target, value)
        case ShapeType.LIST:
            if target.member_target is None:
                raise SerializationError(f"List schema {target.name} has no target")
            for item in value:
                _write_value(
                    ET.SubElement(element, target.member_name),
                    target.member_target,
                    item,
                )
        case _:
            element.text = serialize_scalar(value)


def parse(body: bytes) -> ET.Element:
    """Parse an XML document, returning its root element.

    :raises DeserializationError: If the body is not well-formed XML.
    """
    try:
        return ET.fromstring(body)
    except ET.ParseError as e:
        raise DeserializationError(f"Unable to parse XML body: {e}") from e


def local_name(tag: str) -> str:
    """Strip any ``{namespace}`` prefix from an element tag."""
    return tag.rpartition("}")[2]


def find_child(element: ET.Element, name: str) -> ET.Element | None:
    """Find the first direct child with the given local name."""
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def find_text(element: ET.Element, *path: str) -> str | None:
    """Follow a path of local names and return the text of the element found."""
    current: ET.Element | None = element
    for name in path:
        if current is None:
            return None
        current = find_child(current, name)
    if current is None:
        return None
    return current.text or ""


def deserialize_structure(schema: Schema, element: ET.Element) -> Any:
    """Read the body members of a structure from an element into its container."""
    return schema.create(read_members(schema, element))


def read_members(schema: Schema, element: ET.Element) -> dict[str, Any]:
    """Read the body members of a structure from an element, keyed by member name."""
    values: dict[str, Any] = {}
    for member in schema.members_in(Location.BODY):
        child = find_child(element, member.wire_name)
        if child is not None:
            values[member.name] = _read_value(member.target, child)
    return values


def _read_value(target: Schema, element: ET.Element) -> Any:
    match target.shape_type:
        case ShapeType.STRUCTURE:
            return deserialize_structure(target, element)
        case ShapeType.LIST:
            if target.member_target is None:
                raise DeserializationError(f"List schema {target.name} has no target")
            return [_read_value(target.member_target, item) for item in element]
        case shape_type:
            return deserialize_scalar(shape_type, element.text or "")


def deserialize_error(
    body: bytes, *, status_code: int, request_id: str | None = None
) -> APIError:
    """Decode an XML error body.

    Accepts
    ``<ErrorResponse><Error>..</Error><RequestId>..</RequestId></ErrorResponse>``
    as well as a bare ``<Error>`` root. Bodies that cannot be decoded produce an error
    carrying only the status.

    :param request_id: A request id from the response headers, used when the body
        does not carry one.
    """
    try:
        root = parse(body)
    except DeserializationError:
        return _unreadable_error(status_code, body, request_id)

    error = root if local_name(root.tag) == "Error" else find_child(root, "Error")
    if error is None:
        errors = find_child(root, "Errors")
        error = find_child(errors, "Error") if errors is not None else None
    if error is None:
        return _unreadable_error(status_code, body, request_id)

    code = find_text(error, "Code") or ""
    return APIError(
        find_text(error, "Message") or "",
        code=code,
        type=find_text(error, "Type") or code,
        request_id=(
            find_text(root, "RequestId")
            or find_text(root, "RequestID")
            or find_text(error, "RequestId")
            or request_id
        ),
        status_code=status_code,
    )


def _unreadable_error(
    status_code: int, body: bytes, request_id: str | None
) -> APIError:
    error = status_error(status_code, body)
    error.request_id = request_id
    return error
