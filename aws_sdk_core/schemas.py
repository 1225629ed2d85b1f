# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Declarative descriptions of operation inputs and outputs.

Each typed parameter or result container is described once by a :py:class:`Schema`.
The protocol codecs walk these schemas to move values between objects and the wire,
so no runtime type inspection of the containers themselves is needed.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any


class ShapeType(Enum):
    STRING = 1
    BLOB = 2
    BOOLEAN = 3
    INTEGER = 4
    LONG = 5
    FLOAT = 6
    DOUBLE = 7
    TIMESTAMP = 8
    LIST = 9
    STRUCTURE = 10


class Location(Enum):
    """Where a member of an operation input or output is bound in the HTTP message."""

    BODY = 0
    """Serialized into the protocol's document body."""

    HEADER = 1
    """Bound to the header named by the member's wire name."""

    URI = 2
    """Substituted for ``{name}`` or ``{name+}`` in the operation's path template."""

    QUERYSTRING = 3
    """Bound to the query string parameter named by the member's wire name."""

    PAYLOAD = 4
    """The member is the entire body: raw bytes, text, or a serialized structure."""


@dataclass(kw_only=True, frozen=True)
class Schema:
    """Describes one shape: a scalar, a list, or a structure with members."""

    name: str
    """The shape's name. Structures use it as their XML element name."""

    shape_type: ShapeType

    members: tuple["MemberSchema", ...] = ()
    """The members of a structure, in serialization order."""

    member_target: "Schema | None" = None
    """The element shape of a list."""

    member_name: str = "member"
    """The XML element name used for each element of a list."""

    shape_class: Callable[..., Any] | None = None
    """Constructor of a structure's typed container, called with member keywords."""

    xml_namespace: str | None = None

    @classmethod
    def structure(
        cls,
        *,
        name: str,
        shape_class: Callable[..., Any],
        members: "tuple[MemberSchema, ...] | list[MemberSchema]" = (),
        xml_namespace: str | None = None,
    ) -> "Schema":
        return cls(
            name=name,
            shape_type=ShapeType.STRUCTURE,
            members=tuple(members),
            shape_class=shape_class,
            xml_namespace=xml_namespace,
        )

    @classmethod
    def list_of(
        cls, target: "Schema", *, name: str | None = None, member_name: str = "member"
    ) -> "Schema":
        return cls(
            name=name or f"{target.name}List",
            shape_type=ShapeType.LIST,
            member_target=target,
            member_name=member_name,
        )

    @cached_property
    def _members_by_name(self) -> dict[str, "MemberSchema"]:
        return {member.name: member for member in self.members}

    def member(self, name: str) -> "MemberSchema":
        """Get a member by its attribute name."""
        return self._members_by_name[name]

    def members_in(self, location: Location) -> list["MemberSchema"]:
        """Get the members bound to ``location``, in declaration order."""
        return [member for member in self.members if member.location is location]

    @property
    def payload_member(self) -> "MemberSchema | None":
        """The member bound to the whole body, if any."""
        payload = self.members_in(Location.PAYLOAD)
        return payload[0] if payload else None

    def create(self, values: Mapping[str, Any]) -> Any:
        """Construct the typed container of a structure from decoded member values."""
        if self.shape_class is None:
            raise TypeError(f"Schema {self.name} has no shape class to construct.")
        return self.shape_class(**values)


@dataclass(kw_only=True, frozen=True)
class MemberSchema:
    """A named member of a structure and its binding."""

    name: str
    """The attribute name on the structure's typed container."""

    target: Schema

    location: Location = Location.BODY

    location_name: str | None = None
    """The name on the wire, if it differs from ``name``.

    This is the header name, the URI label, the query key, or the form / XML / JSON
    member name depending on ``location`` and the protocol.
    """

    @property
    def wire_name(self) -> str:
        return self.location_name or self.name


@dataclass(kw_only=True, frozen=True)
class OperationDescriptor:
    """Static description of one service operation."""

    name: str
    input_schema: Schema
    output_schema: Schema
    http_method: str = "POST"
    http_path: str = "/"
    """Path template relative to the endpoint. May contain ``{label}`` and
    ``{label+}`` placeholders bound to URI members."""
