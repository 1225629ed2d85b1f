# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass

from .schemas import Schema, ShapeType

STRING = Schema(name="String", shape_type=ShapeType.STRING)
BLOB = Schema(name="Blob", shape_type=ShapeType.BLOB)
BOOLEAN = Schema(name="Boolean", shape_type=ShapeType.BOOLEAN)
INTEGER = Schema(name="Integer", shape_type=ShapeType.INTEGER)
LONG = Schema(name="Long", shape_type=ShapeType.LONG)
FLOAT = Schema(name="Float", shape_type=ShapeType.FLOAT)
DOUBLE = Schema(name="Double", shape_type=ShapeType.DOUBLE)
TIMESTAMP = Schema(name="Timestamp", shape_type=ShapeType.TIMESTAMP)


@dataclass
class Unit:
    """Typed container for operations that take or return nothing."""


UNIT = Schema.structure(name="Unit", shape_class=Unit)
