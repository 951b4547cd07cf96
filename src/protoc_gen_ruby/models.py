"""Read-only schema model consumed by the Ruby generator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union


class Label(enum.Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    REPEATED = "repeated"


class FieldType(enum.Enum):
    DOUBLE = "double"
    FLOAT = "float"
    INT64 = "int64"
    UINT64 = "uint64"
    INT32 = "int32"
    FIXED64 = "fixed64"
    FIXED32 = "fixed32"
    BOOL = "bool"
    STRING = "string"
    GROUP = "group"
    MESSAGE = "message"
    BYTES = "bytes"
    UINT32 = "uint32"
    ENUM = "enum"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    SINT32 = "sint32"
    SINT64 = "sint64"

    @property
    def is_primitive(self) -> bool:
        return self not in (FieldType.GROUP, FieldType.MESSAGE, FieldType.ENUM)


INTEGER_TYPES = frozenset({
    FieldType.INT32,
    FieldType.INT64,
    FieldType.UINT32,
    FieldType.UINT64,
    FieldType.SINT32,
    FieldType.SINT64,
    FieldType.FIXED32,
    FieldType.FIXED64,
    FieldType.SFIXED32,
    FieldType.SFIXED64,
})

FLOATING_TYPES = frozenset({FieldType.DOUBLE, FieldType.FLOAT})

DefaultValue = Union[int, float, bool, str, bytes]


@dataclass
class Field:
    """A field declaration: <label> <type> name = number [options];

    For extension fields, containing_type names the extended message, which
    is usually not the message the extension is declared in.
    """

    name: str
    number: int
    label: Label = Label.OPTIONAL
    type: FieldType = FieldType.STRING
    type_name: str = ""
    default_value: Optional[DefaultValue] = None
    packed: Optional[bool] = None
    deprecated: Optional[bool] = None
    is_extension: bool = False
    containing_type: str = ""

    @property
    def has_default(self) -> bool:
        return self.default_value is not None


@dataclass
class EnumValue:
    name: str
    number: int


@dataclass
class Enum:
    name: str
    full_name: str
    values: List[EnumValue] = field(default_factory=list)


@dataclass
class Message:
    """A message definition, possibly containing nested messages and enums."""

    name: str
    full_name: str
    fields: List[Field] = field(default_factory=list)
    nested_messages: List[Message] = field(default_factory=list)
    nested_enums: List[Enum] = field(default_factory=list)
    extensions: List[Field] = field(default_factory=list)
    extension_ranges: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def has_nested_types(self) -> bool:
        return bool(self.nested_enums or self.nested_messages)


@dataclass
class Method:
    name: str
    input_type: str
    output_type: str


@dataclass
class Service:
    name: str
    full_name: str
    methods: List[Method] = field(default_factory=list)


@dataclass
class SchemaFile:
    """Top-level representation of a single .proto file."""

    name: str
    package: str = ""
    messages: List[Message] = field(default_factory=list)
    enums: List[Enum] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)
    extensions: List[Field] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)

    @property
    def package_path(self) -> List[str]:
        if not self.package:
            return []
        return self.package.split(".")
