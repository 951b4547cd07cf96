from __future__ import annotations

import math
import struct
from typing import Dict, List

from protoc_gen_ruby.models import (
    FLOATING_TYPES,
    INTEGER_TYPES,
    Field,
    FieldType,
)

# Proto primitive type -> protobuf gem field wrapper
FIELD_TYPE_MAP: Dict[FieldType, str] = {
    FieldType.DOUBLE: "::Protobuf::Field::DoubleField",
    FieldType.FLOAT: "::Protobuf::Field::FloatField",
    FieldType.INT64: "::Protobuf::Field::Int64Field",
    FieldType.UINT64: "::Protobuf::Field::Uint64Field",
    FieldType.INT32: "::Protobuf::Field::Int32Field",
    FieldType.FIXED64: "::Protobuf::Field::Fixed64Field",
    FieldType.FIXED32: "::Protobuf::Field::Fixed32Field",
    FieldType.BOOL: "::Protobuf::Field::BoolField",
    FieldType.STRING: "::Protobuf::Field::StringField",
    FieldType.BYTES: "::Protobuf::Field::BytesField",
    FieldType.UINT32: "::Protobuf::Field::Uint32Field",
    FieldType.SFIXED32: "::Protobuf::Field::Sfixed32Field",
    FieldType.SFIXED64: "::Protobuf::Field::Sfixed64Field",
    FieldType.SINT32: "::Protobuf::Field::Sint32Field",
    FieldType.SINT64: "::Protobuf::Field::Sint64Field",
}

MESSAGE_BASE = "::Protobuf::Message"
ENUM_BASE = "::Protobuf::Enum"
SERVICE_BASE = "::Protobuf::Rpc::Service"

PROTO_EXTENSION = ".proto"

_NAMED_ESCAPES: Dict[int, str] = {
    ord("\\"): "\\\\",
    ord('"'): '\\"',
    ord("#"): "\\#",
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\t"): "\\t",
    0x07: "\\a",
    0x08: "\\b",
    0x0B: "\\v",
    0x0C: "\\f",
    0x1B: "\\e",
}


def ruby_file_name(proto_file_name: str, for_require: bool = False) -> str:
    """Convert foo/bar.proto to foo/bar.pb.rb, or foo/bar.pb for a require."""
    stem = proto_file_name
    if stem.endswith(PROTO_EXTENSION):
        stem = stem[: -len(PROTO_EXTENSION)]
    return stem + (".pb" if for_require else ".pb.rb")


def constantize(full_name: str, from_root: bool = True) -> str:
    """Convert a dotted proto name to a Ruby constant path: a.b.C -> ::a::b::C."""
    constant = full_name.replace(".", "::")
    if from_root:
        return "::" + constant
    return constant


def field_type_name(field: Field, from_root: bool = True) -> str:
    if field.type.is_primitive:
        return FIELD_TYPE_MAP[field.type]
    return constantize(field.type_name, from_root)


def _float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _shortest_float32(value: float) -> str:
    """Shortest decimal text that reads back as the same single-precision value."""
    target = _float32(value)
    text = ""
    for precision in range(1, 10):
        text = f"{value:.{precision}g}"
        if _float32(float(text)) == target:
            break
    return text


def format_float(value: float, field_type: FieldType = FieldType.DOUBLE) -> str:
    if field_type == FieldType.FLOAT:
        # Beyond single-precision range reads back as infinity.
        if math.isinf(_float32(value)):
            value = _float32(value)
    if math.isnan(value):
        return "::Float::NAN"
    if math.isinf(value):
        return "::Float::INFINITY" if value > 0 else "-::Float::INFINITY"

    if field_type == FieldType.FLOAT:
        text = _shortest_float32(value)
    else:
        text = repr(value)

    # 5 would read back as an Integer in Ruby.
    if not any(c in text for c in ".e"):
        text += ".0"
    return text


def _escape_code_point(code: int) -> str:
    if code in _NAMED_ESCAPES:
        return _NAMED_ESCAPES[code]
    if code < 0x20 or code == 0x7F:
        return f"\\x{code:02X}"
    return chr(code)


def quote_string(value: str) -> str:
    """Double-quoted Ruby literal for value, with escapes for quotes,
    backslashes, interpolation markers and control characters."""
    return '"' + "".join(_escape_code_point(ord(c)) for c in value) + '"'


def quote_bytes(value: bytes) -> str:
    parts: List[str] = []
    for byte in value:
        if byte >= 0x80:
            parts.append(f"\\x{byte:02X}")
        else:
            parts.append(_escape_code_point(byte))
    return '"' + "".join(parts) + '"'


def format_default(field: Field, from_root: bool = True) -> str:
    """Render the schema default of field as a Ruby literal."""
    value = field.default_value
    if field.type in INTEGER_TYPES:
        return str(int(value))
    if field.type in FLOATING_TYPES:
        return format_float(float(value), field.type)
    if field.type == FieldType.BOOL:
        return _ruby_bool(bool(value))
    if field.type == FieldType.ENUM:
        return f"{constantize(field.type_name, from_root)}::{value}"
    if field.type == FieldType.BYTES:
        if isinstance(value, str):
            value = value.encode("latin-1")
        return quote_bytes(value)
    return quote_string(str(value))


def _ruby_bool(value: bool) -> str:
    return "true" if value else "false"


def field_declaration(field: Field, from_root: bool = True) -> str:
    """Build the message DSL line for a field, e.g.

    optional ::Protobuf::Field::Int32Field, :x, 1, :default => 5
    """
    parts = [
        f"{field.label.value} {field_type_name(field, from_root)}",
        f":{field.name.lower()}",
        str(field.number),
    ]
    if field.has_default:
        parts.append(f":default => {format_default(field, from_root)}")
    if field.packed is not None:
        parts.append(f":packed => {_ruby_bool(field.packed)}")
    if field.deprecated is not None:
        parts.append(f":deprecated => {_ruby_bool(field.deprecated)}")
    if field.is_extension:
        parts.append(":extension => true")
    return ", ".join(parts)


def enum_value_declaration(name: str, number: int) -> str:
    return f"define :{name}, {number}"


def rpc_declaration(name: str, input_type: str, output_type: str, from_root: bool = True) -> str:
    return f"rpc :{name}, {constantize(input_type, from_root)}, {constantize(output_type, from_root)}"


def extension_range_declaration(start: int, end: int) -> str:
    return f"extensions {start}...{end}"
