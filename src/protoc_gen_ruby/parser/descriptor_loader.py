"""Builds the schema model from protobuf descriptors produced by protoc."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_ruby.models import (
    FLOATING_TYPES,
    INTEGER_TYPES,
    DefaultValue,
    Enum,
    EnumValue,
    Field,
    FieldType,
    Label,
    Message,
    Method,
    SchemaFile,
    Service,
)

LABEL_MAP: Dict[int, Label] = {
    d2.FieldDescriptorProto.LABEL_OPTIONAL: Label.OPTIONAL,
    d2.FieldDescriptorProto.LABEL_REQUIRED: Label.REQUIRED,
    d2.FieldDescriptorProto.LABEL_REPEATED: Label.REPEATED,
}

# Types that may use the packed repeated encoding.
PACKABLE_TYPES = INTEGER_TYPES | FLOATING_TYPES | {FieldType.BOOL, FieldType.ENUM}

_C_ESCAPES: Dict[bytes, bytes] = {
    b"n": b"\n",
    b"r": b"\r",
    b"t": b"\t",
    b"a": b"\a",
    b"b": b"\b",
    b"f": b"\f",
    b"v": b"\v",
    b"\\": b"\\",
    b"'": b"'",
    b'"': b'"',
    b"?": b"?",
}

_C_ESCAPE_RE = re.compile(rb"\\(?:([0-7]{1,3})|x([0-9a-fA-F]{1,2})|(.))", re.DOTALL)


class DescriptorError(Exception):
    """Raised when a descriptor is missing information the model needs."""


def _qualify(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


def _strip_leading_dot(type_name: str) -> str:
    return type_name.lstrip(".")


def unescape_bytes(text: str) -> bytes:
    """Decode the C-style escaping protoc uses for bytes default values."""

    def _replace(match: re.Match) -> bytes:
        octal, hexadecimal, simple = match.groups()
        if octal is not None:
            return bytes([int(octal, 8) & 0xFF])
        if hexadecimal is not None:
            return bytes([int(hexadecimal, 16)])
        return _C_ESCAPES.get(simple, simple)

    return _C_ESCAPE_RE.sub(_replace, text.encode("latin-1"))


def _field_type(fd: d2.FieldDescriptorProto) -> FieldType:
    name = d2.FieldDescriptorProto.Type.Name(fd.type)
    return FieldType[name[len("TYPE_"):]]


def _parse_default(fd: d2.FieldDescriptorProto, field_type: FieldType) -> Optional[DefaultValue]:
    if not fd.HasField("default_value"):
        return None

    text = fd.default_value
    if field_type in INTEGER_TYPES:
        return int(text)
    if field_type in FLOATING_TYPES:
        return float(text)
    if field_type == FieldType.BOOL:
        return text == "true"
    if field_type == FieldType.BYTES:
        return unescape_bytes(text)
    # Strings are stored verbatim; enum defaults are the value name.
    return text


def build_field(fd: d2.FieldDescriptorProto, containing_type: str) -> Field:
    field_type = _field_type(fd)
    type_name = ""
    if not field_type.is_primitive:
        if not fd.type_name:
            raise DescriptorError(
                f"Field '{fd.name}' of '{containing_type}' has type "
                f"{field_type.value} but no type name"
            )
        type_name = _strip_leading_dot(fd.type_name)

    is_extension = fd.HasField("extendee")
    if is_extension:
        containing_type = _strip_leading_dot(fd.extendee)

    label = LABEL_MAP.get(fd.label, Label.OPTIONAL)

    packed: Optional[bool] = None
    if (
        label == Label.REPEATED
        and field_type in PACKABLE_TYPES
        and fd.options.HasField("packed")
    ):
        packed = fd.options.packed

    deprecated: Optional[bool] = None
    if fd.options.HasField("deprecated"):
        deprecated = fd.options.deprecated

    return Field(
        name=fd.name,
        number=fd.number,
        label=label,
        type=field_type,
        type_name=type_name,
        default_value=_parse_default(fd, field_type),
        packed=packed,
        deprecated=deprecated,
        is_extension=is_extension,
        containing_type=containing_type,
    )


def build_enum(desc: d2.EnumDescriptorProto, scope: str) -> Enum:
    return Enum(
        name=desc.name,
        full_name=_qualify(scope, desc.name),
        values=[EnumValue(name=v.name, number=v.number) for v in desc.value],
    )


def build_message(desc: d2.DescriptorProto, scope: str) -> Message:
    full_name = _qualify(scope, desc.name)
    return Message(
        name=desc.name,
        full_name=full_name,
        fields=[build_field(f, full_name) for f in desc.field],
        nested_messages=[build_message(n, full_name) for n in desc.nested_type],
        nested_enums=[build_enum(e, full_name) for e in desc.enum_type],
        extensions=[build_field(x, full_name) for x in desc.extension],
        extension_ranges=[(r.start, r.end) for r in desc.extension_range],
    )


def build_service(desc: d2.ServiceDescriptorProto, scope: str) -> Service:
    return Service(
        name=desc.name,
        full_name=_qualify(scope, desc.name),
        methods=[
            Method(
                name=m.name,
                input_type=_strip_leading_dot(m.input_type),
                output_type=_strip_leading_dot(m.output_type),
            )
            for m in desc.method
        ],
    )


def load_file(file_proto: d2.FileDescriptorProto) -> SchemaFile:
    """Convert one FileDescriptorProto into a SchemaFile."""
    package = file_proto.package
    return SchemaFile(
        name=file_proto.name,
        package=package,
        messages=[build_message(m, package) for m in file_proto.message_type],
        enums=[build_enum(e, package) for e in file_proto.enum_type],
        services=[build_service(s, package) for s in file_proto.service],
        extensions=[build_field(x, package) for x in file_proto.extension],
        dependencies=list(file_proto.dependency),
    )


def load_files(file_protos: Iterable[d2.FileDescriptorProto]) -> Dict[str, SchemaFile]:
    """Load every file descriptor, keyed by proto file name."""
    return {fp.name: load_file(fp) for fp in file_protos}


def load_file_set(file_set: d2.FileDescriptorSet) -> Dict[str, SchemaFile]:
    return load_files(file_set.file)
