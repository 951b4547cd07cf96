import math

import pytest
from google.protobuf import descriptor_pb2 as d2

from protoc_gen_ruby.models import FieldType, Label
from protoc_gen_ruby.parser.descriptor_loader import (
    DescriptorError,
    build_field,
    load_file,
    load_file_set,
    unescape_bytes,
)

FDP = d2.FieldDescriptorProto


def _make_field(name, number, type=FDP.TYPE_INT32, label=FDP.LABEL_OPTIONAL, **kwargs) -> d2.FieldDescriptorProto:
    return FDP(name=name, number=number, type=type, label=label, **kwargs)


def _make_file() -> d2.FileDescriptorProto:
    fp = d2.FileDescriptorProto(name="shop/order.proto", package="shop", dependency=["common.proto"])

    status = fp.enum_type.add(name="Status")
    status.value.add(name="NEW", number=0)
    status.value.add(name="PAID", number=1)

    order = fp.message_type.add(name="Order")
    order.field.append(_make_field("id", 1, label=FDP.LABEL_REQUIRED))
    order.field.append(
        _make_field("status", 2, type=FDP.TYPE_ENUM, type_name=".shop.Status", default_value="PAID")
    )
    order.field.append(
        _make_field("items", 3, type=FDP.TYPE_MESSAGE, type_name=".shop.Order.Item", label=FDP.LABEL_REPEATED)
    )
    order.extension_range.add(start=100, end=200)

    item = order.nested_type.add(name="Item")
    item.field.append(_make_field("sku", 1, type=FDP.TYPE_STRING))
    kind = item.enum_type.add(name="Kind")
    kind.value.add(name="PHYSICAL", number=1)

    order.extension.append(
        _make_field("note", 150, type=FDP.TYPE_STRING, extendee=".common.Envelope")
    )
    fp.extension.append(_make_field("priority", 100, extendee=".shop.Order"))

    service = fp.service.add(name="OrderService")
    service.method.add(name="Place", input_type=".shop.Order", output_type=".common.Empty")
    return fp


class TestLoadFile:
    def test_file_attributes(self):
        schema = load_file(_make_file())

        assert schema.name == "shop/order.proto"
        assert schema.package == "shop"
        assert schema.dependencies == ["common.proto"]

    def test_full_names(self):
        schema = load_file(_make_file())
        order = schema.messages[0]
        item = order.nested_messages[0]

        assert schema.enums[0].full_name == "shop.Status"
        assert order.full_name == "shop.Order"
        assert item.full_name == "shop.Order.Item"
        assert item.nested_enums[0].full_name == "shop.Order.Item.Kind"

    def test_fields(self):
        order = load_file(_make_file()).messages[0]
        id_field, status, items = order.fields

        assert id_field.label == Label.REQUIRED
        assert id_field.type == FieldType.INT32
        assert id_field.containing_type == "shop.Order"
        assert status.type_name == "shop.Status"
        assert status.default_value == "PAID"
        assert items.label == Label.REPEATED
        assert items.type_name == "shop.Order.Item"

    def test_enum_values_keep_order(self):
        status = load_file(_make_file()).enums[0]

        assert [(v.name, v.number) for v in status.values] == [("NEW", 0), ("PAID", 1)]

    def test_extension_ranges(self):
        order = load_file(_make_file()).messages[0]

        assert order.extension_ranges == [(100, 200)]

    def test_extensions_target_extendee(self):
        schema = load_file(_make_file())
        priority = schema.extensions[0]
        note = schema.messages[0].extensions[0]

        assert priority.is_extension
        assert priority.containing_type == "shop.Order"
        assert note.is_extension
        assert note.containing_type == "common.Envelope"

    def test_services(self):
        service = load_file(_make_file()).services[0]

        assert service.full_name == "shop.OrderService"
        assert [(m.name, m.input_type, m.output_type) for m in service.methods] == [
            ("Place", "shop.Order", "common.Empty")
        ]

    def test_no_package(self):
        fp = d2.FileDescriptorProto(name="plain.proto")
        fp.message_type.add(name="Plain")

        assert load_file(fp).messages[0].full_name == "Plain"

    def test_load_file_set(self):
        file_set = d2.FileDescriptorSet()
        file_set.file.add(name="common.proto", package="common")
        file_set.file.append(_make_file())

        schema_files = load_file_set(file_set)

        assert list(schema_files) == ["common.proto", "shop/order.proto"]
        assert schema_files["common.proto"].package == "common"


class TestDefaults:
    @pytest.mark.parametrize("field_type, text, expected", [
        (FDP.TYPE_INT32, "-5", -5),
        (FDP.TYPE_UINT64, "18446744073709551615", 18446744073709551615),
        (FDP.TYPE_DOUBLE, "2.5", 2.5),
        (FDP.TYPE_FLOAT, "1e+20", 1e20),
        (FDP.TYPE_BOOL, "true", True),
        (FDP.TYPE_BOOL, "false", False),
        (FDP.TYPE_STRING, 'say "hi"', 'say "hi"'),
    ])
    def test_typed_default(self, field_type, text, expected):
        field = build_field(_make_field("x", 1, type=field_type, default_value=text), "foo.M")

        assert field.default_value == expected
        assert type(field.default_value) is type(expected)

    def test_special_float_defaults(self):
        inf = build_field(_make_field("x", 1, type=FDP.TYPE_DOUBLE, default_value="-inf"), "foo.M")
        nan = build_field(_make_field("y", 2, type=FDP.TYPE_FLOAT, default_value="nan"), "foo.M")

        assert inf.default_value == -math.inf
        assert math.isnan(nan.default_value)

    def test_bytes_default_is_unescaped(self):
        field = build_field(_make_field("b", 1, type=FDP.TYPE_BYTES, default_value="\\001abc\\n"), "foo.M")

        assert field.default_value == b"\x01abc\n"

    def test_no_default(self):
        field = build_field(_make_field("x", 1), "foo.M")

        assert field.default_value is None
        assert not field.has_default

    def test_empty_string_default_is_kept(self):
        field = build_field(_make_field("s", 1, type=FDP.TYPE_STRING, default_value=""), "foo.M")

        assert field.default_value == ""
        assert field.has_default


class TestUnescapeBytes:
    def test_octal_and_hex(self):
        assert unescape_bytes("\\377\\x41\\0") == b"\xffA\x00"

    def test_simple_escapes(self):
        assert unescape_bytes('\\"\\\\\\t') == b'"\\\t'

    def test_plain_text(self):
        assert unescape_bytes("abc") == b"abc"


class TestFieldOptions:
    def test_packed_only_when_set_on_repeated_scalar(self):
        packed = _make_field("ids", 1, label=FDP.LABEL_REPEATED)
        packed.options.packed = True
        unset = _make_field("more", 2, label=FDP.LABEL_REPEATED)

        assert build_field(packed, "foo.M").packed is True
        assert build_field(unset, "foo.M").packed is None

    def test_packed_ignored_for_strings(self):
        names = _make_field("names", 1, type=FDP.TYPE_STRING, label=FDP.LABEL_REPEATED)
        names.options.packed = True

        assert build_field(names, "foo.M").packed is None

    def test_explicit_unpacked(self):
        ids = _make_field("ids", 1, label=FDP.LABEL_REPEATED)
        ids.options.packed = False

        assert build_field(ids, "foo.M").packed is False

    def test_deprecated(self):
        old = _make_field("old", 1)
        old.options.deprecated = True

        assert build_field(old, "foo.M").deprecated is True
        assert build_field(_make_field("new", 2), "foo.M").deprecated is None


class TestDescriptorErrors:
    def test_message_field_without_type_name(self):
        with pytest.raises(DescriptorError, match="'broken' of 'foo.M'"):
            build_field(_make_field("broken", 1, type=FDP.TYPE_MESSAGE), "foo.M")
