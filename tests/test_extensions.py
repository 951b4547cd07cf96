from protoc_gen_ruby.generator.extensions import ExtensionRegistry
from protoc_gen_ruby.models import Field, FieldType


def _make_extension(name: str, number: int, containing_type: str) -> Field:
    return Field(
        name=name,
        number=number,
        type=FieldType.INT32,
        is_extension=True,
        containing_type=containing_type,
    )


class TestExtensionRegistry:
    def test_record_and_take(self):
        registry = ExtensionRegistry()
        first = _make_extension("a", 100, "foo.Base")
        second = _make_extension("b", 101, "foo.Base")
        registry.record(first)
        registry.record(second)

        assert registry.has_pending("foo.Base")
        assert registry.take("foo.Base") == [first, second]

    def test_take_consumes_bucket(self):
        registry = ExtensionRegistry()
        registry.record(_make_extension("a", 100, "foo.Base"))
        registry.take("foo.Base")

        assert not registry.has_pending("foo.Base")
        assert registry.take("foo.Base") == []
        assert registry.remaining_keys() == []
        assert len(registry) == 0

    def test_take_unknown_key(self):
        registry = ExtensionRegistry()

        assert registry.take("foo.Missing") == []
        assert not registry.has_pending("foo.Missing")

    def test_remaining_keys_in_first_recorded_order(self):
        registry = ExtensionRegistry()
        registry.record_all([
            _make_extension("a", 100, "other.Zeta"),
            _make_extension("b", 100, "other.Alpha"),
            _make_extension("c", 101, "other.Zeta"),
            _make_extension("d", 100, "foo.Local"),
        ])
        registry.take("foo.Local")

        assert registry.remaining_keys() == ["other.Zeta", "other.Alpha"]
        assert len(registry) == 3

    def test_registries_are_independent(self):
        first = ExtensionRegistry()
        first.record(_make_extension("a", 100, "foo.Base"))

        assert not ExtensionRegistry().has_pending("foo.Base")
