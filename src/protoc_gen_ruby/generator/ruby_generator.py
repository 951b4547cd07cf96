"""Generates protobuf gem message, enum and service classes for a .proto file.

Messages are printed in two passes. The first pass declares an empty class
shell for every message (nested enums and messages included), so that the
second pass can print field lines naming any type of the file regardless of
declaration order. Extension fields are collected during the first pass and
printed inside the body of the message they extend; extensions of messages
that are not defined in this file are printed at the end, in reopened
classes.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, TextIO

from jinja2 import Environment, FileSystemLoader

from protoc_gen_ruby.generator import mapper
from protoc_gen_ruby.generator.extensions import ExtensionRegistry
from protoc_gen_ruby.generator.writer import BlockKind, BlockWriter, EmissionError
from protoc_gen_ruby.models import Enum, Field, Message, SchemaFile, Service

_LOG = logging.getLogger(__name__)

MESSAGE_REQUIRE = "protobuf/message"
SERVICE_REQUIRE = "protobuf/rpc/service"


@dataclass
class GeneratorOptions:
    indent_width: int = BlockWriter.INDENT_WIDTH
    # Qualify type references from the root namespace (::foo::Bar).
    root_prefix: bool = True


@dataclass
class GeneratedFile:
    name: str
    content: str


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
    )


class _Emission:
    """State of a single file's emission run."""

    def __init__(self, schema_file: SchemaFile, sink: TextIO, options: GeneratorOptions):
        self.file = schema_file
        self.options = options
        self.writer = BlockWriter(sink, options.indent_width)
        self.extensions = ExtensionRegistry()

    def run(self) -> None:
        self._print_preamble()

        namespace = self.file.package_path
        for segment in namespace:
            self.writer.open_block(BlockKind.MODULE, mapper.constantize(segment, from_root=False))

        self._print_enums()
        self._print_message_classes()
        self._print_message_fields()
        self._print_dangling_extensions()
        self._print_services()

        for _ in namespace:
            self.writer.close_block()

    def _print_preamble(self) -> None:
        runtime_requires: List[str] = []
        if self.file.messages:
            runtime_requires.append(MESSAGE_REQUIRE)
        if self.file.services:
            runtime_requires.append(SERVICE_REQUIRE)

        import_requires = [
            mapper.ruby_file_name(dependency, for_require=True)
            for dependency in self.file.dependencies
        ]

        template = _get_template_env().get_template("preamble.rb.j2")
        self.writer.write_raw(
            template.render(
                runtime_requires=runtime_requires,
                import_requires=import_requires,
            )
        )

    # Enums

    def _print_enums(self) -> None:
        if not self.file.enums:
            return
        self.writer.comment("Enum Classes", as_header=True)
        for enum in self.file.enums:
            self._print_enum(enum)
        self.writer.blank_lines()

    def _print_enum(self, enum: Enum) -> None:
        self.writer.open_block(BlockKind.CLASS, enum.name, mapper.ENUM_BASE)
        for value in enum.values:
            self.writer.write_line(
                mapper.enum_value_declaration(value.name, value.number),
                "Failed printing enum value",
            )
        self.writer.close_block()
        self.writer.blank_lines()

    # Messages, first pass

    def _print_message_classes(self) -> None:
        # File level extensions may target messages of this file, so they
        # are recorded before any message body is printed.
        self.extensions.record_all(self.file.extensions)
        if not self.file.messages:
            return

        self.writer.comment("Message Classes", as_header=True)
        for message in self.file.messages:
            self._print_message_class(message)
        self.writer.blank_lines()

    def _print_message_class(self, message: Message) -> None:
        if message.has_nested_types:
            self.writer.open_block(BlockKind.CLASS, message.name, mapper.MESSAGE_BASE)
            for enum in message.nested_enums:
                self._print_enum(enum)
            for nested in message.nested_messages:
                self._print_message_class(nested)
            self.writer.close_block()
        else:
            self.writer.open_block(
                BlockKind.CLASS, message.name, mapper.MESSAGE_BASE, empty_body=True
            )
        self.writer.blank_lines()
        self.extensions.record_all(message.extensions)

    # Messages, second pass

    def _print_message_fields(self) -> None:
        if not self.file.messages:
            return
        self.writer.comment("Message Fields", as_header=True)
        for message in self.file.messages:
            self._print_message_body(message)

    def _has_body(self, message: Message) -> bool:
        return bool(
            message.fields
            or message.extension_ranges
            or self.extensions.has_pending(message.full_name)
            or any(self._has_body(nested) for nested in message.nested_messages)
        )

    def _print_message_body(self, message: Message) -> None:
        if not self._has_body(message):
            return

        # Reopen the class declared in the first pass.
        self.writer.open_block(BlockKind.CLASS, message.name)

        for nested in message.nested_messages:
            self._print_message_body(nested)

        for field in message.fields:
            self._print_field(field)

        if message.extension_ranges:
            self.writer.blank_lines()
            self.writer.comment("Extension Fields")
            for start, end in message.extension_ranges:
                self.writer.write_line(
                    mapper.extension_range_declaration(start, end),
                    "Failed printing extension ranges",
                )

        for extension in self.extensions.take(message.full_name):
            self._print_field(extension)

        self.writer.close_block()
        self.writer.blank_lines()

    def _print_field(self, field: Field) -> None:
        self.writer.write_line(
            mapper.field_declaration(field, self.options.root_prefix),
            "Failed printing message field",
        )

    def _print_dangling_extensions(self) -> None:
        remaining = self.extensions.remaining_keys()
        if not remaining:
            return

        _LOG.debug(
            "%s: %d extended message(s) not defined in this file",
            self.file.name,
            len(remaining),
        )
        self.writer.comment("Extended Messages", as_header=True)
        for full_name in remaining:
            self.writer.open_block(BlockKind.CLASS, mapper.constantize(full_name))
            for extension in self.extensions.take(full_name):
                self._print_field(extension)
            self.writer.close_block()
        self.writer.blank_lines()

    # Services

    def _print_services(self) -> None:
        if not self.file.services:
            return
        self.writer.comment("Services", as_header=True)
        for service in self.file.services:
            self._print_service(service)

    def _print_service(self, service: Service) -> None:
        self.writer.open_block(BlockKind.CLASS, service.name, mapper.SERVICE_BASE)
        for method in service.methods:
            self.writer.write_line(
                mapper.rpc_declaration(
                    method.name,
                    method.input_type,
                    method.output_type,
                    self.options.root_prefix,
                ),
                "Failed printing rpc method",
            )
        self.writer.close_block()


class RubyGenerator:
    """Prints Ruby source for schema files into text sinks."""

    def __init__(self, options: GeneratorOptions = None):
        self.options = options or GeneratorOptions()

    def generate(self, schema_file: SchemaFile, sink: TextIO) -> str:
        """Writes the Ruby source for schema_file into sink.

        Returns the generated file name. Raises EmissionError naming that file
        if a write fails; whatever was written before the failure is left in
        the sink.
        """
        filename = mapper.ruby_file_name(schema_file.name)
        _LOG.debug("Generating %s from %s", filename, schema_file.name)
        try:
            _Emission(schema_file, sink, self.options).run()
        except EmissionError as e:
            raise EmissionError(e.reason, filename) from e
        return filename


def generate_file(schema_file: SchemaFile, options: GeneratorOptions = None) -> GeneratedFile:
    """Generate the .pb.rb file for schema_file in memory."""
    buffer = io.StringIO()
    name = RubyGenerator(options).generate(schema_file, buffer)
    return GeneratedFile(name=name, content=buffer.getvalue())
