"""Indentation-aware printer for block-structured Ruby output.

Example:

```
writer = BlockWriter(io.StringIO())
writer.open_block(BlockKind.MODULE, "Foo")
writer.open_block(BlockKind.CLASS, "Bar", "::Protobuf::Message")
writer.write_line("optional ::Protobuf::Field::Int32Field, :x, 1")
writer.close_block()
writer.close_block()
```

Produces:

```
module Foo
  class Bar < ::Protobuf::Message
    optional ::Protobuf::Field::Int32Field, :x, 1
  end
end
```
"""

from __future__ import annotations

import enum
from typing import Optional, TextIO


class EmissionError(Exception):
    """Raised when generated text cannot be written to the output sink."""

    def __init__(self, reason: str = "", filename: str = ""):
        self.reason = reason
        self.filename = filename
        super().__init__(self.describe())

    def describe(self) -> str:
        if not self.reason:
            return f"An unknown error occurred compiling {self.filename}"
        if self.filename:
            return f"{self.reason} while compiling {self.filename}"
        return self.reason


class BlockKind(enum.Enum):
    CLASS = "class"
    MODULE = "module"


class BlockWriter:
    """Writes lines to a text sink, tracking block nesting depth."""

    INDENT_WIDTH = 2

    def __init__(self, sink: TextIO, indent_width: int = INDENT_WIDTH):
        self._sink = sink
        self._indent_width = indent_width
        self._depth = 0

    @property
    def depth(self) -> int:
        return self._depth

    def _write(self, text: str, fail_message: str) -> None:
        try:
            self._sink.write(text)
        except (OSError, ValueError) as e:
            raise EmissionError(f"{fail_message}: {e}") from e

    def write_line(self, text: str, fail_message: str = "Failed printing line") -> None:
        """Writes text at the current depth followed by a newline."""
        indent = " " * (self._depth * self._indent_width)
        self._write(f"{indent}{text}\n", fail_message)

    def write_raw(self, text: str) -> None:
        """Writes pre-rendered text as is, without indentation."""
        self._write(text, "Failed printing preamble")

    def blank_lines(self, count: int = 1) -> None:
        # Blank lines never carry the indentation of the enclosing block.
        self._write("\n" * count, "Failed printing newline")

    def comment(self, text: str, as_header: bool = False) -> None:
        if as_header:
            for line in ("##", f"# {text}", "#"):
                self.write_line(line, "Failed printing comment")
        else:
            self.write_line(f"# {text}", "Failed printing comment")

    def open_block(
        self,
        kind: BlockKind,
        name: str,
        superclass: Optional[str] = None,
        empty_body: bool = False,
    ) -> None:
        header = f"{kind.value} {name}"
        if superclass:
            header += f" < {superclass}"
        if empty_body:
            header += "; end"
        self.write_line(header, "Failed printing block declaration")

        if not empty_body:
            self._depth += 1

    def close_block(self) -> None:
        if self._depth > 0:
            self._depth -= 1
        self.write_line("end", "Failed printing block end")
