from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import List, Sequence

from google.protobuf import descriptor_pb2 as d2

from protoc_gen_ruby.generator.ruby_generator import GeneratorOptions, generate_file
from protoc_gen_ruby.generator.writer import BlockWriter, EmissionError
from protoc_gen_ruby.parser.descriptor_loader import DescriptorError, load_file_set


class ProtocError(Exception):
    """Raised when protoc is missing or rejects the input files."""


def _find_proto_files(root: str) -> List[str]:
    """Recursively find .proto files under root, sorted for deterministic output."""
    return sorted(str(p) for p in Path(root).rglob("*.proto"))


def _relative_name(proto_path: str, include_paths: Sequence[str]) -> str:
    """Name protoc gives proto_path: its path relative to the including root."""
    resolved = Path(proto_path).resolve()
    for include in include_paths:
        try:
            return resolved.relative_to(Path(include).resolve()).as_posix()
        except ValueError:
            continue
    raise ProtocError(f"{proto_path} is not under any include path: {list(include_paths)}")


def run_protoc(proto_paths: Sequence[str], include_paths: Sequence[str]) -> d2.FileDescriptorSet:
    """Invoke protoc to get a descriptor set for proto_paths and their imports."""
    inc_args: List[str] = []
    for inc in include_paths:
        inc_args.extend(["-I", inc])

    with tempfile.TemporaryDirectory() as td:
        desc_path = os.path.join(td, "descriptor_set.pb")
        cmd = (
            ["protoc", "--include_imports", f"--descriptor_set_out={desc_path}"]
            + inc_args
            + list(proto_paths)
        )
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError as e:
            raise ProtocError(
                "'protoc' not found. Please install Protocol Buffers compiler and ensure it is in PATH."
            ) from e
        except subprocess.CalledProcessError as e:
            raise ProtocError(f"protoc failed: {e.stderr.decode('utf-8', errors='ignore')}") from e

        fds = d2.FileDescriptorSet()
        with open(desc_path, "rb") as f:
            fds.ParseFromString(f.read())
    return fds


def generate(
    proto_paths: Sequence[str],
    out_dir: str,
    include_paths: Sequence[str],
    options: GeneratorOptions,
) -> List[str]:
    """Generate .pb.rb files for proto_paths under out_dir.

    Returns the list of written file paths.
    """
    file_set = run_protoc(proto_paths, include_paths)
    schema_files = load_file_set(file_set)

    generated: List[str] = []
    for proto_path in proto_paths:
        name = _relative_name(proto_path, include_paths)
        result = generate_file(schema_files[name], options)

        out_path = Path(out_dir) / result.name
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(result.content, encoding="utf-8")
        generated.append(str(out_path))

    return generated


def main():
    parser = argparse.ArgumentParser(
        description="Generate protobuf gem Ruby classes from .proto files",
    )
    parser.add_argument(
        "--proto",
        required=True,
        help="Path to a .proto file or a directory containing .proto files (recursively)",
    )
    parser.add_argument(
        "--out",
        required=True,
        help="Output directory for generated .pb.rb file(s)",
    )
    parser.add_argument(
        "-I",
        "--include-path",
        dest="include_paths",
        action="append",
        default=[],
        help="Import search path; defaults to the --proto directory",
    )
    parser.add_argument(
        "--indent-width",
        type=int,
        default=BlockWriter.INDENT_WIDTH,
        help="Number of spaces per nesting level",
    )
    parser.add_argument(
        "--no-root-prefix",
        dest="root_prefix",
        action="store_false",
        help="Do not prefix type references with the root namespace (::)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if os.path.isdir(args.proto):
        inputs = _find_proto_files(args.proto)
        if not inputs:
            print(f"No .proto files found under directory: {args.proto}")
            sys.exit(0)
        default_include = args.proto
    else:
        inputs = [args.proto]
        default_include = os.path.dirname(os.path.abspath(args.proto))

    include_paths = args.include_paths or [default_include]
    options = GeneratorOptions(indent_width=args.indent_width, root_prefix=args.root_prefix)

    try:
        generated = generate(inputs, args.out, include_paths, options)
    except (ProtocError, DescriptorError, EmissionError) as e:
        print(f"FATAL: {e}", file=sys.stderr)
        sys.exit(1)

    print("Generated:\n" + "\n".join(generated))


if __name__ == "__main__":
    main()
