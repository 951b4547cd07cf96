"""protoc plugin generating protobuf gem Ruby classes.

Install the package and run:

    protoc --ruby_out=OUT_DIR --plugin=protoc-gen-ruby=$(which protoc-gen-ruby) foo.proto

Options are passed as --ruby_opt=--indent-width=4,--no-root-prefix
"""

from __future__ import annotations

import logging
import sys
from argparse import ArgumentParser, Namespace
from shlex import shlex

from google.protobuf.compiler import plugin_pb2

from protoc_gen_ruby.generator.ruby_generator import GeneratorOptions, generate_file
from protoc_gen_ruby.generator.writer import EmissionError
from protoc_gen_ruby.parser.descriptor_loader import DescriptorError, load_file

_LOG = logging.getLogger(__name__)


def parse_parameter_options(parameter: str) -> Namespace:
    """Parses the comma separated parameter string protoc passes through."""
    parser = ArgumentParser(prog="protoc-gen-ruby")
    parser.add_argument(
        "--indent-width",
        dest="indent_width",
        type=int,
        default=GeneratorOptions.indent_width,
        help="Number of spaces per nesting level",
    )
    parser.add_argument(
        "--no-root-prefix",
        dest="root_prefix",
        action="store_false",
        help="Do not prefix type references with the root namespace (::)",
    )

    lex = shlex(parameter)
    lex.whitespace_split = True
    lex.whitespace = ","
    lex.commenters = ""
    args = list(lex)

    return parser.parse_args(args)


def process_proto_request(
    req: plugin_pb2.CodeGeneratorRequest, res: plugin_pb2.CodeGeneratorResponse
) -> bool:
    """Generates a .pb.rb file for every file protoc asked for.

    On failure the reason is stored in res.error and False is returned.
    """
    args = parse_parameter_options(req.parameter)
    options = GeneratorOptions(
        indent_width=args.indent_width,
        root_prefix=args.root_prefix,
    )

    files_to_generate = set(req.file_to_generate)
    for proto_file in req.proto_file:
        if proto_file.name not in files_to_generate:
            continue
        try:
            generated = generate_file(load_file(proto_file), options)
        except (DescriptorError, EmissionError) as e:
            res.error = str(e)
            return False

        _LOG.debug("Generated %s", generated.name)
        out = res.file.add()
        out.name = generated.name
        out.content = generated.content

    return True


def main() -> int:
    """Reads a CodeGeneratorRequest from stdin and writes the response to stdout."""
    data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest.FromString(data)
    response = plugin_pb2.CodeGeneratorResponse()

    response.supported_features |= response.FEATURE_PROTO3_OPTIONAL

    if not process_proto_request(request, response):
        print(f"protoc-gen-ruby failed: {response.error}", file=sys.stderr)

    # protoc reads failures from response.error.
    sys.stdout.buffer.write(response.SerializeToString())
    return 0


if __name__ == "__main__":
    sys.exit(main())
