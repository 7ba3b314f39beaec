"""Docker CLI plugin that generates artifacts such as image manifests."""

from __future__ import annotations

import argparse
import contextlib
import subprocess
import sys
import tarfile

from notarytool.docker.schema2 import generate_schema2_from_docker_save
from notarytool.plugin import PLUGIN_METADATA_COMMAND_NAME, PluginMetadata

PLUGIN_METADATA = PluginMetadata(
    schema_version="0.1.0",
    vendor="CNCF Notary Project",
    version="0.1.1",
    short_description="Generate artifacts",
    experimental=True,
)


def generate_manifest(reference: str | None = None, output: str | None = None) -> None:
    """Write the manifest of an image saved by docker, or of a tar read from stdin."""
    process = None
    if reference:
        process = subprocess.Popen(["docker", "save", reference], stdout=subprocess.PIPE)
        reader = process.stdout
    else:
        reader = sys.stdin.buffer

    try:
        with contextlib.ExitStack() as stack:
            writer = stack.enter_context(open(output, "wb")) if output else sys.stdout.buffer
            manifest = generate_schema2_from_docker_save(reader)
            writer.write(manifest.payload())
            writer.flush()
    finally:
        if process is not None:
            process.stdout.close()
            process.wait()


def _print_metadata() -> None:
    print(PLUGIN_METADATA.to_json())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docker")
    parser.set_defaults(handler=lambda args: parser.print_help())
    commands = parser.add_subparsers(metavar="{generate}")

    generate = commands.add_parser("generate", help="generate artifacts")
    generate.set_defaults(handler=lambda args: generate.print_help())
    generate_commands = generate.add_subparsers()

    manifest = generate_commands.add_parser("manifest", help="generates the manifest of a docker image")
    manifest.add_argument("reference", nargs="?", default="")
    manifest.add_argument("-o", "--output", default="", help="write to a file instead of stdout")
    manifest.set_defaults(handler=lambda args: generate_manifest(args.reference, args.output))

    metadata = commands.add_parser(PLUGIN_METADATA_COMMAND_NAME)
    metadata.set_defaults(handler=lambda args: _print_metadata())
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the plugin; return the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (OSError, ValueError, tarfile.TarError, subprocess.SubprocessError) as err:
        print(err, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())