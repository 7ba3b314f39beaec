"""Command line for managing signing keys and verification certificates."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterable

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from notarytool.config.file import load_or_default
from notarytool.config.maps import CertificateMap, KeyMap
from notarytool.version import get_version


class CommandError(Exception):
    """Raised when a command cannot be carried out."""


def _read_certificates(path: str) -> list[x509.Certificate]:
    with open(path, "rb") as file:
        data = file.read()
    return x509.load_pem_x509_certificates(data)


def _public_key_der(key) -> bytes:
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _check_key_pair(cert_path: str, key_path: str) -> None:
    with open(cert_path, "rb") as file:
        cert_data = file.read()
    with open(key_path, "rb") as file:
        key_data = file.read()
    try:
        certificates = x509.load_pem_x509_certificates(cert_data)
    except ValueError as err:
        raise ValueError("tls: failed to find any PEM data in certificate input") from err
    try:
        private_key = serialization.load_pem_private_key(key_data, None)
    except (ValueError, TypeError) as err:
        raise ValueError(f"tls: failed to parse private key: {err}") from err
    if _public_key_der(certificates[0].public_key()) != _public_key_der(private_key.public_key()):
        raise ValueError("tls: private key does not match public key")


def name_from_path(path: str) -> str:
    """Return the file name of ``path`` without its extension."""
    stripped = path.rstrip("/" + os.sep)
    if not stripped:
        return os.sep if path else "."
    base = os.path.basename(stripped)
    index = base.rfind(".")
    name = base if index == -1 else base[:index]
    return name or base


def add_cert(path: str, name: str | None = None) -> str:
    """Add a certificate to the verification list and return its name."""
    if not path:
        raise CommandError("missing certificate path")
    path = os.path.abspath(path)
    name = name or name_from_path(path)

    _read_certificates(path)

    config = load_or_default()
    if not config.certificates.append(name, path):
        raise CommandError(f"{name}: already exists")
    config.save()
    return name


def list_certs() -> str:
    """Return the table of certificates used for verification."""
    return format_certificate_set(load_or_default().certificates)


def remove_certs(names: Iterable[str]) -> list[str]:
    """Remove certificates from the verification list; return the removed names."""
    names = list(names)
    if not names:
        raise CommandError("missing certificate names")
    config = load_or_default()
    removed = []
    for name in names:
        if not config.certificates.remove(name):
            raise CommandError(f"{name}: not found")
        removed.append(name)
    config.save()
    return removed


def format_certificate_set(certificates: CertificateMap) -> str:
    """Render certificate references as a NAME / PATH table."""
    width = max((len(ref.name) for ref in certificates), default=0)
    rows = [("NAME", "PATH")] + [(ref.name, ref.path) for ref in certificates]
    return "".join(f"{name.ljust(width)}\t{path}\n" for name, path in rows)


def add_key(
    key_path: str,
    cert_path: str,
    name: str | None = None,
    mark_default: bool = False,
) -> tuple[str, bool]:
    """Add a key to the signing key list; return its name and whether it is the default."""
    if not key_path:
        raise CommandError("missing key and certificate paths")
    if not cert_path:
        raise CommandError("missing certificate path for the corresponding key")
    key_path = os.path.abspath(key_path)
    cert_path = os.path.abspath(cert_path)
    name = name or name_from_path(key_path)

    _check_key_pair(cert_path, key_path)

    config = load_or_default()
    if not config.keys.append(name, key_path, cert_path):
        raise CommandError(f"{name}: already exists")
    if mark_default:
        config.default_key = name
    config.save()
    return name, config.default_key == name


def update_key(name: str, mark_default: bool = False) -> bool:
    """Update a signing key; return True if it is now marked as default."""
    if not name:
        raise CommandError("missing key name")
    config = load_or_default()
    if config.keys.get(name) is None:
        raise CommandError(f"{name}: not found")
    if not mark_default:
        return False
    if config.default_key != name:
        config.default_key = name
        config.save()
    return True


def list_keys() -> str:
    """Return the table of keys used for signing."""
    config = load_or_default()
    return format_key_set(config.default_key, config.keys)


def remove_keys(names: Iterable[str]) -> list[tuple[str, bool]]:
    """Remove signing keys; return each removed name with whether it was the default."""
    names = list(names)
    if not names:
        raise CommandError("missing key names")
    config = load_or_default()
    previous_default = config.default_key
    removed = []
    for name in names:
        if not config.keys.remove(name):
            raise CommandError(f"{name}: not found")
        removed.append(name)
        if previous_default == name:
            config.default_key = ""
    config.save()
    return [(name, name == previous_default) for name in removed]


def format_key_set(default: str, keys: KeyMap) -> str:
    """Render key suites as a table, marking the default key with ``*``."""
    if not len(keys):
        return "NAME\tPATH\n"
    name_width = max(len(ref.name) for ref in keys)
    path_width = max(len(ref.key_path) for ref in keys)

    def row(mark: str, name: str, key_path: str, cert_path: str) -> str:
        return f"{mark} {name.ljust(name_width)}\t{key_path.ljust(path_width)}\t{cert_path}\n"

    lines = [row(" ", "NAME", "KEY PATH", "CERTIFICATE PATH")]
    lines.extend(
        row("*" if ref.name == default else " ", ref.name, ref.key_path, ref.certificate_path)
        for ref in keys
    )
    return "".join(lines)


def _run_add_cert(args: argparse.Namespace) -> None:
    print(add_cert(args.path, args.name))


def _run_remove_certs(args: argparse.Namespace) -> None:
    for name in remove_certs(args.names):
        print(name)


def _run_add_key(args: argparse.Namespace) -> None:
    if not args.paths:
        raise CommandError("missing key and certificate paths")
    if len(args.paths) == 1:
        raise CommandError("missing certificate path for the corresponding key")
    name, is_default = add_key(args.paths[0], args.paths[1], args.name, args.default)
    print(f"{name}: marked as default" if is_default else name)


def _run_update_key(args: argparse.Namespace) -> None:
    if update_key(args.name, args.default):
        print(f"{args.name}: marked as default")


def _run_remove_keys(args: argparse.Namespace) -> None:
    for name, was_default in remove_keys(args.names):
        print(f"{name}: unmarked as default" if was_default else name)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notation", description="Notation - Notary V2")
    parser.add_argument("--version", "-v", action="version", version=f"notation version {get_version()}")
    parser.set_defaults(handler=lambda args: parser.print_help())
    commands = parser.add_subparsers()

    cert = commands.add_parser(
        "certificate", aliases=["cert"], help="Manage certificates used for verification"
    )
    cert.set_defaults(handler=lambda args: cert.print_help())
    cert_commands = cert.add_subparsers()

    cert_add = cert_commands.add_parser("add", help="Add certificate to verification list")
    cert_add.add_argument("path", nargs="?", default="")
    cert_add.add_argument("-n", "--name", default="", help="certificate name")
    cert_add.set_defaults(handler=_run_add_cert)

    cert_list = cert_commands.add_parser(
        "list", aliases=["ls"], help="List certificates used for verification"
    )
    cert_list.set_defaults(handler=lambda args: print(list_certs(), end=""))

    cert_remove = cert_commands.add_parser(
        "remove", aliases=["rm"], help="Remove certificate from the verification list"
    )
    cert_remove.add_argument("names", nargs="*")
    cert_remove.set_defaults(handler=_run_remove_certs)

    key = commands.add_parser("key", help="Manage keys used for signing")
    key.set_defaults(handler=lambda args: key.print_help())
    key_commands = key.add_subparsers()

    key_add = key_commands.add_parser("add", help="Add key to signing key list")
    key_add.add_argument("paths", nargs="*")
    key_add.add_argument("-n", "--name", default="", help="key name")
    key_add.add_argument("-d", "--default", action="store_true", help="mark as default")
    key_add.set_defaults(handler=_run_add_key)

    key_update = key_commands.add_parser(
        "update", aliases=["set"], help="Update key in signing key list"
    )
    key_update.add_argument("name", nargs="?", default="")
    key_update.add_argument("-d", "--default", action="store_true", help="mark as default")
    key_update.set_defaults(handler=_run_update_key)

    key_list = key_commands.add_parser("list", aliases=["ls"], help="List keys used for signing")
    key_list.set_defaults(handler=lambda args: print(list_keys(), end=""))

    key_remove = key_commands.add_parser(
        "remove", aliases=["rm"], help="Remove key from signing key list"
    )
    key_remove.add_argument("names", nargs="*")
    key_remove.set_defaults(handler=_run_remove_keys)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (CommandError, OSError, ValueError) as err:
        print(err, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())