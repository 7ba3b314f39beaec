"""Well-known file locations for configuration and caches."""

from __future__ import annotations

import os
import sys

from notarytool.descriptor import Digest

APPLICATION_NAME = "notation"
FILE_NAME = "config.json"
SIGNATURE_STORE_DIR_NAME = "signature"
SIGNATURE_EXTENSION = ".sig"
KEY_STORE_DIR_NAME = "key"
KEY_EXTENSION = ".key"
CERTIFICATE_STORE_DIR_NAME = "certificate"
CERTIFICATE_EXTENSION = ".crt"


def _home() -> str:
    home = os.environ.get("HOME", "")
    if not home:
        raise RuntimeError("$HOME is not defined")
    return home


def _user_config_dir() -> str:
    if sys.platform == "win32":
        directory = os.environ.get("AppData", "")
        if not directory:
            raise RuntimeError("%AppData% is not defined")
        return directory
    if sys.platform == "darwin":
        return os.path.join(_home(), "Library", "Application Support")
    directory = os.environ.get("XDG_CONFIG_HOME", "")
    if directory:
        return directory
    return os.path.join(_home(), ".config")


def _user_cache_dir() -> str:
    if sys.platform == "win32":
        directory = os.environ.get("LocalAppData", "")
        if not directory:
            raise RuntimeError("%LocalAppData% is not defined")
        return directory
    if sys.platform == "darwin":
        return os.path.join(_home(), "Library", "Caches")
    directory = os.environ.get("XDG_CACHE_HOME", "")
    if directory:
        return directory
    return os.path.join(_home(), ".cache")


_CONFIG_DIR = os.path.join(_user_config_dir(), APPLICATION_NAME)
_CACHE_DIR = os.path.join(_user_cache_dir(), APPLICATION_NAME)

FILE_PATH = os.path.join(_CONFIG_DIR, FILE_NAME)
SIGNATURE_STORE_DIR_PATH = os.path.join(_CACHE_DIR, SIGNATURE_STORE_DIR_NAME)
KEY_STORE_DIR_PATH = os.path.join(_CONFIG_DIR, KEY_STORE_DIR_NAME)
CERTIFICATE_STORE_DIR_PATH = os.path.join(_CONFIG_DIR, CERTIFICATE_STORE_DIR_NAME)


def signature_root_path(manifest_digest: Digest) -> str:
    """Return the directory holding the signatures of a manifest."""
    return os.path.join(SIGNATURE_STORE_DIR_PATH, manifest_digest.algorithm, manifest_digest.encoded)


def signature_path(manifest_digest: Digest, signature_digest: Digest) -> str:
    """Return the file path of a signature for a manifest."""
    return os.path.join(
        signature_root_path(manifest_digest),
        signature_digest.algorithm,
        signature_digest.encoded + SIGNATURE_EXTENSION,
    )


def key_path(name: str) -> str:
    """Return the path of a named signing key."""
    return os.path.join(KEY_STORE_DIR_PATH, name + KEY_EXTENSION)


def certificate_path(name: str) -> str:
    """Return the path of a named verification certificate."""
    return os.path.join(CERTIFICATE_STORE_DIR_PATH, name + CERTIFICATE_EXTENSION)