"""The configuration file and lookups on it."""

from __future__ import annotations

import functools
import json
import os
from dataclasses import dataclass, field

from notarytool.config import paths
from notarytool.config.maps import CertificateMap, CertificateReference, KeyMap, KeySuite


class KeyNotFoundError(LookupError):
    """The signing key is not found."""

    def __init__(self, message: str = "signing key not found") -> None:
        super().__init__(message)


class CertificateNotFoundError(LookupError):
    """The verification certificate is not found."""

    def __init__(self, message: str = "verification certificate not found") -> None:
        super().__init__(message)


def _list(value: object, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"invalid config: {what} must be a list")
    return value


def _object(value: object, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"invalid config: {what} must be an object")
    return value


@dataclass
class ConfigFile:
    """The contents of the configuration file."""

    certificates: CertificateMap = field(default_factory=CertificateMap)
    default_key: str = ""
    keys: KeyMap = field(default_factory=KeyMap)
    insecure_registries: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return the JSON-ready form of the configuration."""
        return {
            "verificationCerts": {
                "certs": [{"name": ref.name, "path": ref.path} for ref in self.certificates],
            },
            "signingKeys": {
                "default": self.default_key,
                "keys": [
                    {"name": key.name, "keyPath": key.key_path, "certPath": key.certificate_path}
                    for key in self.keys
                ],
            },
            "insecureRegistries": list(self.insecure_registries),
        }

    @classmethod
    def from_dict(cls, data: object) -> ConfigFile:
        """Build a configuration from its JSON form."""
        if not isinstance(data, dict):
            raise ValueError("invalid config: expected a JSON object")
        certs_section = _object(data.get("verificationCerts"), "verificationCerts")
        keys_section = _object(data.get("signingKeys"), "signingKeys")
        certificates = CertificateMap(
            [
                CertificateReference(name=item.get("name", ""), path=item.get("path", ""))
                for item in _list(certs_section.get("certs"), "certs")
            ]
        )
        keys = KeyMap(
            [
                KeySuite(
                    name=item.get("name", ""),
                    key_path=item.get("keyPath", ""),
                    certificate_path=item.get("certPath", ""),
                )
                for item in _list(keys_section.get("keys"), "keys")
            ]
        )
        return cls(
            certificates=certificates,
            default_key=keys_section.get("default") or "",
            keys=keys,
            insecure_registries=list(_list(data.get("insecureRegistries"), "insecureRegistries")),
        )

    def save(self, path: str | None = None) -> None:
        """Write the configuration to ``path`` (the default config file if None)."""
        path = path or paths.FILE_PATH
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, mode=0o700, exist_ok=True)
        with open(path, "w", encoding="utf-8") as file:
            json.dump(self.to_dict(), file, indent=4, ensure_ascii=False)
            file.write("\n")


def load(path: str | None = None) -> ConfigFile:
    """Read the configuration from ``path`` (the default config file if None)."""
    with open(path or paths.FILE_PATH, encoding="utf-8") as file:
        return ConfigFile.from_dict(json.load(file))


def load_or_default(path: str | None = None) -> ConfigFile:
    """Read the configuration, or return an empty one if the file does not exist."""
    try:
        return load(path)
    except FileNotFoundError:
        return ConfigFile()


@functools.lru_cache(maxsize=None)
def load_or_default_once() -> ConfigFile:
    """Return the configuration read once per process; for read-only use."""
    return load_or_default()


def is_registry_insecure(target: str) -> bool:
    """Tell whether ``target`` is listed among the insecure registries."""
    try:
        config = load_or_default_once()
    except (OSError, ValueError):
        return False
    folded = target.casefold()
    return any(registry.casefold() == folded for registry in config.insecure_registries)


def resolve_key_path(name: str) -> tuple[str, str]:
    """Return ``(key_path, certificate_path)`` for a key; the default key if ``name`` is empty."""
    config = load_or_default_once()
    if not name:
        name = config.default_key
    result = config.keys.get(name)
    if result is None:
        raise KeyNotFoundError()
    return result


def resolve_certificate_path(name: str) -> str:
    """Return the path of a named verification certificate."""
    config = load_or_default_once()
    path = config.certificates.get(name)
    if path is None:
        raise CertificateNotFoundError()
    return path