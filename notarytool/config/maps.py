"""Ordered, name-indexed collections of keys and certificates."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass
class KeySuite:
    """A named signing key with its certificate."""

    name: str
    key_path: str
    certificate_path: str


@dataclass
class KeyMap:
    """Key suites indexed by name, keeping insertion order."""

    entries: list[KeySuite] = field(default_factory=list)

    def __iter__(self) -> Iterator[KeySuite]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def _find(self, name: str) -> KeySuite | None:
        return next((entry for entry in self.entries if entry.name == name), None)

    def append(self, name: str, key_path: str, cert_path: str) -> bool:
        """Add a uniquely named key suite; return False if the name exists."""
        if self._find(name) is not None:
            return False
        self.entries.append(KeySuite(name, key_path, cert_path))
        return True

    def remove(self, name: str) -> bool:
        """Remove the named key suite; return True if one was removed."""
        entry = self._find(name)
        if entry is None:
            return False
        self.entries.remove(entry)
        return True

    def get(self, name: str) -> tuple[str, str] | None:
        """Return ``(key_path, certificate_path)`` for a name, or None."""
        entry = self._find(name)
        if entry is None:
            return None
        return entry.key_path, entry.certificate_path


@dataclass
class CertificateReference:
    """A named certificate file path."""

    name: str
    path: str


@dataclass
class CertificateMap:
    """Certificate references indexed by name, keeping insertion order."""

    entries: list[CertificateReference] = field(default_factory=list)

    def __iter__(self) -> Iterator[CertificateReference]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def _find(self, name: str) -> CertificateReference | None:
        return next((entry for entry in self.entries if entry.name == name), None)

    def append(self, name: str, path: str) -> bool:
        """Add a uniquely named path; return False if the name exists."""
        if self._find(name) is not None:
            return False
        self.entries.append(CertificateReference(name, path))
        return True

    def remove(self, name: str) -> bool:
        """Remove the named path; return True if one was removed."""
        entry = self._find(name)
        if entry is None:
            return False
        self.entries.remove(entry)
        return True

    def get(self, name: str) -> str | None:
        """Return the path for a name, or None."""
        entry = self._find(name)
        return None if entry is None else entry.path