"""Stream helpers: byte counting and digest-verified reading."""

from __future__ import annotations

import hashlib
from typing import Any, BinaryIO

from notarytool.descriptor import Digest


class DigestMismatchError(ValueError):
    """Raised when read content does not match its expected digest."""


class CountWriter:
    """Writer wrapper that counts the bytes written through it."""

    def __init__(self, writer: Any) -> None:
        self.writer = writer
        self.n = 0

    def write(self, data: bytes) -> int:
        """Write ``data`` to the wrapped writer and return the bytes written."""
        written = self.writer.write(data)
        if written is None:
            written = len(data)
        self.n += written
        return written


def read_all_verified(reader: BinaryIO, expected: Digest) -> bytes:
    """Read everything from ``reader`` and return it if it matches ``expected``."""
    expected.validate()
    content = reader.read()
    actual = Digest(expected.algorithm, hashlib.new(expected.algorithm, content).hexdigest())
    if actual != expected:
        raise DigestMismatchError(f"mismatch digest: expect {expected}: got {actual}")
    return content