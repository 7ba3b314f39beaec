"""Content digests and descriptors."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

SHA256 = "sha256"

_ALGORITHM_SIZES = {"sha256": 32, "sha384": 48, "sha512": 64}
_HEX_RE = re.compile(r"[a-f0-9]+")
_DIGEST_RE = re.compile(r"[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+")

_INVALID_FORMAT = "invalid checksum digest format"
_INVALID_LENGTH = "invalid checksum digest length"
_UNSUPPORTED = "unsupported digest algorithm"


class DigestError(ValueError):
    """Raised for malformed or unsupported digests."""


@dataclass(frozen=True)
class Digest:
    """A content digest of the form ``algorithm:encoded``."""

    algorithm: str
    encoded: str

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.encoded}"

    @classmethod
    def parse(cls, raw: str) -> Digest:
        """Parse and validate a digest string."""
        index = raw.find(":")
        if index <= 0 or index + 1 == len(raw):
            raise DigestError(_INVALID_FORMAT)
        digest = cls(raw[:index], raw[index + 1 :])
        digest.validate()
        return digest

    @classmethod
    def from_bytes(cls, data: bytes) -> Digest:
        """Return the SHA-256 digest of ``data``."""
        return cls(SHA256, hashlib.sha256(data).hexdigest())

    @classmethod
    def from_encoded(cls, algorithm: str, encoded: str) -> Digest:
        """Build a digest from its parts without validating it."""
        return cls(algorithm, encoded)

    def validate(self) -> None:
        """Raise ``DigestError`` if the digest is malformed or unsupported."""
        if not self.algorithm or not self.encoded:
            raise DigestError(_INVALID_FORMAT)
        size = _ALGORITHM_SIZES.get(self.algorithm)
        if size is None:
            if not _DIGEST_RE.fullmatch(str(self)):
                raise DigestError(_INVALID_FORMAT)
            raise DigestError(_UNSUPPORTED)
        if len(self.encoded) != size * 2:
            raise DigestError(_INVALID_LENGTH)
        if not _HEX_RE.fullmatch(self.encoded):
            raise DigestError(_INVALID_FORMAT)


@dataclass
class Descriptor:
    """Describes a piece of content by digest, size and media type."""

    digest: Digest
    size: int
    media_type: str = ""
    annotations: dict[str, str] | None = None

    def to_dict(self) -> dict:
        """Return the JSON-ready form of the descriptor."""
        result: dict = {}
        if self.media_type:
            result["mediaType"] = self.media_type
        result["digest"] = str(self.digest)
        result["size"] = self.size
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        return result


def descriptor_from_bytes(data: bytes) -> Descriptor:
    """Compute the basic descriptor of ``data``."""
    return Descriptor(digest=Digest.from_bytes(data), size=len(data))