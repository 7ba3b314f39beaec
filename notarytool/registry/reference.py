"""References to objects stored in a registry."""

from __future__ import annotations

from dataclasses import dataclass

from notarytool.descriptor import Digest, DigestError

_DOCKER_HUB = "docker.io"
_DOCKER_HUB_HOST = "registry-1.docker.io"
_DEFAULT_TAG = "latest"


class InvalidReferenceError(ValueError):
    """Raised when a reference string cannot be parsed."""


@dataclass
class Reference:
    """A registry, a repository and an optional tag or digest."""

    registry: str
    repository: str
    reference: str = ""

    def host(self) -> str:
        """Return the host name serving the registry."""
        if self.registry == _DOCKER_HUB:
            return _DOCKER_HUB_HOST
        return self.registry

    def reference_or_default(self) -> str:
        """Return the reference, or ``latest`` if it is empty."""
        return self.reference or _DEFAULT_TAG

    def digest(self) -> Digest:
        """Return the reference as a validated digest."""
        return Digest.parse(self.reference)

    def __str__(self) -> str:
        ref = f"{self.registry}/{self.repository}"
        if not self.reference:
            return ref
        try:
            digest = self.digest()
        except DigestError:
            return f"{ref}:{self.reference}"
        return f"{ref}@{digest}"


def parse_reference(raw: str) -> Reference:
    """Split ``registry/repository[@digest|:tag]`` into its parts."""
    registry, separator, path = raw.partition("/")
    if not separator:
        raise InvalidReferenceError("invalid reference")
    for delimiter in ("@", ":"):
        repository, found, reference = path.partition(delimiter)
        if found:
            return Reference(registry, repository, reference)
    return Reference(registry, path)