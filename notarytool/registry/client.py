"""A registry client that stores and finds signatures."""

from __future__ import annotations

import io
import json
import re
from abc import ABC, abstractmethod
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import requests

from notarytool.descriptor import Descriptor, Digest, descriptor_from_bytes
from notarytool.ioutil import read_all_verified
from notarytool.registry.auth import Transport, default_transport
from notarytool.registry.reference import Reference

ARTIFACT_TYPE_NOTATION = "application/vnd.cncf.notary.v2.signature"
MEDIA_TYPE_NOTATION_SIGNATURE = "application/jose+json"

MEDIA_TYPE_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_SCHEMA2_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_ARTIFACT_MANIFEST = "application/vnd.cncf.oras.artifact.manifest.v1+json"

SUPPORTED_MEDIA_TYPES = (
    MEDIA_TYPE_MANIFEST_LIST,
    MEDIA_TYPE_SCHEMA2_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_ARTIFACT_MANIFEST,
)

MAX_BLOB_SIZE_LIMIT = 32 * 1024 * 1024
MAX_MANIFEST_SIZE_LIMIT = 4 * 1024 * 1024
MAX_METADATA_READ_LIMIT = 4 * 1024 * 1024

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


class RegistryError(Exception):
    """Raised when the registry answers unexpectedly."""


class SignatureRepository(ABC):
    """A storage for signatures."""

    @abstractmethod
    def lookup(self, manifest_digest: Digest) -> list[Digest]:
        """Find all signatures for the specified manifest."""

    @abstractmethod
    def get(self, signature_digest: Digest) -> bytes:
        """Download the signature with the specified digest."""

    @abstractmethod
    def put(self, signature: bytes) -> Descriptor:
        """Upload the signature to the registry."""

    @abstractmethod
    def link(self, manifest: Descriptor, signature: Descriptor) -> Descriptor:
        """Create an artifact linking the manifest and the signature."""


def _status(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


def _read_limited(response: requests.Response, limit: int) -> bytes:
    data = bytearray()
    for chunk in response.iter_content(chunk_size=64 * 1024):
        data += chunk
        if len(data) >= limit:
            break
    return bytes(data[:limit])


def _location(response: requests.Response) -> str:
    location = response.headers.get("Location")
    if not location:
        raise RegistryError("http: no Location header in response")
    return urljoin(response.url or "", location)


def _with_query(url: str, name: str, value: str) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.append((name, value))
    query.sort(key=lambda item: item[0])
    return urlunsplit(parts._replace(query=urlencode(query)))


def _loose_digest(raw: str) -> Digest:
    algorithm, _, encoded = raw.partition(":")
    return Digest.from_encoded(algorithm, encoded)


def _artifact_descriptor(desc: Descriptor) -> dict:
    result: dict = {}
    if desc.media_type:
        result["mediaType"] = desc.media_type
    result["digest"] = str(desc.digest)
    result["size"] = desc.size
    return result


class RepositoryClient(SignatureRepository):
    """Client of one repository in a registry."""

    def __init__(self, transport: Transport, base: str, name: str) -> None:
        self.transport = transport
        self.base = base
        self.name = name

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        data: bytes | None = None,
    ) -> requests.Response:
        request = requests.Request(method, url, headers=headers, data=data).prepare()
        return self.transport.round_trip(request)

    def get_manifest_descriptor(self, ref: str) -> Descriptor:
        """Return the descriptor of a manifest by tag or digest."""
        url = f"{self.base}/v2/{self.name}/manifests/{ref}"
        headers = {"Connection": "close", "Accept": ", ".join(SUPPORTED_MEDIA_TYPES)}
        try:
            request = requests.Request("GET", url, headers=headers).prepare()
        except (requests.RequestException, ValueError) as err:
            raise RegistryError(f"invalid reference: {ref}") from err
        try:
            response = self.transport.round_trip(request)
        except requests.RequestException as err:
            raise RegistryError(f"{url}: {err}") from err
        response.close()
        if response.status_code != 200:
            raise RegistryError(f"{url}: {_status(response)}")

        header = response.headers
        media_type = header.get("Content-Type", "")
        if not media_type:
            raise RegistryError(f"{url}: missing Content-Type")
        content_digest = header.get("Docker-Content-Digest", "")
        if not content_digest:
            raise RegistryError(f"{url}: missing Docker-Content-Digest")
        try:
            parsed_digest = Digest.parse(content_digest)
        except ValueError as err:
            raise RegistryError(f"{url}: invalid Docker-Content-Digest: {content_digest}") from err
        length = header.get("Content-Length", "")
        if not length:
            raise RegistryError(f"{url}: missing Content-Length")
        if not _INTEGER_RE.fullmatch(length):
            raise RegistryError(f"{url}: invalid Content-Length")
        return Descriptor(digest=parsed_digest, size=int(length), media_type=media_type)

    def lookup(self, manifest_digest: Digest) -> list[Digest]:
        url = f"{self.base}/oras/artifacts/v1/{self.name}/manifests/{manifest_digest}/referrers"
        url = _with_query(url, "artifactType", ARTIFACT_TYPE_NOTATION)
        response = self._send("GET", url)
        try:
            if response.status_code != 200:
                raise RegistryError(f"failed to lookup signatures: {_status(response)}")
            result = json.loads(_read_limited(response, MAX_METADATA_READ_LIMIT))
        finally:
            response.close()
        if not isinstance(result, dict):
            raise ValueError("invalid referrers response")

        digests: list[Digest] = []
        for desc in result.get("references") or []:
            if (
                desc.get("artifactType") != ARTIFACT_TYPE_NOTATION
                or desc.get("mediaType") != MEDIA_TYPE_ARTIFACT_MANIFEST
            ):
                continue
            raw = desc.get("digest", "")
            try:
                artifact = self._get_artifact_manifest(Digest.parse(raw))
            except (RegistryError, ValueError, requests.RequestException) as err:
                raise RegistryError(f"failed to fetch manifest: {raw}: {err}") from err
            digests.extend(_loose_digest(blob.get("digest", "")) for blob in artifact.get("blobs") or [])
        return digests

    def get(self, signature_digest: Digest) -> bytes:
        return self._get_blob(signature_digest)

    def put(self, signature: bytes) -> Descriptor:
        desc = descriptor_from_bytes(signature)
        desc.media_type = MEDIA_TYPE_NOTATION_SIGNATURE
        self._put_blob(signature, desc.digest)
        return desc

    def link(self, manifest: Descriptor, signature: Descriptor) -> Descriptor:
        artifact = {
            "mediaType": MEDIA_TYPE_ARTIFACT_MANIFEST,
            "artifactType": ARTIFACT_TYPE_NOTATION,
            "blobs": [_artifact_descriptor(signature)],
            "subject": _artifact_descriptor(manifest),
        }
        artifact_json = json.dumps(artifact, separators=(",", ":")).encode()
        desc = descriptor_from_bytes(artifact_json)
        self._put_manifest(artifact_json, desc.digest)
        return desc

    def _get_blob(self, digest: Digest) -> bytes:
        url = f"{self.base}/v2/{self.name}/blobs/{digest}"
        response = self._send("GET", url)
        try:
            if response.status_code == 200:
                return self._read_verified(response, MAX_BLOB_SIZE_LIMIT, digest)
            if response.status_code != 307:
                raise RegistryError(f"failed to get blob: {_status(response)}")
            location = _location(response)
        finally:
            response.close()

        response = self._send("GET", location)
        try:
            if response.status_code != 200:
                raise RegistryError(f"failed to get blob: {_status(response)}")
            return self._read_verified(response, MAX_BLOB_SIZE_LIMIT, digest)
        finally:
            response.close()

    def _put_blob(self, blob: bytes, digest: Digest) -> None:
        url = f"{self.base}/v2/{self.name}/blobs/uploads/"
        response = self._send("POST", url)
        response.close()
        if response.status_code != 202:
            raise RegistryError(f"failed to init upload: {_status(response)}")

        location = _with_query(_location(response), "digest", str(digest))
        response = self._send(
            "PUT", location, headers={"Content-Type": "application/octet-stream"}, data=blob
        )
        response.close()
        if response.status_code != 201:
            raise RegistryError(f"failed to upload: {_status(response)}")

    def _put_manifest(self, blob: bytes, digest: Digest) -> None:
        url = f"{self.base}/v2/{self.name}/manifests/{digest}"
        response = self._send(
            "PUT", url, headers={"Content-Type": MEDIA_TYPE_ARTIFACT_MANIFEST}, data=blob
        )
        response.close()
        if response.status_code != 201:
            raise RegistryError(f"failed to put manifest: {_status(response)}")

    def _get_manifest(self, media_type: str, digest: Digest) -> bytes:
        url = f"{self.base}/v2/{self.name}/manifests/{digest}"
        response = self._send("GET", url, headers={"Accept": media_type})
        try:
            if response.status_code != 200:
                raise RegistryError(f"failed to get manifest: {_status(response)}")
            return self._read_verified(response, MAX_MANIFEST_SIZE_LIMIT, digest)
        finally:
            response.close()

    def _get_artifact_manifest(self, digest: Digest) -> dict:
        manifest = json.loads(self._get_manifest(MEDIA_TYPE_ARTIFACT_MANIFEST, digest))
        if not isinstance(manifest, dict):
            raise ValueError("invalid artifact manifest")
        return manifest

    @staticmethod
    def _read_verified(response: requests.Response, limit: int, digest: Digest) -> bytes:
        return read_all_verified(io.BytesIO(_read_limited(response, limit)), digest)


class RegistryClient:
    """Client of a registry, handing out repository clients."""

    def __init__(self, transport: Transport | None, name: str, plain_http: bool) -> None:
        self.transport = transport or default_transport()
        scheme = "http" if plain_http else "https"
        self.base = f"{scheme}://{name}"

    def repository(self, name: str) -> RepositoryClient:
        """Return a client for the named repository."""
        return RepositoryClient(self.transport, self.base, name)


def get_manifest_descriptor(
    transport: Transport | None, ref: Reference, plain_http: bool
) -> Descriptor:
    """Return the descriptor of the manifest that ``ref`` points to."""
    registry = RegistryClient(transport, ref.host(), plain_http)
    return registry.repository(ref.repository).get_manifest_descriptor(ref.reference_or_default())