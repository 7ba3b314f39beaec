"""Build a docker schema2 manifest from the output of ``docker save``."""

from __future__ import annotations

import gzip
import hashlib
import io
import json
import shutil
import tarfile
from dataclasses import dataclass, field
from typing import BinaryIO

from notarytool.descriptor import SHA256, Descriptor, Digest
from notarytool.ioutil import CountWriter
from notarytool.registry.client import MEDIA_TYPE_SCHEMA2_MANIFEST

MEDIA_TYPE_IMAGE_CONFIG = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
SCHEMA_VERSION = 2

_MANIFEST_NAME = "manifest.json"
_LAYER_SUFFIX = "/layer.tar"
_JSON_SUFFIX = ".json"


class Schema2Error(ValueError):
    """Raised when a ``docker save`` archive cannot be turned into a manifest."""


def _descriptor_dict(desc: Descriptor) -> dict:
    result: dict = {}
    if desc.media_type:
        result["mediaType"] = desc.media_type
    if desc.size:
        result["size"] = desc.size
    result["digest"] = str(desc.digest)
    return result


@dataclass
class Schema2Manifest:
    """A docker image manifest, schema version 2."""

    config: Descriptor
    layers: list[Descriptor] = field(default_factory=list)
    schema_version: int = SCHEMA_VERSION
    media_type: str = MEDIA_TYPE_SCHEMA2_MANIFEST

    def payload(self) -> bytes:
        """Return the canonical JSON bytes of the manifest."""
        document: dict = {"schemaVersion": self.schema_version}
        if self.media_type:
            document["mediaType"] = self.media_type
        document["config"] = _descriptor_dict(self.config)
        document["layers"] = [_descriptor_dict(layer) for layer in self.layers]
        return json.dumps(document, indent=3, ensure_ascii=False).encode("utf-8")


@dataclass
class _ImageEntry:
    config: str
    repo_tags: list[str]
    layers: list[str]


class _HashWriter:
    def __init__(self) -> None:
        self.hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self.hash.update(data)
        return len(data)


def _field(item: dict, name: str):
    if name in item:
        return item[name]
    lowered = name.lower()
    return next((value for key, value in item.items() if key.lower() == lowered), None)


def _parse_manifest(data: bytes) -> list[_ImageEntry]:
    items = json.loads(data)
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise Schema2Error("invalid manifest.json: expected a list of objects")
    return [
        _ImageEntry(
            config=_field(item, "Config") or "",
            repo_tags=list(_field(item, "RepoTags") or []),
            layers=list(_field(item, "Layers") or []),
        )
        for item in items
    ]


def _layer_descriptor(stream: BinaryIO) -> Descriptor:
    hasher = _HashWriter()
    counter = CountWriter(hasher)
    with gzip.GzipFile(filename="", mode="wb", compresslevel=6, fileobj=counter, mtime=0) as compressed:
        shutil.copyfileobj(stream, compressed)
    return Descriptor(
        digest=Digest(SHA256, hasher.hash.hexdigest()),
        size=counter.n,
        media_type=MEDIA_TYPE_LAYER,
    )


def _member_stream(archive: tarfile.TarFile, member: tarfile.TarInfo) -> BinaryIO:
    if member.isreg():
        stream = archive.extractfile(member)
        if stream is not None:
            return stream
    return io.BytesIO(b"")


def _extract_tar(reader: BinaryIO) -> tuple[list[_ImageEntry], dict[str, Descriptor]]:
    images: list[_ImageEntry] = []
    descriptors: dict[str, Descriptor] = {}
    try:
        with tarfile.open(fileobj=reader, mode="r|") as archive:
            for member in archive:
                name = member.name
                if name == _MANIFEST_NAME:
                    images = _parse_manifest(_member_stream(archive, member).read())
                elif name.endswith(_LAYER_SUFFIX):
                    descriptors[name] = _layer_descriptor(_member_stream(archive, member))
                elif name.endswith(_JSON_SUFFIX):
                    descriptors[name] = Descriptor(
                        digest=Digest.from_encoded(SHA256, name[: -len(_JSON_SUFFIX)]),
                        size=member.size,
                        media_type=MEDIA_TYPE_IMAGE_CONFIG,
                    )
    except tarfile.TarError as err:
        raise Schema2Error(str(err)) from err
    return images, descriptors


def _lookup(descriptors: dict[str, Descriptor], name: str) -> Descriptor:
    try:
        return descriptors[name]
    except KeyError:
        raise Schema2Error(f"{name}: not found in archive") from None


def generate_schema2_from_docker_save(reader: BinaryIO) -> Schema2Manifest:
    """Generate a schema2 manifest from a ``docker save`` tar stream."""
    images, descriptors = _extract_tar(reader)
    if len(images) != 1:
        raise Schema2Error("unsupported number of images")
    image = images[0]
    layers = [_lookup(descriptors, layer) for layer in image.layers]
    return Schema2Manifest(config=_lookup(descriptors, image.config), layers=layers)