import hashlib
import io
import json
import tarfile

import pytest

from notarytool.descriptor import Digest
from notarytool.docker.schema2 import (
    MEDIA_TYPE_IMAGE_CONFIG,
    MEDIA_TYPE_LAYER,
    Schema2Error,
    generate_schema2_from_docker_save,
)
from notarytool.registry.client import MEDIA_TYPE_SCHEMA2_MANIFEST

CONFIG = b'{"architecture":"amd64"}'
CONFIG_HEX = hashlib.sha256(CONFIG).hexdigest()
CONFIG_NAME = f"{CONFIG_HEX}.json"


def _docker_save_tar(images, files):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        entries = {"manifest.json": json.dumps(images).encode(), **files}
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _image(layers):
    return {"Config": CONFIG_NAME, "RepoTags": ["example/app:latest"], "Layers": layers}


def _generate(images, files):
    return generate_schema2_from_docker_save(io.BytesIO(_docker_save_tar(images, files)))


def test_config_descriptor():
    manifest = _generate([_image(["a/layer.tar"])], {CONFIG_NAME: CONFIG, "a/layer.tar": b"layer"})
    document = json.loads(manifest.payload())
    assert document["schemaVersion"] == 2
    assert document["mediaType"] == MEDIA_TYPE_SCHEMA2_MANIFEST
    assert document["config"] == {
        "mediaType": MEDIA_TYPE_IMAGE_CONFIG,
        "size": len(CONFIG),
        "digest": f"sha256:{CONFIG_HEX}",
    }


def test_payload_uses_three_space_indent():
    manifest = _generate([_image([])], {CONFIG_NAME: CONFIG})
    assert manifest.payload().startswith(b'{\n   "schemaVersion": 2,\n')
    assert json.loads(manifest.payload())["layers"] == []


def test_layer_descriptors_are_gzip_digests():
    files = {CONFIG_NAME: CONFIG, "a/layer.tar": b"first", "b/layer.tar": b"second", "c/layer.tar": b"first"}
    manifest = _generate([_image(["a/layer.tar", "b/layer.tar", "c/layer.tar"])], files)
    first, second, third = manifest.layers
    for layer in manifest.layers:
        assert layer.media_type == MEDIA_TYPE_LAYER
        assert layer.size > 0
        layer.digest.validate()
    assert first.digest == third.digest
    assert first.digest != second.digest


def test_layer_order_follows_manifest():
    files = {CONFIG_NAME: CONFIG, "a/layer.tar": b"first", "b/layer.tar": b"second"}
    forward = _generate([_image(["a/layer.tar", "b/layer.tar"])], files)
    backward = _generate([_image(["b/layer.tar", "a/layer.tar"])], files)
    assert forward.layers == list(reversed(backward.layers))


def test_generation_is_deterministic():
    files = {CONFIG_NAME: CONFIG, "a/layer.tar": b"layer" * 100}
    first = _generate([_image(["a/layer.tar"])], files)
    second = _generate([_image(["a/layer.tar"])], files)
    assert first.payload() == second.payload()
    assert Digest.from_bytes(first.payload()) == Digest.from_bytes(second.payload())


def test_multiple_images_rejected():
    files = {CONFIG_NAME: CONFIG}
    with pytest.raises(Schema2Error, match="unsupported number of images"):
        _generate([_image([]), _image([])], files)


def test_missing_manifest_rejected():
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        info = tarfile.TarInfo("repositories")
        info.size = 2
        archive.addfile(info, io.BytesIO(b"{}"))
    with pytest.raises(Schema2Error, match="unsupported number of images"):
        generate_schema2_from_docker_save(io.BytesIO(buffer.getvalue()))


def test_missing_layer_rejected():
    with pytest.raises(Schema2Error, match="missing/layer.tar"):
        _generate([_image(["missing/layer.tar"])], {CONFIG_NAME: CONFIG})