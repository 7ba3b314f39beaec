import json
import re
from urllib.parse import parse_qs, urlsplit

import pytest
import responses

from notarytool.descriptor import Descriptor, Digest
from notarytool.ioutil import DigestMismatchError
from notarytool.registry.client import (
    ARTIFACT_TYPE_NOTATION,
    MEDIA_TYPE_ARTIFACT_MANIFEST,
    MEDIA_TYPE_NOTATION_SIGNATURE,
    MEDIA_TYPE_SCHEMA2_MANIFEST,
    SUPPORTED_MEDIA_TYPES,
    RegistryClient,
    RegistryError,
    SignatureRepository,
    get_manifest_descriptor,
)
from notarytool.registry.reference import parse_reference

BASE = "https://registry.example.com"
MANIFEST = b'{"schemaVersion":2}'
MANIFEST_DIGEST = Digest.from_bytes(MANIFEST)
SIGNATURE = b"signature-bytes"
SIG_DIGEST = Digest.from_bytes(SIGNATURE)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _repo(plain_http=False):
    return RegistryClient(None, "registry.example.com", plain_http).repository("app")


def test_repository_is_signature_repository():
    repo = _repo()
    assert isinstance(repo, SignatureRepository)
    assert repo.base == BASE
    assert repo.name == "app"
    assert _repo(plain_http=True).base == "http://registry.example.com"


def test_get_manifest_descriptor(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}/v2/app/manifests/v1",
        body=MANIFEST,
        headers={
            "Content-Type": MEDIA_TYPE_SCHEMA2_MANIFEST,
            "Docker-Content-Digest": str(MANIFEST_DIGEST),
            "Content-Length": str(len(MANIFEST)),
        },
    )
    desc = _repo().get_manifest_descriptor("v1")
    assert desc == Descriptor(digest=MANIFEST_DIGEST, size=len(MANIFEST), media_type=MEDIA_TYPE_SCHEMA2_MANIFEST)
    request = mocked.calls[0].request
    assert request.headers["Connection"] == "close"
    assert all(media_type in request.headers["Accept"] for media_type in SUPPORTED_MEDIA_TYPES)


def test_get_manifest_descriptor_missing_digest(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}/v2/app/manifests/v1",
        body=MANIFEST,
        headers={"Content-Type": MEDIA_TYPE_SCHEMA2_MANIFEST},
    )
    with pytest.raises(RegistryError, match="missing Docker-Content-Digest"):
        _repo().get_manifest_descriptor("v1")


def test_get_manifest_descriptor_not_found(mocked):
    mocked.add(responses.GET, f"{BASE}/v2/app/manifests/v1", status=404)
    with pytest.raises(RegistryError, match="404"):
        _repo().get_manifest_descriptor("v1")


def test_module_get_manifest_descriptor_uses_host_and_default_tag(mocked):
    url = "https://registry-1.docker.io/v2/library/app/manifests/latest"
    mocked.add(
        responses.GET,
        url,
        body=MANIFEST,
        headers={
            "Content-Type": MEDIA_TYPE_SCHEMA2_MANIFEST,
            "Docker-Content-Digest": str(MANIFEST_DIGEST),
            "Content-Length": str(len(MANIFEST)),
        },
    )
    desc = get_manifest_descriptor(None, parse_reference("docker.io/library/app"), False)
    assert desc.digest == MANIFEST_DIGEST
    assert mocked.calls[0].request.url == url


def test_get_blob(mocked):
    mocked.add(responses.GET, f"{BASE}/v2/app/blobs/{SIG_DIGEST}", body=SIGNATURE)
    assert _repo().get(SIG_DIGEST) == SIGNATURE


def test_get_blob_digest_mismatch(mocked):
    mocked.add(responses.GET, f"{BASE}/v2/app/blobs/{SIG_DIGEST}", body=b"tampered")
    with pytest.raises(DigestMismatchError):
        _repo().get(SIG_DIGEST)


def test_get_blob_follows_temporary_redirect(mocked):
    target = "https://storage.example.com/blob"
    mocked.add(
        responses.GET, f"{BASE}/v2/app/blobs/{SIG_DIGEST}", status=307, headers={"Location": target}
    )
    mocked.add(responses.GET, target, body=SIGNATURE)
    assert _repo().get(SIG_DIGEST) == SIGNATURE
    assert mocked.calls[1].request.url == target


def test_get_blob_error_status(mocked):
    mocked.add(responses.GET, f"{BASE}/v2/app/blobs/{SIG_DIGEST}", status=500)
    with pytest.raises(RegistryError, match="failed to get blob"):
        _repo().get(SIG_DIGEST)


def test_put_uploads_blob(mocked):
    mocked.add(
        responses.POST,
        f"{BASE}/v2/app/blobs/uploads/",
        status=202,
        headers={"Location": "/v2/app/blobs/uploads/session?state=abc"},
    )
    mocked.add(responses.PUT, f"{BASE}/v2/app/blobs/uploads/session", status=201)

    desc = _repo().put(SIGNATURE)

    assert desc.digest == SIG_DIGEST
    assert desc.size == len(SIGNATURE)
    assert desc.media_type == MEDIA_TYPE_NOTATION_SIGNATURE
    upload = mocked.calls[1].request
    assert upload.body == SIGNATURE
    assert upload.headers["Content-Type"] == "application/octet-stream"
    assert parse_qs(urlsplit(upload.url).query) == {"state": ["abc"], "digest": [str(SIG_DIGEST)]}


def test_put_fails_when_upload_not_accepted(mocked):
    mocked.add(responses.POST, f"{BASE}/v2/app/blobs/uploads/", status=403)
    with pytest.raises(RegistryError, match="failed to init upload"):
        _repo().put(SIGNATURE)


def test_link_puts_artifact_manifest(mocked):
    manifest = Descriptor(digest=MANIFEST_DIGEST, size=len(MANIFEST), media_type=MEDIA_TYPE_SCHEMA2_MANIFEST)
    signature = Descriptor(
        digest=SIG_DIGEST, size=len(SIGNATURE), media_type=MEDIA_TYPE_NOTATION_SIGNATURE
    )
    captured = {}

    def _callback(request):
        captured["body"] = request.body
        captured["url"] = request.url
        captured["content_type"] = request.headers["Content-Type"]
        return (201, {}, b"")

    mocked.add_callback(responses.PUT, re.compile(rf"{BASE}/v2/app/manifests/.+"), callback=_callback)

    desc = _repo().link(manifest, signature)

    body = captured["body"]
    assert desc.digest == Digest.from_bytes(body)
    assert desc.size == len(body)
    assert captured["url"] == f"{BASE}/v2/app/manifests/{desc.digest}"
    assert captured["content_type"] == MEDIA_TYPE_ARTIFACT_MANIFEST
    artifact = json.loads(body)
    assert artifact["mediaType"] == MEDIA_TYPE_ARTIFACT_MANIFEST
    assert artifact["artifactType"] == ARTIFACT_TYPE_NOTATION
    assert artifact["blobs"] == [
        {"mediaType": MEDIA_TYPE_NOTATION_SIGNATURE, "digest": str(SIG_DIGEST), "size": len(SIGNATURE)}
    ]
    assert artifact["subject"] == {
        "mediaType": MEDIA_TYPE_SCHEMA2_MANIFEST,
        "digest": str(MANIFEST_DIGEST),
        "size": len(MANIFEST),
    }


def test_lookup_returns_signature_digests(mocked):
    artifact = json.dumps(
        {
            "mediaType": MEDIA_TYPE_ARTIFACT_MANIFEST,
            "artifactType": ARTIFACT_TYPE_NOTATION,
            "blobs": [{"digest": str(SIG_DIGEST), "size": len(SIGNATURE)}],
        }
    ).encode()
    artifact_digest = Digest.from_bytes(artifact)
    other_digest = Digest.from_bytes(b"other")
    mocked.add(
        responses.GET,
        f"{BASE}/oras/artifacts/v1/app/manifests/{MANIFEST_DIGEST}/referrers",
        json={
            "references": [
                {
                    "mediaType": MEDIA_TYPE_ARTIFACT_MANIFEST,
                    "artifactType": ARTIFACT_TYPE_NOTATION,
                    "digest": str(artifact_digest),
                },
                {
                    "mediaType": MEDIA_TYPE_ARTIFACT_MANIFEST,
                    "artifactType": "application/vnd.example.other",
                    "digest": str(other_digest),
                },
            ]
        },
    )
    mocked.add(responses.GET, f"{BASE}/v2/app/manifests/{artifact_digest}", body=artifact)

    assert _repo().lookup(MANIFEST_DIGEST) == [SIG_DIGEST]
    query = parse_qs(urlsplit(mocked.calls[0].request.url).query)
    assert query == {"artifactType": [ARTIFACT_TYPE_NOTATION]}
    assert mocked.calls[1].request.headers["Accept"] == MEDIA_TYPE_ARTIFACT_MANIFEST
    assert len(mocked.calls) == 2


def test_lookup_failure_status(mocked):
    mocked.add(
        responses.GET,
        f"{BASE}/oras/artifacts/v1/app/manifests/{MANIFEST_DIGEST}/referrers",
        status=404,
    )
    with pytest.raises(RegistryError, match="failed to lookup signatures"):
        _repo().lookup(MANIFEST_DIGEST)


def test_lookup_manifest_fetch_failure(mocked):
    artifact_digest = Digest.from_bytes(b"artifact")
    mocked.add(
        responses.GET,
        f"{BASE}/oras/artifacts/v1/app/manifests/{MANIFEST_DIGEST}/referrers",
        json={
            "references": [
                {
                    "mediaType": MEDIA_TYPE_ARTIFACT_MANIFEST,
                    "artifactType": ARTIFACT_TYPE_NOTATION,
                    "digest": str(artifact_digest),
                }
            ]
        },
    )
    mocked.add(responses.GET, f"{BASE}/v2/app/manifests/{artifact_digest}", status=404)
    with pytest.raises(RegistryError, match="failed to fetch manifest"):
        _repo().lookup(MANIFEST_DIGEST)