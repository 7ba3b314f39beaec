"""Local cache of signatures, laid out by manifest digest."""

from __future__ import annotations

import os
import stat

from notarytool.config import paths
from notarytool.descriptor import Digest
from notarytool.osutil import write_file
from notarytool.registry.client import SignatureRepository


class CacheError(Exception):
    """Raised when the signature cache cannot be read or filled."""


def _sorted_entries(path: str) -> list[os.DirEntry]:
    with os.scandir(path) as entries:
        return sorted(entries, key=lambda entry: entry.name)


def pull_signature(sig_repo: SignatureRepository, manifest_digest: Digest, sig_digest: Digest) -> None:
    """Download a signature into the cache unless it is already there."""
    sig_path = paths.signature_path(manifest_digest, sig_digest)
    try:
        info = os.stat(sig_path)
    except FileNotFoundError:
        pass
    else:
        if stat.S_ISDIR(info.st_mode):
            raise CacheError(f"found directory at the signature file path: {sig_path}")
        return

    try:
        sig = sig_repo.get(sig_digest)
    except Exception as err:
        raise CacheError(f"get signature failure: {sig_digest}: {err}") from err
    try:
        write_file(sig_path, sig)
    except OSError as err:
        raise CacheError(f"fail to write signature: {sig_digest}: {err}") from err


def signature_digests(manifest_digest: Digest) -> list[Digest]:
    """Return the digests of the cached signatures of a manifest."""
    root = paths.signature_root_path(manifest_digest)
    try:
        algorithm_entries = _sorted_entries(root)
    except FileNotFoundError:
        return []

    digests: list[Digest] = []
    for algorithm_entry in algorithm_entries:
        if not algorithm_entry.is_dir(follow_symlinks=False):
            continue
        algorithm = algorithm_entry.name
        for signature_entry in _sorted_entries(os.path.join(root, algorithm)):
            if not signature_entry.is_file(follow_symlinks=False):
                continue
            name = signature_entry.name
            if not name.endswith(paths.SIGNATURE_EXTENSION):
                continue
            encoded = name[: -len(paths.SIGNATURE_EXTENSION)]
            digest = Digest.from_encoded(algorithm, encoded)
            digest.validate()
            digests.append(digest)
    return digests