"""File helpers that create parent directories on demand."""

from __future__ import annotations

import os


def _ensure_parent(path: str | os.PathLike[str]) -> None:
    parent = os.path.dirname(os.fspath(path))
    if parent:
        os.makedirs(parent, exist_ok=True)


def write_file(path: str | os.PathLike[str], data: bytes) -> None:
    """Write ``data`` to ``path``, creating all parent directories first."""
    _ensure_parent(path)
    with open(path, "wb") as file:
        file.write(data)


def write_file_with_permission(
    path: str | os.PathLike[str],
    data: bytes,
    perm: int,
    overwrite: bool,
) -> None:
    """Write ``data`` to ``path`` with the file mode ``perm``.

    Parent directories are created. When ``overwrite`` is false and the file
    already exists, ``FileExistsError`` is raised.
    """
    _ensure_parent(path)
    flags = os.O_WRONLY | os.O_CREAT | getattr(os, "O_BINARY", 0)
    flags |= os.O_TRUNC if overwrite else os.O_EXCL
    fd = os.open(path, flags, perm)
    with os.fdopen(fd, "wb") as file:
        file.write(data)