"""Deterministic gzip tarballs for compiled packages and rendered jobs.

Member order, mtimes, ownership and the gzip header are fixed so that the same
files always pack to the same bytes.  That keeps duplicate compiles of one
fingerprint byte-identical, which the index relies on.
"""

from __future__ import annotations

import gzip
import io
import tarfile
from pathlib import Path, PurePosixPath


def _normalize(name: str) -> str:
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ValueError(f"Archive member must be a relative path: {name!r}")
    return str(path)


def pack_files(files: dict[str, bytes]) -> bytes:
    """Pack ``relative path -> content`` into a deterministic ``.tgz``."""
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for name in sorted(files):
            data = files[name]
            info = tarfile.TarInfo(name=_normalize(name))
            info.size = len(data)
            info.mode = 0o755 if name.startswith("bin/") else 0o644
            info.mtime = 0
            tar.addfile(info, io.BytesIO(data))

    compressed = io.BytesIO()
    with gzip.GzipFile(fileobj=compressed, mode="wb", mtime=0, filename="") as gz:
        gz.write(raw.getvalue())
    return compressed.getvalue()


def pack_directory(root: Path) -> bytes:
    """Pack every regular file below *root*, keyed by its relative path."""
    root = Path(root)
    files = {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in root.rglob("*")
        if path.is_file()
    }
    return pack_files(files)


def read_files(data: bytes) -> dict[str, bytes]:
    """Return ``relative path -> content`` for every file in a ``.tgz``."""
    result: dict[str, bytes] = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            handle = tar.extractfile(member)
            if handle is not None:
                result[_normalize(member.name)] = handle.read()
    return result


def extract_to(data: bytes, destination: Path) -> None:
    """Extract a ``.tgz`` produced by ``pack_files`` into *destination*."""
    destination = Path(destination)
    for name, content in read_files(data).items():
        target = destination / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        if name.startswith("bin/"):
            target.chmod(0o755)
