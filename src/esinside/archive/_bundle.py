"""Compressed bundle handling.

Bundles are archives compressed as a single zstandard frame. They are
either shipped inside the package (``esinside/resources``) or supplied by
the caller as plain paths.
"""

import os
import stat
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import BinaryIO, cast

import zstandard

from esinside.exceptions import BundleNotFoundError

from ._reader import ArchiveReader
from ._writer import pack_directory

type BundleSource = Path | Traversable

EXECUTABLE_DIRS = frozenset({"bin"})


@contextmanager
def open_bundle(source: BundleSource) -> Iterator[BinaryIO]:
    """Open a bundle and yield its decompressed byte stream.

    Args:
        source: Filesystem path or package resource of the bundle.

    Yields:
        Readable binary stream over the decompressed archive.

    Raises:
        BundleNotFoundError: If the bundle does not exist.
    """
    if not source.is_file():
        msg = f"Bundle not found: {source}"
        raise BundleNotFoundError(msg, bundle=str(source))

    with (
        source.open("rb") as compressed,
        zstandard.ZstdDecompressor().stream_reader(compressed) as reader,
    ):
        yield cast("BinaryIO", reader)


def _mark_executables(paths: list[Path]) -> None:
    """Set the executable bits on files inside ``bin`` directories.

    The archive format carries no file modes, so launch scripts and the
    Java binary would otherwise be extracted without execute permission.
    """
    if os.name == "nt":
        return
    for path in paths:
        if path.parent.name in EXECUTABLE_DIRS:
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def extract_bundle(
    source: BundleSource,
    target: Path,
    *,
    checkpoint: Callable[[], None] | None = None,
) -> list[Path]:
    """Decompress a bundle and extract its entries below a directory.

    Args:
        source: Filesystem path or package resource of the bundle.
        target: Directory to extract into; created if missing.
        checkpoint: Optional callable invoked between copy chunks; raise from
            it to abort extraction.

    Returns:
        Paths of the files written.

    Raises:
        BundleNotFoundError: If the bundle does not exist.
        ArchiveCorruptionError: If the archive is truncated or malformed.
    """
    target.mkdir(parents=True, exist_ok=True)
    with open_bundle(source) as stream:
        written = ArchiveReader(stream).extract_to_directory(
            target, checkpoint=checkpoint
        )
    _mark_executables(written)
    return written


def write_bundle(source_dir: Path, destination: Path) -> int:
    """Pack a directory into a compressed bundle file.

    Args:
        source_dir: Directory whose files become archive entries.
        destination: Bundle file to create or overwrite.

    Returns:
        Number of entries written.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    with (
        destination.open("wb") as raw,
        zstandard.ZstdCompressor().stream_writer(raw) as compressed,
    ):
        return pack_directory(source_dir, cast("BinaryIO", compressed))
