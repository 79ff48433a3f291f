"""Writer for the length-prefixed bundle archive format."""

from pathlib import Path
from typing import BinaryIO, final

from ._reader import COPY_BUFFER_SIZE, LENGTH_FIELD


@final
class ArchiveWriter:
    """Writes archive records to a binary stream.

    Records are written in call order; the archive is complete when the
    caller stops writing, since the format has no footer.
    """

    __slots__ = ("_count", "_stream")

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._count = 0

    @property
    def count(self) -> int:
        """Return the number of entries written so far."""
        return self._count

    def _write_header(self, name: str, length: int) -> None:
        encoded = name.encode("utf-8")
        _ = self._stream.write(LENGTH_FIELD.pack(len(encoded)))
        _ = self._stream.write(encoded)
        _ = self._stream.write(LENGTH_FIELD.pack(length))

    def write_entry(self, name: str, data: bytes) -> None:
        """Write one entry with in-memory content.

        Args:
            name: Relative entry path using forward slashes.
            data: Entry content.
        """
        self._write_header(name, len(data))
        _ = self._stream.write(data)
        self._count += 1

    def add_file(self, path: Path, name: str) -> None:
        """Write one entry streamed from a file on disk.

        Args:
            path: File to read the content from.
            name: Relative entry path using forward slashes.
        """
        self._write_header(name, path.stat().st_size)
        with path.open("rb") as source:
            while chunk := source.read(COPY_BUFFER_SIZE):
                _ = self._stream.write(chunk)
        self._count += 1


def pack_directory(source: Path, stream: BinaryIO) -> int:
    """Write every file below a directory as archive entries.

    Files are written in sorted order of their relative POSIX path so the
    output is reproducible.

    Args:
        source: Directory to pack.
        stream: Writable binary stream.

    Returns:
        Number of entries written.
    """
    writer = ArchiveWriter(stream)
    files = sorted(
        (path for path in source.rglob("*") if path.is_file()),
        key=lambda path: path.relative_to(source).as_posix(),
    )
    for path in files:
        writer.add_file(path, path.relative_to(source).as_posix())
    return writer.count
