"""Streaming reader for the length-prefixed bundle archive format.

Each record is laid out as::

    int32 LE  name length
    bytes     UTF-8 name
    int32 LE  content length
    bytes     content

There is no header, footer or entry count. The archive ends where the
underlying stream ends, so running out of bytes at a record boundary is the
normal end of the archive, while running out inside a record is corruption.
"""

import struct
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Final, final

from esinside.exceptions import ArchiveCorruptionError

LENGTH_FIELD: Final = struct.Struct("<i")
COPY_BUFFER_SIZE: Final = 81920


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """Header of a single archive record.

    Attributes:
        name: Relative path of the entry, using forward slashes.
        length: Number of content bytes that follow the header.
    """

    name: str
    length: int


@dataclass(frozen=True, slots=True)
class EntryFound:
    """A complete entry header was read; its content is pending."""

    entry: ArchiveEntry


@dataclass(frozen=True, slots=True)
class EndOfArchive:
    """The stream ended cleanly at a record boundary."""


@dataclass(frozen=True, slots=True)
class ArchiveCorrupt:
    """The stream ended or was malformed inside a record header."""

    reason: str
    entry_name: str | None = None
    expected: int | None = None
    actual: int | None = None

    def to_error(self) -> ArchiveCorruptionError:
        """Build the exception describing this corruption."""
        return ArchiveCorruptionError(
            self.reason,
            entry_name=self.entry_name,
            expected=self.expected,
            actual=self.actual,
        )


type ReadResult = EntryFound | EndOfArchive | ArchiveCorrupt


def _unsafe_name_reason(name: str) -> str | None:
    """Return why an entry name cannot be extracted, or None if it is safe."""
    if not name:
        return "Entry name is empty"
    normalized = name.replace("\\", "/")
    path = PurePosixPath(normalized)
    if path.is_absolute() or (len(normalized) > 1 and normalized[1] == ":"):
        return f"Entry name '{name}' is absolute"
    if ".." in path.parts:
        return f"Entry name '{name}' escapes the extraction root"
    return None


@final
class ArchiveReader:
    """Reads archive records sequentially from a binary stream.

    The stream must already be decompressed. Short reads from the stream are
    tolerated; the reader keeps reading until a field is complete or the
    stream is exhausted.

    After a header has been read the entry's content is pending and must be
    consumed (by ``extract_to_stream``, ``read_content`` or ``skip_content``)
    before the next header can be read.
    """

    __slots__ = ("_current", "_pending", "_stream")

    def __init__(self, stream: BinaryIO) -> None:
        """Initialize the reader.

        Args:
            stream: Readable binary stream positioned at a record boundary.
        """
        self._stream = stream
        self._current: ArchiveEntry | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Return the number of content bytes not yet consumed."""
        return self._pending

    def _read_up_to(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def try_read_entry(self) -> ReadResult:
        """Attempt to read the next record header.

        Returns:
            EntryFound with the header, EndOfArchive when the stream is
            exhausted at a record boundary, or ArchiveCorrupt describing why
            the header could not be read.

        Raises:
            ArchiveCorruptionError: If the previous entry's content has not
                been fully consumed.
        """
        if self._pending:
            msg = (
                f"Content of entry '{self._current.name if self._current else ''}' "
                f"not consumed ({self._pending} bytes pending)"
            )
            raise ArchiveCorruptionError(
                msg,
                entry_name=self._current.name if self._current else None,
                expected=self._pending,
                actual=0,
            )

        raw = self._read_up_to(LENGTH_FIELD.size)
        if not raw:
            self._current = None
            return EndOfArchive()
        if len(raw) < LENGTH_FIELD.size:
            return ArchiveCorrupt(
                "Truncated name length field",
                expected=LENGTH_FIELD.size,
                actual=len(raw),
            )

        (name_length,) = LENGTH_FIELD.unpack(raw)
        if name_length < 0:
            return ArchiveCorrupt(f"Negative name length {name_length}")

        raw_name = self._read_up_to(name_length)
        if len(raw_name) < name_length:
            return ArchiveCorrupt(
                "Truncated entry name",
                expected=name_length,
                actual=len(raw_name),
            )
        try:
            name = raw_name.decode("utf-8")
        except UnicodeDecodeError as e:
            return ArchiveCorrupt(f"Entry name is not valid UTF-8: {e}")

        unsafe = _unsafe_name_reason(name)
        if unsafe is not None:
            return ArchiveCorrupt(unsafe, entry_name=name)

        raw = self._read_up_to(LENGTH_FIELD.size)
        if len(raw) < LENGTH_FIELD.size:
            return ArchiveCorrupt(
                "Truncated content length field",
                entry_name=name,
                expected=LENGTH_FIELD.size,
                actual=len(raw),
            )
        (content_length,) = LENGTH_FIELD.unpack(raw)
        if content_length < 0:
            return ArchiveCorrupt(
                f"Negative content length {content_length}",
                entry_name=name,
            )

        entry = ArchiveEntry(name=name, length=content_length)
        self._current = entry
        self._pending = content_length
        return EntryFound(entry)

    def read_entry(self) -> ArchiveEntry | None:
        """Read the next record header, skipping any unread content first.

        Returns:
            The entry header, or None at the end of the archive.

        Raises:
            ArchiveCorruptionError: If the record is truncated or malformed.
        """
        if self._pending:
            self.skip_content()

        match self.try_read_entry():
            case EntryFound(entry=entry):
                return entry
            case EndOfArchive():
                return None
            case ArchiveCorrupt() as corrupt:
                raise corrupt.to_error()

    def _truncated(self, copied: int) -> ArchiveCorruptionError:
        entry = self._current
        expected = entry.length if entry else copied
        name = entry.name if entry else None
        msg = f"Entry '{name}' truncated: expected {expected} bytes, got {copied}"
        self._pending = 0
        return ArchiveCorruptionError(
            msg,
            entry_name=name,
            expected=expected,
            actual=copied,
        )

    def extract_to_stream(
        self,
        destination: BinaryIO,
        *,
        checkpoint: Callable[[], None] | None = None,
    ) -> int:
        """Copy the pending entry's content to a writable stream.

        Copies exactly the declared length in fixed-size chunks, calling
        ``checkpoint`` before each chunk. A checkpoint that raises aborts the
        copy and leaves whatever was already written in ``destination``.

        Args:
            destination: Writable binary stream.
            checkpoint: Optional callable invoked between chunks; raise from
                it to cancel the copy.

        Returns:
            Number of bytes copied.

        Raises:
            ArchiveCorruptionError: If the stream ends before the declared
                length has been copied.
        """
        copied = 0
        while self._pending > 0:
            if checkpoint is not None:
                checkpoint()
            chunk = self._stream.read(min(COPY_BUFFER_SIZE, self._pending))
            if not chunk:
                raise self._truncated(copied)
            _ = destination.write(chunk)
            copied += len(chunk)
            self._pending -= len(chunk)
        return copied

    def read_content(self) -> bytes:
        """Read the pending entry's content into memory."""
        expected = self._pending
        data = self._read_up_to(expected)
        if len(data) < expected:
            raise self._truncated(len(data))
        self._pending = 0
        return data

    def skip_content(self) -> None:
        """Discard the pending entry's content."""
        while self._pending > 0:
            chunk = self._stream.read(min(COPY_BUFFER_SIZE, self._pending))
            if not chunk:
                raise self._truncated(
                    (self._current.length if self._current else 0) - self._pending
                )
            self._pending -= len(chunk)

    def entries(self) -> Iterator[tuple[ArchiveEntry, bytes]]:
        """Iterate over all remaining entries with their content.

        Yields:
            Tuples of entry header and content bytes, in archive order.

        Raises:
            ArchiveCorruptionError: If any record is truncated or malformed.
        """
        while (entry := self.read_entry()) is not None:
            yield entry, self.read_content()

    def extract_to_directory(
        self,
        target: Path,
        *,
        checkpoint: Callable[[], None] | None = None,
    ) -> list[Path]:
        """Extract every remaining entry below a directory.

        Missing ancestor directories are created; directories that already
        exist are left untouched. Existing files are overwritten.

        Args:
            target: Root directory to extract into.
            checkpoint: Optional callable invoked between copy chunks.

        Returns:
            Paths of the files written, in archive order.

        Raises:
            ArchiveCorruptionError: If any record is truncated or malformed.
        """
        written: list[Path] = []
        while (entry := self.read_entry()) is not None:
            path = target.joinpath(*PurePosixPath(entry.name.replace("\\", "/")).parts)
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as destination:
                _ = self.extract_to_stream(destination, checkpoint=checkpoint)
            written.append(path)
        return written
