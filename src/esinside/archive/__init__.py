"""Archive codec for the runtime and application bundles.

The archive is a plain sequence of length-prefixed records with no header,
footer or index; bundles are archives compressed with zstandard.

Key Components:
    - ArchiveReader: Sequential record reader and extractor
    - ArchiveWriter: Record writer used to build bundles
    - ArchiveEntry: Header of a single record
    - EntryFound / EndOfArchive / ArchiveCorrupt: Header read results
    - extract_bundle / write_bundle: Compressed bundle helpers

Example:
    >>> from esinside.archive import extract_bundle
    >>> extract_bundle(Path("jre.zst"), Path("/tmp/run/jre"))
"""

from ._bundle import BundleSource, extract_bundle, open_bundle, write_bundle
from ._reader import (
    COPY_BUFFER_SIZE,
    ArchiveCorrupt,
    ArchiveEntry,
    ArchiveReader,
    EndOfArchive,
    EntryFound,
    ReadResult,
)
from ._writer import ArchiveWriter, pack_directory

__all__ = [
    "COPY_BUFFER_SIZE",
    "ArchiveCorrupt",
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "BundleSource",
    "EndOfArchive",
    "EntryFound",
    "ReadResult",
    "extract_bundle",
    "open_bundle",
    "pack_directory",
    "write_bundle",
]
