"""Shared test fixtures for esinside tests."""

import io
import stat
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import httpx
import pytest

from esinside.archive import ArchiveWriter, write_bundle

# Stands in for the Java binary: ignores its arguments and idles until signalled
FAKE_JAVA = """#!/bin/sh
echo "fake server starting"
exec sleep 60
"""

# Stands in for the plugin installer: records each install in order
FAKE_PLUGIN_INSTALLER = """#!/bin/sh
if [ "$2" = "broken" ]; then
    echo "cannot install $2" >&2
    exit 3
fi
echo "$2" >> "$JAVA_HOME/../installed-plugins.txt"
echo "installed $2"
"""


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def build_archive(entries: Mapping[str, bytes]) -> bytes:
    """Encode entries into an uncompressed archive, in mapping order."""
    buffer = io.BytesIO()
    writer = ArchiveWriter(buffer)
    for name, data in entries.items():
        writer.write_entry(name, data)
    return buffer.getvalue()


def write_tree(root: Path, files: Mapping[str, str | bytes]) -> Path:
    """Create files below a directory from relative POSIX paths."""
    for name, content in files.items():
        path = root.joinpath(*name.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            _ = path.write_bytes(content)
        else:
            _ = path.write_text(content, encoding="utf-8")
    return root


@dataclass(frozen=True, slots=True)
class FakeBundles:
    """Compressed bundles that mimic the shipped Java runtime and server."""

    runtime: Path
    application: Path


@pytest.fixture
def fake_bundles(tmp_path: Path) -> FakeBundles:
    """Build a runtime bundle with a fake java and a server bundle with a fake installer."""
    sources = tmp_path / "bundle-sources"
    runtime_dir = write_tree(
        sources / "jre",
        {"bin/java": FAKE_JAVA, "lib/modules": b"\x00" * 128},
    )
    application_dir = write_tree(
        sources / "es",
        {
            "bin/elasticsearch-plugin": FAKE_PLUGIN_INSTALLER,
            "config/log4j2.properties": "status = error\n",
            "lib/elasticsearch-5.6.16.jar": b"PK\x03\x04",
        },
    )
    bundles = FakeBundles(
        runtime=tmp_path / "bundles" / "jre.zst",
        application=tmp_path / "bundles" / "elasticsearch.zst",
    )
    _ = write_bundle(runtime_dir, bundles.runtime)
    _ = write_bundle(application_dir, bundles.application)
    return bundles


def make_script(path: Path, body: str) -> Path:
    """Write an executable shell script."""
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def health_transport(
    responder: Callable[[httpx.Request], httpx.Response] | None = None,
) -> httpx.MockTransport:
    """Mock transport for the health endpoint; answers 200 by default."""

    def _handler(request: httpx.Request) -> httpx.Response:
        if responder is not None:
            return responder(request)
        return httpx.Response(200, json={"status": "green"})

    return httpx.MockTransport(_handler)


@pytest.fixture
def healthy_transport() -> httpx.MockTransport:
    return health_transport()


BuildArchiveFunc = Callable[[Mapping[str, bytes]], bytes]
WriteTreeFunc = Callable[[Path, Mapping[str, str | bytes]], Path]
MakeScriptFunc = Callable[[Path, str], Path]


@pytest.fixture
def archive_bytes() -> BuildArchiveFunc:
    return build_archive


@pytest.fixture
def tree() -> WriteTreeFunc:
    return write_tree


@pytest.fixture
def script() -> MakeScriptFunc:
    return make_script
