"""Unit tests for supervisor data models."""

from pathlib import Path

import pytest

from esinside.supervisor import LaunchSpec, ProcessState, ProcessStatus


class TestLaunchSpec:
    def test_command_puts_executable_first(self) -> None:
        spec = LaunchSpec(executable=Path("/opt/jre/bin/java"), arguments=("-Xmx1g", "Main"))

        assert spec.command == ("/opt/jre/bin/java", "-Xmx1g", "Main")

    def test_environment_overrides_base(self) -> None:
        spec = LaunchSpec(executable=Path("java"), env={"JAVA_HOME": "/bundled/jre"})

        env = spec.environment({"JAVA_HOME": "/usr/lib/jvm", "PATH": "/usr/bin"})

        assert env == {"JAVA_HOME": "/bundled/jre", "PATH": "/usr/bin"}

    def test_environment_starts_from_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ESINSIDE_TEST_MARKER", "present")
        monkeypatch.setenv("JAVA_HOME", "/usr/lib/jvm")
        spec = LaunchSpec(executable=Path("java"), env={"JAVA_HOME": "/bundled/jre"})

        env = spec.environment()

        assert env["ESINSIDE_TEST_MARKER"] == "present"
        assert env["JAVA_HOME"] == "/bundled/jre"

    def test_environment_drops_unset_names(self) -> None:
        spec = LaunchSpec(executable=Path("java"), unset=frozenset({"JAVA_TOOL_OPTIONS"}))

        env = spec.environment({"JAVA_TOOL_OPTIONS": "-Xmx8g", "PATH": "/usr/bin"})

        assert env == {"PATH": "/usr/bin"}

    def test_environment_does_not_mutate_base(self) -> None:
        base = {"A": "1"}

        _ = LaunchSpec(executable=Path("x"), env={"A": "2"}).environment(base)

        assert base == {"A": "1"}


class TestProcessStatus:
    def test_defaults(self) -> None:
        status = ProcessStatus()

        assert status.state is ProcessState.STOPPED
        assert status.pid is None
        assert status.restart_count == 0
