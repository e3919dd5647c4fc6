"""
Tests for the command-template tool manager, using real child processes.
"""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from config.settings import ManagerConfig, default_managers
from provisioner.core.tool_manager import ToolManager, build_tool_managers
from provisioner.models.tool import ToolSpec

from conftest import python_command


CARGO_LIST_OUTPUT = """\
grcov v0.6.1:
    grcov
honggfuzz v0.5.52:
    honggfuzz
rustfilt v0.2.1:
    rustfilt
"""

RUSTUP_LIST_OUTPUT = """\
stable-x86_64-unknown-linux-gnu (default)
1.59.0-x86_64-unknown-linux-gnu
nightly-2022-02-01-x86_64-unknown-linux-gnu
"""


def _manager(list_code: str, install_code: str = "pass", **kwargs) -> ToolManager:
    config = ManagerConfig(
        list_command=python_command(list_code),
        version_pattern=r"^{tool} v(?P<version>\S+?):?$",
        install_command=python_command(install_code) + ["{tool}", "{version}"],
        **kwargs
    )
    return ToolManager("test", config)


class TestCommands:

    def test_cargo_install_command(self):
        manager = ToolManager("cargo", default_managers()["cargo"])
        spec = ToolSpec(name="grcov", version="0.6.1")
        assert manager.install_command(spec) == ["cargo", "install", "grcov", "--version=0.6.1"]

    def test_force_and_extra_args(self):
        manager = ToolManager("cargo", default_managers()["cargo"])
        spec = ToolSpec(name="honggfuzz", version="0.5.52", force=True, extra_args=["--locked"])
        assert manager.install_command(spec) == [
            "cargo", "install", "honggfuzz", "--version=0.5.52", "--force", "--locked"
        ]

    def test_force_without_flag(self):
        config = default_managers()["cargo"].model_copy(update={"force_flag": None})
        manager = ToolManager("cargo", config)
        spec = ToolSpec(name="grcov", version="0.6.1", force=True)
        assert "--force" not in manager.install_command(spec)

    def test_rustup_install_command(self):
        manager = ToolManager("rustup", default_managers()["rustup"])
        spec = ToolSpec(name="rust", version="1.59.0", manager="rustup")
        assert manager.install_command(spec) == [
            "rustup", "toolchain", "install", "1.59.0", "--profile", "minimal"
        ]

    def test_build_tool_managers(self):
        managers = build_tool_managers(default_managers())
        assert set(managers) == {"cargo", "rustup"}
        assert managers["cargo"].name == "cargo"


class TestParseVersions:

    def test_cargo_list(self):
        manager = ToolManager("cargo", default_managers()["cargo"])
        assert manager.parse_versions(CARGO_LIST_OUTPUT, ToolSpec(name="honggfuzz", version="x")) == ["0.5.52"]
        assert manager.parse_versions(CARGO_LIST_OUTPUT, ToolSpec(name="cargo-fuzz", version="x")) == []

    def test_cargo_list_git_and_path_installs(self):
        manager = ToolManager("cargo", default_managers()["cargo"])
        output = (
            "foo v0.1.0 (https://github.com/example/foo#4f2c1a9e):\n"
            "    foo\n"
            "bar v2.3.4 (/home/ci/src/bar):\n"
            "    bar\n"
        )
        assert manager.parse_versions(output, ToolSpec(name="foo", version="x")) == ["0.1.0"]
        assert manager.parse_versions(output, ToolSpec(name="bar", version="x")) == ["2.3.4"]

    def test_tool_name_is_escaped(self):
        manager = ToolManager("cargo", default_managers()["cargo"])
        output = "gccov v1.0.0:\n"
        assert manager.parse_versions(output, ToolSpec(name="g.cov", version="x")) == []

    def test_rustup_list(self):
        manager = ToolManager("rustup", default_managers()["rustup"])
        versions = manager.parse_versions(RUSTUP_LIST_OUTPUT, ToolSpec(name="rust", version="1.59.0"))
        assert versions == ["stable", "1.59.0", "nightly"]


class TestInstalledVersion:

    def test_reports_listed_version(self):
        manager = _manager("print('grcov v0.6.1:')")
        spec = ToolSpec(name="grcov", version="0.6.1")
        assert asyncio.run(manager.installed_version(spec)) == "0.6.1"

    def test_prefers_target_among_several(self):
        manager = ToolManager("rustup", ManagerConfig(
            list_command=python_command(f"print({RUSTUP_LIST_OUTPUT!r})"),
            version_pattern=r"^(?P<version>[^\s-]+)",
            install_command=["true"],
        ))
        spec = ToolSpec(name="rust", version="1.59.0", manager="rustup")
        assert asyncio.run(manager.installed_version(spec)) == "1.59.0"

    def test_other_version_reported(self):
        manager = _manager("print('grcov v0.5.15:')")
        spec = ToolSpec(name="grcov", version="0.6.1")
        assert asyncio.run(manager.installed_version(spec)) == "0.5.15"

    def test_absent_tool(self):
        manager = _manager("print('rustfilt v0.2.1:')")
        assert asyncio.run(manager.installed_version(ToolSpec(name="grcov", version="0.6.1"))) is None

    def test_failing_list_command_means_not_installed(self):
        manager = _manager("import sys; sys.exit(2)")
        assert asyncio.run(manager.installed_version(ToolSpec(name="grcov", version="0.6.1"))) is None

    def test_missing_executable_means_not_installed(self):
        manager = ToolManager("missing", ManagerConfig(
            list_command=["definitely-not-a-real-tool-manager", "list"],
            version_pattern=r"(?P<version>\S+)",
            install_command=["definitely-not-a-real-tool-manager", "install"],
        ))
        assert asyncio.run(manager.installed_version(ToolSpec(name="grcov", version="0.6.1"))) is None

    def test_non_executable_list_command_means_not_installed(self, not_executable):
        manager = ToolManager("broken", ManagerConfig(
            list_command=[not_executable, "list"],
            version_pattern=r"(?P<version>\S+)",
            install_command=[not_executable, "install"],
        ))
        assert asyncio.run(manager.installed_version(ToolSpec(name="grcov", version="0.6.1"))) is None


class TestInstall:

    def test_install_passes_tool_and_version(self):
        manager = _manager("pass", "import sys; print(' '.join(sys.argv[1:]))")
        result = asyncio.run(manager.install(ToolSpec(name="grcov", version="0.6.1")))
        assert result.succeeded
        assert result.stdout.strip() == "grcov 0.6.1"

    def test_install_failure_captured(self):
        manager = _manager("pass", "import sys; sys.stderr.write('error: no matching package\\n'); sys.exit(101)")
        result = asyncio.run(manager.install(ToolSpec(name="grcov", version="9.9.9")))
        assert result.returncode == 101
        assert "no matching package" in result.stderr


class TestManagerConfig:

    def test_version_group_required(self):
        with pytest.raises(ValidationError):
            ManagerConfig(list_command=["x"], version_pattern=r"v(\S+)", install_command=["x"])

    def test_empty_command_rejected(self):
        with pytest.raises(ValidationError):
            ManagerConfig(list_command=[], version_pattern=r"(?P<version>\S+)", install_command=["x"])
