"""
Shared fixtures: fake tool managers and build invokers that record calls.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from config.settings import BuildConfig, ToolPolicy, default_managers
from provisioner.core.build_invoker import BuildInvoker
from provisioner.core.installer import Installer
from provisioner.core.orchestrator import ProvisioningOrchestrator
from provisioner.core.resolver import InlineManifestSource, VersionResolver
from provisioner.core.tool_manager import ToolManager
from provisioner.models.installation import CommandResult
from provisioner.models.tool import ResolvedToolchain, ToolSpec


class FakeToolManager(ToolManager):
    """Tool manager backed by a dict instead of a real package manager."""

    def __init__(self,
                 installed: Optional[Dict[str, str]] = None,
                 results: Optional[Dict[str, Tuple[int, str, str]]] = None,
                 name: str = "cargo"):
        super().__init__(name, default_managers()["cargo"])
        self.installed = dict(installed or {})
        self.results = dict(results or {})
        self.query_calls: List[str] = []
        self.install_calls: List[List[str]] = []

    async def installed_version(self, spec: ToolSpec) -> Optional[str]:
        self.query_calls.append(spec.name)
        return self.installed.get(spec.name)

    async def install(self, spec: ToolSpec) -> CommandResult:
        command = self.install_command(spec)
        self.install_calls.append(command)
        returncode, stdout, stderr = self.results.get(spec.name, (0, "", ""))
        if returncode == 0:
            self.installed[spec.name] = spec.version
        return CommandResult(command=command, returncode=returncode, stdout=stdout, stderr=stderr)


class RecordingBuildInvoker(BuildInvoker):
    """Build invoker that records calls and returns a fixed status without spawning."""

    def __init__(self, status: int = 0, config: Optional[BuildConfig] = None):
        super().__init__(config or BuildConfig(command=["build"], primary_tool="compiler",
                                               selector_env_var="TOOLCHAIN"))
        self.status = status
        self.calls: List[Tuple[ResolvedToolchain, List[str]]] = []

    async def invoke(self, toolchain, pass_through_args):
        self.calls.append((toolchain, list(pass_through_args)))
        self.build_invocation(toolchain, pass_through_args)
        return self.status


def python_command(code: str) -> List[str]:
    """Argument vector running ``code`` with the current interpreter."""
    return [sys.executable, "-c", code]


def make_orchestrator(pins: List[Dict[str, str]],
                      manager: FakeToolManager,
                      invoker: BuildInvoker,
                      policies: Optional[Dict[str, ToolPolicy]] = None) -> ProvisioningOrchestrator:
    sources = [InlineManifestSource(f"source{i + 1}", p) for i, p in enumerate(pins)]
    return ProvisioningOrchestrator(
        resolver=VersionResolver(policies or {}),
        installer=Installer({"cargo": manager}),
        build_invoker=invoker,
        sources=sources,
    )


@pytest.fixture
def fake_manager() -> FakeToolManager:
    return FakeToolManager()


@pytest.fixture
def recording_invoker() -> RecordingBuildInvoker:
    return RecordingBuildInvoker()


@pytest.fixture
def not_executable(tmp_path: Path) -> str:
    """Path to an existing file without any execute bit."""
    path = tmp_path / "notexec"
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o644)
    return str(path)
