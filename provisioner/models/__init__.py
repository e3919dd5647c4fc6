"""
Data models for the toolchain provisioner.
"""

from .manifest import ManifestEntry, VersionManifest
from .tool import BenignFailureRule, FailureClass, ToolSpec, ResolvedToolchain
from .installation import BuildInvocation, CommandResult, InstallOutcome, InstallStatus
from .run import RunReport, RunState

__all__ = [
    "ManifestEntry",
    "VersionManifest",
    "BenignFailureRule",
    "FailureClass",
    "ToolSpec",
    "ResolvedToolchain",
    "BuildInvocation",
    "CommandResult",
    "InstallOutcome",
    "InstallStatus",
    "RunReport",
    "RunState"
]
