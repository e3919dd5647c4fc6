"""
Core modules for the toolchain provisioner.
"""

from .resolver import VersionResolver, FileManifestSource, InlineManifestSource, parse_manifest
from .tool_manager import ToolManager, build_tool_managers
from .installer import Installer
from .build_invoker import BuildInvoker
from .report_writer import ReportWriter
from .orchestrator import ProvisioningOrchestrator

__all__ = [
    "VersionResolver",
    "FileManifestSource",
    "InlineManifestSource",
    "parse_manifest",
    "ToolManager",
    "build_tool_managers",
    "Installer",
    "BuildInvoker",
    "ReportWriter",
    "ProvisioningOrchestrator"
]
