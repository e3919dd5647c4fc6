"""
Adapter for external tool managers (cargo, rustup, ...) driven by command templates.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional

from config.settings import ManagerConfig
from ..models.installation import CommandResult
from ..models.tool import ToolSpec
from .process import run_command


class ToolManager:
    """Queries installed versions and installs tools through one external manager."""

    def __init__(self, name: str, config: ManagerConfig):
        """
        Initialize the tool manager.

        Args:
            name: Manager name referenced by tool policies
            config: Command templates for probing and installing
        """
        self.logger = logging.getLogger(__name__)
        self.name = name
        self.config = config

    def _expand(self, template: str, spec: ToolSpec) -> str:
        return template.replace("{tool}", spec.name).replace("{version}", spec.version)

    def list_command(self, spec: ToolSpec) -> List[str]:
        return [self._expand(arg, spec) for arg in self.config.list_command]

    def install_command(self, spec: ToolSpec) -> List[str]:
        """Installer argument vector for ``spec``: template, force flag, extra args."""
        command = [self._expand(arg, spec) for arg in self.config.install_command]
        if spec.force and self.config.force_flag:
            command.append(self.config.force_flag)
        command.extend(spec.extra_args)
        return command

    def parse_versions(self, output: str, spec: ToolSpec) -> List[str]:
        """Every version the list output reports for ``spec.name``."""
        pattern = self.config.version_pattern.replace("{tool}", re.escape(spec.name))
        return [m.group("version") for m in re.finditer(pattern, output, re.MULTILINE)]

    async def installed_version(self, spec: ToolSpec) -> Optional[str]:
        """
        Report the installed version of ``spec.name``.

        Returns the target version when it is among the installed ones, otherwise
        the first reported version, or None when the tool is not installed or the
        manager cannot be queried.
        """
        command = self.list_command(spec)
        try:
            result = await run_command(command, timeout=self.config.timeout_seconds)
        except OSError as e:
            self.logger.warning(f"Cannot run {command[0]} ({e}), treating {spec.name} as not installed")
            return None

        if not result.succeeded:
            self.logger.warning(
                f"Listing {spec.name} exited with {result.returncode}, "
                f"treating it as not installed: {result.tail(3)}"
            )
            return None

        versions = self.parse_versions(result.output, spec)
        if not versions:
            return None
        if spec.version in versions:
            return spec.version
        return versions[0]

    async def install(self, spec: ToolSpec) -> CommandResult:
        """Run the installer for ``spec`` once."""
        return await run_command(self.install_command(spec), timeout=self.config.timeout_seconds)


def build_tool_managers(configs: Mapping[str, ManagerConfig]) -> Dict[str, ToolManager]:
    """Instantiate one manager per configured name."""
    return {name: ToolManager(name, config) for name, config in configs.items()}
