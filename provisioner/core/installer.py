"""
Installer: brings a single tool to its pinned version.
"""

import logging
from typing import Mapping

from ..errors import CommandTimeoutError, ConfigurationError
from ..models.installation import InstallOutcome, InstallStatus
from ..models.tool import FailureClass, ToolSpec
from .tool_manager import ToolManager


class Installer:
    """Ensures tools are installed, one attempt per tool, no retries."""

    def __init__(self,
                 managers: Mapping[str, ToolManager],
                 dry_run: bool = False,
                 failure_tail_lines: int = 20):
        """
        Initialize the installer.

        Args:
            managers: Tool managers keyed by name
            dry_run: If True, log install commands instead of running them
            failure_tail_lines: Lines of installer output kept in a failure reason
        """
        self.logger = logging.getLogger(__name__)
        self.managers = dict(managers)
        self.dry_run = dry_run
        self.failure_tail_lines = failure_tail_lines

    def manager_for(self, tool: ToolSpec) -> ToolManager:
        try:
            return self.managers[tool.manager]
        except KeyError:
            raise ConfigurationError(
                f"Tool {tool.name} uses unknown manager {tool.manager!r} "
                f"(known: {', '.join(sorted(self.managers)) or 'none'})"
            )

    async def ensure_installed(self, tool: ToolSpec) -> InstallOutcome:
        """
        Install ``tool`` unless its manager already reports the target version.

        A non-zero installer exit matching the tool's benign failure rule counts
        as already satisfied. Any other failure, an installer that cannot be
        started, or a timeout yields a ``failed`` outcome; deciding whether that
        aborts the run is left to the caller.

        Raises:
            ConfigurationError: if the tool names an unknown manager
        """
        manager = self.manager_for(tool)
        outcome = InstallOutcome(
            tool=tool.name, version=tool.version, status=InstallStatus.FAILED, optional=tool.optional
        )

        try:
            outcome.installed_version = await manager.installed_version(tool)
        except CommandTimeoutError as e:
            outcome.reason = str(e)
            return outcome

        if outcome.installed_version == tool.version and not tool.force:
            self.logger.info(f"{tool.name} {tool.version} already installed")
            outcome.status = InstallStatus.ALREADY_SATISFIED
            return outcome

        command = manager.install_command(tool)
        outcome.command = command

        if self.dry_run:
            self.logger.info(f"[dry-run] would install {tool.name} {tool.version}: {' '.join(command)}")
            outcome.status = InstallStatus.PLANNED
            return outcome

        self.logger.info(
            f"Installing {tool.name} {tool.version} with {manager.name} "
            f"(installed: {outcome.installed_version or 'none'})"
        )
        try:
            result = await manager.install(tool)
        except FileNotFoundError:
            outcome.reason = f"installer executable {command[0]!r} not found"
            return outcome
        except OSError as e:
            outcome.reason = f"cannot run installer {command[0]!r}: {e}"
            return outcome
        except CommandTimeoutError as e:
            outcome.reason = str(e)
            return outcome

        outcome.duration_seconds = result.duration_seconds

        if result.succeeded:
            outcome.status = InstallStatus.INSTALLED
            self.logger.info(f"Installed {tool.name} {tool.version}")
        elif tool.benign_failures.classify(result.returncode, result.output) == FailureClass.BENIGN:
            outcome.status = InstallStatus.ALREADY_SATISFIED
            self.logger.info(
                f"{tool.name}: installer exited with {result.returncode}, "
                f"classified as benign: {result.tail(1)}"
            )
        else:
            outcome.reason = result.tail(self.failure_tail_lines)
            self.logger.debug(f"{tool.name} installer output:\n{result.output}")

        return outcome
