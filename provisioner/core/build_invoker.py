"""
Build invoker: runs the downstream build with the resolved toolchain selected.
"""

import logging
import os
from typing import Dict, List, Mapping, Optional, Sequence

from config.settings import BuildConfig
from ..errors import BuildInvocationError, CommandTimeoutError, ConfigurationError, ExitCode
from ..models.installation import BuildInvocation
from ..models.tool import ResolvedToolchain, ToolSpec
from .process import run_streaming


class BuildInvoker:
    """Executes the build command and returns its exit status verbatim."""

    def __init__(self, config: BuildConfig, dry_run: bool = False,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the build invoker.

        Args:
            config: Build command and toolchain selector configuration
            dry_run: If True, log the command instead of running it
            environ: Ambient environment the overlay is applied to, os.environ when None
        """
        self.logger = logging.getLogger(__name__)
        self.config = config
        self.dry_run = dry_run
        self.environ = environ

    def select_toolchain(self, toolchain: ResolvedToolchain) -> Optional[ToolSpec]:
        """
        Return the primary tool named in the build configuration.

        Raises:
            ConfigurationError: if a primary tool is configured but missing from a
                non-empty toolchain
        """
        primary = self.config.primary_tool
        if primary is None or toolchain.is_empty:
            return None
        if primary not in toolchain:
            raise ConfigurationError(
                f"Primary tool {primary!r} is not pinned by any manifest "
                f"(resolved: {', '.join(toolchain.tools) or 'none'})"
            )
        return toolchain.get(primary)

    def build_invocation(self, toolchain: ResolvedToolchain,
                         pass_through_args: Sequence[str]) -> BuildInvocation:
        selected = self.select_toolchain(toolchain)
        executable, *fixed_args = self.config.command
        command: List[str] = [executable]
        overlay: Dict[str, str] = {}

        if selected is not None:
            if self.config.selector_arg:
                command.append(self.config.selector_arg.replace("{version}", selected.version))
            if self.config.selector_env_var:
                overlay[self.config.selector_env_var] = selected.version

        command.extend(fixed_args)
        command.extend(pass_through_args)

        return BuildInvocation(
            command=command,
            env_overlay=overlay,
            selected_tool=selected.name if selected else None,
            selected_version=selected.version if selected else None
        )

    async def invoke(self, toolchain: ResolvedToolchain, pass_through_args: Sequence[str]) -> int:
        """
        Run the build and return its exit status unchanged.

        A child killed by signal N is reported as 128 + N.

        Raises:
            ConfigurationError: if the primary tool cannot be selected
            BuildInvocationError: if the executable is missing or cannot be run, or
                the build times out
        """
        invocation = self.build_invocation(toolchain, pass_through_args)
        base = os.environ if self.environ is None else self.environ

        var = self.config.selector_env_var
        if var and var in invocation.env_overlay and base.get(var) not in (None, invocation.env_overlay[var]):
            self.logger.info(f"{var}={base[var]} shadowed by {invocation.env_overlay[var]} for the build")

        if invocation.selected_tool:
            self.logger.info(f"Building with {invocation.selected_tool} {invocation.selected_version}")
        else:
            self.logger.info("Building without a toolchain selector")

        if self.dry_run:
            self.logger.info(f"[dry-run] would run: {' '.join(invocation.command)} "
                             f"with {invocation.env_overlay or 'no overlay'}")
            return 0

        try:
            status = await run_streaming(
                invocation.command,
                env=invocation.child_env(base),
                timeout=self.config.timeout_seconds
            )
        except FileNotFoundError:
            raise BuildInvocationError(
                ExitCode.BUILD_NOT_FOUND, f"Build executable {invocation.command[0]!r} not found"
            )
        except OSError as e:
            raise BuildInvocationError(
                ExitCode.BUILD_NOT_EXECUTABLE, f"Cannot run build executable {invocation.command[0]!r}: {e}"
            )
        except CommandTimeoutError as e:
            raise BuildInvocationError(ExitCode.BUILD_TIMEOUT, str(e))

        if status < 0:
            status = 128 - status
        self.logger.info(f"Build exited with status {status}")
        return status
