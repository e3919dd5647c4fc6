"""
Provisioning orchestrator: resolve, install, then invoke the build.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..errors import (
    BuildInvocationError,
    Cancelled,
    ExitCode,
    OptionalToolInstallWarning,
    ProvisioningError,
    RequiredToolInstallError,
)
from ..models.run import RunReport, RunState
from ..models.tool import ResolvedToolchain
from ..utils.logging import log_banner
from .build_invoker import BuildInvoker
from .installer import Installer
from .report_writer import ReportWriter
from .resolver import ManifestSource, VersionResolver


class ProvisioningOrchestrator:
    """Drives Start -> Resolving -> Installing -> Invoking -> Success/Failed."""

    def __init__(self,
                 resolver: VersionResolver,
                 installer: Installer,
                 build_invoker: BuildInvoker,
                 sources: Sequence[ManifestSource],
                 report_writer: Optional[ReportWriter] = None):
        """
        Initialize the orchestrator.

        Args:
            resolver: Version resolver with tool policies applied
            installer: Installer bound to the configured tool managers
            build_invoker: Downstream build invoker
            sources: Manifest sources, lowest precedence first
            report_writer: Where to save the run report, not saved when None
        """
        self.logger = logging.getLogger(__name__)
        self.resolver = resolver
        self.installer = installer
        self.build_invoker = build_invoker
        self.sources = list(sources)
        self.report_writer = report_writer

    async def run(self, pass_through_args: Sequence[str] = ()) -> RunReport:
        """
        Execute the whole run. Stops at the first fatal error.

        Returns:
            The run report; ``report.exit_code`` is the process exit code
        """
        report = RunReport()
        self.logger.info("Starting toolchain provisioning")

        try:
            report.advance(RunState.RESOLVING)
            toolchain = self.resolver.resolve(self.sources)
            report.toolchain = toolchain.versions()

            report.advance(RunState.INSTALLING)
            await self._provision(toolchain, report)

            report.advance(RunState.INVOKING)
            report.build_command = self.build_invoker.build_invocation(toolchain, pass_through_args).command
            status = await self.build_invoker.invoke(toolchain, pass_through_args)
            if status != 0:
                raise BuildInvocationError(status)

            report.complete(int(ExitCode.SUCCESS))
        except ProvisioningError as e:
            self.logger.error(f"{type(e).__name__} while {report.state.value}: {e}")
            report.complete(int(e.exit_code), e)
        except asyncio.CancelledError:
            error = Cancelled(f"Cancelled while {report.state.value}")
            self.logger.error(str(error))
            report.complete(int(error.exit_code), error)

        self._log_summary(report)
        if self.report_writer is not None:
            self.report_writer.save_report(report)
        return report

    async def _provision(self, toolchain: ResolvedToolchain, report: RunReport) -> None:
        """Install tools in order; raise on the first required failure."""
        if toolchain.is_empty:
            self.logger.info("No tools to provision")
            return

        for tool in toolchain.specs():
            outcome = await self.installer.ensure_installed(tool)
            report.outcomes.append(outcome)

            if outcome.is_fatal:
                raise RequiredToolInstallError(tool.name, tool.version, outcome.reason or "unknown error")
            if outcome.reason is not None:
                warning = OptionalToolInstallWarning(tool.name, tool.version, outcome.reason)
                self.logger.warning(str(warning))
                report.warnings.append(str(warning))

    def _log_summary(self, report: RunReport) -> None:
        lines: List[str] = []
        for tool, version in report.toolchain.items():
            outcome = report.outcome_for(tool)
            if outcome is None:
                lines.append(f"{tool} {version}: not attempted")
                continue
            line = f"{tool} {version}: {outcome.status.value}"
            if outcome.optional and outcome.reason:
                line += " (optional)"
            lines.append(line)
        counts = report.counts()
        lines.append(f"Installed: {counts['installed']}, already satisfied: {counts['already_satisfied']}, "
                     f"failed: {counts['failed']}")
        if report.error:
            lines.append(f"Error: {report.error}")
        lines.append(f"Exit code: {report.exit_code}")
        lines.append(f"Duration: {report.duration_seconds:.2f} seconds")
        log_banner(self.logger, f"SUMMARY ({report.state.value.upper()})", lines)
