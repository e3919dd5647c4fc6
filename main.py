#!/usr/bin/env python3
"""
Main entry point for the toolchain provisioner: pin, install, build.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config.settings import Settings, load_settings
from provisioner.core.build_invoker import BuildInvoker
from provisioner.core.installer import Installer
from provisioner.core.orchestrator import ProvisioningOrchestrator
from provisioner.core.report_writer import ReportWriter
from provisioner.core.resolver import FileManifestSource, InlineManifestSource, VersionResolver
from provisioner.core.tool_manager import build_tool_managers
from provisioner.errors import ConfigurationError, ExitCode
from provisioner.utils.logging import setup_root_logger


def parse_arguments(argv: Optional[Sequence[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Install pinned toolchain versions, then run the build",
        epilog="Arguments after '--' are passed to the build command unchanged."
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file (JSON format)"
    )

    parser.add_argument(
        "--manifest",
        type=Path,
        action="append",
        default=[],
        help="Version manifest file (NAME=VERSION lines); repeatable, later files win"
    )

    parser.add_argument(
        "--pin",
        action="append",
        default=[],
        metavar="TOOL=VERSION",
        help="Pin a tool version, overriding every manifest; repeatable"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log install and build commands without running them"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also log to this rotating file"
    )

    parser.add_argument(
        "--report-dir",
        type=Path,
        help="Directory for run reports (default: no report)"
    )

    parser.add_argument(
        "build_args",
        nargs=argparse.REMAINDER,
        help=argparse.SUPPRESS
    )

    args = parser.parse_args(argv)
    if args.build_args and args.build_args[0] == "--":
        args.build_args = args.build_args[1:]
    return args


def parse_pins(pins: Sequence[str]) -> Dict[str, str]:
    """Turn ``TOOL=VERSION`` strings into a mapping."""
    result: Dict[str, str] = {}
    for pin in pins:
        tool, sep, version = pin.partition("=")
        if not sep or not tool.strip() or not version.strip():
            raise ConfigurationError(f"Invalid --pin {pin!r}, expected TOOL=VERSION")
        result[tool.strip()] = version.strip()
    return result


def load_config(args) -> Settings:
    """Load configuration from file, with command line overrides."""
    overrides: Dict[str, object] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.log_level:
        overrides["logging"] = {"level": args.log_level}
    if args.log_file:
        overrides.setdefault("logging", {})["file_path"] = str(args.log_file)
    if args.report_dir:
        overrides["report"] = {"base_path": str(args.report_dir)}

    return load_settings(args.config, overrides)


def build_sources(settings: Settings, args) -> List:
    """Manifest sources in precedence order, lowest first."""
    sources: List = [FileManifestSource(path) for path in settings.manifests]
    sources.extend(FileManifestSource(path) for path in args.manifest)
    if settings.versions:
        sources.append(InlineManifestSource("config:versions", settings.versions))
    pins = parse_pins(args.pin)
    if pins:
        sources.append(InlineManifestSource("command line", pins))
    return sources


def build_orchestrator(settings: Settings, sources: Sequence) -> ProvisioningOrchestrator:
    """Wire the components from settings."""
    report_writer = None
    if settings.report.base_path:
        report_writer = ReportWriter(settings.report.base_path)

    return ProvisioningOrchestrator(
        resolver=VersionResolver(settings.tools),
        installer=Installer(
            build_tool_managers(settings.managers),
            dry_run=settings.dry_run,
            failure_tail_lines=settings.failure_tail_lines
        ),
        build_invoker=BuildInvoker(settings.build, dry_run=settings.dry_run),
        sources=sources,
        report_writer=report_writer
    )


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_arguments(argv)

    try:
        settings = load_config(args)
        sources = build_sources(settings, args)
    except ConfigurationError as e:
        setup_root_logger(level=args.log_level or "INFO")
        logging.getLogger(__name__).error(str(e))
        return int(ExitCode.CONFIGURATION)

    setup_root_logger(
        settings.logging.file_path,
        settings.logging.level,
        settings.logging.format,
        settings.logging.max_file_size_mb,
        settings.logging.backup_count
    )
    logger = logging.getLogger(__name__)
    logger.debug(f"Arguments: {vars(args)}")

    orchestrator = build_orchestrator(settings, sources)

    # SIGTERM cancels the run like Ctrl-C, so the running child is terminated too
    loop = asyncio.get_running_loop()
    sigterm_handled = True
    try:
        loop.add_signal_handler(signal.SIGTERM, asyncio.current_task().cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        logger.debug("SIGTERM handler not installed, running without it")
        sigterm_handled = False

    try:
        report = await orchestrator.run(args.build_args)
    finally:
        if sigterm_handled:
            loop.remove_signal_handler(signal.SIGTERM)
    return report.exit_code


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(int(ExitCode.CANCELLED))
