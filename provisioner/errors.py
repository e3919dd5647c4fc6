"""
Error types and process exit codes for the provisioner.
"""

from enum import IntEnum
from pathlib import Path
from typing import Optional, Union


class ExitCode(IntEnum):
    """Process exit codes. Downstream build failures pass their status through verbatim."""
    SUCCESS = 0
    MANIFEST_PARSE = 100
    CONFIGURATION = 101
    REQUIRED_TOOL_INSTALL = 110
    BUILD_TIMEOUT = 124
    BUILD_NOT_EXECUTABLE = 126
    BUILD_NOT_FOUND = 127
    CANCELLED = 130


class ProvisioningError(Exception):
    """Base class for fatal provisioning errors."""
    exit_code: int = 1


class ManifestParseError(ProvisioningError):
    """A version manifest source is missing or malformed."""
    exit_code = ExitCode.MANIFEST_PARSE

    def __init__(self, source: Union[str, Path], line_number: int, message: str,
                 line: Optional[str] = None):
        self.source = str(source)
        self.line_number = line_number
        self.line = line
        detail = f"{self.source}:{line_number}: {message}"
        if line is not None:
            detail += f" (got {line!r})"
        super().__init__(detail)


class ConfigurationError(ProvisioningError):
    """Settings are invalid or inconsistent with the resolved toolchain."""
    exit_code = ExitCode.CONFIGURATION


class RequiredToolInstallError(ProvisioningError):
    """A required tool could not be installed at its pinned version."""
    exit_code = ExitCode.REQUIRED_TOOL_INSTALL

    def __init__(self, tool: str, version: str, reason: str):
        self.tool = tool
        self.version = version
        self.reason = reason
        super().__init__(f"Failed to install required tool {tool} {version}: {reason}")


class CommandTimeoutError(ProvisioningError):
    """A child process exceeded its configured timeout and was terminated."""

    def __init__(self, command, timeout: float):
        self.command = list(command)
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout} seconds: {' '.join(self.command)}")


class BuildInvocationError(ProvisioningError):
    """The downstream build exited non-zero; its status becomes the process exit code."""

    def __init__(self, exit_status: int, message: Optional[str] = None):
        self.exit_status = exit_status
        super().__init__(message or f"Build command exited with status {exit_status}")

    @property
    def exit_code(self) -> int:
        return self.exit_status


class Cancelled(ProvisioningError):
    """The run was interrupted; the running child process has been terminated."""
    exit_code = ExitCode.CANCELLED


class OptionalToolInstallWarning(UserWarning):
    """An optional tool failed to install; the run continues."""

    def __init__(self, tool: str, version: str, reason: str):
        self.tool = tool
        self.version = version
        self.reason = reason
        super().__init__(f"Optional tool {tool} {version} was not installed: {reason}")
