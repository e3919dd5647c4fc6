"""
Installation, command and build invocation models.
"""

import os
from enum import Enum
from typing import Optional, Dict, List, Mapping
from pydantic import BaseModel, Field


class InstallStatus(str, Enum):
    """Outcome of ensuring a single tool is installed."""
    ALREADY_SATISFIED = "already_satisfied"
    INSTALLED = "installed"
    FAILED = "failed"
    PLANNED = "planned"


class CommandResult(BaseModel):
    """Captured result of a finished child process."""
    command: List[str] = Field(..., description="Argument vector that was executed")
    returncode: int = Field(..., description="Exit status of the child")
    stdout: str = Field(default="")
    stderr: str = Field(default="")
    duration_seconds: Optional[float] = Field(None, description="Wall time of the child")

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, used for benign failure matching."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def tail(self, lines: int = 20) -> str:
        """Last lines of stderr, falling back to stdout when stderr is empty."""
        text = self.stderr.strip() or self.stdout.strip()
        if not text:
            return f"exit status {self.returncode} with no output"
        return "\n".join(text.splitlines()[-lines:])


class InstallOutcome(BaseModel):
    """Result of provisioning one tool."""
    tool: str = Field(..., description="Tool name")
    version: str = Field(..., description="Target version")
    status: InstallStatus = Field(..., description="Provisioning status")
    installed_version: Optional[str] = Field(None, description="Version reported by the manager before installing")
    reason: Optional[str] = Field(None, description="Tail of the installer's error output when failed")
    optional: bool = Field(default=False, description="Whether the tool was best-effort")
    command: Optional[List[str]] = Field(None, description="Installer command, if one was issued or planned")
    duration_seconds: Optional[float] = None

    @property
    def is_fatal(self) -> bool:
        return self.status == InstallStatus.FAILED and not self.optional

    class Config:
        json_schema_extra = {
            "example": {
                "tool": "grcov",
                "version": "0.6.1",
                "status": "installed",
                "installed_version": "0.5.15",
                "optional": False,
                "command": ["cargo", "install", "grcov", "--version=0.6.1", "--force"],
                "duration_seconds": 41.7
            }
        }


class BuildInvocation(BaseModel):
    """Fully resolved downstream build command."""
    command: List[str] = Field(..., description="Argument vector of the build")
    env_overlay: Dict[str, str] = Field(default_factory=dict, description="Variables set for the child only")
    selected_tool: Optional[str] = Field(None, description="Primary tool exposed to the build")
    selected_version: Optional[str] = Field(None, description="Version of the selected tool")

    class Config:
        frozen = True

    def child_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Return a copy of ``base`` (default: the process environment) with the overlay applied."""
        env = dict(os.environ if base is None else base)
        env.update(self.env_overlay)
        return env
