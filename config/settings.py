"""
Configuration settings for the toolchain provisioner.
"""

import json
import re
from typing import Optional, Dict, Any, List
from pathlib import Path
from pydantic import BaseModel, Field, ValidationError, validator
from pydantic_settings import BaseSettings

from provisioner.errors import ConfigurationError


class ManagerConfig(BaseModel):
    """How to query and install tools with one external tool manager.

    ``{tool}`` and ``{version}`` are substituted in every command argument and
    ``{tool}`` (regex-escaped) in ``version_pattern``, which must define a
    ``version`` group.
    """
    list_command: List[str] = Field(..., description="Command that reports installed versions")
    version_pattern: str = Field(..., description="Regex with a 'version' group, applied per line")
    install_command: List[str] = Field(..., description="Command that installs {tool} at {version}")
    force_flag: Optional[str] = Field(default="--force", description="Appended when a tool is forced")
    timeout_seconds: Optional[float] = Field(None, description="Per-command timeout, none by default")

    @validator('version_pattern')
    def validate_version_group(cls, v):
        if "(?P<version>" not in v:
            raise ValueError("version_pattern must define a named group 'version'")
        try:
            re.compile(v.replace("{tool}", "tool"))
        except re.error as e:
            raise ValueError(f"Invalid version_pattern: {e}")
        return v

    @validator('list_command', 'install_command')
    def validate_command_not_empty(cls, v):
        if not v:
            raise ValueError("Command must contain at least the executable")
        return v


def default_managers() -> Dict[str, ManagerConfig]:
    """Managers available without any configuration."""
    return {
        "cargo": ManagerConfig(
            list_command=["cargo", "install", "--list"],
            version_pattern=r"^{tool} v(?P<version>[^\s:]+)(?: \(.*\))?:?$",
            install_command=["cargo", "install", "{tool}", "--version={version}"],
            force_flag="--force",
        ),
        "rustup": ManagerConfig(
            list_command=["rustup", "toolchain", "list"],
            version_pattern=r"^(?P<version>[^\s-]+)",
            install_command=["rustup", "toolchain", "install", "{version}", "--profile", "minimal"],
            force_flag="--force",
        ),
    }


class ToolPolicy(BaseModel):
    """Installation parameters for one tool, applied on top of its pinned version."""
    manager: str = Field(default="cargo", description="Tool manager used to query and install")
    optional: bool = Field(default=False, description="Failure logs a warning instead of aborting")
    force: bool = Field(default=False, description="Always reinstall")
    extra_args: List[str] = Field(default_factory=list, description="Extra installer arguments")
    aliases: List[str] = Field(default_factory=list, description="Manifest variable names that pin this tool")
    benign_exit_codes: List[int] = Field(default_factory=list)
    benign_patterns: List[str] = Field(default_factory=list)


class BuildConfig(BaseModel):
    """Downstream build command and toolchain selection."""
    command: List[str] = Field(default_factory=lambda: ["cargo", "build-bpf"],
                               description="Build executable and fixed arguments")
    primary_tool: Optional[str] = Field(None, description="Tool whose version selects the toolchain")
    selector_env_var: Optional[str] = Field(default="RUSTUP_TOOLCHAIN",
                                            description="Variable set for the build child only")
    selector_arg: Optional[str] = Field(None, description="Argument inserted after the executable, e.g. '+{version}'")
    timeout_seconds: Optional[float] = Field(None, description="Build timeout, none by default")

    @validator('command')
    def validate_command_not_empty(cls, v):
        if not v:
            raise ValueError("Build command must contain at least the executable")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )
    file_path: Optional[Path] = Field(None, description="Rotating log file, console only when unset")
    max_file_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(default=5, description="Number of log backups to keep")


class ReportConfig(BaseModel):
    """Run report storage configuration."""
    base_path: Optional[Path] = Field(None, description="Directory for run summaries, disabled when unset")


class Settings(BaseSettings):
    """Main application settings."""
    # Component configs
    build: BuildConfig = Field(default_factory=BuildConfig)
    managers: Dict[str, ManagerConfig] = Field(default_factory=default_managers)
    tools: Dict[str, ToolPolicy] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)

    # Version sources, lowest precedence first
    manifests: List[Path] = Field(default_factory=list, description="Manifest files, read in order")
    versions: Dict[str, str] = Field(default_factory=dict, description="Inline pins, override manifests")

    # Operational settings
    dry_run: bool = Field(default=False, description="Log commands without executing them")
    failure_tail_lines: int = Field(default=20, ge=1, description="Installer output lines kept on failure")

    class Config:
        env_prefix = "PROVISIONER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"
        extra = "ignore"

    @validator('managers')
    def merge_builtin_managers(cls, v):
        merged = default_managers()
        merged.update(v)
        return merged

    @validator('tools')
    def validate_tool_managers(cls, v, values):
        managers = values.get('managers') or default_managers()
        for name, policy in v.items():
            if policy.manager not in managers:
                raise ValueError(f"Tool {name!r} uses unknown manager {policy.manager!r}")
        return v


def load_settings(config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build settings from an optional JSON file plus command-line overrides.

    Top-level override keys replace file values; nested dicts are merged one level deep.
    Relative ``manifests`` entries in the file are resolved against its directory.

    Raises:
        ConfigurationError: if the file is unreadable or the result fails validation
    """
    config_data: Dict[str, Any] = {}
    if config_path is not None:
        try:
            with open(config_path) as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {config_path}: {e}")
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a JSON object")
        # Manifest paths in a config file are relative to that file
        if isinstance(config_data.get("manifests"), list):
            base = Path(config_path).parent
            config_data["manifests"] = [
                str(base / m) if isinstance(m, str) and not Path(m).is_absolute() else m
                for m in config_data["manifests"]
            ]

    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(config_data.get(key), dict):
            config_data[key] = {**config_data[key], **value}
        else:
            config_data[key] = value

    try:
        return Settings(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")
