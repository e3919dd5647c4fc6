"""
Tool-related data models.
"""

import re
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, validator


class FailureClass(str, Enum):
    """Classification of a non-zero exit from an external tool."""
    BENIGN = "benign"
    HARD_FAILURE = "hard_failure"


class BenignFailureRule(BaseModel):
    """
    Per-tool description of non-zero exits that do not indicate a real problem.

    A failure is benign when its exit code is listed in ``exit_codes`` or when
    any of ``patterns`` matches the tool's combined output. An empty rule treats
    every non-zero exit as a hard failure.
    """
    exit_codes: List[int] = Field(default_factory=list, description="Exit codes considered harmless")
    patterns: List[str] = Field(default_factory=list, description="Regexes matched against stdout+stderr")

    class Config:
        frozen = True

    @validator('patterns', each_item=True)
    def validate_pattern_compiles(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid benign failure pattern {v!r}: {e}")
        return v

    def classify(self, exit_code: int, output: str) -> FailureClass:
        """Map an (exit_code, output) pair to benign or hard failure."""
        if exit_code == 0:
            return FailureClass.BENIGN
        if exit_code in self.exit_codes:
            return FailureClass.BENIGN
        for pattern in self.patterns:
            if re.search(pattern, output, re.MULTILINE):
                return FailureClass.BENIGN
        return FailureClass.HARD_FAILURE


class ToolSpec(BaseModel):
    """A tool resolved to its pinned version and installation parameters."""
    name: str = Field(..., description="Tool name as known to its manager")
    version: str = Field(..., description="Target version (opaque token)")
    force: bool = Field(default=False, description="Reinstall even if the manager reports the target version")
    extra_args: List[str] = Field(default_factory=list, description="Extra arguments for the installer")
    optional: bool = Field(default=False, description="Failure is a warning instead of aborting the run")
    manager: str = Field(default="cargo", description="Name of the tool manager that installs this tool")
    benign_failures: BenignFailureRule = Field(default_factory=BenignFailureRule)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "name": "honggfuzz",
                "version": "0.5.52",
                "force": True,
                "extra_args": [],
                "optional": True,
                "manager": "cargo",
                "benign_failures": {"exit_codes": [], "patterns": ["already installed"]}
            }
        }


class ResolvedToolchain(BaseModel):
    """Tools to provision, keyed by name, in manifest order."""
    tools: Dict[str, ToolSpec] = Field(default_factory=dict)

    class Config:
        frozen = True

    def specs(self) -> List[ToolSpec]:
        """Tool specs in provisioning order."""
        return list(self.tools.values())

    @property
    def is_empty(self) -> bool:
        return not self.tools

    def __contains__(self, name: str) -> bool:
        return name in self.tools

    def get(self, name: str) -> Optional[ToolSpec]:
        return self.tools.get(name)

    def versions(self) -> Dict[str, str]:
        return {name: spec.version for name, spec in self.tools.items()}
