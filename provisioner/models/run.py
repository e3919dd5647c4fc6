"""
Run state machine and report models.
"""

from enum import Enum
from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, Field

from .installation import InstallOutcome, InstallStatus


class RunState(str, Enum):
    """Aggregate state of a provisioning run."""
    START = "start"
    RESOLVING = "resolving"
    INSTALLING = "installing"
    INVOKING = "invoking"
    SUCCESS = "success"
    FAILED = "failed"


_STATE_ORDER = [
    RunState.START,
    RunState.RESOLVING,
    RunState.INSTALLING,
    RunState.INVOKING,
]
_TERMINAL = {RunState.SUCCESS, RunState.FAILED}


class RunReport(BaseModel):
    """Everything that happened during one run, written out as the run summary."""
    state: RunState = Field(default=RunState.START)
    toolchain: Dict[str, str] = Field(default_factory=dict, description="Resolved tool -> version")
    outcomes: List[InstallOutcome] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list, description="Optional tool failures")
    error: Optional[str] = Field(None, description="First fatal error")
    error_type: Optional[str] = None
    build_command: Optional[List[str]] = None
    exit_code: Optional[int] = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    def advance(self, state: RunState) -> None:
        """Move to ``state``; the run never moves backwards or leaves a terminal state."""
        if self.state in _TERMINAL:
            raise ValueError(f"Run already finished in state {self.state.value}")
        if state not in _TERMINAL and _STATE_ORDER.index(state) < _STATE_ORDER.index(self.state):
            raise ValueError(f"Cannot move from {self.state.value} back to {state.value}")
        self.state = state

    def complete(self, exit_code: int, error: Optional[Exception] = None) -> None:
        """Mark the run finished with ``exit_code``."""
        if error is not None:
            self.error = str(error)
            self.error_type = type(error).__name__
        self.advance(RunState.SUCCESS if exit_code == 0 and error is None else RunState.FAILED)
        self.exit_code = exit_code
        self.completed_at = datetime.utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def outcome_for(self, tool: str) -> Optional[InstallOutcome]:
        for outcome in self.outcomes:
            if outcome.tool == tool:
                return outcome
        return None

    def counts(self) -> Dict[str, int]:
        """Number of outcomes per status."""
        result = {status.value: 0 for status in InstallStatus}
        for outcome in self.outcomes:
            result[outcome.status.value] += 1
        return result

    def summary(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "exit_code": self.exit_code,
            "tools": len(self.outcomes),
            **self.counts(),
            "warnings": len(self.warnings),
            "duration_seconds": self.duration_seconds,
        }
