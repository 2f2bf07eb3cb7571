"""
Data models for single-node cluster provisioning.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional
import time


class FailurePolicy(str, Enum):
    """What a non-zero exit or a raised error means for the run."""
    FATAL = 'fatal'  # abort the whole run
    SOFT = 'soft'    # log a warning and continue


class StepOutcome(str, Enum):
    """Result of executing one step."""
    OK = 'ok'
    SKIPPED = 'skipped'
    WARNED = 'warned'
    FAILED = 'failed'


@dataclass
class CommandResult:
    """Exit status and combined stdout/stderr of an external command."""
    args: List[str]
    returncode: int
    output: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class ClusterSessionState:
    """Process-lifetime facts about the host and the operator running cksctl."""
    original_user: str
    original_home: Path
    cluster_already_exists: bool = False
    skip_cluster_init: bool = False


@dataclass
class StepResult:
    """Optional detail an action can hand back to the executor."""
    message: str = ''
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class StepDefinition:
    """A named step in a provisioning, reset or teardown sequence.

    ``precondition`` returns True when the step's goal is already met; the
    executor then skips ``action``, but only for an ``idempotent`` step.
    """
    name: str
    action: Callable[[], Optional[StepResult]]
    precondition: Optional[Callable[[], bool]] = None
    idempotent: bool = True
    policy: FailurePolicy = FailurePolicy.FATAL
    description: str = ''


@dataclass
class StepRecord:
    name: str
    outcome: StepOutcome
    duration: float = 0.0
    message: str = ''


@dataclass
class RunReport:
    """Tracks the outcome of every step in a run."""
    title: str
    records: List[StepRecord] = field(default_factory=list)
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    def record(self, name: str, outcome: StepOutcome, duration: float = 0.0, message: str = '') -> None:
        self.records.append(StepRecord(name, outcome, duration, message))

    def finish(self) -> None:
        self.end_time = time.time()

    def outcome_of(self, name: str) -> Optional[StepOutcome]:
        for record in self.records:
            if record.name == name:
                return record.outcome
        return None

    @property
    def warnings(self) -> List[StepRecord]:
        return [r for r in self.records if r.outcome == StepOutcome.WARNED]

    @property
    def failed(self) -> bool:
        return any(r.outcome == StepOutcome.FAILED for r in self.records)

    @property
    def duration(self) -> float:
        return (self.end_time or time.time()) - self.start_time
