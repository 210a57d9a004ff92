"""
Structured step outcomes.

Every multi-step operation returns (step, outcome) records instead of
logging and moving on, so callers decide whether a failure should halt
the rest of a workflow.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import CommandFailedError


class OutcomeStatus(str, Enum):
    """Result of a single step."""

    OK = "ok"
    ALREADY_PRESENT = "already-present"
    ABSENT = "absent"
    SKIPPED = "skipped"
    FAILED = "failed"


class FailureKind(str, Enum):
    """Why a step failed or was downgraded to informational."""

    PREREQUISITE_MISSING = "prerequisite-missing"
    RULE_CONFLICT = "rule-conflict"
    INSPECTION_FAILED = "inspection-failed"
    COMMAND_FAILED = "command-failed"


_SUCCESSFUL = {
    OutcomeStatus.OK,
    OutcomeStatus.ALREADY_PRESENT,
    OutcomeStatus.ABSENT,
    OutcomeStatus.SKIPPED,
}


@dataclass
class StepOutcome:
    """
    Outcome of one step against one interface.

    Attributes:
        step: Short step identifier (e.g. "create-ifb", "shaping-layer").
        interface: Interface the step acted on.
        status: What happened.
        failure: Failure classification, None when the step simply worked.
        command: The command line that was run, if any.
        returncode: Exit status of the command, None if nothing was run.
        stderr: Captured standard error.
        detail: Human-readable note for the result view.
    """

    step: str
    interface: str
    status: OutcomeStatus
    failure: Optional[FailureKind] = None
    command: str = ""
    returncode: Optional[int] = None
    stderr: str = ""
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status in _SUCCESSFUL

    def raise_for_status(self) -> None:
        """Raise CommandFailedError if this step failed."""
        if not self.succeeded:
            raise CommandFailedError(
                self.command or self.step,
                self.returncode if self.returncode is not None else -1,
                self.stderr,
            )

    def describe(self) -> str:
        """One-line summary for result views and the activity log."""
        text = f"[{self.status.value}] {self.step} on {self.interface}"
        if self.detail:
            text += f": {self.detail}"
        elif self.stderr and not self.succeeded:
            text += f": {self.stderr.strip()}"
        return text


def all_succeeded(outcomes) -> bool:
    """True if every outcome in an iterable succeeded."""
    return all(outcome.succeeded for outcome in outcomes)
