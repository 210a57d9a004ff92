"""
Traffic-control controller: the only place netimpair runs host commands.

Wraps tc, ip, modprobe and dhclient invocations behind one narrow seam
that returns StepOutcome records. Tests inject a fake runner in place of
subprocess.run.
"""

import logging
import shlex
import subprocess
from typing import Callable, Optional, Sequence

from .outcome import FailureKind, OutcomeStatus, StepOutcome

logger = logging.getLogger(__name__)

# stderr fragments tc/ip print when the object being added already exists
EXISTS_MARKERS = (
    "File exists",
    "Exclusivity flag on",
)

# stderr fragments tc/ip print when the object being removed is not there
ABSENT_MARKERS = (
    "No such file or directory",
    "Cannot delete qdisc with handle of zero",
    "Cannot find device",
    "does not exist",
    "Invalid handle",
    "Cannot find specified qdisc",
)

Runner = Callable[..., subprocess.CompletedProcess]


class TrafficControlController:
    """
    Executes tc/ip commands and classifies their results.

    Command failures never raise; they come back as StepOutcome with
    status FAILED (or ALREADY_PRESENT / ABSENT when the caller says that
    state is acceptable).

    Example:
        >>> tcc = TrafficControlController(use_sudo=False)
        >>> outcome = tcc.run("teardown", "eth0", ["tc", "qdisc", "del", "dev", "eth0", "root"],
        ...                   absent_ok=True)
        >>> outcome.succeeded
        True
    """

    def __init__(
        self,
        use_sudo: bool = True,
        timeout: Optional[float] = None,
        runner: Optional[Runner] = None,
    ):
        """
        Args:
            use_sudo: Prefix privileged commands with "sudo".
            timeout: Seconds before a command is abandoned; None waits forever.
            runner: Callable with the subprocess.run signature.
        """
        self.use_sudo = use_sudo
        self.timeout = timeout
        self._runner = runner or subprocess.run
        self._sudo_available: Optional[bool] = None

    def check_sudo(self) -> bool:
        """
        Check if sudo is available without password.

        Returns:
            True if passwordless sudo is available, or sudo is disabled.
        """
        if not self.use_sudo:
            return True
        if self._sudo_available is not None:
            return self._sudo_available

        try:
            result = self._runner(
                ["sudo", "-n", "true"], capture_output=True, text=True, timeout=5
            )
            self._sudo_available = result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            self._sudo_available = False

        return self._sudo_available

    def _argv(self, argv: Sequence[str], privileged: bool) -> list[str]:
        if privileged and self.use_sudo:
            return ["sudo", *argv]
        return list(argv)

    def _execute(self, argv: list[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Running: {shlex.join(argv)}")
        return self._runner(
            argv, capture_output=True, text=True, timeout=self.timeout
        )

    def run(
        self,
        step: str,
        interface: str,
        argv: Sequence[str],
        privileged: bool = True,
        exists_ok: bool = False,
        absent_ok: bool = False,
        failure_kind: FailureKind = FailureKind.COMMAND_FAILED,
    ) -> StepOutcome:
        """
        Run one mutating command and classify the result.

        Args:
            step: Step identifier recorded in the outcome.
            interface: Interface the command acts on.
            argv: Command and arguments, without sudo.
            privileged: Prefix with sudo when enabled.
            exists_ok: Report "already exists" errors as ALREADY_PRESENT.
            absent_ok: Report "does not exist" errors as ABSENT.
            failure_kind: Classification for a plain failure.

        Returns:
            StepOutcome describing what happened.
        """
        outcome, _ = self._run(
            step, interface, self._argv(argv, privileged), exists_ok, absent_ok, failure_kind
        )
        return outcome

    def query(
        self, step: str, interface: str, argv: Sequence[str]
    ) -> tuple[Optional[str], StepOutcome]:
        """
        Run a read-only command (never through sudo).

        Returns:
            (stdout, outcome); stdout is None when the query failed, in
            which case the outcome is classified INSPECTION_FAILED.
        """
        outcome, stdout = self._run(
            step, interface, list(argv), False, False, FailureKind.INSPECTION_FAILED
        )
        if not outcome.succeeded:
            return None, outcome
        return stdout, outcome

    def _run(
        self,
        step: str,
        interface: str,
        full: list[str],
        exists_ok: bool,
        absent_ok: bool,
        failure_kind: FailureKind,
    ) -> tuple[StepOutcome, str]:
        command = shlex.join(full)

        def outcome(status, failure=None, returncode=None, stderr=""):
            return StepOutcome(
                step=step,
                interface=interface,
                status=status,
                failure=failure,
                command=command,
                returncode=returncode,
                stderr=stderr,
            )

        try:
            result = self._execute(full)
        except FileNotFoundError as e:
            logger.error(f"Command not found: {command} ({e})")
            return (
                outcome(OutcomeStatus.FAILED, FailureKind.PREREQUISITE_MISSING, stderr=str(e)),
                "",
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out: {command}")
            return (
                outcome(
                    OutcomeStatus.FAILED,
                    failure_kind,
                    stderr=f"timed out after {self.timeout}s",
                ),
                "",
            )
        except OSError as e:
            logger.error(f"Command error: {command} ({e})")
            return outcome(OutcomeStatus.FAILED, failure_kind, stderr=str(e)), ""

        stdout = result.stdout or ""
        stderr = result.stderr or ""

        if result.returncode == 0:
            return outcome(OutcomeStatus.OK, returncode=0, stderr=stderr), stdout

        if exists_ok and any(marker in stderr for marker in EXISTS_MARKERS):
            logger.info(f"{step} on {interface}: already present")
            return (
                outcome(
                    OutcomeStatus.ALREADY_PRESENT,
                    FailureKind.RULE_CONFLICT,
                    result.returncode,
                    stderr,
                ),
                stdout,
            )

        if absent_ok and any(marker in stderr for marker in ABSENT_MARKERS):
            logger.info(f"{step} on {interface}: nothing to remove")
            return (
                outcome(OutcomeStatus.ABSENT, returncode=result.returncode, stderr=stderr),
                stdout,
            )

        if failure_kind is FailureKind.INSPECTION_FAILED:
            logger.warning(f"Query failed ({step} on {interface}): {stderr.strip()}")
        else:
            logger.error(f"Command failed ({step} on {interface}): {stderr.strip()}")
        return outcome(OutcomeStatus.FAILED, failure_kind, result.returncode, stderr), stdout
