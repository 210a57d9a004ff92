"""
Workflows over the fixed impairment topology.

ImpairmentSession runs the setup, display, normal-mode, bridge deletion
and shutdown workflows. Each workflow is synchronous and returns its
outcomes; none raises for a failed command.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .config import InterfaceConfig
from .controller import TrafficControlController
from .inspector import InterfaceStateInspector
from .outcome import StepOutcome
from .profile import ImpairmentProfile
from .redirect import IngressRedirector
from .rules import InstallReport, RuleInstaller, RuleTeardown
from .status import StatusReport, StatusReporter

logger = logging.getLogger(__name__)


def emit(event: str, outcome: StepOutcome) -> None:
    """Write one structured activity event for a step outcome."""
    level = logging.INFO if outcome.succeeded else logging.ERROR
    logger.log(
        level,
        outcome.describe(),
        extra={
            "event": event,
            "step": outcome.step,
            "interface": outcome.interface,
            "status": outcome.status.value,
        },
    )


@dataclass
class SetupResult:
    """Outcomes of each setup phase, in execution order."""

    profile: ImpairmentProfile
    addresses: list[StepOutcome] = field(default_factory=list)
    teardown: dict[str, StepOutcome] = field(default_factory=dict)
    redirect: list[StepOutcome] = field(default_factory=list)
    install: Optional[InstallReport] = None

    def outcomes(self) -> list[StepOutcome]:
        result = list(self.addresses)
        result.extend(self.teardown.values())
        result.extend(self.redirect)
        if self.install is not None:
            result.extend(self.install.outcomes())
        return result

    def failures(self) -> list[StepOutcome]:
        return [o for o in self.outcomes() if not o.succeeded]

    @property
    def succeeded(self) -> bool:
        return self.install is not None and not self.failures()


class ImpairmentSession:
    """
    Orchestrates the core components for one physical/IFB/bridge set.

    Example:
        >>> with ImpairmentSession(InterfaceConfig(physical="eth0")) as session:
        ...     session.setup(ImpairmentProfile(loss_pct=5, delay_ms=20))
        ...     print(session.display().render())
        ...     # IFB device and rules are removed on exit
    """

    def __init__(
        self,
        config: Optional[InterfaceConfig] = None,
        controller: Optional[TrafficControlController] = None,
    ):
        self.config = config or InterfaceConfig()
        self.controller = controller or TrafficControlController(
            use_sudo=self.config.use_sudo, timeout=self.config.command_timeout
        )
        self.inspector = InterfaceStateInspector(self.controller)
        self.redirector = IngressRedirector(
            self.controller, self.config.virtual_ingress, self.inspector
        )
        self.installer = RuleInstaller(self.controller)
        self.teardown = RuleTeardown(self.controller)
        self.reporter = StatusReporter(self.controller, self.inspector)
        self.current_profile: Optional[ImpairmentProfile] = None

    def __enter__(self) -> "ImpairmentSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def setup(self, profile: ImpairmentProfile, stop_on_failure: bool = False) -> SetupResult:
        """
        Tear down, redirect ingress, then install the profile on both directions.

        Args:
            profile: Impairment values applied to upload and download.
            stop_on_failure: Skip installation when teardown or ingress
                redirection reported a failure. By default every phase runs.

        Returns:
            SetupResult with the outcomes of every phase.
        """
        logger.info(f"Selected: setup impairment ({profile.summary()})")
        result = SetupResult(profile=profile)
        shaped = self.config.shaped_interfaces()

        if self.config.flush_addresses:
            for interface in shaped:
                outcome = self.inspector.check_and_flush(interface)
                emit("flush-address", outcome)
                result.addresses.append(outcome)

        result.teardown = self.teardown.clear(shaped)
        for outcome in result.teardown.values():
            emit("teardown", outcome)

        result.redirect = self.redirector.activate(self.config.physical)
        for outcome in result.redirect:
            emit("redirect", outcome)

        if stop_on_failure and result.failures():
            logger.error("Setup stopped before installing rules")
            return result

        result.install = self.installer.install(shaped, profile)
        for outcome in result.install.outcomes():
            emit("install", outcome)

        self.current_profile = profile
        return result

    def display(self) -> StatusReport:
        """Snapshot of the physical, IFB and bridge interfaces."""
        logger.info("Selected: display impact on bridge")
        return self.reporter.snapshot(self.config.all_interfaces())

    def reset(self) -> dict[str, StepOutcome]:
        """Normal mode: remove the rule chain from both shaped interfaces."""
        logger.info("Selected: bridge without impairment (normal mode)")
        outcomes = self.teardown.clear(self.config.shaped_interfaces())
        for outcome in outcomes.values():
            emit("teardown", outcome)
        self.current_profile = None
        return outcomes

    def delete_bridge(self) -> list[StepOutcome]:
        """Delete the bridge interface and renew the DHCP lease on the physical interface."""
        bridge = self.config.bridge
        physical = self.config.physical
        logger.info(f"Selected: delete bridge interface {bridge} and renew DHCP")

        outcomes = [
            self.controller.run(
                "delete-bridge",
                bridge,
                ["ip", "link", "delete", bridge, "type", "bridge"],
                absent_ok=True,
            ),
            self.controller.run("renew-dhcp", physical, ["dhclient", physical]),
        ]
        for outcome in outcomes:
            emit("delete-bridge", outcome)
        return outcomes

    def shutdown(self) -> list[StepOutcome]:
        """Remove all rules and the ingress redirect, then delete the IFB device."""
        outcomes = list(self.teardown.clear(self.config.shaped_interfaces()).values())
        outcomes.extend(self.redirector.deactivate(self.config.physical))
        for outcome in outcomes:
            emit("shutdown", outcome)
        self.current_profile = None
        return outcomes
