"""
Installation and teardown of the rule chain.

Both shaped interfaces (physical for upload, IFB for download) always
receive the same profile. A setup cycle never edits a chain in place: the
chain is cleared and rebuilt.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .builder import ImpairmentRuleBuilder, RateLimitLayerSpec, ShapingLayerSpec
from .controller import TrafficControlController
from .outcome import FailureKind, OutcomeStatus, StepOutcome
from .profile import ImpairmentProfile

logger = logging.getLogger(__name__)

NO_SHAPING_RULE = "no shaping rule specified, empty root installed"


def _not_applied(outcome: StepOutcome, reason: str, requested: str) -> StepOutcome:
    """Turn an existing-layer collision into a failure naming what was not installed."""
    outcome.status = OutcomeStatus.FAILED
    outcome.failure = FailureKind.RULE_CONFLICT
    outcome.detail = f"{reason}, not applied: {requested}"
    return outcome


@dataclass
class InstallReport:
    """Per-interface, per-layer outcomes of an install."""

    layers: dict[str, list[StepOutcome]] = field(default_factory=dict)

    def add(self, outcome: StepOutcome) -> None:
        self.layers.setdefault(outcome.interface, []).append(outcome)

    def outcomes(self) -> list[StepOutcome]:
        return [o for interface_outcomes in self.layers.values() for o in interface_outcomes]

    def failures(self) -> list[StepOutcome]:
        return [o for o in self.outcomes() if not o.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failures()

    def layer(self, interface: str, step: str) -> Optional[StepOutcome]:
        """Outcome of a given layer on an interface, if it was attempted."""
        for outcome in self.layers.get(interface, []):
            if outcome.step == step:
                return outcome
        return None


class RuleInstaller:
    """
    Installs the shaping layer and optional rate-limit layer.

    The root shaping layer is always created, even with no clauses, so the
    rate-limit layer always has its parent.
    """

    SHAPING_STEP = "shaping-layer"
    RATE_LIMIT_STEP = "rate-limit-layer"

    def __init__(
        self,
        controller: TrafficControlController,
        builder: Optional[ImpairmentRuleBuilder] = None,
    ):
        self.controller = controller
        self.builder = builder or ImpairmentRuleBuilder()

    def install(self, interfaces: Iterable[str], profile: ImpairmentProfile) -> InstallReport:
        """
        Install the rule chain for a profile on every given interface.

        Args:
            interfaces: Shaped interfaces (physical and virtual-ingress).
            profile: Impairment values, identical for all interfaces.

        Returns:
            InstallReport with one outcome per interface and layer.
        """
        interfaces = list(interfaces)
        report = InstallReport()
        shaping = self.builder.build(profile)
        rate_limit = self.builder.build_rate_limit(profile.bandwidth_mbit)

        logger.info(
            f"Applying impairment ({profile.summary()}) on {', '.join(interfaces)}"
        )

        for interface in interfaces:
            report.add(self._install_shaping(interface, shaping))

        if rate_limit is None:
            logger.info("No bandwidth limitation specified.")
        else:
            for interface in interfaces:
                report.add(self._install_rate_limit(interface, rate_limit))

        return report

    def _install_shaping(self, interface: str, layer: ShapingLayerSpec) -> StepOutcome:
        if layer.is_empty:
            logger.info(f"No shaping rule specified for {interface}.")
        else:
            logger.info(f"Shaping layer for {interface}: {' '.join(layer.to_args())}")

        requested = NO_SHAPING_RULE if layer.is_empty else " ".join(layer.to_args())
        outcome = self.controller.run(
            self.SHAPING_STEP, interface, layer.command(interface), exists_ok=True
        )
        if outcome.status is OutcomeStatus.ALREADY_PRESENT:
            logger.error(
                f"A root rule chain already exists on {interface}; it was left in place"
            )
            return _not_applied(
                outcome,
                "root rule chain already present",
                " ".join(layer.to_args()) or "empty root",
            )
        if not outcome.succeeded:
            logger.error(f"Error applying shaping layer on {interface}")

        outcome.detail = requested
        return outcome

    def _install_rate_limit(self, interface: str, layer: RateLimitLayerSpec) -> StepOutcome:
        logger.info(
            f"Limiting bandwidth to {layer.rate} on {interface} "
            f"with a burst of {layer.burst} and latency of {layer.latency}"
        )
        outcome = self.controller.run(
            self.RATE_LIMIT_STEP, interface, layer.command(interface), exists_ok=True
        )
        requested = " ".join(layer.to_args())
        if outcome.status is OutcomeStatus.ALREADY_PRESENT:
            logger.error(f"A rate-limit layer already exists on {interface}; it was left in place")
            return _not_applied(outcome, "rate-limit layer already present", requested)
        if not outcome.succeeded:
            logger.error(f"Error adding tbf rule on {interface}")
        outcome.detail = requested
        return outcome


class RuleTeardown:
    """Removes the root rule chain. Removing a missing chain is success."""

    STEP = "teardown"

    def __init__(self, controller: TrafficControlController):
        self.controller = controller

    def clear(self, interfaces: Iterable[str]) -> dict[str, StepOutcome]:
        """
        Remove the root qdisc (and with it every child layer).

        Args:
            interfaces: Interfaces to clear.

        Returns:
            Mapping of interface name to outcome.
        """
        interfaces = list(interfaces)
        logger.info(f"Removing all TC rules on {' and '.join(interfaces)}")

        results = {}
        for interface in interfaces:
            outcome = self.controller.run(
                self.STEP,
                interface,
                ["tc", "qdisc", "del", "dev", interface, "root"],
                absent_ok=True,
            )
            if outcome.status is OutcomeStatus.ABSENT:
                outcome.detail = "no rule chain present"
            elif not outcome.succeeded:
                logger.error(f"Error removing TC rules on {interface}")
            results[interface] = outcome
        return results
