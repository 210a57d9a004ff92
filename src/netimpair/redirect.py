"""
Ingress redirection through an IFB device.

Inbound traffic cannot be shaped directly. The physical interface gets an
ingress qdisc with a catch-all filter that mirrors every packet to the IFB
device, where it leaves as egress and can carry a rule chain.
"""

import logging
from typing import Optional

from .controller import TrafficControlController
from .inspector import InterfaceStateInspector
from .outcome import FailureKind, OutcomeStatus, StepOutcome

logger = logging.getLogger(__name__)

INGRESS_HANDLE = "ffff:"


class IngressRedirector:
    """
    Creates the IFB device and redirects ingress traffic to it.

    Every step is attempted even when an earlier one failed; each failure
    is reported individually. Repeating activate() reuses an existing
    device and redirect instead of stacking duplicates.
    """

    def __init__(
        self,
        controller: TrafficControlController,
        virtual_ingress: str = "ifb0",
        inspector: Optional[InterfaceStateInspector] = None,
    ):
        self.controller = controller
        self.virtual_ingress = virtual_ingress
        self.inspector = inspector or InterfaceStateInspector(controller)

    def activate(self, physical: str) -> list[StepOutcome]:
        """
        Set up ingress redirection from a physical interface.

        Steps, in order: load the ifb module, create the IFB device, bring
        it up, add the ingress qdisc, add the redirect filter.

        Args:
            physical: Interface whose ingress traffic is redirected.

        Returns:
            One StepOutcome per step.
        """
        ifb = self.virtual_ingress
        logger.info(f"Configuring {ifb} for incoming traffic (download) on {physical}")
        outcomes = [
            self._load_module(),
            self._create_device(),
            self._bring_up(),
            self._add_ingress_qdisc(physical),
            self._add_redirect_filter(physical),
        ]

        failed = [o for o in outcomes if not o.succeeded]
        if failed:
            logger.error(
                f"Ingress redirect to {ifb} incomplete: "
                + ", ".join(o.step for o in failed)
            )
        else:
            logger.info(f"IFB device {ifb} initialized for ingress shaping")
        return outcomes

    def _load_module(self) -> StepOutcome:
        outcome = self.controller.run(
            "load-ifb-module",
            self.virtual_ingress,
            ["modprobe", "ifb"],
            failure_kind=FailureKind.PREREQUISITE_MISSING,
        )
        if not outcome.succeeded:
            logger.error("Error: ifb module not found")
        return outcome

    def _create_device(self) -> StepOutcome:
        ifb = self.virtual_ingress
        if self.inspector.link_state(ifb).exists:
            logger.info(f"{ifb} already exists, reusing it")
            return StepOutcome(
                step="create-ifb",
                interface=ifb,
                status=OutcomeStatus.ALREADY_PRESENT,
                detail="device exists, reused",
            )

        outcome = self.controller.run(
            "create-ifb",
            ifb,
            ["ip", "link", "add", ifb, "type", "ifb"],
            exists_ok=True,
            failure_kind=FailureKind.PREREQUISITE_MISSING,
        )
        if not outcome.succeeded:
            logger.error(f"Error creating {ifb}")
        return outcome

    def _bring_up(self) -> StepOutcome:
        ifb = self.virtual_ingress
        outcome = self.controller.run(
            "activate-ifb",
            ifb,
            ["ip", "link", "set", "dev", ifb, "up"],
            failure_kind=FailureKind.PREREQUISITE_MISSING,
        )
        if not outcome.succeeded:
            logger.error(f"Error activating {ifb}")
        return outcome

    def _add_ingress_qdisc(self, physical: str) -> StepOutcome:
        outcome = self.controller.run(
            "ingress-qdisc",
            physical,
            ["tc", "qdisc", "add", "dev", physical, "handle", INGRESS_HANDLE, "ingress"],
            exists_ok=True,
        )
        if not outcome.succeeded:
            logger.error(f"Error adding ingress qdisc on {physical}")
        return outcome

    def _redirect_present(self, physical: str) -> bool:
        output, _ = self.controller.query(
            "inspect-filter",
            physical,
            ["tc", "filter", "show", "dev", physical, "parent", INGRESS_HANDLE],
        )
        if not output or "mirred" not in output:
            return False
        # "(Egress Redirect to device ifb0)"
        tokens = output.replace("(", " ").replace(")", " ").split()
        return self.virtual_ingress in tokens

    def _add_redirect_filter(self, physical: str) -> StepOutcome:
        ifb = self.virtual_ingress
        if self._redirect_present(physical):
            logger.info(f"Ingress of {physical} already redirected to {ifb}")
            return StepOutcome(
                step="redirect-filter",
                interface=physical,
                status=OutcomeStatus.ALREADY_PRESENT,
                detail=f"redirect to {ifb} exists",
            )

        outcome = self.controller.run(
            "redirect-filter",
            physical,
            [
                "tc", "filter", "add", "dev", physical, "parent", INGRESS_HANDLE,
                "protocol", "all", "u32", "match", "u32", "0", "0",
                "action", "mirred", "egress", "redirect", "dev", ifb,
            ],
        )
        if not outcome.succeeded:
            logger.error(f"Error redirecting to {ifb}")
        return outcome

    def deactivate(self, physical: str) -> list[StepOutcome]:
        """
        Remove the ingress redirect and delete the IFB device.

        Deleting the device also destroys any rule chain attached to it.
        Absent objects count as success.
        """
        ifb = self.virtual_ingress
        outcomes = [
            # Removing the ingress qdisc also removes its filters
            self.controller.run(
                "remove-ingress-qdisc",
                physical,
                ["tc", "qdisc", "del", "dev", physical, "handle", INGRESS_HANDLE, "ingress"],
                absent_ok=True,
            ),
            self.controller.run(
                "delete-ifb",
                ifb,
                ["ip", "link", "del", ifb],
                absent_ok=True,
            ),
        ]
        logger.info(f"IFB device {ifb} torn down")
        return outcomes
