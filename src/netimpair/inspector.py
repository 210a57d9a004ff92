"""
Interface state inspection: addresses and link state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .controller import TrafficControlController
from .outcome import OutcomeStatus, StepOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkState:
    """Whether an interface exists and is administratively up."""

    exists: bool
    up: bool = False
    known: bool = True


UNKNOWN_LINK = LinkState(exists=False, up=False, known=False)


def parse_addresses(output: str) -> list[str]:
    """Extract CIDR addresses from "ip -o addr show" output."""
    addresses = []
    for line in output.splitlines():
        tokens = line.split()
        for keyword in ("inet", "inet6"):
            if keyword in tokens:
                index = tokens.index(keyword)
                if index + 1 < len(tokens):
                    addresses.append(tokens[index + 1])
    return addresses


def parse_link_flags(output: str) -> set[str]:
    """Extract the <FLAG,...> set from "ip -o link show" output."""
    start = output.find("<")
    end = output.find(">", start)
    if start == -1 or end == -1:
        return set()
    return {flag for flag in output[start + 1 : end].split(",") if flag}


class InterfaceStateInspector:
    """
    Queries and clears interface addresses, and reports link state.

    Inspection failures are logged and produce an "unknown" result
    rather than an exception.
    """

    def __init__(self, controller: TrafficControlController):
        self.controller = controller

    def has_address(self, interface: str) -> Optional[str]:
        """
        Return the first address assigned to an interface.

        Args:
            interface: Interface name.

        Returns:
            CIDR string such as "192.168.1.10/24", or None if the interface
            has no address or could not be queried.
        """
        output, outcome = self.controller.query(
            "inspect-address", interface, ["ip", "-o", "addr", "show", "dev", interface]
        )
        if output is None:
            logger.warning(f"Could not inspect addresses on {interface}: {outcome.stderr.strip()}")
            return None

        addresses = parse_addresses(output)
        return addresses[0] if addresses else None

    def flush_address(self, interface: str) -> StepOutcome:
        """Remove all addresses from an interface. Failure is non-fatal."""
        outcome = self.controller.run(
            "flush-address", interface, ["ip", "addr", "flush", "dev", interface]
        )
        if outcome.succeeded:
            logger.info(f"IP address removed from the interface {interface}.")
        else:
            logger.error(f"Error removing IP address from {interface}")
        return outcome

    def check_and_flush(self, interface: str) -> StepOutcome:
        """Flush addresses from an interface only if it has one."""
        logger.info(f"Checking IP addresses on {interface}")
        address = self.has_address(interface)
        if address is None:
            logger.info(f"The interface {interface} has no IP address.")
            return StepOutcome(
                step="flush-address",
                interface=interface,
                status=OutcomeStatus.SKIPPED,
                detail="no address assigned",
            )

        logger.info(
            f"The interface {interface} has an IP address ({address}). Removing the IP address..."
        )
        return self.flush_address(interface)

    def link_state(self, interface: str) -> LinkState:
        """Report whether an interface exists and is up."""
        output, outcome = self.controller.query(
            "inspect-link", interface, ["ip", "-o", "link", "show", "dev", interface]
        )
        if output is None:
            if "does not exist" in outcome.stderr or "Cannot find device" in outcome.stderr:
                return LinkState(exists=False)
            return UNKNOWN_LINK

        flags = parse_link_flags(output)
        return LinkState(exists=True, up="UP" in flags)
