"""
Read-only status snapshot of the physical, IFB and bridge interfaces.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .config import InterfaceRole
from .controller import TrafficControlController
from .inspector import InterfaceStateInspector, LinkState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QdiscEntry:
    """One line of "tc qdisc show" output."""

    kind: str
    handle: str
    parent: str
    options: str = ""

    @classmethod
    def parse(cls, line: str) -> Optional["QdiscEntry"]:
        """
        Parse a qdisc line, e.g.
        "qdisc netem 1: root refcnt 2 limit 1000 loss 5% delay 20ms  5ms".

        Returns None for lines that are not qdisc descriptions.
        """
        tokens = line.split()
        if len(tokens) < 3 or tokens[0] != "qdisc":
            return None

        kind, handle, rest = tokens[1], tokens[2], tokens[3:]
        parent = ""
        if rest and rest[0] == "root":
            parent, rest = "root", rest[1:]
        elif len(rest) >= 2 and rest[0] == "parent":
            parent, rest = rest[1], rest[2:]
        return cls(kind=kind, handle=handle, parent=parent, options=" ".join(rest))


def parse_qdiscs(output: str) -> list[QdiscEntry]:
    entries = []
    for line in output.splitlines():
        entry = QdiscEntry.parse(line)
        if entry is not None:
            entries.append(entry)
    return entries


@dataclass
class InterfaceStatus:
    """Link state and rule chain of one interface."""

    name: str
    role: InterfaceRole
    link: LinkState
    qdiscs: list[QdiscEntry] = field(default_factory=list)
    raw: str = ""
    error: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.link.exists

    @property
    def active(self) -> bool:
        return self.link.exists and self.link.up

    @property
    def state(self) -> str:
        if not self.link.known:
            return "unknown"
        if not self.link.exists:
            return "absent"
        return "up" if self.link.up else "down"

    def find(self, kind: str) -> Optional[QdiscEntry]:
        """First qdisc of a given kind (e.g. "netem", "tbf")."""
        for entry in self.qdiscs:
            if entry.kind == kind:
                return entry
        return None

    @property
    def root(self) -> Optional[QdiscEntry]:
        for entry in self.qdiscs:
            if entry.parent == "root":
                return entry
        return None


@dataclass
class StatusReport:
    """Ordered snapshot, keyed by interface name."""

    interfaces: list[InterfaceStatus] = field(default_factory=list)

    def get(self, name: str) -> Optional[InterfaceStatus]:
        for status in self.interfaces:
            if status.name == name:
                return status
        return None

    def render(self) -> str:
        """Human-readable text, one block per interface."""
        blocks = []
        for status in self.interfaces:
            label = "Bridge" if status.role is InterfaceRole.BRIDGE else "Interface"
            body = status.raw.strip()
            if status.error:
                body = f"(query failed: {status.error})"
            elif not body:
                body = "(no rules)"
            blocks.append(f"{label} {status.name} [{status.state}]:\n{body}")
        return "\n\n".join(blocks)

    def as_dict(self) -> dict:
        return {
            status.name: {
                "role": status.role.value,
                "state": status.state,
                "error": status.error,
                "qdiscs": [
                    {
                        "kind": q.kind,
                        "handle": q.handle,
                        "parent": q.parent,
                        "options": q.options,
                    }
                    for q in status.qdiscs
                ],
            }
            for status in self.interfaces
        }


class StatusReporter:
    """Queries link state and rule chains. Never mutates anything."""

    def __init__(
        self,
        controller: TrafficControlController,
        inspector: Optional[InterfaceStateInspector] = None,
    ):
        self.controller = controller
        self.inspector = inspector or InterfaceStateInspector(controller)

    def snapshot(self, interfaces: Iterable[tuple[str, InterfaceRole]]) -> StatusReport:
        """
        Take a snapshot of the given interfaces.

        Args:
            interfaces: (name, role) pairs in report order, typically
                InterfaceConfig.all_interfaces().

        Returns:
            StatusReport in the same order.
        """
        logger.info("Refreshing interface queues")
        report = StatusReport()
        for name, role in interfaces:
            report.interfaces.append(self._interface_status(name, role))
        return report

    def _interface_status(self, name: str, role: InterfaceRole) -> InterfaceStatus:
        link = self.inspector.link_state(name)
        output, outcome = self.controller.query(
            "show-qdisc", name, ["tc", "qdisc", "show", "dev", name]
        )
        if output is None:
            error = outcome.stderr.strip() or "query failed"
            logger.warning(f"Could not read rules on {name}: {error}")
            return InterfaceStatus(name=name, role=role, link=link, error=error)

        logger.info(f"Current impact on {role.value} {name}: {output.strip()}")
        return InterfaceStatus(
            name=name, role=role, link=link, qdiscs=parse_qdiscs(output), raw=output
        )
