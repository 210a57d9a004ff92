"""
Rule chain construction.

Turns an ImpairmentProfile into the two layers of the rule chain: a netem
shaping layer installed as the root qdisc, and an optional tbf rate-limit
layer attached as its child.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .profile import ImpairmentProfile, Number

logger = logging.getLogger(__name__)

ROOT_HANDLE = "1:"

# Rate-limit constants, not user-configurable
RATE_LIMIT_BURST = "32kbit"
RATE_LIMIT_LATENCY = "10ms"


def format_number(value: Number) -> str:
    """Render 5 and 5.0 as "5", 2.5 as "2.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Clause:
    """One netem option, e.g. Clause("delay", ("20ms", "5ms"))."""

    keyword: str
    values: tuple[str, ...]

    def to_args(self) -> list[str]:
        return [self.keyword, *self.values]

    def __str__(self) -> str:
        return " ".join(self.to_args())


@dataclass(frozen=True)
class ShapingLayerSpec:
    """
    The root netem layer of a rule chain.

    An empty layer (no clauses) is valid: it still materializes the root
    so a rate-limit layer can name it as parent.
    """

    clauses: tuple[Clause, ...] = field(default_factory=tuple)
    handle: str = ROOT_HANDLE
    kind: str = "netem"

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def clause(self, keyword: str) -> Optional[Clause]:
        """Return the clause with a given keyword, if present."""
        for clause in self.clauses:
            if clause.keyword == keyword:
                return clause
        return None

    def to_args(self) -> list[str]:
        args: list[str] = []
        for clause in self.clauses:
            args.extend(clause.to_args())
        return args

    def command(self, device: str) -> list[str]:
        """tc argv that installs this layer as the root of a device."""
        return [
            "tc", "qdisc", "add", "dev", device,
            "root", "handle", self.handle, self.kind, *self.to_args(),
        ]


@dataclass(frozen=True)
class RateLimitLayerSpec:
    """The tbf layer attached under the root shaping layer."""

    rate_mbit: Number
    parent: str = ROOT_HANDLE
    burst: str = RATE_LIMIT_BURST
    latency: str = RATE_LIMIT_LATENCY
    kind: str = "tbf"

    @property
    def rate(self) -> str:
        return f"{format_number(self.rate_mbit)}mbit"

    def to_args(self) -> list[str]:
        return ["rate", self.rate, "burst", self.burst, "latency", self.latency]

    def command(self, device: str) -> list[str]:
        """tc argv that attaches this layer under the root of a device."""
        return [
            "tc", "qdisc", "add", "dev", device,
            "parent", self.parent, self.kind, *self.to_args(),
        ]


class ImpairmentRuleBuilder:
    """Builds layer specs from a profile. Stateless."""

    def build(self, profile: ImpairmentProfile) -> ShapingLayerSpec:
        """
        Build the shaping layer for a profile.

        A loss clause is emitted when loss is set; a delay clause when delay
        is set, carrying jitter as its second value. Jitter without delay is
        dropped.

        Args:
            profile: Impairment values.

        Returns:
            ShapingLayerSpec, possibly empty.
        """
        clauses = []

        if profile.loss_pct:
            clauses.append(Clause("loss", (f"{format_number(profile.loss_pct)}%",)))

        if profile.delay_ms:
            values = [f"{format_number(profile.delay_ms)}ms"]
            if profile.jitter_ms:
                values.append(f"{format_number(profile.jitter_ms)}ms")
            clauses.append(Clause("delay", tuple(values)))
        elif profile.jitter_ms:
            logger.debug(f"Ignoring jitter of {profile.jitter_ms}ms without delay")

        return ShapingLayerSpec(clauses=tuple(clauses))

    def build_rate_limit(self, bandwidth_mbit: Optional[Number]) -> Optional[RateLimitLayerSpec]:
        """Build the rate-limit layer, or None when no bandwidth is set."""
        if not bandwidth_mbit:
            return None
        return RateLimitLayerSpec(rate_mbit=bandwidth_mbit)
