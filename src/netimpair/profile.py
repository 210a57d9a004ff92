"""
Impairment profile data class for netimpair.

Defines ImpairmentProfile, the four optional impairment values applied
identically to both traffic directions, and loading of named profiles
from YAML.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Union

import yaml

from .exceptions import InvalidProfileError, ProfileLoadError

logger = logging.getLogger(__name__)

Number = Union[int, float]


def _parse_value(field: str, raw) -> Optional[Number]:
    """
    Parse one profile value. None, empty and zero all mean "unset".

    Form fields default to "0", so zero is a request for no constraint.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise InvalidProfileError(field, raw, "not a number")
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
        try:
            value: Number = int(raw)
        except ValueError:
            try:
                value = float(raw)
            except ValueError:
                raise InvalidProfileError(field, raw, "not a number")
    elif isinstance(raw, (int, float)):
        value = raw
    else:
        raise InvalidProfileError(field, raw, "not a number")

    if not math.isfinite(value):
        raise InvalidProfileError(field, raw, "not a finite number")
    if value < 0:
        raise InvalidProfileError(field, raw, "must not be negative")
    if value == 0:
        return None
    return value


@dataclass(frozen=True)
class ImpairmentProfile:
    """
    Impairment values for one setup cycle.

    Every field is optional; None means no constraint of that kind.

    Attributes:
        loss_pct: Packet loss percentage (0-100).
        delay_ms: One-way delay in milliseconds.
        jitter_ms: Delay variation in milliseconds. Only meaningful when
            delay_ms is set; otherwise it is dropped when rules are built.
        bandwidth_mbit: Bandwidth ceiling in Mbit/s.
        name: Label used in logs.
        description: Human-readable description.
    """

    loss_pct: Optional[Number] = None
    delay_ms: Optional[Number] = None
    jitter_ms: Optional[Number] = None
    bandwidth_mbit: Optional[Number] = None
    name: str = "custom"
    description: str = ""

    def __post_init__(self):
        for field in ("loss_pct", "delay_ms", "jitter_ms", "bandwidth_mbit"):
            value = getattr(self, field)
            if value is None:
                continue
            if not math.isfinite(value):
                raise InvalidProfileError(field, value, "not a finite number")
            if value < 0:
                raise InvalidProfileError(field, value, "must not be negative")
        if self.loss_pct is not None and self.loss_pct > 100:
            raise InvalidProfileError("loss_pct", self.loss_pct, "must be at most 100")

    @property
    def is_empty(self) -> bool:
        """True when no impairment of any kind is requested."""
        return (
            self.loss_pct is None
            and self.delay_ms is None
            and self.jitter_ms is None
            and self.bandwidth_mbit is None
        )

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "ImpairmentProfile":
        """
        Create an ImpairmentProfile from a dictionary.

        Args:
            name: Profile name/identifier.
            data: Dictionary containing profile parameters.

        Returns:
            ImpairmentProfile with the specified parameters.

        Example:
            >>> profile = ImpairmentProfile.from_dict("slow", {"delay_ms": 100, "loss_pct": 1})
            >>> profile.delay_ms
            100
        """
        return cls(
            name=name,
            description=data.get("description", ""),
            loss_pct=_parse_value("loss_pct", data.get("loss_pct")),
            delay_ms=_parse_value("delay_ms", data.get("delay_ms")),
            jitter_ms=_parse_value("jitter_ms", data.get("jitter_ms")),
            bandwidth_mbit=_parse_value("bandwidth_mbit", data.get("bandwidth_mbit")),
        )

    @classmethod
    def from_form(
        cls,
        loss: Optional[str] = None,
        delay: Optional[str] = None,
        jitter: Optional[str] = None,
        bandwidth: Optional[str] = None,
    ) -> "ImpairmentProfile":
        """Create a profile from raw form/CLI strings ("" or "0" means unset)."""
        return cls(
            loss_pct=_parse_value("loss_pct", loss),
            delay_ms=_parse_value("delay_ms", delay),
            jitter_ms=_parse_value("jitter_ms", jitter),
            bandwidth_mbit=_parse_value("bandwidth_mbit", bandwidth),
        )

    def summary(self) -> str:
        """Short description for log lines."""
        parts = []
        if self.loss_pct is not None:
            parts.append(f"loss={self.loss_pct}%")
        if self.delay_ms is not None:
            parts.append(f"delay={self.delay_ms}ms")
        if self.jitter_ms is not None:
            parts.append(f"jitter={self.jitter_ms}ms")
        if self.bandwidth_mbit is not None:
            parts.append(f"bandwidth={self.bandwidth_mbit}mbit")
        return ", ".join(parts) if parts else "no impairment"


def load_profiles(path: str) -> dict[str, ImpairmentProfile]:
    """
    Load named impairment profiles from a YAML file.

    Args:
        path: Path to YAML file containing a "profiles" mapping.

    Returns:
        Mapping of profile name to ImpairmentProfile.

    Raises:
        ProfileLoadError: If file cannot be read or parsed.
        InvalidProfileError: If a profile holds an invalid value.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ProfileLoadError(path, "file not found")
    except yaml.YAMLError as e:
        raise ProfileLoadError(path, f"invalid YAML: {e}")

    if not data:
        raise ProfileLoadError(path, "empty file")

    profiles_data = data.get("profiles", {}) if isinstance(data, dict) else {}
    if not profiles_data:
        raise ProfileLoadError(path, "no profiles defined")

    profiles = {
        name: ImpairmentProfile.from_dict(name, config or {})
        for name, config in profiles_data.items()
    }
    logger.info(f"Loaded {len(profiles)} impairment profiles from {path}")
    return profiles
