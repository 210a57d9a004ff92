"""
Interface configuration for netimpair.

Names the three interfaces every core operation works on, plus runtime
options. Values come from (lowest to highest precedence) the dataclass
defaults, a YAML file, environment variables (a .env file is honoured),
and explicit overrides from the command line.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional

import yaml
from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

ENV_PREFIX = "NETIMPAIR_"


class InterfaceRole(str, Enum):
    """Role of an interface in the fixed impairment topology."""

    PHYSICAL = "physical"
    VIRTUAL_INGRESS = "virtual-ingress"
    BRIDGE = "bridge"


@dataclass(frozen=True)
class InterfaceConfig:
    """
    Interfaces and options for an impairment session.

    Attributes:
        physical: Physical interface carrying real traffic (egress shaping).
        virtual_ingress: IFB device receiving redirected ingress traffic.
        bridge: Bridge interface, observed by status only.
        use_sudo: Prefix privileged commands with "sudo".
        command_timeout: Seconds before a command is abandoned. None blocks
            until the command returns.
        log_file: Append-only activity log path. None disables the file sink.
        flush_addresses: Flush addresses from the shaped interfaces before
            installing rules.
    """

    physical: str = "enp1s0"
    virtual_ingress: str = "ifb0"
    bridge: str = "nm-bridge"
    use_sudo: bool = True
    command_timeout: Optional[float] = None
    log_file: Optional[str] = "./netimpair.log"
    flush_addresses: bool = False

    def shaped_interfaces(self) -> tuple[str, str]:
        """Interfaces that receive the rule chain: physical and virtual-ingress."""
        return (self.physical, self.virtual_ingress)

    def all_interfaces(self) -> list[tuple[str, InterfaceRole]]:
        """All three interfaces with their roles, in report order."""
        return [
            (self.physical, InterfaceRole.PHYSICAL),
            (self.virtual_ingress, InterfaceRole.VIRTUAL_INGRESS),
            (self.bridge, InterfaceRole.BRIDGE),
        ]

    def with_overrides(self, **overrides) -> "InterfaceConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _coerce(name: str, raw):
    """Convert a YAML or environment value to the field's type."""
    if name in ("use_sudo", "flush_addresses"):
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    if name == "command_timeout":
        if raw in (None, "", "none", "None"):
            return None
        return float(raw)
    if name == "log_file" and raw in ("", "none", "None"):
        return None
    return raw if raw is None else str(raw)


def _from_env() -> dict:
    values = {}
    for f in fields(InterfaceConfig):
        env_name = ENV_PREFIX + f.name.upper()
        if env_name in os.environ:
            values[f.name] = _coerce(f.name, os.environ[env_name])
    # Short aliases
    if f"{ENV_PREFIX}IFB" in os.environ:
        values["virtual_ingress"] = os.environ[f"{ENV_PREFIX}IFB"]
    if f"{ENV_PREFIX}NO_SUDO" in os.environ:
        values["use_sudo"] = not _coerce("use_sudo", os.environ[f"{ENV_PREFIX}NO_SUDO"])
    return values


def load_config(path: Optional[str] = None, use_env: bool = True) -> InterfaceConfig:
    """
    Build an InterfaceConfig from an optional YAML file and the environment.

    The YAML file may hold the keys at top level or under an
    "interfaces" mapping:

        interfaces:
          physical: enp1s0
          virtual_ingress: ifb0
          bridge: nm-bridge
        use_sudo: true

    Args:
        path: Path to a YAML file, or None to use defaults.
        use_env: Apply NETIMPAIR_* environment variables (and .env).

    Returns:
        The resolved configuration.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed, or has
            unknown keys.
    """
    values: dict = {}

    if path:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigLoadError(path, "file not found")
        except yaml.YAMLError as e:
            raise ConfigLoadError(path, f"invalid YAML: {e}")

        data = data or {}
        if not isinstance(data, dict):
            raise ConfigLoadError(path, "top level must be a mapping")

        flat = dict(data.get("interfaces") or {})
        flat.update({k: v for k, v in data.items() if k != "interfaces"})

        known = {f.name for f in fields(InterfaceConfig)}
        unknown = sorted(set(flat) - known)
        if unknown:
            raise ConfigLoadError(path, f"unknown keys: {', '.join(unknown)}")

        for name, raw in flat.items():
            try:
                values[name] = _coerce(name, raw)
            except (TypeError, ValueError):
                raise ConfigLoadError(path, f"invalid value for {name}: {raw!r}")

        logger.info(f"Loaded interface configuration from {path}")

    if use_env:
        load_dotenv(find_dotenv(usecwd=True))
        try:
            values.update(_from_env())
        except ValueError as e:
            raise ConfigLoadError("environment", str(e))

    return InterfaceConfig(**values)
