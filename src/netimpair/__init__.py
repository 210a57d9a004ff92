"""
netimpair - WAN impairment emulation on a test link with Linux tc/netem.

Shapes both directions of one physical interface: egress directly, and
ingress by redirecting it to an IFB device. Each direction gets the same
rule chain: a netem root layer (loss, delay, jitter) and an optional tbf
rate-limit child.

Example:
    >>> from netimpair import ImpairmentSession, ImpairmentProfile, InterfaceConfig
    >>> session = ImpairmentSession(InterfaceConfig(physical="enp1s0"))
    >>> result = session.setup(ImpairmentProfile(loss_pct=5, delay_ms=20, jitter_ms=5,
    ...                                          bandwidth_mbit=10))
    >>> result.succeeded
    True
    >>> print(session.display().render())
"""

from .builder import (
    ImpairmentRuleBuilder,
    RateLimitLayerSpec,
    ShapingLayerSpec,
)
from .config import InterfaceConfig, InterfaceRole, load_config
from .controller import TrafficControlController
from .exceptions import (
    CommandFailedError,
    ConfigLoadError,
    InvalidProfileError,
    InvalidTransitionError,
    LogFileError,
    NetImpairError,
    ProfileLoadError,
    ProfileNotFoundError,
    SudoNotAvailableError,
)
from .inspector import InterfaceStateInspector
from .outcome import FailureKind, OutcomeStatus, StepOutcome
from .profile import ImpairmentProfile, load_profiles
from .redirect import IngressRedirector
from .rules import InstallReport, RuleInstaller, RuleTeardown
from .status import StatusReport, StatusReporter
from .workflows import ImpairmentSession, SetupResult

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "ImpairmentSession",
    "ImpairmentProfile",
    "InterfaceConfig",
    "InterfaceRole",
    "TrafficControlController",
    "InterfaceStateInspector",
    "IngressRedirector",
    "ImpairmentRuleBuilder",
    "ShapingLayerSpec",
    "RateLimitLayerSpec",
    "RuleInstaller",
    "RuleTeardown",
    "StatusReporter",
    # Results
    "StepOutcome",
    "OutcomeStatus",
    "FailureKind",
    "InstallReport",
    "SetupResult",
    "StatusReport",
    # Exceptions
    "NetImpairError",
    "SudoNotAvailableError",
    "CommandFailedError",
    "InvalidProfileError",
    "ProfileNotFoundError",
    "ProfileLoadError",
    "ConfigLoadError",
    "LogFileError",
    "InvalidTransitionError",
    # Loaders
    "load_config",
    "load_profiles",
    # Version
    "__version__",
]
