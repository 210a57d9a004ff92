#!/usr/bin/env python3
"""
Command line entry point for netimpair.

Examples:
    netimpair setup --loss 5 --delay 20 --jitter 5 --bandwidth 10
    netimpair setup --profile poor_wan --profiles configs/profiles.yaml
    netimpair status
    netimpair reset
    netimpair menu
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .config import load_config
from .console import ConsoleMenu
from .exceptions import NetImpairError, ProfileNotFoundError, SudoNotAvailableError
from .log import setup_logging
from .menu import MenuStateMachine
from .profile import ImpairmentProfile, load_profiles
from .workflows import ImpairmentSession

logger = logging.getLogger("netimpair")

PRIVILEGED_COMMANDS = {"setup", "reset", "delete-bridge", "teardown", "menu"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netimpair",
        description="Simulate WAN impairment on a test link with tc/netem and IFB",
    )
    parser.add_argument("--config", default=None, help="Path to interface config YAML")
    parser.add_argument("--physical", default=None, help="Physical interface (default: enp1s0)")
    parser.add_argument(
        "--ifb", dest="virtual_ingress", default=None, help="IFB device (default: ifb0)"
    )
    parser.add_argument("--bridge", default=None, help="Bridge interface (default: nm-bridge)")
    parser.add_argument(
        "--no-sudo", action="store_true", help="Do not prefix commands with sudo"
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
        help="Log level",
    )
    parser.add_argument("--log-file", default=None, help="Append-only activity log path")

    sub = parser.add_subparsers(dest="command", required=True)

    setup = sub.add_parser("setup", help="Tear down, redirect ingress and apply impairment")
    setup.add_argument("--loss", default=None, help="Packet loss (%%)")
    setup.add_argument("--delay", default=None, help="Delay (ms)")
    setup.add_argument("--jitter", default=None, help="Jitter (ms), requires --delay")
    setup.add_argument("--bandwidth", default=None, help="Bandwidth limit (Mbit/s)")
    setup.add_argument("--profile", default=None, help="Named profile from --profiles")
    setup.add_argument(
        "--profiles", default="configs/profiles.yaml", help="Path to profiles YAML"
    )
    setup.add_argument(
        "--stop-on-failure",
        action="store_true",
        help="Do not install rules if teardown or ingress redirect failed",
    )

    status = sub.add_parser("status", help="Show rule chains of all interfaces")
    status.add_argument("--json", action="store_true", help="Print JSON")

    sub.add_parser("reset", help="Remove impairment (normal mode)")
    sub.add_parser("delete-bridge", help="Delete the bridge and renew DHCP")
    sub.add_parser("teardown", help="Remove rules, ingress redirect and the IFB device")
    sub.add_parser("menu", help="Interactive menu")

    profiles = sub.add_parser("profiles", help="List named profiles")
    profiles.add_argument(
        "--profiles", default="configs/profiles.yaml", help="Path to profiles YAML"
    )

    return parser


def _profile_from_args(args) -> ImpairmentProfile:
    if args.profile:
        profiles = load_profiles(args.profiles)
        if args.profile not in profiles:
            raise ProfileNotFoundError(args.profile)
        return profiles[args.profile]
    return ImpairmentProfile.from_form(args.loss, args.delay, args.jitter, args.bandwidth)


def _print_outcomes(outcomes) -> bool:
    ok = True
    for outcome in outcomes:
        print(outcome.describe())
        ok = ok and outcome.succeeded
    return ok


def run(args) -> int:
    if args.command == "profiles":
        for name, profile in load_profiles(args.profiles).items():
            description = profile.description or profile.summary()
            print(f"  - {name}: {description}")
        return 0

    config = load_config(args.config).with_overrides(
        physical=args.physical,
        virtual_ingress=args.virtual_ingress,
        bridge=args.bridge,
        log_file=args.log_file,
        use_sudo=False if args.no_sudo else None,
    )
    setup_logging(args.log_level, config.log_file, console=args.command != "menu")
    logger.info("Starting WAN disturbance simulation")

    session = ImpairmentSession(config)
    if args.command in PRIVILEGED_COMMANDS and not session.controller.check_sudo():
        raise SudoNotAvailableError()

    if args.command == "setup":
        profile = _profile_from_args(args)
        result = session.setup(profile, stop_on_failure=args.stop_on_failure)
        print(f"Profile: {profile.summary()}")
        _print_outcomes(result.outcomes())
        return 0 if result.succeeded else 1

    if args.command == "status":
        report = session.display()
        if args.json:
            print(json.dumps(report.as_dict(), indent=2))
        else:
            print(report.render())
        return 0

    if args.command == "reset":
        return 0 if _print_outcomes(session.reset().values()) else 1

    if args.command == "delete-bridge":
        return 0 if _print_outcomes(session.delete_bridge()) else 1

    if args.command == "teardown":
        return 0 if _print_outcomes(session.shutdown()) else 1

    if args.command == "menu":
        return ConsoleMenu(MenuStateMachine(session)).run()

    raise NetImpairError(f"Unknown command: {args.command}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except NetImpairError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
