"""Pytest configuration and fixtures for netimpair tests."""

import subprocess

import pytest

from netimpair import ImpairmentSession, InterfaceConfig, TrafficControlController


class FakeKernel:
    """
    In-memory stand-in for the host's links, addresses and qdiscs.

    Called with the subprocess.run signature and answers tc/ip/modprobe
    commands the way iproute2 does, including its error messages.
    """

    def __init__(self, links=None, module_available=True):
        self.links = links if links is not None else {
            "enp1s0": {"up": True, "addresses": ["192.168.1.10/24"]},
            "nm-bridge": {"up": True, "addresses": []},
        }
        self.module_available = module_available
        self.modules = set()
        self.qdiscs = {}  # device -> list of (kind, handle, parent, options)
        self.ingress = set()
        self.filters = {}  # device -> list of redirect targets
        self.calls = []
        self.failures = []

    def fail_on(self, prefix, stderr="RTNETLINK answers: Operation not permitted", returncode=2):
        """Make every command starting with prefix fail."""
        self.failures.append((list(prefix), stderr, returncode))

    def commands(self):
        return [" ".join(argv) for argv in self.calls]

    def mutating_calls(self):
        readonly = (("tc", "qdisc", "show"), ("tc", "filter", "show"), ("ip", "-o"))
        return [
            argv for argv in self.calls
            if not any(tuple(argv[: len(p)]) == p for p in readonly)
        ]

    def __call__(self, argv, capture_output=True, text=True, timeout=None, **kwargs):
        argv = list(argv)
        if argv and argv[0] == "sudo":
            argv = argv[1:]
        self.calls.append(argv)

        for prefix, stderr, returncode in self.failures:
            if argv[: len(prefix)] == prefix:
                return subprocess.CompletedProcess(argv, returncode, "", stderr)

        rc, out, err = self._dispatch(argv)
        return subprocess.CompletedProcess(argv, rc, out, err)

    def _missing(self, dev):
        return 1, "", f'Cannot find device "{dev}"\n'

    def _dispatch(self, argv):
        if argv[:2] == ["-n", "true"]:
            return 0, "", ""
        if argv[0] == "modprobe":
            if not self.module_available:
                return 1, "", f"modprobe: FATAL: Module {argv[1]} not found in directory\n"
            self.modules.add(argv[1])
            return 0, "", ""
        if argv[0] == "dhclient":
            return 0, "", ""
        if argv[0] == "ip":
            return self._ip(argv[1:])
        if argv[0] == "tc":
            return self._tc(argv[1:])
        return 127, "", f"{argv[0]}: command not found\n"

    def _ip(self, args):
        if args[:4] == ["-o", "link", "show", "dev"]:
            dev = args[4]
            if dev not in self.links:
                return 1, "", f'Device "{dev}" does not exist.\n'
            link = self.links[dev]
            flags = "BROADCAST,NOARP,UP,LOWER_UP" if link["up"] else "BROADCAST,NOARP"
            state = "UNKNOWN" if link["up"] else "DOWN"
            return 0, f"5: {dev}: <{flags}> mtu 1500 qdisc noqueue state {state} mode DEFAULT\n", ""
        if args[:4] == ["-o", "addr", "show", "dev"]:
            dev = args[4]
            if dev not in self.links:
                return 1, "", f'Device "{dev}" does not exist.\n'
            lines = [
                f"2: {dev}    inet {addr} brd 192.168.1.255 scope global {dev}\\"
                for addr in self.links[dev]["addresses"]
            ]
            return 0, "\n".join(lines) + ("\n" if lines else ""), ""
        if args[:3] == ["addr", "flush", "dev"]:
            dev = args[3]
            if dev not in self.links:
                return self._missing(dev)
            self.links[dev]["addresses"] = []
            return 0, "", ""
        if args[:2] == ["link", "add"]:
            dev = args[2]
            if "ifb" not in self.modules:
                return 2, "", "Error: Unknown device type.\n"
            if dev in self.links:
                return 2, "", "RTNETLINK answers: File exists\n"
            self.links[dev] = {"up": False, "addresses": []}
            return 0, "", ""
        if args[:3] == ["link", "set", "dev"]:
            dev = args[3]
            if dev not in self.links:
                return self._missing(dev)
            self.links[dev]["up"] = args[4] == "up"
            return 0, "", ""
        if args[:2] in (["link", "del"], ["link", "delete"]):
            dev = args[2]
            if dev not in self.links:
                return self._missing(dev)
            del self.links[dev]
            self.qdiscs.pop(dev, None)
            self.ingress.discard(dev)
            self.filters.pop(dev, None)
            return 0, "", ""
        return 1, "", "Object not supported by fake\n"

    def _tc(self, args):
        if args[0] == "qdisc":
            return self._qdisc(args[1], args[3], args[4:])
        if args[0] == "filter":
            return self._filter(args[1], args[3], args[4:])
        return 1, "", "Object not supported by fake\n"

    def _qdisc(self, action, dev, rest):
        if dev not in self.links:
            return self._missing(dev)
        chain = self.qdiscs.setdefault(dev, [])

        if action == "show":
            lines = []
            if not chain:
                lines.append("qdisc noqueue 0: root refcnt 2")
            for kind, handle, parent, options in chain:
                where = "root refcnt 2" if parent == "root" else f"parent {parent}"
                lines.append(f"qdisc {kind} {handle} {where} {options}".rstrip())
            if dev in self.ingress:
                lines.append("qdisc ingress ffff: parent ffff:fff1 ----------------")
            return 0, "\n".join(lines) + "\n", ""

        if action == "add":
            if rest[-1] == "ingress":
                if dev in self.ingress:
                    return 2, "", "RTNETLINK answers: File exists\n"
                self.ingress.add(dev)
                return 0, "", ""
            if rest[0] == "root":
                if chain:
                    return 2, "", "Error: Exclusivity flag on, cannot modify.\n"
                handle, kind, options = rest[2], rest[3], rest[4:]
                chain.append((kind, handle, "root", " ".join(["limit", "1000", *options])))
                return 0, "", ""
            if rest[0] == "parent":
                parent, kind, options = rest[1], rest[2], rest[3:]
                if not any(h == parent and p == "root" for _, h, p, _ in chain):
                    return 2, "", "Error: Failed to find specified qdisc.\n"
                if len(chain) > 1:
                    return 2, "", "RTNETLINK answers: File exists\n"
                rate = options[options.index("rate") + 1].replace("mbit", "Mbit")
                latency = options[options.index("latency") + 1]
                chain.append((kind, "8001:", f"{parent}1", f"rate {rate} burst 4Kb lat {latency}"))
                return 0, "", ""

        if action == "del":
            if rest[-1] == "ingress":
                if dev not in self.ingress:
                    return 2, "", "Error: Invalid handle.\n"
                self.ingress.discard(dev)
                self.filters.pop(dev, None)
                return 0, "", ""
            if not chain:
                return 2, "", "Error: Cannot delete qdisc with handle of zero.\n"
            chain.clear()
            return 0, "", ""

        return 1, "", "Command not supported by fake\n"

    def _filter(self, action, dev, rest):
        if dev not in self.links:
            return self._missing(dev)
        if action == "add":
            if dev not in self.ingress:
                return 2, "", "Error: Parent Qdisc doesn't exists.\n"
            target = rest[-1]
            if target not in self.links:
                return self._missing(target)
            self.filters.setdefault(dev, []).append(target)
            return 0, "", ""
        if action == "show":
            lines = []
            for index, target in enumerate(self.filters.get(dev, [])):
                lines.append(f"filter protocol all pref {49152 - index} u32 chain 0 fh 800::800 order 2048 key ht 800 bkt 0 terminal flowid ???")
                lines.append("  match 00000000/00000000 at 0")
                lines.append(f"\taction order 1: mirred (Egress Redirect to device {target}) stolen")
            return 0, "\n".join(lines), ""
        return 1, "", "Command not supported by fake\n"


@pytest.fixture
def fake_kernel():
    """Fresh fake host with enp1s0 (addressed, up) and nm-bridge."""
    return FakeKernel()


@pytest.fixture
def controller(fake_kernel):
    return TrafficControlController(use_sudo=False, runner=fake_kernel)


@pytest.fixture
def config():
    return InterfaceConfig(log_file=None)


@pytest.fixture
def session(config, controller):
    return ImpairmentSession(config, controller)


@pytest.fixture
def sample_profile_data():
    """Sample profile data for testing."""
    return {
        "description": "Test profile",
        "loss_pct": 5,
        "delay_ms": 20,
        "jitter_ms": 5,
        "bandwidth_mbit": 10,
    }


@pytest.fixture
def sample_profiles_yaml(tmp_path):
    """Create a temporary profiles YAML file."""
    content = """
profiles:
  poor_wan:
    description: "Lossy, slow WAN"
    loss_pct: 5
    delay_ms: 20
    jitter_ms: 5
    bandwidth_mbit: 10

  ideal:
    description: "No impairments"
    delay_ms: 0
    loss_pct: 0
"""
    profiles_file = tmp_path / "profiles.yaml"
    profiles_file.write_text(content)
    return str(profiles_file)
