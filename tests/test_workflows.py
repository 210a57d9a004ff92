"""Tests for ImpairmentSession workflows."""

from dataclasses import replace

from netimpair import ImpairmentProfile, ImpairmentSession
from netimpair.outcome import OutcomeStatus


def phase_of(argv):
    if argv[:3] == ["tc", "qdisc", "del"]:
        return "teardown"
    if argv[0] == "modprobe" or argv[:2] == ["ip", "link"] or "ingress" in argv or argv[:2] == ["tc", "filter"]:
        return "redirect"
    if argv[:3] == ["tc", "qdisc", "add"]:
        return "install"
    return None


class TestSetup:
    """Tests for the setup workflow."""

    def test_order_teardown_redirect_install(self, session, fake_kernel):
        session.setup(ImpairmentProfile(loss_pct=5))

        phases = [phase_of(argv) for argv in fake_kernel.mutating_calls()]
        phases = [p for p in phases if p]
        first_redirect = phases.index("redirect")
        first_install = phases.index("install")
        assert set(phases[:first_redirect]) == {"teardown"}
        assert "teardown" not in phases[first_redirect:]
        assert first_redirect < first_install
        assert "redirect" not in phases[first_install:]

    def test_end_to_end_full_profile(self, session):
        """loss 5, delay 20, jitter 5, bandwidth 10 shows on both shaped interfaces."""
        profile = ImpairmentProfile(loss_pct=5, delay_ms=20, jitter_ms=5, bandwidth_mbit=10)

        result = session.setup(profile)
        report = session.display()

        assert result.succeeded
        assert session.current_profile == profile
        for name in ("enp1s0", "ifb0"):
            status = report.get(name)
            netem = status.find("netem")
            tbf = status.find("tbf")
            assert netem.parent == "root"
            assert "loss 5%" in netem.options
            assert "delay 20ms 5ms" in netem.options
            assert tbf.parent.startswith("1:")
            assert "rate 10Mbit" in tbf.options
            assert "lat 10ms" in tbf.options
        assert report.get("nm-bridge").find("netem") is None

    def test_end_to_end_empty_profile(self, session):
        """An empty profile installs only an empty root on both interfaces."""
        result = session.setup(ImpairmentProfile())

        assert result.succeeded
        for name in ("enp1s0", "ifb0"):
            outcomes = result.install.layers[name]
            assert len(outcomes) == 1
            assert "no shaping rule specified" in outcomes[0].detail

        report = session.display()
        for name in ("enp1s0", "ifb0"):
            status = report.get(name)
            assert status.find("netem").options == "refcnt 2 limit 1000"
            assert status.find("tbf") is None

    def test_repeated_setup_rebuilds_chain(self, session, fake_kernel):
        session.setup(ImpairmentProfile(loss_pct=5, bandwidth_mbit=10))

        result = session.setup(ImpairmentProfile(delay_ms=100))

        assert result.succeeded
        assert result.teardown["enp1s0"].status is OutcomeStatus.OK
        for dev in ("enp1s0", "ifb0"):
            assert len(fake_kernel.qdiscs[dev]) == 1
            assert "delay 100ms" in fake_kernel.qdiscs[dev][0][3]
            assert "loss" not in fake_kernel.qdiscs[dev][0][3]
        assert fake_kernel.filters["enp1s0"] == ["ifb0"]

    def test_stop_on_failure_skips_install(self, session, fake_kernel):
        fake_kernel.module_available = False

        result = session.setup(ImpairmentProfile(loss_pct=5), stop_on_failure=True)

        assert result.install is None
        assert not result.succeeded
        assert result.failures()
        assert "enp1s0" not in fake_kernel.qdiscs or fake_kernel.qdiscs["enp1s0"] == []

    def test_best_effort_by_default(self, session, fake_kernel):
        fake_kernel.module_available = False

        result = session.setup(ImpairmentProfile(loss_pct=5))

        assert result.install is not None
        assert result.install.layer("enp1s0", "shaping-layer").succeeded
        assert not result.install.layer("ifb0", "shaping-layer").succeeded
        assert not result.succeeded

    def test_flush_addresses(self, config, controller, fake_kernel):
        session = ImpairmentSession(replace(config, flush_addresses=True), controller)

        result = session.setup(ImpairmentProfile(loss_pct=1))

        assert [o.interface for o in result.addresses] == ["enp1s0", "ifb0"]
        assert result.addresses[0].status is OutcomeStatus.OK
        assert fake_kernel.links["enp1s0"]["addresses"] == []

    def test_addresses_untouched_by_default(self, session, fake_kernel):
        result = session.setup(ImpairmentProfile(loss_pct=1))

        assert result.addresses == []
        assert fake_kernel.links["enp1s0"]["addresses"] == ["192.168.1.10/24"]


class TestOtherWorkflows:
    """Tests for display, normal mode, bridge deletion and shutdown."""

    def test_reset(self, session, fake_kernel):
        session.setup(ImpairmentProfile(loss_pct=5, bandwidth_mbit=10))

        results = session.reset()

        assert all(o.status is OutcomeStatus.OK for o in results.values())
        assert fake_kernel.qdiscs["enp1s0"] == []
        assert fake_kernel.qdiscs["ifb0"] == []
        assert session.current_profile is None
        # Redirect and IFB device remain for the next setup
        assert "ifb0" in fake_kernel.links

    def test_reset_twice(self, session):
        session.reset()
        results = session.reset()

        assert all(o.status is OutcomeStatus.ABSENT for o in results.values())

    def test_delete_bridge(self, session, fake_kernel):
        outcomes = session.delete_bridge()

        assert [o.step for o in outcomes] == ["delete-bridge", "renew-dhcp"]
        assert all(o.succeeded for o in outcomes)
        assert "nm-bridge" not in fake_kernel.links
        assert ["dhclient", "enp1s0"] in fake_kernel.calls

    def test_delete_missing_bridge(self, session, fake_kernel):
        del fake_kernel.links["nm-bridge"]

        outcomes = session.delete_bridge()

        assert outcomes[0].status is OutcomeStatus.ABSENT

    def test_context_manager_shuts_down(self, config, controller, fake_kernel):
        with ImpairmentSession(config, controller) as session:
            session.setup(ImpairmentProfile(delay_ms=10))
            assert "ifb0" in fake_kernel.links

        assert "ifb0" not in fake_kernel.links
        assert fake_kernel.qdiscs["enp1s0"] == []
        assert "enp1s0" not in fake_kernel.ingress

    def test_activity_events_logged(self, session, caplog):
        with caplog.at_level("INFO", logger="netimpair"):
            session.setup(ImpairmentProfile(loss_pct=5))

        events = [r for r in caplog.records if getattr(r, "event", None)]
        assert {r.event for r in events} == {"teardown", "redirect", "install"}
        assert all(hasattr(r, "status") for r in events)
