import threading

from tradeguard.ledger.ledger import PositionLedger
from tradeguard.utils.alerts import AlertHistory, AlertLevel
from tradeguard.utils.sync import CriticalSection


def test_alerts_deferred_until_outermost_release(section, alerts):
    with section.hold():
        section.post(AlertLevel.INFO, "outer")
        with section.hold():
            section.post(AlertLevel.WARNING, "inner")
        assert len(alerts) == 0
        assert section.held
    assert [a.message for a in alerts.get_active_alerts()] == ["outer", "inner"]
    assert not section.held


def test_post_outside_hold_delivers_immediately(section, alerts):
    section.post("ERROR", "now")
    assert len(alerts) == 1


def test_listeners_run_after_delivery(section, alerts):
    seen = []

    def listener(alert):
        seen.append((alert.message, len(alerts), section.held))

    section.add_listener(listener)
    with section.hold():
        section.post(AlertLevel.CRITICAL, "boom")
        assert seen == []
    assert seen == [("boom", 1, False)]


def test_failing_listener_does_not_stop_others(section):
    seen = []

    def bad(alert):
        raise RuntimeError("listener broke")

    section.add_listener(bad)
    section.add_listener(lambda a: seen.append(a.message))
    section.post(AlertLevel.INFO, "x")
    assert seen == ["x"]


def test_alerts_delivered_when_body_raises(section, alerts):
    try:
        with section.hold():
            section.post(AlertLevel.WARNING, "before failure")
            raise ValueError("bad")
    except ValueError:
        pass
    assert [a.message for a in alerts.get_active_alerts()] == ["before failure"]


def test_mutual_exclusion():
    section = CriticalSection()
    counter = {"n": 0}

    def work():
        for _ in range(1000):
            with section.hold():
                n = counter["n"]
                counter["n"] = n + 1

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter["n"] == 4000


def test_empty_history_sink_is_kept(clock):
    history = AlertHistory(clock=clock)
    section = CriticalSection(sink=history, clock=clock)
    assert section.sink is history
    section.post(AlertLevel.WARNING, "delivered to the injected sink")
    assert [a.message for a in history.get_active_alerts()] == ["delivered to the injected sink"]


def test_ledger_rejections_reach_injected_sink(clock):
    history = AlertHistory(clock=clock)
    ledger = PositionLedger(section=CriticalSection(sink=history, clock=clock), clock=clock)
    assert ledger.cache.section.sink is history
    assert ledger.close_position("BTC") is None
    assert [a.level for a in history.get_active_alerts()] == [AlertLevel.WARNING]
