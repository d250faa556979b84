from datetime import timedelta
from unittest.mock import patch

import pytest

from tradeguard.utils.alerts import (
    AlertHistory,
    AlertLevel,
    AlertSink,
    CompositeAlertSink,
    LoggingAlertSink,
    WebhookAlertSink,
)


class Boom(AlertSink):
    def notify(self, level, message, context=None):
        raise RuntimeError("sink down")


def test_level_parse_and_rank():
    assert AlertLevel.parse("warning") is AlertLevel.WARNING
    assert AlertLevel.CRITICAL.rank > AlertLevel.ERROR.rank > AlertLevel.WARNING.rank > AlertLevel.INFO.rank
    with pytest.raises(ValueError):
        AlertLevel.parse("LOUD")


def test_history_is_bounded(clock):
    history = AlertHistory(max_size=3, clock=clock)
    for i in range(5):
        history.notify("INFO", f"m{i}")
    assert [a.message for a in history.get_active_alerts()] == ["m2", "m3", "m4"]


def test_history_filter_and_stats(clock):
    history = AlertHistory(clock=clock)
    history.notify(AlertLevel.WARNING, "old")
    clock.advance(hours=2)
    history.notify(AlertLevel.CRITICAL, "new", {"asset": "BTC"})

    assert [a.message for a in history.get_active_alerts("CRITICAL")] == ["new"]
    stats = history.get_alert_stats()
    assert stats["total"] == 2
    assert stats["by_level"] == {"WARNING": 1, "CRITICAL": 1}
    assert [a.message for a in stats["recent"]] == ["new"]

    assert history.clear_old_alerts(timedelta(hours=1)) == 1
    assert len(history) == 1


def test_alert_to_dict(clock):
    history = AlertHistory(clock=clock)
    history.notify("ERROR", "feed lost", {"asset": "ETH"})
    d = history.get_active_alerts()[0].to_dict()
    assert d["level"] == "ERROR"
    assert d["context"] == {"asset": "ETH"}
    assert d["timestamp"] == clock.now().isoformat()


def test_composite_survives_failing_sink(clock):
    history = AlertHistory(clock=clock)
    composite = CompositeAlertSink([Boom(), LoggingAlertSink()])
    composite.add(history)
    composite.notify("WARNING", "still delivered")
    assert len(history) == 1


def test_webhook_without_url_is_noop():
    sink = WebhookAlertSink(url=None)
    with patch("urllib.request.urlopen") as urlopen:
        sink.notify("CRITICAL", "nothing configured")
    urlopen.assert_not_called()


def test_webhook_respects_min_level_and_swallows_errors():
    sink = WebhookAlertSink("http://localhost:9/hook", min_level="ERROR")
    with patch("urllib.request.urlopen", side_effect=OSError("refused")) as urlopen:
        sink.notify("WARNING", "below threshold")
        urlopen.assert_not_called()
        sink.notify("CRITICAL", "above threshold")
        assert urlopen.call_count == 1
    request = urlopen.call_args[0][0]
    assert request.full_url == "http://localhost:9/hook"
    assert b"above threshold" in request.data
