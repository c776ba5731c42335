"""Tests for the telemetry event log and health report."""

from collections import namedtuple
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from telemetry import CpuUsageTracker, EventKind, TelemetryAggregator, format_uptime, memory_usage


class FakeClock:
    def __init__(self, now: float = 1_000_020.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def telemetry(clock):
    return TelemetryAggregator(clock=clock)


def labels(columns):
    return {column["label"]: column["data"] for column in columns}


class TestLogEvent:
    def test_summary_counts_and_sums(self, telemetry):
        telemetry.log_event(EventKind.MessageSend, 10)
        telemetry.log_event(EventKind.MessageSend, 5)
        telemetry.log_event(EventKind.MessageReceive, 7)

        assert telemetry.summary["MessageSend"].to_dict() == {"count": 2, "sum": 15}
        assert telemetry.summary["MessageReceive"].to_dict() == {"count": 1, "sum": 7}

    def test_errors_and_requests_are_split_by_info(self, telemetry):
        telemetry.log_event(EventKind.GeneralError, info="socket")
        telemetry.log_event(EventKind.GeneralError, info="socket")
        telemetry.log_event(EventKind.GeneralError, info="/api/startgame")
        telemetry.log_event(EventKind.GetRequest, info="ROOT")
        telemetry.log_event(EventKind.BadJoin, info="Join invalid room id")

        assert telemetry.summary["GeneralError_socket"].count == 2
        assert telemetry.summary["GeneralError_/api/startgame"].count == 1
        assert telemetry.summary["GetRequest_ROOT"].count == 1
        assert telemetry.summary["BadJoin"].count == 1

    def test_log_is_trimmed_past_cap(self, clock):
        telemetry = TelemetryAggregator(max_event_count=10, clock=clock)
        for size in range(11):
            telemetry.log_event(EventKind.MessageSend, size)

        # 11 entries, oldest 20% (2) dropped
        assert len(telemetry.events) == 9
        assert telemetry.events[0].value == 2
        assert telemetry.summary["MessageSend"].count == 11


class TestHealthData:
    def test_series_is_bucketed_and_ascending(self, telemetry, clock):
        base = clock.now
        for offset, size in [(-130, 1), (-118, 2), (-100, 3), (-50, 4)]:
            clock.now = base + offset
            telemetry.log_event(EventKind.MessageSend, size)
        clock.now = base

        report = telemetry.get_health_data(earliest=base - 120, span=60)

        dates = [bucket["date"] for bucket in report["series"]]
        assert dates == sorted(dates)
        assert dates == [999_900_000, 999_960_000]
        first, second = (labels(bucket["columns"]) for bucket in report["series"])
        assert first["MessageSend"] == {"count": 2, "sum": 5}
        assert second["MessageSend"] == {"count": 1, "sum": 4}

    def test_events_after_latest_are_skipped(self, telemetry, clock):
        telemetry.log_event(EventKind.MessageSend, 1)
        clock.now += 30
        telemetry.log_event(EventKind.MessageSend, 100)

        report = telemetry.get_health_data(earliest=0, span=3600, latest=clock.now - 10)

        total = sum(labels(b["columns"])["MessageSend"]["sum"] for b in report["series"])
        assert total == 1

    def test_span_is_clamped_to_one_second(self, telemetry, clock):
        for step in range(3):
            clock.now += 0.3
            telemetry.log_event(EventKind.MessageReceive, 1)

        report = telemetry.get_health_data(earliest=0, span=0.001)

        # 0.001s buckets would give three; one second buckets give at most two
        assert len(report["series"]) <= 2

    def test_range_is_clamped_to_max_buckets(self, telemetry, clock):
        start = clock.now
        for step in range(500):
            clock.now = start + step
            telemetry.log_event(EventKind.MessageSend, 1)

        report = telemetry.get_health_data(earliest=0, span=1)

        assert len(report["series"]) <= 201
        assert report["series"][0]["date"] >= int((clock.now - 200) * 1000)

    def test_report_shape(self, telemetry, clock):
        clock.now += 90061
        report = telemetry.get_health_data(earliest=0, span=60)

        assert report["uptime"] == "1 01:01:01"
        assert set(report) >= {"version", "uptime", "summary", "series", "cpuUsage", "memoryUsage"}
        assert set(report["cpuUsage"]) == {"user", "system"}
        assert report["memoryUsage"]["rss"] > 0
        assert set(report["memoryUsage"]) == {"rss", "vms"}


def test_format_uptime():
    assert format_uptime(0) == "0 00:00:00"
    assert format_uptime(3 * 86400 + 59) == "3 00:00:59"


def test_cpu_usage_is_smoothed():
    CpuTimes = namedtuple("CpuTimes", "user system")
    samples = iter([CpuTimes(0.0, 0.0), CpuTimes(2.0, 1.0), CpuTimes(2.0, 1.0)])
    clock = FakeClock(0.0)
    tracker = CpuUsageTracker(clock=clock, cpu_times=lambda: next(samples), cpu_count=2)

    clock.now = 2.0
    tracker.sample()
    assert tracker.user == pytest.approx(0.7 * 0.5)
    assert tracker.system == pytest.approx(0.7 * 0.25)

    clock.now = 4.0
    tracker.sample()
    assert tracker.user == pytest.approx(0.3 * 0.35)


def test_memory_usage_reports_current_rss():
    with patch("telemetry.psutil.Process") as process:
        process.return_value.memory_info.return_value = SimpleNamespace(rss=123, vms=456)
        assert memory_usage() == {"rss": 123, "vms": 456}
