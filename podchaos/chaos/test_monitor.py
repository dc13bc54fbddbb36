"""
Tests for victim health monitoring.

Sessions run with a zero poll interval and a clock that advances one second
per read, so a session of N seconds performs N-1 polls.
"""

import os
import time

import pytest

from podchaos.chaos.conftest import FakeClock, make_pod
from podchaos.chaos.directory import TargetDirectory
from podchaos.chaos.models import Target
from podchaos.chaos.monitor import HealthMonitor, MonitorEventKind, MonitorOutcome


@pytest.fixture
def monitor(cluster, clock):
    health_monitor = HealthMonitor(TargetDirectory(cluster), poll_interval=0, clock=clock)
    yield health_monitor
    health_monitor.shutdown()


def snapshot(cluster, name="web"):
    return Target.from_pod(cluster.pods[("default", name)])


class TestWatch:

    def test_healthy_target_runs_to_deadline(self, cluster, monitor):
        cluster.add_pod("web")
        report = monitor.watch(snapshot(cluster), "default", 3)

        assert report.outcome == MonitorOutcome.COMPLETED
        assert report.polls == 2
        assert report.healthy
        assert report.to_dict()["outcome"] == "completed"

    def test_failed_phase_stops_the_session(self, cluster, monitor):
        cluster.add_pod("web")
        cluster.status_sequence["web"] = [make_pod("web"), make_pod("web", phase="Failed")]

        report = monitor.watch(snapshot(cluster), "default", 10)

        assert report.outcome == MonitorOutcome.TARGET_FAILED
        assert report.polls == 2
        assert [e.kind for e in report.events] == [MonitorEventKind.POD_FAILED]

    def test_restarts_reported_when_count_increases(self, cluster, monitor):
        cluster.add_pod("web", restarts=0)
        cluster.status_sequence["web"] = [
            make_pod("web", restarts=1),
            make_pod("web", restarts=1),
            make_pod("web", restarts=2),
        ]

        report = monitor.watch(snapshot(cluster), "default", 5)

        restarts = report.events_of(MonitorEventKind.CONTAINER_RESTARTED)
        assert [e.message for e in restarts] == [
            "Container main restarted 1 times",
            "Container main restarted 2 times",
        ]
        assert restarts[0].container == "main"
        assert report.outcome == MonitorOutcome.COMPLETED

    def test_restarts_before_chaos_are_baseline(self, cluster, monitor):
        cluster.add_pod("web", restarts=7)
        report = monitor.watch(snapshot(cluster), "default", 4)
        assert report.events_of(MonitorEventKind.CONTAINER_RESTARTED) == []

    def test_not_ready_reported_every_poll(self, cluster, monitor):
        cluster.add_pod("web", ready=False)
        report = monitor.watch(snapshot(cluster), "default", 3)
        assert len(report.events_of(MonitorEventKind.CONTAINER_NOT_READY)) == 2
        assert not report.healthy

    def test_scheduling_failure_reported(self, cluster, monitor):
        cluster.add_pod(
            "web",
            phase="Pending",
            conditions=[{
                "type": "PodScheduled",
                "status": "False",
                "reason": "Unschedulable",
                "message": "0/3 nodes are available",
            }],
        )
        report = monitor.watch(snapshot(cluster), "default", 2)
        events = report.events_of(MonitorEventKind.SCHEDULING_FAILED)
        assert len(events) == 1
        assert "0/3 nodes are available" in events[0].message

    def test_fetch_errors_do_not_stop_the_session(self, cluster, monitor):
        cluster.add_pod("web")
        target = snapshot(cluster)
        del cluster.pods[("default", "web")]

        report = monitor.watch(target, "default", 3)

        assert report.outcome == MonitorOutcome.COMPLETED
        assert report.polls == 0
        assert len(report.events_of(MonitorEventKind.FETCH_ERROR)) == 2


class TestBackgroundSessions:

    def test_start_returns_future_with_report(self, cluster, monitor):
        cluster.add_pod("web")
        future = monitor.start(snapshot(cluster), "default", 3)
        report = future.result(timeout=5)
        assert report.target == "web"
        assert report.outcome == MonitorOutcome.COMPLETED

    def test_shutdown_cancels_running_sessions(self, cluster):
        cluster.add_pod("web")
        health_monitor = HealthMonitor(TargetDirectory(cluster), poll_interval=0.05, clock=time.monotonic)
        future = health_monitor.start(snapshot(cluster), "default", 3600)

        health_monitor.shutdown(cancel=True, wait=True)

        assert future.result(timeout=5).outcome == MonitorOutcome.CANCELLED

    def test_deadline_fixed_at_session_creation(self, cluster):
        clock = FakeClock(start=100.0, step=0.0)
        health_monitor = HealthMonitor(TargetDirectory(cluster), poll_interval=0, clock=clock)
        session = health_monitor.session(Target(name="web", namespace="default"), "default", 30)
        assert session.deadline == 130.0

    def test_sessions_beyond_pool_size_all_poll(self, cluster):
        cluster.add_pod("web")
        health_monitor = HealthMonitor(TargetDirectory(cluster), poll_interval=0.05, clock=time.monotonic)
        count = min(32, (os.cpu_count() or 1) + 4) + 3
        try:
            futures = [health_monitor.start(snapshot(cluster), "default", 1) for _ in range(count)]
            reports = [future.result(timeout=10) for future in futures]
        finally:
            health_monitor.shutdown()

        assert all(report.polls > 0 for report in reports)
        assert all(report.outcome == MonitorOutcome.COMPLETED for report in reports)

    def test_finished_sessions_are_released(self, cluster, monitor):
        cluster.add_pod("web")
        futures = [monitor.start(snapshot(cluster), "default", 2) for _ in range(8)]
        for future in futures:
            future.result(timeout=5)

        deadline = time.monotonic() + 5
        while monitor.active_sessions and time.monotonic() < deadline:
            time.sleep(0.01)
        assert monitor.active_sessions == 0
