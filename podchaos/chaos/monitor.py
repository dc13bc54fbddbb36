"""
Health monitoring of chaos victims.

A monitoring session polls one target on a fixed interval until its own
deadline passes, reporting failures, restarts, readiness loss and scheduling
failures. Sessions run in the background next to the chaos they observe and
are never joined by the campaign that started them.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from ..framework.models import DirectoryError
from .directory import TargetDirectory
from .models import Target, TargetPhase

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class MonitorEventKind(Enum):
    """Health observations reported while a session runs."""

    POD_FAILED = "pod_failed"
    CONTAINER_RESTARTED = "container_restarted"
    CONTAINER_NOT_READY = "container_not_ready"
    SCHEDULING_FAILED = "scheduling_failed"
    FETCH_ERROR = "fetch_error"


class MonitorOutcome(Enum):
    """How a monitoring session ended."""

    COMPLETED = "completed"
    TARGET_FAILED = "target_failed"
    CANCELLED = "cancelled"


@dataclass
class MonitorEvent:
    """A single health observation."""

    kind: MonitorEventKind
    target: str
    message: str
    container: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "target": self.target,
            "message": self.message,
            "container": self.container,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class MonitorReport:
    """
    Everything a monitoring session observed.

    Attributes:
        target: Monitored target name
        namespace: Target namespace
        duration_seconds: Requested monitoring duration
        outcome: How the session ended
        events: Observations in the order they were made
        polls: Number of successful status fetches
    """

    target: str
    namespace: str
    duration_seconds: float
    outcome: MonitorOutcome = MonitorOutcome.COMPLETED
    events: list[MonitorEvent] = field(default_factory=list)
    polls: int = 0

    def events_of(self, kind: MonitorEventKind) -> list[MonitorEvent]:
        return [e for e in self.events if e.kind == kind]

    @property
    def healthy(self) -> bool:
        return self.outcome == MonitorOutcome.COMPLETED and not self.events

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "namespace": self.namespace,
            "duration_seconds": self.duration_seconds,
            "outcome": self.outcome.value,
            "events": [e.to_dict() for e in self.events],
            "polls": self.polls,
        }


class MonitorSession:
    """
    One target under observation, bounded by its own deadline.

    The deadline is fixed when the session is created, so a session whose
    worker starts late still stops on time.
    """

    def __init__(
        self,
        target: Target,
        namespace: str,
        duration_seconds: float,
        poll_interval: float,
        clock: Callable[[], float],
    ):
        self.target = target
        self.namespace = namespace
        self.duration_seconds = duration_seconds
        self.poll_interval = poll_interval
        self.deadline = clock() + duration_seconds
        self._stop = threading.Event()

    def cancel(self) -> None:
        """Stop the session at its next wake-up."""
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def wait(self) -> bool:
        """Sleep one poll interval; True if the session was cancelled meanwhile."""
        return self._stop.wait(self.poll_interval)


class HealthMonitor:
    """
    Polls victim status during a campaign.

    Every background session gets its own daemon thread, so sessions never
    queue behind each other and each one starts polling as soon as it is
    started. Finished sessions are forgotten.

    Attributes:
        directory: Target directory used to re-fetch status
        poll_interval: Seconds between polls
    """

    def __init__(
        self,
        directory: TargetDirectory,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.directory = directory
        self.poll_interval = poll_interval
        self.clock = clock
        self._sessions: dict[MonitorSession, threading.Thread] = {}
        self._lock = threading.Lock()

    @property
    def active_sessions(self) -> int:
        """Number of background sessions that have not finished yet."""
        with self._lock:
            return len(self._sessions)

    def session(self, target: Target, namespace: str, duration_seconds: float) -> MonitorSession:
        return MonitorSession(target, namespace, duration_seconds, self.poll_interval, self.clock)

    def watch(
        self,
        target: Target,
        namespace: str,
        duration_seconds: float,
        session: Optional[MonitorSession] = None,
    ) -> MonitorReport:
        """
        Observe a target until the duration elapses or it fails.

        Each tick checks, in order: deadline reached (stop), failed phase
        (report, stop), restart count above the last seen value (report),
        containers not ready (report), PodScheduled=False (report).

        Args:
            target: Snapshot taken when chaos started; its restart counts are
                the baseline
            namespace: Target namespace
            duration_seconds: How long to observe
            session: Pre-created session (its deadline wins)

        Returns:
            MonitorReport with all observations
        """
        session = session or self.session(target, namespace, duration_seconds)
        report = MonitorReport(target=target.name, namespace=namespace, duration_seconds=duration_seconds)
        last_restarts = dict(target.restart_counts)
        logger.info(f"Monitoring pod health: {target.name} for {duration_seconds}s")

        while True:
            if session.wait():
                report.outcome = MonitorOutcome.CANCELLED
                break
            if self.clock() >= session.deadline:
                report.outcome = MonitorOutcome.COMPLETED
                break

            try:
                current = self.directory.get(namespace, target.name)
            except DirectoryError as e:
                self._record(report, MonitorEventKind.FETCH_ERROR, f"Failed to get pod status: {e}")
                continue
            report.polls += 1

            if current.phase == TargetPhase.FAILED:
                self._record(report, MonitorEventKind.POD_FAILED, f"Pod failed - phase: {current.phase.value}")
                report.outcome = MonitorOutcome.TARGET_FAILED
                break

            for container, count in current.restart_counts.items():
                if count > last_restarts.get(container, 0):
                    self._record(
                        report, MonitorEventKind.CONTAINER_RESTARTED,
                        f"Container {container} restarted {count} times", container,
                    )
                    last_restarts[container] = count

            for container, ready in current.ready.items():
                if not ready:
                    self._record(
                        report, MonitorEventKind.CONTAINER_NOT_READY,
                        f"Container {container} not ready", container,
                    )

            for condition in current.conditions:
                if condition.type == "PodScheduled" and condition.status == "False":
                    self._record(
                        report, MonitorEventKind.SCHEDULING_FAILED,
                        f"Pod scheduling failed: {condition.message or condition.reason}",
                    )

        logger.info(f"Monitoring completed for pod {target.name}: {report.outcome.value}")
        return report

    def start(self, target: Target, namespace: str, duration_seconds: float) -> Future:
        """
        Start watching a target on its own background thread.

        Returns:
            Future resolving to the MonitorReport
        """
        session = self.session(target, namespace, duration_seconds)
        future: Future = Future()
        thread = threading.Thread(
            target=self._run,
            args=(session, future),
            name=f"podchaos-monitor-{target.name}",
            daemon=True,
        )
        with self._lock:
            self._sessions[session] = thread
        thread.start()
        return future

    def _run(self, session: MonitorSession, future: Future) -> None:
        try:
            if not future.set_running_or_notify_cancel():
                return
            try:
                report = self.watch(session.target, session.namespace, session.duration_seconds, session)
            except Exception as e:
                logger.error(f"Monitoring failed for pod {session.target.name}: {e}")
                future.set_exception(e)
            else:
                future.set_result(report)
        finally:
            with self._lock:
                self._sessions.pop(session, None)

    def shutdown(self, cancel: bool = True, wait: bool = True) -> None:
        """Cancel outstanding sessions (optionally) and wait for their threads."""
        with self._lock:
            running = list(self._sessions.items())
        for session, thread in running:
            if cancel:
                session.cancel()
            if wait:
                thread.join()

    @staticmethod
    def _record(
        report: MonitorReport,
        kind: MonitorEventKind,
        message: str,
        container: Optional[str] = None,
    ) -> None:
        report.events.append(MonitorEvent(kind=kind, target=report.target, message=message, container=container))
        logger.warning(f"{report.target}: {message}")
