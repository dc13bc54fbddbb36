"""
Data models for the chaos campaign engine.

This module defines the core data structures used by the engine: target
snapshots, campaigns, stress actions, per-victim results and campaign
reports.
"""

import re
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..framework.models import ChaosError


CHAOS_TYPE_LABEL = "chaos-type"
TARGET_POD_LABEL = "target-pod"
CREATED_BY_LABEL = "created"
CREATED_BY_VALUE = "chaos-monkey"

_DURATION_RE = re.compile(r"^([0-9]+)([smh])$")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}


def parse_duration(duration: str) -> int:
    """
    Convert a duration string such as ``30s``, ``2m`` or ``1h`` to seconds.

    Raises:
        ValueError: If the string is not a single number followed by s, m or h
    """
    match = _DURATION_RE.match(duration or "")
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}. Expected e.g. 30s, 2m, 1h")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def parse_labels(label_string: str) -> dict[str, str]:
    """Convert a comma-separated ``k=v`` selector into a dict, skipping malformed pairs."""
    labels: dict[str, str] = {}
    if not label_string:
        return labels
    for pair in label_string.split(","):
        parts = pair.strip().split("=")
        if len(parts) == 2:
            labels[parts[0].strip()] = parts[1].strip()
    return labels


class ChaosKind(Enum):
    """Types of chaos a campaign can apply."""

    POD_DELETE = "pod-delete"
    CPU_STRESS = "cpu-stress"
    MEMORY_STRESS = "memory-stress"
    IN_POD_CPU_STRESS = "in-pod-cpu-stress"
    IN_POD_MEMORY_STRESS = "in-pod-memory-stress"
    IN_POD_MIXED_STRESS = "in-pod-mixed-stress"
    KILL_PROCESS = "kill-process"
    CORRUPT_MEMORY = "corrupt-memory"
    CRON_TRIGGER = "cron-trigger"


class StressKind(Enum):
    """Resource a synthesized stress command exhausts."""

    CPU = "cpu"
    MEMORY = "memory"
    IO = "io"
    MIXED = "mixed"


class TargetPhase(Enum):
    """Lifecycle phase of a target."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TargetPhase":
        for phase in cls:
            if phase.value == value:
                return phase
        return cls.UNKNOWN


class CampaignState(Enum):
    """Lifecycle of a single campaign dispatch."""

    CREATED = "created"
    TARGETS_RESOLVED = "targets_resolved"
    SKIPPED = "skipped"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


@dataclass(frozen=True)
class PodCondition:
    """A single entry of a pod's status conditions."""

    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass(frozen=True)
class Target:
    """
    Read-only snapshot of a pod eligible for chaos.

    Attributes:
        name: Pod name
        namespace: Pod namespace
        containers: Declared container names, in spec order
        phase: Current lifecycle phase
        terminating: Whether a deletion timestamp is set
        ready: Readiness per container
        restart_counts: Restart count per container
        labels: Pod labels
        conditions: Pod status conditions
    """

    name: str
    namespace: str
    containers: tuple[str, ...] = ()
    phase: TargetPhase = TargetPhase.RUNNING
    terminating: bool = False
    ready: dict[str, bool] = field(default_factory=dict, hash=False, compare=False)
    restart_counts: dict[str, int] = field(default_factory=dict, hash=False, compare=False)
    labels: dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    conditions: tuple[PodCondition, ...] = field(default=(), hash=False, compare=False)

    @classmethod
    def from_pod(cls, pod: dict[str, Any]) -> "Target":
        """Build a snapshot from a pod object as returned by the API server."""
        metadata = pod.get("metadata", {})
        spec = pod.get("spec", {})
        status = pod.get("status", {})
        statuses = status.get("containerStatuses") or []
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            containers=tuple(c.get("name", "") for c in spec.get("containers") or []),
            phase=TargetPhase.parse(status.get("phase")),
            terminating=metadata.get("deletionTimestamp") is not None,
            ready={s.get("name", ""): bool(s.get("ready")) for s in statuses},
            restart_counts={s.get("name", ""): int(s.get("restartCount", 0)) for s in statuses},
            labels=dict(metadata.get("labels") or {}),
            conditions=tuple(
                PodCondition(
                    type=c.get("type", ""),
                    status=c.get("status", ""),
                    reason=c.get("reason", ""),
                    message=c.get("message", ""),
                )
                for c in status.get("conditions") or []
            ),
        )

    @property
    def is_terminal(self) -> bool:
        return self.phase in (TargetPhase.SUCCEEDED, TargetPhase.FAILED)

    @property
    def is_chaos_infrastructure(self) -> bool:
        """Check if the engine itself created this pod."""
        return (
            bool(self.labels.get(CHAOS_TYPE_LABEL))
            or self.labels.get(CREATED_BY_LABEL) == CREATED_BY_VALUE
        )

    @property
    def first_container(self) -> Optional[str]:
        return self.containers[0] if self.containers else None


@dataclass(frozen=True)
class Campaign:
    """
    One invocation of a chaos kind against a set of targets.

    Attributes:
        kind: Chaos kind to apply
        namespace: Namespace to operate on
        label_selector: Label selector for candidate targets
        duration: Chaos duration (e.g. 30s, 2m, 1h)
        intensity: Magnitude on a 1-10 scale
        target_count: Number of victims requested
        dry_run: Resolve and select without mutating anything
        monitor: Watch in-pod victims while chaos runs
        container: Container to exec into (defaults to the first declared)
    """

    kind: ChaosKind
    namespace: str = "default"
    label_selector: str = ""
    duration: str = "30s"
    intensity: int = 5
    target_count: int = 1
    dry_run: bool = False
    monitor: bool = True
    container: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.intensity <= 10:
            raise ValueError(f"Invalid intensity: {self.intensity}. Must be between 1 and 10")
        if self.target_count < 0:
            raise ValueError(f"Invalid target count: {self.target_count}. Must be >= 0")
        parse_duration(self.duration)

    @property
    def duration_seconds(self) -> int:
        return parse_duration(self.duration)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "kind": self.kind.value,
            "namespace": self.namespace,
            "label_selector": self.label_selector,
            "duration": self.duration,
            "intensity": self.intensity,
            "target_count": self.target_count,
            "dry_run": self.dry_run,
            "monitor": self.monitor,
            "container": self.container,
        }


@dataclass(frozen=True)
class StressAction:
    """Stress to synthesize into a shell command. Pure value."""

    kind: StressKind
    intensity: int
    duration: str

    def command(self) -> str:
        from .commands import synthesize

        return synthesize(self.kind, self.intensity, self.duration)


@dataclass
class ExecResult:
    """Outcome of a command run inside a container."""

    target: str
    container: str
    exit_code: int
    output: list[str] = field(default_factory=list)
    retried: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass
class VictimResult:
    """
    Outcome of applying chaos to one selected target.

    Attributes:
        target: Target name
        action: Short action description (delete, exec, stress-runner)
        success: Whether the action succeeded
        message: Human-readable outcome
        container: Container the action ran in (exec kinds)
        exit_code: Remote exit code (exec kinds)
        output: Collected remote output (exec kinds)
        error: Error record when the action failed
    """

    target: str
    action: str
    success: bool
    message: str = ""
    container: Optional[str] = None
    exit_code: Optional[int] = None
    output: list[str] = field(default_factory=list)
    error: Optional[ChaosError] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "target": self.target,
            "action": self.action,
            "success": self.success,
            "message": self.message,
            "container": self.container,
            "exit_code": self.exit_code,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class CampaignReport:
    """
    Result of dispatching a campaign.

    Attributes:
        campaign: The dispatched campaign
        state: Final state of the campaign state machine
        reason: Why the campaign was skipped (if it was)
        eligible_count: Number of eligible targets found
        selected: Names of the targets selected as victims
        victims: Per-victim results
        warnings: Non-fatal warnings (e.g. clamped target count)
        monitors: Pending health monitor reports, keyed by target name
        start_time: When dispatch began
        end_time: When dispatch completed
    """

    campaign: Campaign
    state: CampaignState = CampaignState.CREATED
    reason: str = ""
    eligible_count: int = 0
    selected: list[str] = field(default_factory=list)
    victims: list[VictimResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    monitors: dict[str, Future] = field(default_factory=dict)
    start_time: datetime = field(default_factory=datetime.utcnow)
    end_time: Optional[datetime] = None

    @property
    def attempted(self) -> int:
        return len(self.victims)

    @property
    def succeeded(self) -> int:
        return sum(1 for v in self.victims if v.success)

    @property
    def tally(self) -> str:
        return f"{self.succeeded}/{self.attempted}"

    @property
    def skipped(self) -> bool:
        return self.state == CampaignState.SKIPPED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "campaign": self.campaign.to_dict(),
            "state": self.state.value,
            "reason": self.reason,
            "eligible_count": self.eligible_count,
            "selected": self.selected,
            "victims": [v.to_dict() for v in self.victims],
            "warnings": self.warnings,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }
