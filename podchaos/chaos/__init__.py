"""
Chaos campaign engine.

Resolves eligible targets, samples victims and applies pod deletion, stress,
process kills or memory corruption to them, with concurrent health
monitoring and an optional cron-driven trigger.
"""

from .models import (
    Campaign,
    CampaignReport,
    CampaignState,
    ChaosKind,
    ExecResult,
    StressAction,
    StressKind,
    Target,
    TargetPhase,
    VictimResult,
)

from .directory import TargetDirectory, is_eligible
from .sampler import sample
from .commands import synthesize, kill_process_command, corrupt_memory_command
from .executor import RemoteExecutor

from .monitor import (
    HealthMonitor,
    MonitorEvent,
    MonitorEventKind,
    MonitorOutcome,
    MonitorReport,
    MonitorSession,
)

from .dispatcher import (
    CampaignDispatcher,
    ChaosPolicy,
    CorruptMemoryPolicy,
    DeletePolicy,
    InTargetStressPolicy,
    KillProcessPolicy,
    RemoteStressPolicy,
    policy_for,
)

from .cron import CronHandle, CronTrigger, CronTriggerConfig, FiringResult
from .cleanup import Cleanup, CleanupReport, seed_test_targets

__all__ = [
    # Models
    "Campaign",
    "CampaignReport",
    "CampaignState",
    "ChaosKind",
    "ExecResult",
    "StressAction",
    "StressKind",
    "Target",
    "TargetPhase",
    "VictimResult",
    # Directory and sampling
    "TargetDirectory",
    "is_eligible",
    "sample",
    # Commands and execution
    "synthesize",
    "kill_process_command",
    "corrupt_memory_command",
    "RemoteExecutor",
    # Monitoring
    "HealthMonitor",
    "MonitorEvent",
    "MonitorEventKind",
    "MonitorOutcome",
    "MonitorReport",
    "MonitorSession",
    # Dispatch
    "CampaignDispatcher",
    "ChaosPolicy",
    "CorruptMemoryPolicy",
    "DeletePolicy",
    "InTargetStressPolicy",
    "KillProcessPolicy",
    "RemoteStressPolicy",
    "policy_for",
    # Cron
    "CronHandle",
    "CronTrigger",
    "CronTriggerConfig",
    "FiringResult",
    # Cleanup
    "Cleanup",
    "CleanupReport",
    "seed_test_targets",
]
