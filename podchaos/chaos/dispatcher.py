"""
Campaign dispatch.

Every chaos kind runs through one pipeline: resolve eligible targets, sample
victims, apply the kind's policy to each victim, tally. Kinds differ only in
their ``ChaosPolicy``: an eligibility predicate, a command synthesis hook and
a post-exec interpretation hook.

Per-victim failures are recorded on the report and never abort the remaining
victims. Directory failures abort the campaign.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from ..framework.cluster import ClusterDirectory, ExecTransport
from ..framework.models import (
    ChaosError,
    ClusterError,
    ErrorCategory,
    ErrorSeverity,
    ExecOpenError,
    PodChaosError,
)
from . import commands
from .directory import TargetDirectory
from .executor import RemoteExecutor
from .models import (
    CHAOS_TYPE_LABEL,
    TARGET_POD_LABEL,
    Campaign,
    CampaignReport,
    CampaignState,
    ChaosKind,
    ExecResult,
    StressKind,
    Target,
    VictimResult,
)
from .monitor import HealthMonitor
from .sampler import sample

logger = logging.getLogger(__name__)

STRESS_RUNNER_IMAGE = "alpine:latest"


class ChaosPolicy(ABC):
    """Per-kind behaviour plugged into the dispatch pipeline."""

    action: str = ""

    def eligible(self, target: Target) -> bool:
        """Extra selection predicate on top of the directory's eligibility rules."""
        return True

    @abstractmethod
    def apply(
        self,
        dispatcher: "CampaignDispatcher",
        campaign: Campaign,
        target: Target,
        report: CampaignReport,
    ) -> VictimResult:
        """
        Apply chaos to one victim.

        Raises:
            PodChaosError: On failure; the dispatcher records it per victim
        """


class DeletePolicy(ChaosPolicy):
    """Delete the victim pod outright."""

    action = "delete"

    def apply(self, dispatcher, campaign, target, report):
        dispatcher.cluster.delete_pod(campaign.namespace, target.name)
        return VictimResult(target=target.name, action=self.action, success=True, message="Pod deleted")


class RemoteStressPolicy(ChaosPolicy):
    """Start a labelled stress-runner pod next to the victim."""

    action = "stress-runner"

    def __init__(self, stress_kind: StressKind, memory_limit: str = "512Mi"):
        self.stress_kind = stress_kind
        self.memory_limit = memory_limit

    def manifest(self, campaign: Campaign, target: Target) -> dict[str, Any]:
        name = f"{self.stress_kind.value}stress-{target.name}-{int(time.time())}"
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": campaign.namespace,
                "labels": {
                    CHAOS_TYPE_LABEL: campaign.kind.value,
                    TARGET_POD_LABEL: target.name,
                },
            },
            "spec": {
                "containers": [
                    {
                        "name": "stress",
                        "image": STRESS_RUNNER_IMAGE,
                        "command": [
                            "sh", "-c",
                            commands.synthesize(self.stress_kind, campaign.intensity, campaign.duration),
                        ],
                        "resources": {
                            "requests": {"cpu": "100m", "memory": "128Mi"},
                            "limits": {"cpu": "1000m", "memory": self.memory_limit},
                        },
                    }
                ],
                "restartPolicy": "Never",
            },
        }

    def apply(self, dispatcher, campaign, target, report):
        manifest = self.manifest(campaign, target)
        dispatcher.cluster.create_pod(campaign.namespace, manifest)
        return VictimResult(
            target=target.name,
            action=self.action,
            success=True,
            message=f"Stress runner {manifest['metadata']['name']} created",
        )


class ExecPolicy(ChaosPolicy):
    """Run a synthesized command inside the victim, optionally monitored."""

    action = "exec"
    monitored = True

    def eligible(self, target):
        return bool(target.containers)

    @abstractmethod
    def command(self, campaign: Campaign) -> str:
        """Build the shell command for this campaign."""

    def interpret(self, result: ExecResult) -> tuple[bool, str]:
        """Turn an exec result into (success, message)."""
        if result.succeeded:
            return True, "Command completed"
        return False, f"Command exited with code {result.exit_code}"

    def apply(self, dispatcher, campaign, target, report):
        container = campaign.container or target.first_container
        command = self.command(campaign)
        logger.info(f"Exec into {target.name} (container: {container})")
        logger.debug(f"Command: {command}")

        if self.monitored and campaign.monitor and dispatcher.monitor is not None:
            future = dispatcher.monitor.start(target, campaign.namespace, campaign.duration_seconds)
            report.monitors[target.name] = future

        result = dispatcher.executor.run(target, container, command)
        success, message = self.interpret(result)
        error = None
        if not success:
            error = ChaosError(
                error_code="EXEC_NONZERO_EXIT",
                message=message,
                category=ErrorCategory.EXECUTION,
                context={"target": target.name, "container": result.container, "exit_code": result.exit_code},
            )
        return VictimResult(
            target=target.name,
            action=self.action,
            success=success,
            message=message,
            container=result.container,
            exit_code=result.exit_code,
            output=result.output,
            error=error,
        )


class InTargetStressPolicy(ExecPolicy):
    """Burn CPU, memory or both inside the victim's own container."""

    action = "in-pod-stress"

    def __init__(self, stress_kind: StressKind):
        self.stress_kind = stress_kind

    def command(self, campaign):
        return commands.synthesize(self.stress_kind, campaign.intensity, campaign.duration)


class KillProcessPolicy(ExecPolicy):
    """SIGKILL the first processes of the victim's container."""

    action = "kill-process"

    def command(self, campaign):
        return commands.kill_process_command(campaign.intensity)


class CorruptMemoryPolicy(ExecPolicy):
    """Attempt a write to /dev/mem; most runtimes refuse, which is reported, not failed."""

    action = "corrupt-memory"

    def command(self, campaign):
        return commands.corrupt_memory_command(campaign.intensity)

    def interpret(self, result):
        if result.succeeded and any(commands.MEMORY_CORRUPTION_REFUSED in line for line in result.output):
            return True, "Memory corruption attempted; /dev/mem is restricted by the runtime"
        if result.succeeded:
            return True, "Memory corrupted"
        return super().interpret(result)


POLICIES: dict[ChaosKind, ChaosPolicy] = {
    ChaosKind.POD_DELETE: DeletePolicy(),
    ChaosKind.CPU_STRESS: RemoteStressPolicy(StressKind.CPU),
    ChaosKind.MEMORY_STRESS: RemoteStressPolicy(StressKind.MEMORY, memory_limit="1Gi"),
    ChaosKind.IN_POD_CPU_STRESS: InTargetStressPolicy(StressKind.CPU),
    ChaosKind.IN_POD_MEMORY_STRESS: InTargetStressPolicy(StressKind.MEMORY),
    ChaosKind.IN_POD_MIXED_STRESS: InTargetStressPolicy(StressKind.MIXED),
    ChaosKind.KILL_PROCESS: KillProcessPolicy(),
    ChaosKind.CORRUPT_MEMORY: CorruptMemoryPolicy(),
}


def policy_for(kind: ChaosKind) -> ChaosPolicy:
    """
    Look up the policy for a chaos kind.

    Raises:
        ValueError: For kinds that are not dispatchable (cron-trigger)
    """
    try:
        return POLICIES[kind]
    except KeyError:
        raise ValueError(f"Chaos kind {kind.value} cannot be dispatched as a campaign") from None


class CampaignDispatcher:
    """
    Runs campaigns: CREATED -> TARGETS_RESOLVED -> (SKIPPED | IN_FLIGHT) -> COMPLETED.

    Attributes:
        cluster: Cluster directory API (list/get/create/delete)
        directory: Eligible-target view over the cluster
        executor: Remote executor for in-pod kinds
        monitor: Health monitor for in-pod kinds (None disables monitoring)
        rng: Random source for victim sampling
    """

    def __init__(
        self,
        cluster: ClusterDirectory,
        transport: ExecTransport,
        monitor: Optional[HealthMonitor] = None,
        rng: Optional[random.Random] = None,
        executor: Optional[RemoteExecutor] = None,
    ):
        self.cluster = cluster
        self.directory = TargetDirectory(cluster)
        self.executor = executor or RemoteExecutor(transport)
        self.monitor = monitor
        self.rng = rng or random.Random()

    def dispatch(self, campaign: Campaign) -> CampaignReport:
        """
        Run one campaign to completion.

        Args:
            campaign: Campaign to dispatch

        Returns:
            CampaignReport with per-victim results and the success tally

        Raises:
            DirectoryError: If eligible targets cannot be listed
            ValueError: If the campaign kind is not dispatchable
        """
        policy = policy_for(campaign.kind)
        report = CampaignReport(campaign=campaign)
        logger.info(f"Applying {campaign.kind.value} chaos to namespace: {campaign.namespace}")

        eligible = [t for t in self.directory.list_eligible(campaign.namespace, campaign.label_selector)
                    if policy.eligible(t)]
        report.eligible_count = len(eligible)
        report.state = CampaignState.TARGETS_RESOLVED

        if not eligible:
            reason = f"No available pods found in namespace {campaign.namespace}"
            if campaign.label_selector:
                reason += f" with labels {campaign.label_selector}"
            return self._skip(report, reason)
        if campaign.target_count == 0:
            return self._skip(report, "Target count is 0; nothing to do")

        if campaign.target_count > len(eligible):
            warning = (
                f"Requested {campaign.target_count} pods but only {len(eligible)} are available"
            )
            logger.warning(warning)
            report.warnings.append(warning)

        victims = sample(eligible, campaign.target_count, self.rng)
        report.selected = [v.name for v in victims]

        if campaign.dry_run:
            logger.info(f"DRY RUN - would apply {campaign.kind.value} to {len(victims)} pods:")
            for i, victim in enumerate(victims, 1):
                logger.info(f"  {i}. {victim.name} (Status: {victim.phase.value})")
            report.reason = "dry run"
            return self._finish(report)

        report.state = CampaignState.IN_FLIGHT
        for i, victim in enumerate(victims, 1):
            logger.info(f"{policy.action} {i}/{len(victims)}: {victim.name}")
            result = self._apply(policy, campaign, victim, report)
            report.victims.append(result)
            if result.success:
                logger.info(f"{victim.name}: {result.message}")
            else:
                logger.error(f"{victim.name}: {result.message}")

        return self._finish(report)

    def _apply(
        self, policy: ChaosPolicy, campaign: Campaign, victim: Target, report: CampaignReport,
    ) -> VictimResult:
        try:
            return policy.apply(self, campaign, victim, report)
        except ExecOpenError as e:
            code, category = "EXEC_OPEN_FAILED", ErrorCategory.EXECUTION
            remediation = "Check the container name and that the kubelet is reachable"
            context = {"target": victim.name, "container": e.container}
            error = e
        except ClusterError as e:
            code, category = "CLUSTER_MUTATION_FAILED", ErrorCategory.MUTATION
            remediation = "Check RBAC permissions for pods in this namespace"
            context = {"target": victim.name, "stderr": e.stderr}
            error = e
        except PodChaosError as e:
            code, category = "CHAOS_FAILED", ErrorCategory.EXECUTION
            remediation = None
            context = {"target": victim.name}
            error = e
        return VictimResult(
            target=victim.name,
            action=policy.action,
            success=False,
            message=str(error),
            error=ChaosError(
                error_code=code,
                message=str(error),
                category=category,
                severity=ErrorSeverity.WARNING,
                context=context,
                remediation=remediation,
            ),
        )

    def _skip(self, report: CampaignReport, reason: str) -> CampaignReport:
        logger.warning(reason)
        report.state = CampaignState.SKIPPED
        report.reason = reason
        report.end_time = datetime.utcnow()
        return report

    def _finish(self, report: CampaignReport) -> CampaignReport:
        report.state = CampaignState.COMPLETED
        report.end_time = datetime.utcnow()
        if not report.campaign.dry_run:
            logger.info(
                f"Successfully applied {report.campaign.kind.value} to {report.tally} pods "
                f"in namespace '{report.campaign.namespace}'"
            )
        return report
