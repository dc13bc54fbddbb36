"""
Target directory.

Enumerates pods that are eligible to become chaos victims.
"""

import logging

from ..framework.cluster import ClusterDirectory
from ..framework.models import ClusterError, DirectoryError
from .models import Target

logger = logging.getLogger(__name__)


def is_eligible(target: Target) -> bool:
    """
    Check whether a target may be selected as a victim.

    Chaos infrastructure (stress runners, test pods we created), terminal
    phases and pods already being deleted are never eligible.
    """
    if target.is_chaos_infrastructure:
        return False
    if target.is_terminal or target.terminating:
        return False
    return True


class TargetDirectory:
    """Read-only view of the cluster's pods for victim selection."""

    def __init__(self, cluster: ClusterDirectory):
        self.cluster = cluster

    def list_all(self, namespace: str, label_selector: str = "") -> list[Target]:
        """
        List every pod matching the selector, eligible or not.

        Raises:
            DirectoryError: If the cluster listing fails
        """
        try:
            pods = self.cluster.list_pods(namespace, label_selector)
        except ClusterError as e:
            raise DirectoryError(f"Failed to list pods in namespace {namespace}: {e}") from e
        return [Target.from_pod(p) for p in pods]

    def list_eligible(self, namespace: str, label_selector: str = "") -> list[Target]:
        """
        List pods matching the selector that are eligible for chaos.

        An empty list is a valid answer, not an error.

        Raises:
            DirectoryError: If the cluster listing fails
        """
        targets = self.list_all(namespace, label_selector)
        eligible = [t for t in targets if is_eligible(t)]
        logger.debug(
            f"{len(eligible)}/{len(targets)} pods eligible in {namespace}"
            + (f" with labels {label_selector}" if label_selector else "")
        )
        return eligible

    def get(self, namespace: str, name: str) -> Target:
        """
        Fetch a fresh snapshot of one pod.

        Raises:
            DirectoryError: If the pod cannot be fetched
        """
        try:
            return Target.from_pod(self.cluster.get_pod(namespace, name))
        except ClusterError as e:
            raise DirectoryError(f"Failed to get pod {namespace}/{name}: {e}") from e
