"""
Cleanup of engine-created pods and creation of disposable test targets.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from ..framework.cluster import ClusterDirectory
from ..framework.models import ClusterError, DirectoryError
from .models import CHAOS_TYPE_LABEL, CREATED_BY_LABEL, CREATED_BY_VALUE

logger = logging.getLogger(__name__)

TEST_APP_LABEL = "chaos-test"

DEFAULT_TEST_IMAGES = [
    "nginx:alpine",
    "busybox:latest",
    "alpine:latest",
    "redis:alpine",
    "postgres:alpine",
    "httpd:alpine",
    "mysql:8.0",
    "mongo:latest",
]


@dataclass
class CleanupReport:
    """Pods removed (or not) by a cleanup pass."""

    namespace: str
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "deleted": self.deleted,
            "failed": self.failed,
        }


class Cleanup:
    """
    Removes test targets (``created=chaos-monkey``) and stress runners
    (any pod carrying the ``chaos-type`` label).
    """

    SELECTORS = (f"{CREATED_BY_LABEL}={CREATED_BY_VALUE}", CHAOS_TYPE_LABEL)

    def __init__(self, cluster: ClusterDirectory):
        self.cluster = cluster

    def run(self, namespace: str) -> CleanupReport:
        """
        Delete every engine-created pod in a namespace.

        Deletion failures are logged and recorded; the pass continues.

        Raises:
            DirectoryError: If the pods to clean up cannot be listed
        """
        logger.info(f"Cleaning up chaos pods in namespace: {namespace}")
        report = CleanupReport(namespace=namespace)
        names: list[str] = []
        for selector in self.SELECTORS:
            try:
                pods = self.cluster.list_pods(namespace, selector)
            except ClusterError as e:
                raise DirectoryError(f"Failed to list pods with {selector} in {namespace}: {e}") from e
            for pod in pods:
                name = pod.get("metadata", {}).get("name", "")
                if name and name not in names:
                    names.append(name)

        for name in names:
            logger.info(f"Deleting pod: {name}")
            try:
                self.cluster.delete_pod(namespace, name)
                report.deleted.append(name)
            except ClusterError as e:
                logger.warning(f"Failed to delete pod {name}: {e}")
                report.failed[name] = str(e)

        logger.info(f"Cleaned up {len(report.deleted)} pods ({len(report.failed)} failed)")
        return report


def seed_manifest(
    name: str,
    namespace: str,
    image: str,
    labels: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """Pod manifest for one disposable test target."""
    merged = {"app": TEST_APP_LABEL, CREATED_BY_LABEL: CREATED_BY_VALUE}
    merged.update(labels or {})
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "labels": merged},
        "spec": {
            "containers": [
                {"name": "main", "image": image, "ports": [{"containerPort": 80}]},
            ],
            "restartPolicy": "Always",
        },
    }


def seed_test_targets(
    cluster: ClusterDirectory,
    namespace: str,
    count: int,
    labels: Optional[dict[str, str]] = None,
    images: Optional[list[str]] = None,
    rng: Optional[random.Random] = None,
) -> list[str]:
    """
    Create ``test-pod-1`` .. ``test-pod-N`` from a random pick of images.

    Returns:
        Names of the created pods

    Raises:
        ClusterError: On the first pod that cannot be created
    """
    rng = rng or random.Random()
    images = images or DEFAULT_TEST_IMAGES
    logger.info(f"Creating {count} test pods in namespace: {namespace}")
    created = []
    for i in range(1, count + 1):
        name = f"test-pod-{i}"
        image = rng.choice(images)
        cluster.create_pod(namespace, seed_manifest(name, namespace, image, labels))
        logger.info(f"Created test pod: {name} with image: {image}")
        created.append(name)
    return created
