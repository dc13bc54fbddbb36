"""
Fakes and fixtures for chaos engine tests.

``FakeCluster`` implements both cluster interfaces in memory and records
every mutation and exec so tests can assert on what the engine did.
"""

import itertools
import threading
from typing import Any, Iterator, Optional

import pytest

from podchaos.framework.cluster import ClusterDirectory, ExecStream, ExecTransport
from podchaos.framework.models import ClusterError, ExecOpenError


def make_pod(
    name: str,
    namespace: str = "default",
    containers: tuple[str, ...] = ("main",),
    phase: str = "Running",
    labels: Optional[dict[str, str]] = None,
    ready: bool = True,
    restarts: int = 0,
    terminating: bool = False,
    conditions: Optional[list[dict[str, str]]] = None,
) -> dict[str, Any]:
    """Build a pod object shaped like the API server's JSON."""
    metadata: dict[str, Any] = {"name": name, "namespace": namespace, "labels": dict(labels or {})}
    if terminating:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    return {
        "metadata": metadata,
        "spec": {"containers": [{"name": c} for c in containers]},
        "status": {
            "phase": phase,
            "containerStatuses": [
                {"name": c, "ready": ready, "restartCount": restarts} for c in containers
            ],
            "conditions": list(conditions or []),
        },
    }


def selector_matches(labels: dict[str, str], selector: str) -> bool:
    """Minimal label selector: ``k=v`` equality and bare ``k`` existence."""
    for term in filter(None, (t.strip() for t in selector.split(","))):
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key.strip()) != value.strip():
                return False
        elif term not in labels:
            return False
    return True


class FakeExecStream(ExecStream):
    def __init__(self, lines: list[str], exit_code: int):
        self.lines = lines
        self.exit_code = exit_code
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)

    def wait(self) -> int:
        return self.exit_code

    def close(self) -> None:
        self.closed = True


class FakeCluster(ClusterDirectory, ExecTransport):
    """
    In-memory cluster.

    Attributes:
        pods: Pod objects keyed by (namespace, name)
        created: Manifests passed to create_pod
        deleted: (namespace, name) passed to delete_pod
        execs: (namespace, pod, container, command) passed to open_exec_stream
        list_error: Raised by list_pods when set
        delete_failures: Pod names whose deletion fails
        create_error: Raised by create_pod when set
        exec_exit_codes: Exit code per pod (default 0)
        exec_output: Output lines per pod
        unopenable: (pod, container) pairs whose exec stream cannot open
        status_sequence: Successive get_pod answers per pod name; the last
            one repeats
        streams: Exec streams handed out, in order
    """

    def __init__(self):
        self.pods: dict[tuple[str, str], dict[str, Any]] = {}
        self.created: list[dict[str, Any]] = []
        self.deleted: list[tuple[str, str]] = []
        self.execs: list[tuple[str, str, str, str]] = []
        self.list_error: Optional[ClusterError] = None
        self.delete_failures: set[str] = set()
        self.create_error: Optional[ClusterError] = None
        self.exec_exit_codes: dict[str, int] = {}
        self.exec_output: dict[str, list[str]] = {}
        self.unopenable: set[tuple[str, str]] = set()
        self.status_sequence: dict[str, list[dict[str, Any]]] = {}
        self.streams: list[FakeExecStream] = []
        self._lock = threading.Lock()

    def add_pod(self, name: str, namespace: str = "default", **kwargs: Any) -> dict[str, Any]:
        pod = make_pod(name, namespace, **kwargs)
        self.pods[(namespace, name)] = pod
        return pod

    def add_pods(self, count: int, namespace: str = "default", prefix: str = "app", **kwargs: Any) -> list[str]:
        names = [f"{prefix}-{i}" for i in range(count)]
        for name in names:
            self.add_pod(name, namespace, **kwargs)
        return names

    @property
    def mutations(self) -> int:
        return len(self.created) + len(self.deleted) + len(self.execs)

    def list_pods(self, namespace: str, label_selector: str = "") -> list[dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        return [
            pod for (ns, _), pod in self.pods.items()
            if ns == namespace and selector_matches(pod["metadata"].get("labels", {}), label_selector)
        ]

    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        with self._lock:
            sequence = self.status_sequence.get(name)
            if sequence:
                return sequence.pop(0) if len(sequence) > 1 else sequence[0]
        try:
            return self.pods[(namespace, name)]
        except KeyError:
            raise ClusterError(f'pods "{name}" not found') from None

    def create_pod(self, namespace: str, manifest: dict[str, Any]) -> dict[str, Any]:
        if self.create_error is not None:
            raise self.create_error
        name = manifest["metadata"]["name"]
        self.created.append(manifest)
        self.pods[(namespace, name)] = manifest
        return manifest

    def delete_pod(self, namespace: str, name: str) -> None:
        if name in self.delete_failures:
            raise ClusterError(f'pods "{name}" is forbidden', stderr="forbidden")
        self.deleted.append((namespace, name))
        self.pods.pop((namespace, name), None)

    def open_exec_stream(self, namespace: str, pod: str, container: str, command: str) -> ExecStream:
        self.execs.append((namespace, pod, container, command))
        if (pod, container) in self.unopenable:
            raise ExecOpenError(f"container {container} not found in pod {pod}", container=container)
        stream = FakeExecStream(list(self.exec_output.get(pod, [])), self.exec_exit_codes.get(pod, 0))
        self.streams.append(stream)
        return stream


class FakeClock:
    """Monotonic clock advancing by ``step`` on every read."""

    def __init__(self, start: float = 0.0, step: float = 1.0):
        self._counter = itertools.count()
        self.start = start
        self.step = step

    def __call__(self) -> float:
        return self.start + next(self._counter) * self.step


@pytest.fixture
def cluster():
    """Empty in-memory cluster."""
    return FakeCluster()


@pytest.fixture
def clock():
    """Clock that advances one second per read."""
    return FakeClock()
