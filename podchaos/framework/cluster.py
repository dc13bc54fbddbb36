"""
Cluster collaborators for the chaos engine.

This module defines the two capability interfaces the engine consumes (the
cluster directory API and the exec transport) and a kubectl-backed
implementation of both.
"""

import json
import logging
import re
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional

from .models import ClusterError, ExecOpenError

logger = logging.getLogger(__name__)


# kubectl reports these when the exec stream itself could not be established,
# as opposed to the remote command exiting non-zero.
EXEC_OPEN_FAILURE_PATTERNS = [
    re.compile(r"container \S+ not found", re.IGNORECASE),
    re.compile(r"container not found", re.IGNORECASE),
    re.compile(r"is not valid for pod", re.IGNORECASE),
    re.compile(r"unable to upgrade connection", re.IGNORECASE),
    re.compile(r"^Error from server", re.IGNORECASE),
    re.compile(r"OCI runtime exec failed", re.IGNORECASE),
]


def is_exec_open_failure(line: str) -> bool:
    """Check whether a line of kubectl output describes a stream-open failure."""
    return any(p.search(line) for p in EXEC_OPEN_FAILURE_PATTERNS)


class ExecStream(ABC):
    """
    Output stream of a command running inside a container.

    Iterating yields output lines (stdout and stderr interleaved) until the
    remote command exits. ``wait()`` returns the remote exit code.
    """

    @abstractmethod
    def __iter__(self) -> Iterator[str]:
        """Yield output lines as they arrive."""

    @abstractmethod
    def wait(self) -> int:
        """
        Wait for the remote command to exit.

        Returns:
            Remote exit code

        Raises:
            ExecOpenError: If the stream turned out never to have opened
        """

    def close(self) -> None:
        """Abandon the stream, stopping the remote command if it still runs."""


class ClusterDirectory(ABC):
    """Cluster API used to enumerate, fetch, create and delete pods."""

    @abstractmethod
    def list_pods(self, namespace: str, label_selector: str = "") -> list[dict[str, Any]]:
        """
        List pod objects in a namespace.

        Args:
            namespace: Namespace to list
            label_selector: Label selector (e.g., "app=nginx,env=prod")

        Returns:
            List of pod objects as returned by the API server

        Raises:
            ClusterError: If the listing fails
        """

    @abstractmethod
    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        """Fetch a single pod object, raising ClusterError on failure."""

    @abstractmethod
    def create_pod(self, namespace: str, manifest: dict[str, Any]) -> dict[str, Any]:
        """Create a pod from a manifest, raising ClusterError on failure."""

    @abstractmethod
    def delete_pod(self, namespace: str, name: str) -> None:
        """Delete a pod, raising ClusterError on failure."""


class ExecTransport(ABC):
    """Transport that runs shell commands inside containers."""

    @abstractmethod
    def open_exec_stream(
        self,
        namespace: str,
        pod: str,
        container: str,
        command: str,
    ) -> ExecStream:
        """
        Start ``sh -c command`` in a container with stdin unused and no TTY.

        Raises:
            ExecOpenError: If the stream cannot be opened
        """


class KubectlExecStream(ExecStream):
    """ExecStream over a running ``kubectl exec`` process."""

    def __init__(self, process: subprocess.Popen, container: str):
        self._process = process
        self._container = container
        self._open_failure: Optional[str] = None

    def __iter__(self) -> Iterator[str]:
        if self._process.stdout is None:
            return
        finished = False
        try:
            for raw in self._process.stdout:
                line = raw.rstrip("\n")
                if self._open_failure is None and is_exec_open_failure(line):
                    self._open_failure = line
                yield line
            finished = True
        finally:
            if not finished:
                self.close()

    def wait(self) -> int:
        returncode = self._process.wait()
        if returncode != 0 and self._open_failure:
            raise ExecOpenError(self._open_failure, container=self._container)
        return returncode

    def close(self) -> None:
        if self._process.poll() is None:
            logger.debug(f"Killing abandoned kubectl exec into container {self._container}")
            self._process.kill()
        self._process.wait()


class KubectlCluster(ClusterDirectory, ExecTransport):
    """
    Cluster directory and exec transport backed by the kubectl binary.

    Attributes:
        kubectl_path: kubectl executable
        kubeconfig: Optional kubeconfig path
        context: Optional kube context
        timeout_seconds: Timeout for non-streaming kubectl calls
    """

    def __init__(
        self,
        kubectl_path: str = "kubectl",
        kubeconfig: Optional[str] = None,
        context: Optional[str] = None,
        timeout_seconds: int = 60,
    ):
        self.kubectl_path = kubectl_path
        self.kubeconfig = kubeconfig
        self.context = context
        self.timeout_seconds = timeout_seconds

    def _get_kubectl_cmd(self) -> list[str]:
        """Get base kubectl command with kubeconfig and context."""
        cmd = [self.kubectl_path]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        if self.context:
            cmd.extend(["--context", self.context])
        return cmd

    def _run(self, args: list[str], input: Optional[str] = None) -> str:
        cmd = self._get_kubectl_cmd() + args
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.CalledProcessError as e:
            raise ClusterError(
                f"kubectl {args[0]} failed: {(e.stderr or '').strip()}",
                stderr=e.stderr or "",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ClusterError(f"kubectl {args[0]} timed out after {self.timeout_seconds}s") from e
        except FileNotFoundError as e:
            raise ClusterError(f"kubectl not found at {self.kubectl_path}") from e
        return result.stdout

    def list_pods(self, namespace: str, label_selector: str = "") -> list[dict[str, Any]]:
        args = ["get", "pods", "-n", namespace, "-o", "json"]
        if label_selector:
            args.extend(["-l", label_selector])
        output = self._run(args)
        try:
            return json.loads(output).get("items", [])
        except json.JSONDecodeError as e:
            raise ClusterError(f"Unparseable pod list from kubectl: {e}") from e

    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        output = self._run(["get", "pod", name, "-n", namespace, "-o", "json"])
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ClusterError(f"Unparseable pod {name} from kubectl: {e}") from e

    def create_pod(self, namespace: str, manifest: dict[str, Any]) -> dict[str, Any]:
        output = self._run(
            ["create", "-n", namespace, "-f", "-", "-o", "json"],
            input=json.dumps(manifest),
        )
        logger.info(f"Created pod {manifest.get('metadata', {}).get('name', '')}")
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            return manifest

    def delete_pod(self, namespace: str, name: str) -> None:
        output = self._run(["delete", "pod", name, "-n", namespace, "--wait=false"])
        logger.debug(f"Deleted pod {name}: {output.strip()}")

    def open_exec_stream(
        self,
        namespace: str,
        pod: str,
        container: str,
        command: str,
    ) -> ExecStream:
        cmd = self._get_kubectl_cmd() + [
            "exec", pod,
            "-n", namespace,
            "-c", container,
            "--", "sh", "-c", command,
        ]
        logger.debug("Opening exec stream: %s/%s[%s]", namespace, pod, container)
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            raise ExecOpenError(f"kubectl not found at {self.kubectl_path}", container=container) from e
        except OSError as e:
            raise ExecOpenError(f"Failed to start kubectl exec: {e}", container=container) from e
        return KubectlExecStream(process, container)
