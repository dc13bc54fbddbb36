"""
Tests for remote execution and the container fallback.
"""

import pytest

from podchaos.chaos.executor import RemoteExecutor
from podchaos.chaos.models import Target
from podchaos.framework.models import ExecOpenError


@pytest.fixture
def target():
    return Target(name="web", namespace="default", containers=("app", "sidecar"))


class TestRemoteExecutor:

    def test_streams_and_collects_output(self, cluster, target):
        cluster.exec_output["web"] = ["starting", "done"]
        seen = []
        executor = RemoteExecutor(cluster, sink=lambda t, c, line: seen.append((t, c, line)))

        result = executor.run(target, "app", "echo hi")

        assert result.succeeded
        assert result.output == ["starting", "done"]
        assert seen == [("web", "app", "starting"), ("web", "app", "done")]
        assert cluster.execs == [("default", "web", "app", "echo hi")]
        assert not cluster.streams[0].closed

    def test_failing_sink_closes_the_stream(self, cluster, target):
        cluster.exec_output["web"] = ["one", "two"]

        def sink(t, c, line):
            raise RuntimeError("sink broke")

        with pytest.raises(RuntimeError):
            RemoteExecutor(cluster, sink=sink).run(target, "app", "yes")
        assert cluster.streams[0].closed

    def test_nonzero_exit_is_returned_not_raised(self, cluster, target):
        cluster.exec_exit_codes["web"] = 137
        result = RemoteExecutor(cluster).run(target, "app", "false")
        assert result.exit_code == 137
        assert not result.succeeded
        assert not result.retried

    def test_retries_once_with_first_container(self, cluster, target):
        cluster.unopenable.add(("web", "sidecar"))

        result = RemoteExecutor(cluster).run(target, "sidecar", "true")

        assert result.retried
        assert result.container == "app"
        assert [e[2] for e in cluster.execs] == ["sidecar", "app"]

    def test_no_retry_when_first_container_fails(self, cluster, target):
        cluster.unopenable.add(("web", "app"))
        with pytest.raises(ExecOpenError):
            RemoteExecutor(cluster).run(target, "app", "true")
        assert len(cluster.execs) == 1

    def test_fallback_failure_propagates(self, cluster, target):
        cluster.unopenable.update({("web", "sidecar"), ("web", "app")})
        with pytest.raises(ExecOpenError) as exc_info:
            RemoteExecutor(cluster).run(target, "sidecar", "true")
        assert exc_info.value.container == "app"
        assert len(cluster.execs) == 2

    def test_no_retry_without_declared_containers(self, cluster):
        bare = Target(name="web", namespace="default")
        cluster.unopenable.add(("web", "main"))
        with pytest.raises(ExecOpenError):
            RemoteExecutor(cluster).run(bare, "main", "true")
        assert len(cluster.execs) == 1
