"""
Remote execution of chaos commands inside target containers.
"""

import logging
from typing import Callable, Optional

from ..framework.cluster import ExecTransport
from ..framework.models import ExecOpenError
from .models import ExecResult, Target

logger = logging.getLogger(__name__)


def _log_line(target: str, container: str, line: str) -> None:
    logger.info(f"[{target}/{container}] {line}")


class RemoteExecutor:
    """
    Runs a shell command in a named container of a target and streams output.

    A failure to open the stream (unknown container, unreachable kubelet) is
    raised as ExecOpenError; a command that runs and exits non-zero is
    returned as an ExecResult with that exit code. If the requested container
    cannot be opened, the executor retries exactly once against the target's
    first declared container.
    """

    def __init__(
        self,
        transport: ExecTransport,
        sink: Optional[Callable[[str, str, str], None]] = None,
    ):
        """
        Initialize the executor.

        Args:
            transport: Exec transport used to open streams
            sink: Called with (target, container, line) for each output line
        """
        self.transport = transport
        self.sink = sink or _log_line

    def _stream(self, target: Target, container: str, command: str) -> ExecResult:
        stream = self.transport.open_exec_stream(target.namespace, target.name, container, command)
        output: list[str] = []
        try:
            for line in stream:
                output.append(line)
                self.sink(target.name, container, line)
        except BaseException:
            stream.close()
            raise
        exit_code = stream.wait()
        return ExecResult(target=target.name, container=container, exit_code=exit_code, output=output)

    def run(self, target: Target, container: str, command: str) -> ExecResult:
        """
        Execute a command and wait for it to finish.

        Args:
            target: Target to exec into
            container: Container name assumed by the caller
            command: Shell command run with ``sh -c``

        Returns:
            ExecResult with exit code and collected output

        Raises:
            ExecOpenError: If neither the requested nor the first declared
                container accepted the stream
        """
        try:
            return self._stream(target, container, command)
        except ExecOpenError as e:
            fallback = target.first_container
            if not fallback or fallback == container:
                raise
            logger.warning(
                f"Exec into {target.name}/{container} failed ({e}); retrying with container {fallback}"
            )
        result = self._stream(target, fallback, command)
        result.retried = True
        return result
