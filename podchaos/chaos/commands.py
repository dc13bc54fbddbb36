"""
Shell command synthesis for in-pod chaos.

Target images are heterogeneous: many lack stress-ng, a package manager, or
network egress. Every synthesized stress command therefore has two stages
joined with ``&&``:

1. Provisioning: probe apk, apt-get and yum in order and install stress-ng
   with the first one found, up to three attempts with a 2s backoff. Finding
   no package manager is not a failure.
2. Execution: a runtime ``command -v stress-ng`` check inside the target
   chooses between stress-ng and a pure-shell fallback that burns the same
   resource for the same duration.

Scaling from intensity is data-driven (see ``STRESS_TEMPLATES``) so the
shell syntax is written once per kind.
"""

from dataclasses import dataclass
from typing import Callable

from .models import StressKind

STRESS_TOOL = "stress-ng"
PROVISION_ATTEMPTS = 3
PROVISION_BACKOFF_SECONDS = 2
MEMORY_CORRUPTION_REFUSED = "Memory corruption attempted"

# (binary probed with command -v, install command)
PACKAGE_MANAGERS: list[tuple[str, str]] = [
    ("apk", f"apk add --no-cache {STRESS_TOOL}"),
    ("apt-get", f"apt-get update && apt-get install -y {STRESS_TOOL}"),
    ("yum", f"yum install -y {STRESS_TOOL}"),
]


def _half(intensity: int) -> int:
    return max(1, intensity // 2)


def _word_list(count: int) -> str:
    """Literal ``1 2 ... count`` for POSIX for-loops (no brace expansion or seq)."""
    return " ".join(str(n) for n in range(1, count + 1))


@dataclass(frozen=True)
class StressTemplate:
    """
    stress-ng arguments and shell fallback for one stress kind.

    Both templates are ``str.format`` strings over the values returned by
    ``params(intensity)``.
    """

    params: Callable[[int], dict[str, int]]
    stress_args: str
    fallback: str


_SPIN = "while true; do :; done &"
_ZERO_READ = "dd if=/dev/zero of=/dev/null bs=1M 2>/dev/null &"
_ZERO_READ_BOUNDED = "dd if=/dev/zero of=/dev/null bs=1M count={dd_count} 2>/dev/null &"


STRESS_TEMPLATES: dict[StressKind, StressTemplate] = {
    StressKind.CPU: StressTemplate(
        params=lambda i: {"cpu": i * 2},
        stress_args="--cpu {cpu} --timeout {duration}",
        fallback="for i in {cpu_seq}; do " + _SPIN + " done; wait",
    ),
    StressKind.MEMORY: StressTemplate(
        params=lambda i: {"vm": i, "vm_bytes": i * 50, "dd_count": i * 25},
        stress_args="--vm {vm} --vm-bytes {vm_bytes}M --timeout {duration}",
        fallback="for i in {vm_seq}; do " + _ZERO_READ_BOUNDED + " done; wait",
    ),
    StressKind.IO: StressTemplate(
        params=lambda i: {"io": i, "hdd": _half(i), "hdd_bytes": i * 25},
        stress_args="--io {io} --hdd {hdd} --hdd-bytes {hdd_bytes}M --timeout {duration}",
        fallback="for i in {io_seq}; do " + _ZERO_READ + " done; wait",
    ),
    StressKind.MIXED: StressTemplate(
        params=lambda i: {"cpu": i, "vm": _half(i), "vm_bytes": i * 25, "io": _half(i)},
        stress_args="--cpu {cpu} --vm {vm} --vm-bytes {vm_bytes}M --io {io} --timeout {duration}",
        fallback="for i in {cpu_seq}; do " + _SPIN + " done; "
        + "for i in {io_seq}; do " + _ZERO_READ + " done; wait",
    ),
}


def provisioning_stage() -> str:
    """Best-effort stress-ng install loop over the known package managers."""
    branches = []
    for index, (binary, install) in enumerate(PACKAGE_MANAGERS):
        keyword = "if" if index == 0 else "elif"
        branches.append(f"{keyword} command -v {binary} >/dev/null 2>&1; then {install} && break; ")
    return (
        f"for i in {_word_list(PROVISION_ATTEMPTS)}; do "
        + "".join(branches)
        + "else echo 'No package manager found, using built-in stress'; break; fi; "
        + f"sleep {PROVISION_BACKOFF_SECONDS}; done"
    )


def execution_stage(kind: StressKind, intensity: int, duration: str) -> str:
    """Runtime branch between stress-ng and the pure-shell fallback."""
    template = STRESS_TEMPLATES[kind]
    params = template.params(intensity)
    values = dict(params, duration=duration)
    values.update({f"{name}_seq": _word_list(count) for name, count in params.items()})
    stress = f"{STRESS_TOOL} " + template.stress_args.format(**values)
    fallback = f"timeout {duration} sh -c '" + template.fallback.format(**values) + "'"
    return (
        f"if command -v {STRESS_TOOL} >/dev/null 2>&1; then {stress}; "
        f"else {fallback}; fi"
    )


def synthesize(kind: StressKind, intensity: int, duration: str) -> str:
    """
    Build the full provisioning + execution command for a stress kind.

    Deterministic: identical inputs always yield byte-identical commands.

    Args:
        kind: Resource to stress
        intensity: Magnitude on a 1-10 scale
        duration: Duration string understood by timeout(1) and stress-ng

    Returns:
        Shell command suitable for ``sh -c``
    """
    if not 1 <= intensity <= 10:
        raise ValueError(f"Invalid intensity: {intensity}. Must be between 1 and 10")
    return provisioning_stage() + " && " + execution_stage(kind, intensity, duration)


def kill_process_command(intensity: int) -> str:
    """SIGKILL the ``intensity`` lowest-numbered processes visible in /proc, sparing this shell."""
    return (
        "for pid in $(ls /proc | grep -E '^[0-9]+$' | sort -n | head -n "
        f"{intensity}); do "
        '[ "$pid" != "$$" ] && kill -9 "$pid" 2>/dev/null; done; true'
    )


def corrupt_memory_command(intensity: int) -> str:
    """Write ``intensity`` MiB of random data to /dev/mem; most runtimes refuse."""
    return (
        f"dd if=/dev/urandom of=/dev/mem bs=1M count={intensity} 2>/dev/null "
        f"|| echo '{MEMORY_CORRUPTION_REFUSED}'"
    )
