#!/usr/bin/env python3
"""
Command-Line Interface for podchaos.

This module provides the main CLI entry point for dispatching chaos
campaigns, running the cron trigger, seeding disposable test targets and
cleaning up everything the engine created.

Usage:
    # Delete two random pods labelled app=web
    python3 -m podchaos run --kind pod-delete --labels app=web --count 2

    # Stress the CPU inside one pod for two minutes, watching its health
    python3 -m podchaos run --kind in-pod-cpu-stress --intensity 7 --duration 2m

    # Preview victims without touching anything
    python3 -m podchaos run --kind kill-process --count 3 --dry-run

    # Fire cpu-stress on a 30% chance every five minutes
    python3 -m podchaos cron --schedule "*/5 * * * *" --kind cpu-stress --probability 0.3
"""

import logging
import random
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .framework.config import VALID_CHAOS_KINDS

# Set up logging with rich handler
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True, show_time=False)],
)
logger = logging.getLogger(__name__)
console = Console()


class CLIContext:
    """Context object for CLI commands."""

    def __init__(self):
        self.verbose = False
        self.config_path: Optional[Path] = None


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def _fail(ctx: CLIContext, e: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {e}", style="red")
    errors = getattr(e, "errors", None)
    if errors:
        for error in errors:
            console.print(f"  • {error}")
    if ctx.verbose:
        console.print_exception()
    sys.exit(1)


def _build_engine(config, seed: Optional[int] = None):
    """Wire kubectl, the health monitor and the dispatcher from config."""
    from .chaos.directory import TargetDirectory
    from .chaos.dispatcher import CampaignDispatcher
    from .chaos.monitor import HealthMonitor
    from .framework.cluster import KubectlCluster

    cluster = KubectlCluster(
        kubectl_path=config.cluster.kubectl_path,
        kubeconfig=config.cluster.resolve_kubeconfig(),
        context=config.cluster.context or None,
        timeout_seconds=config.cluster.timeout_seconds,
    )
    monitor = HealthMonitor(
        TargetDirectory(cluster),
        poll_interval=config.monitor.poll_interval_seconds,
    )
    dispatcher = CampaignDispatcher(cluster, cluster, monitor=monitor, rng=random.Random(seed))
    return cluster, monitor, dispatcher


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output"
)
@click.option(
    "-c", "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file"
)
@click.version_option(version=__version__, prog_name="podchaos")
@pass_context
def cli(ctx: CLIContext, verbose: bool, config: Optional[Path]):
    """
    podchaos - chaos engineering for Kubernetes pods.

    Delete, stress, or kill processes in randomly selected pods and watch how
    they cope.
    """
    ctx.verbose = verbose
    ctx.config_path = config

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose mode enabled")


@cli.command()
@click.option(
    "--kind", "-k",
    type=click.Choice(VALID_CHAOS_KINDS, case_sensitive=False),
    default=None,
    help="Chaos kind to apply"
)
@click.option(
    "--namespace", "-n",
    type=str,
    default=None,
    help="Kubernetes namespace to target"
)
@click.option(
    "--labels", "-l",
    type=str,
    default=None,
    help="Label selector for candidate pods (e.g. app=web,tier=frontend)"
)
@click.option(
    "--duration", "-d",
    type=str,
    default=None,
    help="Chaos duration (e.g. 30s, 2m, 1h)"
)
@click.option(
    "--intensity", "-i",
    type=click.IntRange(1, 10),
    default=None,
    help="Chaos intensity on a 1-10 scale"
)
@click.option(
    "--count",
    type=click.IntRange(min=0),
    default=None,
    help="Number of pods to target"
)
@click.option(
    "--container",
    type=str,
    default=None,
    help="Container to exec into (defaults to the pod's first container)"
)
@click.option(
    "--monitor/--no-monitor",
    default=None,
    help="Monitor victim health during in-pod chaos"
)
@click.option(
    "--wait/--no-wait",
    default=True,
    help="Wait for monitoring sessions to finish (--no-wait cancels them)"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show which pods would be targeted without applying chaos"
)
@click.option(
    "--seed",
    type=int,
    default=None,
    help="Random seed for victim selection"
)
@pass_context
def run(
    ctx: CLIContext,
    kind: Optional[str],
    namespace: Optional[str],
    labels: Optional[str],
    duration: Optional[str],
    intensity: Optional[int],
    count: Optional[int],
    container: Optional[str],
    monitor: Optional[bool],
    wait: bool,
    dry_run: bool,
    seed: Optional[int],
):
    """
    Dispatch one chaos campaign.

    Examples:

        # Kill one random pod in the default namespace
        python3 -m podchaos run --kind pod-delete

        # Memory stress inside three pods for a minute
        python3 -m podchaos run -k in-pod-memory-stress --count 3 -d 1m -i 6
    """
    from .chaos.models import Campaign, ChaosKind
    from .framework.config import load_config
    from .framework.models import PodChaosError

    try:
        config = load_config(
            config_path=ctx.config_path,
            campaign_kind=kind,
            campaign_namespace=namespace,
            campaign_labels=labels,
            campaign_duration=duration,
            campaign_intensity=intensity,
            campaign_target_count=count,
            campaign_container=container,
            campaign_monitor=monitor,
        )
        campaign = Campaign(
            kind=ChaosKind(config.campaign.kind),
            namespace=config.campaign.namespace,
            label_selector=config.campaign.labels,
            duration=config.campaign.duration,
            intensity=config.campaign.intensity,
            target_count=config.campaign.target_count,
            dry_run=dry_run,
            monitor=config.campaign.monitor,
            container=config.campaign.container or None,
        )

        console.print("\n[bold blue]podchaos[/bold blue]")
        console.print(f"Kind: [cyan]{campaign.kind.value}[/cyan]")
        console.print(f"Namespace: [cyan]{campaign.namespace}[/cyan]")
        if campaign.label_selector:
            console.print(f"Labels: [cyan]{campaign.label_selector}[/cyan]")

        _, health_monitor, dispatcher = _build_engine(config, seed)
        try:
            report = dispatcher.dispatch(campaign)
            _display_campaign_report(report)
            if wait and report.monitors:
                console.print(f"\nWaiting for {len(report.monitors)} monitoring session(s)...")
                _display_monitor_reports([f.result() for f in report.monitors.values()])
        finally:
            health_monitor.shutdown(cancel=True)

        sys.exit(0 if report.succeeded == report.attempted else 1)

    except (PodChaosError, ValueError, FileNotFoundError) as e:
        _fail(ctx, e)


def _display_campaign_report(report):
    """Display a campaign report in a formatted table."""
    console.print("\n")

    if report.skipped:
        console.print(f"[bold yellow]Skipped:[/bold yellow] {report.reason}")
        return

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if report.campaign.dry_run:
        table = Table(title="Dry Run - Selected Pods", show_header=True, header_style="bold magenta")
        table.add_column("#", justify="right")
        table.add_column("Pod", style="cyan")
        for i, name in enumerate(report.selected, 1):
            table.add_row(str(i), name)
        console.print(table)
        return

    table = Table(title="Campaign Results", show_header=True, header_style="bold magenta")
    table.add_column("Pod", style="cyan")
    table.add_column("Action")
    table.add_column("Container")
    table.add_column("Exit", justify="right")
    table.add_column("Result")
    for victim in report.victims:
        status = "[green]✓[/green]" if victim.success else "[red]✗[/red]"
        table.add_row(
            victim.target,
            victim.action,
            victim.container or "-",
            "-" if victim.exit_code is None else str(victim.exit_code),
            f"{status} {victim.message}",
        )
    console.print(table)

    style = "green" if report.succeeded == report.attempted else "red"
    console.print(
        f"\n[bold]Applied {report.campaign.kind.value} to "
        f"[{style}]{report.tally}[/{style}] pods[/bold]"
    )


def _display_monitor_reports(reports):
    """Display health monitor findings."""
    table = Table(title="Pod Health", show_header=True, header_style="bold magenta")
    table.add_column("Pod", style="cyan")
    table.add_column("Outcome")
    table.add_column("Polls", justify="right")
    table.add_column("Events")
    for r in reports:
        style = "green" if r.healthy else "yellow"
        events = "\n".join(e.message for e in r.events) or "-"
        table.add_row(r.target, f"[{style}]{r.outcome.value}[/{style}]", str(r.polls), events)
    console.print(table)


@cli.command()
@click.option(
    "--schedule", "-s",
    type=str,
    default=None,
    help='Cron schedule, 5 fields (e.g. "*/5 * * * *")'
)
@click.option(
    "--kind", "-k",
    type=click.Choice(VALID_CHAOS_KINDS, case_sensitive=False),
    default=None,
    help="Chaos kind to apply when the trigger fires"
)
@click.option(
    "--probability", "-p",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Chance (0.0-1.0) that a schedule tick applies chaos"
)
@click.option(
    "--max-duration",
    type=str,
    default=None,
    help="Duration of each triggered campaign"
)
@click.option(
    "--namespace", "-n",
    type=str,
    default=None,
    help="Kubernetes namespace to target"
)
@click.option(
    "--labels", "-l",
    type=str,
    default=None,
    help="Label selector for candidate pods"
)
@click.option(
    "--max-firings",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many schedule ticks"
)
@pass_context
def cron(
    ctx: CLIContext,
    schedule: Optional[str],
    kind: Optional[str],
    probability: Optional[float],
    max_duration: Optional[str],
    namespace: Optional[str],
    labels: Optional[str],
    max_firings: Optional[int],
):
    """
    Run chaos on a cron schedule.

    Blocks until interrupted (Ctrl+C) or --max-firings ticks have passed.

    Examples:

        # 30% chance of cpu-stress every five minutes
        python3 -m podchaos cron -s "*/5 * * * *" -k cpu-stress -p 0.3
    """
    from .chaos.cron import CronTrigger, CronTriggerConfig
    from .framework.config import load_config
    from .framework.models import PodChaosError

    try:
        config = load_config(
            config_path=ctx.config_path,
            cron_schedule=schedule,
            cron_kind=kind,
            cron_probability=probability,
            cron_max_duration=max_duration,
            cron_namespace=namespace,
            cron_labels=labels,
        )
        trigger_config = CronTriggerConfig.from_config(config.cron)

        _, health_monitor, dispatcher = _build_engine(config)
        trigger = CronTrigger(dispatcher, trigger_config)

        console.print("\n[bold blue]podchaos cron[/bold blue]")
        console.print(f"Schedule: [cyan]{trigger_config.schedule}[/cyan]")
        console.print(f"Kind: [cyan]{trigger_config.kind.value}[/cyan]")
        console.print(f"Probability: [cyan]{trigger_config.probability:.2f}[/cyan]")
        console.print("Press Ctrl+C to stop")

        stop_event = threading.Event()
        try:
            trigger.run(stop_event=stop_event, max_firings=max_firings)
        except KeyboardInterrupt:
            stop_event.set()
            console.print("\nStopping cron trigger...")
        finally:
            health_monitor.shutdown(cancel=True)

        sys.exit(0)

    except (PodChaosError, ValueError, FileNotFoundError) as e:
        _fail(ctx, e)


@cli.command()
@click.option(
    "--namespace", "-n",
    type=str,
    default="default",
    help="Kubernetes namespace to clean up"
)
@click.option(
    "--force",
    is_flag=True,
    help="Force cleanup without confirmation"
)
@pass_context
def cleanup(ctx: CLIContext, namespace: str, force: bool):
    """
    Remove test pods and stress runners created by podchaos.

    Examples:

        python3 -m podchaos cleanup --namespace default --force
    """
    from .chaos.cleanup import Cleanup
    from .framework.config import load_config
    from .framework.models import PodChaosError

    try:
        console.print("\n[bold blue]Resource Cleanup[/bold blue]")
        console.print(f"Namespace: [cyan]{namespace}[/cyan]")

        if not force:
            if not click.confirm(f"Delete all podchaos pods in namespace {namespace}?"):
                console.print("Cleanup cancelled.")
                sys.exit(0)

        config = load_config(config_path=ctx.config_path)
        cluster, _, _ = _build_engine(config)
        report = Cleanup(cluster).run(namespace)

        for name in report.deleted:
            console.print(f"  • deleted {name}")
        if report.failed:
            for name, error in report.failed.items():
                console.print(f"  • [red]failed[/red] {name}: {error}")
            console.print("[bold yellow]Cleanup completed with warnings.[/bold yellow]")
        else:
            console.print(f"[bold green]Cleaned up {len(report.deleted)} pods.[/bold green]")
        sys.exit(0)

    except (PodChaosError, ValueError, FileNotFoundError) as e:
        _fail(ctx, e)


@cli.command()
@click.option(
    "--namespace", "-n",
    type=str,
    default="default",
    help="Kubernetes namespace to create test pods in"
)
@click.option(
    "--count",
    type=click.IntRange(min=1),
    default=None,
    help="Number of test pods to create"
)
@click.option(
    "--labels", "-l",
    type=str,
    default="",
    help="Extra labels for the test pods (e.g. team=sre)"
)
@pass_context
def seed(ctx: CLIContext, namespace: str, count: Optional[int], labels: str):
    """
    Create disposable test pods to practise chaos on.

    Examples:

        python3 -m podchaos seed --namespace default --count 5
    """
    from .chaos.cleanup import seed_test_targets
    from .chaos.models import parse_labels
    from .framework.config import load_config
    from .framework.models import PodChaosError

    try:
        config = load_config(config_path=ctx.config_path, seed_count=count)
        cluster, _, _ = _build_engine(config)

        console.print("\n[bold blue]Test Pods[/bold blue]")
        created = seed_test_targets(
            cluster,
            namespace,
            config.seed.count,
            labels=parse_labels(labels),
            images=config.seed.images or None,
        )
        for name in created:
            console.print(f"  • {name}")
        console.print(f"[bold green]Created {len(created)} test pods in {namespace}.[/bold green]")
        sys.exit(0)

    except (PodChaosError, ValueError, FileNotFoundError) as e:
        _fail(ctx, e)


@cli.command()
@pass_context
def info(ctx: CLIContext):
    """
    Display supported chaos kinds and stress scaling.
    """
    from .chaos.commands import STRESS_TEMPLATES

    console.print("\n[bold blue]podchaos[/bold blue]")
    console.print(f"Version: [cyan]{__version__}[/cyan]")

    console.print("\n[bold]Chaos Kinds:[/bold]")
    for kind in VALID_CHAOS_KINDS:
        console.print(f"  • {kind}")

    table = Table(title="Stress Scaling (intensity i)", show_header=True, header_style="bold magenta")
    table.add_column("Stress", style="cyan")
    table.add_column("i=1")
    table.add_column("i=5")
    table.add_column("i=10")
    for stress_kind, template in STRESS_TEMPLATES.items():
        row = [
            template.stress_args.format(duration="D", **template.params(i))
            for i in (1, 5, 10)
        ]
        table.add_row(stress_kind.value, *row)
    console.print(table)
    sys.exit(0)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
