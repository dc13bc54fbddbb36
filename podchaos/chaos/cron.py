"""
Cron-driven probabilistic chaos.

On every tick of a standard 5-field cron schedule the trigger draws one
uniform value in [0, 1) and dispatches a campaign only when the draw is
below the configured probability. Fired campaigns get a random intensity
(1-10) and target count (1-3).
"""

import logging
import queue
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from croniter import croniter

from ..framework.config import CronConfig
from ..framework.models import InvalidScheduleError, PodChaosError
from .dispatcher import CampaignDispatcher
from .models import Campaign, CampaignReport, ChaosKind, parse_duration

logger = logging.getLogger(__name__)

MAX_CRON_TARGETS = 3


@dataclass(frozen=True)
class CronTriggerConfig:
    """
    Schedule and campaign template for a cron trigger.

    Attributes:
        schedule: Standard 5-field cron expression
        kind: Chaos kind dispatched on each firing
        probability: Chance in [0, 1] that a tick dispatches a campaign
        max_duration: Duration of each dispatched campaign
        namespace: Namespace the campaigns run in
        label_selector: Label selector for candidate targets
    """

    schedule: str
    kind: ChaosKind
    probability: float = 0.5
    max_duration: str = "5m"
    namespace: str = "default"
    label_selector: str = ""

    def __post_init__(self):
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"Invalid probability: {self.probability}. Must be between 0.0 and 1.0")
        if self.kind == ChaosKind.CRON_TRIGGER:
            raise ValueError("A cron trigger cannot dispatch cron-trigger campaigns")
        parse_duration(self.max_duration)

    @classmethod
    def from_config(cls, config: CronConfig) -> "CronTriggerConfig":
        return cls(
            schedule=config.schedule,
            kind=ChaosKind(config.kind),
            probability=config.probability,
            max_duration=config.max_duration,
            namespace=config.namespace,
            label_selector=config.labels,
        )


@dataclass
class FiringResult:
    """What happened on one schedule tick."""

    fired_at: datetime
    draw: float
    fired: bool
    report: Optional[CampaignReport] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fired_at": self.fired_at.isoformat(),
            "draw": self.draw,
            "fired": self.fired,
            "report": self.report.to_dict() if self.report else None,
            "error": self.error,
        }


@dataclass
class CronHandle:
    """Handle to a trigger loop running on a background thread."""

    thread: threading.Thread
    stop_event: threading.Event
    results: "queue.Queue[FiringResult]" = field(default_factory=queue.Queue)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the thread to exit."""
        self.stop_event.set()
        self.thread.join(timeout)

    @property
    def running(self) -> bool:
        return self.thread.is_alive()


class CronTrigger:
    """
    Fires campaigns on a cron schedule, gated by a probability draw.

    Attributes:
        dispatcher: Dispatcher that runs fired campaigns
        config: Schedule and campaign template
        rng: Random source for the gate, intensity and target count
    """

    def __init__(
        self,
        dispatcher: CampaignDispatcher,
        config: CronTriggerConfig,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the trigger.

        Raises:
            InvalidScheduleError: If the schedule is not a valid cron expression
        """
        if not config.schedule or not croniter.is_valid(config.schedule):
            raise InvalidScheduleError(f"Invalid cron schedule: {config.schedule!r}")
        self.dispatcher = dispatcher
        self.config = config
        self.rng = rng or random.Random()
        self.clock = clock

    def next_fire_time(self, after: Optional[datetime] = None) -> datetime:
        """Next schedule tick strictly after ``after`` (default: now)."""
        return croniter(self.config.schedule, after or self.clock()).get_next(datetime)

    def build_campaign(self) -> Campaign:
        """Campaign template with a random intensity and target count."""
        return Campaign(
            kind=self.config.kind,
            namespace=self.config.namespace,
            label_selector=self.config.label_selector,
            duration=self.config.max_duration,
            intensity=self.rng.randint(1, 10),
            target_count=self.rng.randint(1, MAX_CRON_TARGETS),
        )

    def fire(self) -> FiringResult:
        """
        Run one tick: draw, and dispatch if the draw is below the probability.

        Campaign failures, expected or not, are captured on the result and
        never raised, so the schedule loop keeps running.
        """
        draw = self.rng.random()
        result = FiringResult(fired_at=self.clock(), draw=draw, fired=draw < self.config.probability)
        if not result.fired:
            logger.info(f"Cron trigger fired but skipped (probability: {self.config.probability:.2f})")
            return result

        campaign = self.build_campaign()
        logger.info(
            f"Cron trigger fired! Applying {campaign.kind.value} "
            f"(intensity: {campaign.intensity}, targets: {campaign.target_count})"
        )
        try:
            result.report = self.dispatcher.dispatch(campaign)
        except PodChaosError as e:
            logger.error(f"Cron-triggered campaign failed: {e}")
            result.error = str(e)
        except Exception as e:
            logger.exception(f"Unexpected error in cron-triggered campaign: {e}")
            result.error = f"{type(e).__name__}: {e}"
        return result

    def run(
        self,
        stop_event: Optional[threading.Event] = None,
        max_firings: Optional[int] = None,
        results: Optional["queue.Queue[FiringResult]"] = None,
    ) -> int:
        """
        Block running the schedule loop: next tick, wait, fire.

        Args:
            stop_event: Set to end the loop (checked while waiting)
            max_firings: Stop after this many ticks (None runs forever)
            results: Queue receiving every FiringResult

        Returns:
            Number of ticks processed
        """
        stop_event = stop_event or threading.Event()
        ticks = 0
        logger.info(f"Starting cron chaos trigger with schedule: {self.config.schedule}")
        while max_firings is None or ticks < max_firings:
            next_time = self.next_fire_time()
            delay = max(0.0, (next_time - self.clock()).total_seconds())
            logger.debug(f"Next cron tick at {next_time.isoformat()} (in {delay:.0f}s)")
            if stop_event.wait(delay):
                break
            result = self.fire()
            ticks += 1
            if results is not None:
                results.put(result)
        logger.info(f"Cron trigger stopped after {ticks} ticks")
        return ticks

    def start(self, max_firings: Optional[int] = None) -> CronHandle:
        """Run the schedule loop on a daemon thread."""
        stop_event = threading.Event()
        results: "queue.Queue[FiringResult]" = queue.Queue()
        thread = threading.Thread(
            target=self.run,
            kwargs={"stop_event": stop_event, "max_firings": max_firings, "results": results},
            name="podchaos-cron",
            daemon=True,
        )
        handle = CronHandle(thread=thread, stop_event=stop_event, results=results)
        thread.start()
        return handle
