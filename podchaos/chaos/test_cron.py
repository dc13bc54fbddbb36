"""
Tests for the cron trigger.
"""

import queue
import random
import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from podchaos.chaos.cron import CronTrigger, CronTriggerConfig, MAX_CRON_TARGETS
from podchaos.chaos.dispatcher import CampaignDispatcher
from podchaos.chaos.models import ChaosKind
from podchaos.framework.config import CronConfig
from podchaos.framework.models import DirectoryError, InvalidScheduleError


def just_before_the_minute():
    return datetime(2024, 1, 1, 12, 0, 59, 999999)


def make_trigger(probability=1.0, schedule="* * * * *", seed=0, clock=just_before_the_minute, **kwargs):
    dispatcher = MagicMock(spec=CampaignDispatcher)
    config = CronTriggerConfig(schedule=schedule, kind=ChaosKind.POD_DELETE, probability=probability, **kwargs)
    return CronTrigger(dispatcher, config, rng=random.Random(seed), clock=clock), dispatcher


class TestSchedule:

    @pytest.mark.parametrize("schedule", ["", "not a cron", "61 * * * *", "* * *"])
    def test_invalid_schedule_rejected_at_construction(self, schedule):
        with pytest.raises(InvalidScheduleError):
            make_trigger(schedule=schedule)

    def test_next_fire_time(self):
        trigger, _ = make_trigger(schedule="*/5 * * * *", clock=lambda: datetime(2024, 1, 1, 12, 1, 30))
        assert trigger.next_fire_time() == datetime(2024, 1, 1, 12, 5)
        assert trigger.next_fire_time(datetime(2024, 1, 1, 12, 5)) == datetime(2024, 1, 1, 12, 10)


class TestProbabilityGate:

    def test_zero_probability_never_fires(self):
        trigger, dispatcher = make_trigger(probability=0.0)
        results = [trigger.fire() for _ in range(100)]
        assert not any(r.fired for r in results)
        dispatcher.dispatch.assert_not_called()

    def test_full_probability_always_fires(self):
        trigger, dispatcher = make_trigger(probability=1.0)
        results = [trigger.fire() for _ in range(100)]
        assert all(r.fired for r in results)
        assert dispatcher.dispatch.call_count == 100

    def test_fires_only_when_draw_below_probability(self):
        trigger, _ = make_trigger(probability=0.5, seed=3)
        for _ in range(50):
            result = trigger.fire()
            assert result.fired == (result.draw < 0.5)


@pytest.mark.property
class TestFiredCampaignProperties:

    @given(seed=st.integers())
    @settings(max_examples=100)
    def test_random_intensity_and_count_in_range(self, seed):
        trigger, dispatcher = make_trigger(
            seed=seed, max_duration="2m", namespace="shop", label_selector="app=web"
        )
        trigger.fire()

        campaign = dispatcher.dispatch.call_args.args[0]
        assert 1 <= campaign.intensity <= 10
        assert 1 <= campaign.target_count <= MAX_CRON_TARGETS
        assert campaign.kind == ChaosKind.POD_DELETE
        assert campaign.duration == "2m"
        assert campaign.namespace == "shop"
        assert campaign.label_selector == "app=web"


class TestFiring:

    def test_campaign_error_is_captured(self):
        trigger, dispatcher = make_trigger()
        dispatcher.dispatch.side_effect = DirectoryError("forbidden")

        result = trigger.fire()

        assert result.fired
        assert result.error == "forbidden"
        assert result.report is None

    def test_run_processes_ticks_and_publishes_results(self):
        trigger, dispatcher = make_trigger()
        results = queue.Queue()

        ticks = trigger.run(max_firings=3, results=results)

        assert ticks == 3
        assert results.qsize() == 3
        assert dispatcher.dispatch.call_count == 3

    def test_run_survives_campaign_errors(self):
        trigger, dispatcher = make_trigger()
        dispatcher.dispatch.side_effect = DirectoryError("boom")
        assert trigger.run(max_firings=2) == 2

    def test_unexpected_error_is_captured(self):
        trigger, dispatcher = make_trigger()
        dispatcher.dispatch.side_effect = KeyError("metadata")

        result = trigger.fire()

        assert result.fired
        assert result.error == "KeyError: 'metadata'"
        assert result.report is None

    def test_run_survives_unexpected_errors(self):
        trigger, dispatcher = make_trigger()
        dispatcher.dispatch.side_effect = [RuntimeError("kubectl crashed"), MagicMock()]
        results = queue.Queue()

        assert trigger.run(max_firings=2, results=results) == 2
        first, second = results.get_nowait(), results.get_nowait()
        assert first.error == "RuntimeError: kubectl crashed"
        assert second.error is None
        assert dispatcher.dispatch.call_count == 2

    def test_stop_event_ends_the_loop(self):
        trigger, dispatcher = make_trigger()
        stop = threading.Event()
        stop.set()
        assert trigger.run(stop_event=stop) == 0
        dispatcher.dispatch.assert_not_called()

    def test_start_runs_on_background_thread(self):
        trigger, dispatcher = make_trigger()
        handle = trigger.start(max_firings=2)
        handle.thread.join(timeout=5)

        assert not handle.running
        assert handle.thread.daemon
        assert handle.results.qsize() == 2
        assert handle.results.get().fired

    def test_handle_stop(self):
        trigger, _ = make_trigger(clock=lambda: datetime(2024, 1, 1, 12, 0, 0))
        handle = trigger.start()
        handle.stop(timeout=5)
        assert not handle.running


class TestCronTriggerConfig:

    def test_rejects_probability_out_of_range(self):
        with pytest.raises(ValueError):
            CronTriggerConfig(schedule="* * * * *", kind=ChaosKind.CPU_STRESS, probability=1.5)

    def test_rejects_cron_trigger_kind(self):
        with pytest.raises(ValueError):
            CronTriggerConfig(schedule="* * * * *", kind=ChaosKind.CRON_TRIGGER)

    def test_from_config(self):
        config = CronTriggerConfig.from_config(CronConfig(
            schedule="0 * * * *", kind="memory-stress", probability=0.25, namespace="shop", labels="app=db",
        ))
        assert config.kind == ChaosKind.MEMORY_STRESS
        assert config.probability == 0.25
        assert config.namespace == "shop"
        assert config.label_selector == "app=db"
        assert config.max_duration == "5m"

    def test_result_serialises(self):
        trigger, _ = make_trigger(probability=0.0)
        data = trigger.fire().to_dict()
        assert data["fired"] is False
        assert data["report"] is None
