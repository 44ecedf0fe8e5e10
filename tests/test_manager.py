import asyncio
import unittest
from datetime import datetime, timedelta

from pinit_lifecycle.config import ConfigurationError, EngineConfig, LifecycleConfig, MaintenanceConfig
from pinit_lifecycle.manager import PinManager
from pinit_lifecycle.models import LifecycleTab, MapTab
from pinit_lifecycle.testing import REFERENCE_TIME, make_pin, make_record


def fixed_clock():
    return REFERENCE_TIME


def snapshot():
    return [
        make_pin("r1"),
        make_pin("t1", age_days=10, idle_days=1, total=10, recent=8),
        make_pin("c1", age_days=400, idle_days=100, total=50, recent=1),
        make_pin("h1", age_days=60, total=1, recent=0),
    ]


def enabled_manager(**maintenance):
    config = EngineConfig(enabled=True, maintenance=MaintenanceConfig(**maintenance))
    return PinManager(config, clock=fixed_clock)


class TestConstruction(unittest.TestCase):
    def test_invalid_config_fails_fast(self) -> None:
        with self.assertRaises(ConfigurationError):
            PinManager(EngineConfig(lifecycle=LifecycleConfig(recent_window_days=0)))
        with self.assertRaises(ConfigurationError):
            PinManager({"enabled": True})
        with self.assertRaises(ConfigurationError):
            PinManager(EngineConfig(), clock="now")

    def test_snapshot_at_construction(self) -> None:
        manager = PinManager(EngineConfig(enabled=True), clock=fixed_clock, snapshot=snapshot())
        self.assertEqual(len(manager.pins), 4)


class TestDisabled(unittest.TestCase):
    def test_feature_flag_off_is_a_pass_through(self) -> None:
        pins = snapshot()
        manager = PinManager(clock=fixed_clock)
        manager.refresh(pins)
        self.assertFalse(manager.enabled)
        self.assertEqual(manager.pins, pins)
        self.assertEqual(manager.filtered_pins, [])
        self.assertEqual(set(manager.pin_counts.values()), {0})
        self.assertEqual(manager.lifecycle_stats["total"], 0)
        self.assertIsNone(manager.maintenance_stats)
        self.assertIsNone(manager.trigger_maintenance(REFERENCE_TIME))
        self.assertIsNone(manager.tick(REFERENCE_TIME))
        self.assertIsNone(manager.get_pin_insights("r1", REFERENCE_TIME))
        self.assertEqual(manager.get_tab_pins("recent"), [])
        self.assertEqual(manager.pins, pins)

    def test_flag_states_side_by_side(self) -> None:
        off = PinManager(EngineConfig(enabled=False), clock=fixed_clock, snapshot=snapshot())
        on = PinManager(EngineConfig(enabled=True), clock=fixed_clock, snapshot=snapshot())
        self.assertIsNone(off.trigger_maintenance(REFERENCE_TIME))
        self.assertEqual(on.trigger_maintenance(REFERENCE_TIME).pins_processed, 4)

    def test_timer_does_not_start(self) -> None:
        manager = PinManager(clock=fixed_clock)
        manager.start()
        self.assertFalse(manager.running)


class TestOperations(unittest.TestCase):
    def setUp(self) -> None:
        self.manager = enabled_manager()
        self.manager.refresh(snapshot())

    def test_refresh_skips_invalid_records(self) -> None:
        with self.assertLogs("pinit_lifecycle.records", level="WARNING"):
            self.manager.refresh([make_record("ok"), {"id": "broken"}])
        self.assertEqual([p.id for p in self.manager.pins], ["ok"])
        self.assertEqual(self.manager.skipped[0].pin_id, "broken")

    def test_trigger_maintenance(self) -> None:
        report = self.manager.trigger_maintenance(REFERENCE_TIME)
        self.assertIs(self.manager.last_report, report)
        self.assertEqual(self.manager.last_sweep_at, REFERENCE_TIME)
        self.assertEqual(report.pins_hidden, 1)
        self.assertEqual(
            self.manager.pin_counts,
            {"recent": 1, "trending": 1, "classics": 1, "all": 3, "hidden": 1},
        )
        self.assertEqual(self.manager.lifecycle_stats["hidden"], 1)
        self.assertFalse(self.manager.maintenance_stats.is_overdue)

    def test_naive_reference_time_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.manager.trigger_maintenance(datetime(2024, 6, 1))

    def test_tick_runs_only_when_overdue(self) -> None:
        self.assertTrue(self.manager.maintenance_stats.is_overdue)
        self.assertIsNotNone(self.manager.tick(REFERENCE_TIME))
        self.assertIsNone(self.manager.tick(REFERENCE_TIME + timedelta(hours=1)))
        self.assertIsNotNone(self.manager.tick(REFERENCE_TIME + timedelta(hours=25)))

    def test_tab_selection(self) -> None:
        self.manager.trigger_maintenance(REFERENCE_TIME)
        self.assertEqual([p.id for p in self.manager.filtered_pins], ["r1"])

        self.manager.set_active_tab("classics")
        self.assertEqual(self.manager.active_tab, MapTab.CLASSICS)
        self.assertEqual([p.id for p in self.manager.filtered_pins], ["c1"])

        self.manager.set_active_tab(MapTab.TRENDING, include_hidden=True)
        self.assertFalse(self.manager.include_hidden)

        self.manager.set_active_tab("all", include_hidden=True)
        self.assertTrue(self.manager.include_hidden)
        self.assertEqual(len(self.manager.filtered_pins), 4)
        self.assertEqual(len(self.manager.get_tab_pins("all")), 3)

        with self.assertRaises(ValueError):
            self.manager.set_active_tab("bogus")

    def test_insights_and_recommendations(self) -> None:
        self.manager.trigger_maintenance(REFERENCE_TIME)
        insights = self.manager.get_pin_insights("t1", REFERENCE_TIME)
        self.assertEqual(insights.rank, 1)
        self.assertEqual(insights.total_pins, 4)
        self.assertIsNone(self.manager.get_pin_insights("missing", REFERENCE_TIME))
        self.assertIn("Pin is trending! Keep the momentum going", self.manager.get_recommendations("t1"))
        self.assertEqual(self.manager.get_recommendations("missing"), [])


class TestRefreshPriority(unittest.TestCase):
    def test_refresh_cancels_queued_check(self) -> None:
        manager = enabled_manager()
        manager.refresh(snapshot())
        pending = manager.queue_maintenance_check()

        fresh = [make_pin("n1"), make_pin("n2", age_days=2)]
        manager.refresh(fresh)
        self.assertTrue(pending.cancelled)
        self.assertIsNone(pending.fire(REFERENCE_TIME))
        self.assertEqual(manager.pins, fresh)
        self.assertIsNone(manager.last_report)

    def test_check_fires_without_refresh(self) -> None:
        manager = enabled_manager()
        manager.refresh(snapshot())
        pending = manager.queue_maintenance_check()
        self.assertFalse(pending.cancelled)
        self.assertIsNotNone(pending.fire(REFERENCE_TIME))
        self.assertEqual(manager.pins[0].lifecycle_tab, LifecycleTab.RECENT)


class TestTimer(unittest.TestCase):
    def test_context_manager_runs_overdue_maintenance(self) -> None:
        manager = enabled_manager(tick_seconds=0.01)
        manager.refresh(snapshot())

        async def run():
            async with manager:
                self.assertTrue(manager.running)
                await asyncio.sleep(0.1)
            self.assertFalse(manager.running)

        asyncio.run(run())
        self.assertIsNotNone(manager.last_report)
        self.assertEqual(manager.last_sweep_at, REFERENCE_TIME)

    def test_stop_cancels_the_timer(self) -> None:
        manager = enabled_manager()

        async def run():
            manager.start()
            task = manager._timer_task
            manager.start()
            self.assertIs(manager._timer_task, task)
            await asyncio.sleep(0)
            await manager.stop()
            return task

        task = asyncio.run(run())
        self.assertTrue(task.cancelled())
        self.assertFalse(manager.running)
        self.assertIsNone(manager.last_report)

    def test_refresh_during_sleep_skips_that_tick(self) -> None:
        manager = enabled_manager(tick_seconds=0.3)
        manager.refresh(snapshot())
        fresh = [make_pin("n1")]

        async def run():
            async with manager:
                await asyncio.sleep(0.05)
                manager.refresh(fresh)
                await asyncio.sleep(0.35)
                self.assertIsNone(manager.last_report)
                self.assertEqual(manager.pins, fresh)

        asyncio.run(run())

    def test_failed_tick_is_logged_and_the_timer_keeps_running(self) -> None:
        calls = []

        def flaky_clock():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("clock unavailable")
            return REFERENCE_TIME

        config = EngineConfig(enabled=True, maintenance=MaintenanceConfig(tick_seconds=0.01))
        manager = PinManager(config, clock=flaky_clock, snapshot=snapshot())

        async def run():
            async with manager:
                await asyncio.sleep(0.1)
                self.assertTrue(manager.running)

        with self.assertLogs("pinit_lifecycle.manager", level="ERROR") as logs:
            asyncio.run(run())
        self.assertIsInstance(logs.records[0].exc_info[1], RuntimeError)
        self.assertIsNotNone(manager.last_report)
        self.assertEqual(manager.last_sweep_at, REFERENCE_TIME)


if __name__ == "__main__":
    unittest.main()
