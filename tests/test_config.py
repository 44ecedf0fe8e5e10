import unittest
from datetime import datetime, timezone

from pinit_lifecycle.config import (
    ConfigurationError,
    EngineConfig,
    LifecycleConfig,
    MaintenanceConfig,
    ensure_reference_time,
)


class TestLifecycleConfig(unittest.TestCase):
    def test_defaults_are_valid(self) -> None:
        config = EngineConfig().validate()
        self.assertFalse(config.enabled)
        self.assertEqual(config.lifecycle.recent_window_days, 7.0)
        self.assertEqual(config.lifecycle.classic_endorsement_min, 10)
        self.assertEqual(config.maintenance.interval_hours, 24.0)

    def test_non_positive_window_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(recent_window_days=0).validate()
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(decay_half_life_hours=-1).validate()

    def test_burst_ratio_must_be_a_fraction(self) -> None:
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(trending_min_burst_ratio=1.5).validate()

    def test_thresholds_below_one_are_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(downvote_hide_threshold=0).validate()
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(classic_endorsement_min=0).validate()

    def test_downvote_hide_ratio(self) -> None:
        self.assertEqual(LifecycleConfig().downvote_hide_ratio, 0.5)
        with self.assertRaises(ConfigurationError):
            LifecycleConfig(downvote_hide_ratio=-0.1).validate()
        config = EngineConfig.from_env({"PINIT_MAP_DOWNVOTE_HIDE_RATIO": "1.5"})
        self.assertEqual(config.lifecycle.downvote_hide_ratio, 1.5)

    def test_due_soon_cannot_exceed_interval(self) -> None:
        with self.assertRaises(ConfigurationError):
            MaintenanceConfig(interval_hours=4, due_soon_hours=6).validate()

    def test_configuration_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(ConfigurationError, ValueError))


class TestFromEnv(unittest.TestCase):
    def test_overrides_and_flag(self) -> None:
        config = EngineConfig.from_env(
            {
                "PINIT_FEATURE_MAP_LIFECYCLE": "true",
                "PINIT_MAP_RECENT_WINDOW_DAYS": "5",
                "PINIT_MAP_CLASSIC_ENDORSEMENT_MIN": "20",
                "PINIT_MAP_INTERVAL_HOURS": "12",
            }
        )
        self.assertTrue(config.enabled)
        self.assertEqual(config.lifecycle.recent_window_days, 5.0)
        self.assertEqual(config.lifecycle.classic_endorsement_min, 20)
        self.assertIsInstance(config.lifecycle.classic_endorsement_min, int)
        self.assertEqual(config.maintenance.interval_hours, 12.0)

    def test_flag_defaults_off(self) -> None:
        config = EngineConfig.from_env({})
        self.assertFalse(config.enabled)
        self.assertEqual(config.lifecycle, LifecycleConfig())

    def test_blank_values_are_ignored(self) -> None:
        config = EngineConfig.from_env({"PINIT_MAP_EXPIRY_GRACE_DAYS": "  "})
        self.assertEqual(config.lifecycle.expiry_grace_days, 30.0)

    def test_unparsable_values_raise(self) -> None:
        with self.assertRaises(ConfigurationError):
            EngineConfig.from_env({"PINIT_MAP_CLASSIC_AGE_DAYS": "half a year"})
        with self.assertRaises(ConfigurationError):
            EngineConfig.from_env({"PINIT_FEATURE_MAP_LIFECYCLE": "maybe"})

    def test_invalid_override_fails_validation(self) -> None:
        with self.assertRaises(ConfigurationError):
            EngineConfig.from_env({"PINIT_MAP_TRENDING_WINDOW_DAYS": "-3"})


class TestReferenceTime(unittest.TestCase):
    def test_aware_datetime_passes_through(self) -> None:
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        self.assertIs(ensure_reference_time(now), now)

    def test_naive_datetime_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            ensure_reference_time(datetime(2024, 6, 1))

    def test_non_datetime_is_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            ensure_reference_time("2024-06-01T00:00:00Z")


if __name__ == "__main__":
    unittest.main()
