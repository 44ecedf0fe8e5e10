import unittest
from datetime import datetime, timedelta, timezone

import numpy as np

from pinit_lifecycle.trending import (
    days_between,
    decay_array,
    elapsed_days,
    elapsed_hours,
    hours_between,
    whole_days_left,
)

NOW = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)


class TestDecay(unittest.TestCase):
    def test_half_life(self) -> None:
        np.testing.assert_allclose(decay_array([0.0, 72.0, 144.0], 72), [1.0, 0.5, 0.25])

    def test_future_events_count_fully(self) -> None:
        np.testing.assert_allclose(decay_array([-5.0, -0.1], 72), [1.0, 1.0])

    def test_decay_is_non_increasing(self) -> None:
        values = decay_array(np.arange(0, 1000, 7.5), 72)
        self.assertTrue(np.all(np.diff(values) <= 0))
        self.assertTrue(np.all(values > 0))


class TestTimeArithmetic(unittest.TestCase):
    def test_hours_between_is_signed(self) -> None:
        earlier = NOW - timedelta(hours=6)
        self.assertAlmostEqual(hours_between(earlier, NOW), 6.0)
        self.assertAlmostEqual(hours_between(NOW, earlier), -6.0)
        self.assertAlmostEqual(days_between(NOW - timedelta(days=3), NOW), 3.0)

    def test_elapsed_is_clamped(self) -> None:
        self.assertEqual(elapsed_hours(NOW + timedelta(hours=2), NOW), 0.0)
        self.assertAlmostEqual(elapsed_days(NOW - timedelta(hours=36), NOW), 1.5)

    def test_whole_days_left_rounds_up(self) -> None:
        self.assertEqual(whole_days_left(0.2), 1)
        self.assertEqual(whole_days_left(2.0), 2)
        self.assertEqual(whole_days_left(-3.5), 0)


if __name__ == "__main__":
    unittest.main()
