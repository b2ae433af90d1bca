"""Tests for the blunder decision sources (error-diffusion smoother and shuffle bag)."""

from unittest.mock import Mock

from engines.blunder_bag import BlunderDecisionBag
from engines.blunder_smoother import BlunderDecisionSmoother, clamp_percent


class LcgRng:
    """Deterministic linear congruential generator with a random() method."""

    def __init__(self, seed=12345):
        self.state = seed & 0xFFFFFFFF

    def random(self):
        self.state = (1664525 * self.state + 1013904223) & 0xFFFFFFFF
        return self.state / 4294967296


def fixed_rng(value):
    rng = Mock()
    rng.random.return_value = value
    return rng


class TestClampPercent:
    def test_rounds_half_up(self):
        assert clamp_percent(12.5) == 13

    def test_bounds(self):
        assert clamp_percent(150) == 100
        assert clamp_percent(-5) == 0
        assert clamp_percent(float("inf")) == 100

    def test_invalid_values_mean_zero(self):
        assert clamp_percent(float("nan")) == 0
        assert clamp_percent("lots") == 0
        assert clamp_percent(None) == 0


class TestBlunderDecisionSmoother:
    def test_error_builds_up_until_a_blunder(self):
        smoother = BlunderDecisionSmoother(rng=fixed_rng(0.99))
        assert [smoother.next(30) for _ in range(4)] == [False, False, False, True]

    def test_blunder_is_paid_back_on_later_turns(self):
        smoother = BlunderDecisionSmoother(rng=fixed_rng(0.0))
        assert [smoother.next(30) for _ in range(3)] == [True, False, False]

    def test_long_run_rate_tracks_percentage(self):
        smoother = BlunderDecisionSmoother(rng=LcgRng())
        decisions = [smoother.next(35) for _ in range(2000)]
        assert 0.3 < sum(decisions) / len(decisions) < 0.4

    def test_reset_clears_drift(self):
        smoother = BlunderDecisionSmoother(rng=LcgRng())
        low = sum(smoother.next(10) for _ in range(400)) / 400
        smoother.reset(50)
        assert smoother.error == 0.0
        high = sum(smoother.next(50) for _ in range(400)) / 400
        assert low < 0.2
        assert high > 0.4

    def test_extremes(self):
        smoother = BlunderDecisionSmoother(rng=LcgRng())
        assert not any(smoother.next(0) for _ in range(50))
        smoother.reset()
        assert all(smoother.next(100) for _ in range(50))

    def test_seeded_sequences_repeat(self):
        a = BlunderDecisionSmoother(seed=7)
        b = BlunderDecisionSmoother(seed=7)
        assert [a.next(25) for _ in range(100)] == [b.next(25) for _ in range(100)]


class TestBlunderDecisionBag:
    def test_exact_count_per_window(self):
        bag = BlunderDecisionBag(window_size=20, rng=fixed_rng(0.1234))
        assert sum(bag.next(25) for _ in range(20)) == 5

    def test_consecutive_windows(self):
        bag = BlunderDecisionBag(window_size=20, rng=LcgRng())
        first = sum(bag.next(35) for _ in range(20))
        assert bag.remaining == 0
        second = sum(bag.next(35) for _ in range(20))
        assert first == second == 7

    def test_reset_refills_with_new_odds(self):
        bag = BlunderDecisionBag(window_size=20, rng=LcgRng())
        bag.next(50)
        bag.reset(10)
        assert bag.remaining == 20
        assert sum(bag.next(10) for _ in range(20)) == 2

    def test_fractional_percent_rounds(self):
        bag = BlunderDecisionBag(window_size=20, rng=LcgRng())
        assert sum(bag.next(12.5) for _ in range(20)) == 3
