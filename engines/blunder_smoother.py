"""
Error-diffusion blunder decisions.

Independent coin flips at low rates give long quiet stretches followed by
clusters of blunders. The smoother carries the running difference between
expected and actual blunders into the next draw, so the observed rate tracks
the configured percentage closely without visible streaks.
"""

import math
import random
from typing import Optional

from uci.models import round_half_up


def clamp_percent(percent) -> int:
    """Round half up into 0..100; NaN and non-numbers count as 0."""
    try:
        number = float(percent)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    if math.isinf(number):
        return 100 if number > 0 else 0
    return min(100, max(0, round_half_up(number)))


class BlunderDecisionSmoother:
    """Stateful yes/no source: should the next engine move be a blunder?"""

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        """
        Args:
            rng: Object with a random() method returning floats in [0, 1)
            seed: Seed for a private random.Random when rng is omitted
        """
        self._rng = rng if rng is not None else random.Random(seed)
        self.error = 0.0

    def next(self, percent) -> bool:
        target = clamp_percent(percent) / 100
        adjusted = min(1.0, max(0.0, target + self.error))
        is_blunder = self._rng.random() < adjusted

        self.error += target - (1 if is_blunder else 0)
        self.error = min(1.0, max(-1.0, self.error))
        return is_blunder

    def reset(self, percent=None) -> None:
        """Forget accumulated drift. `percent` is accepted for parity with the bag."""
        self.error = 0.0
