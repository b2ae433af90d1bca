"""
Shuffle-bag blunder decisions: every window of turns holds an exact number
of blunders.
"""

import random
from typing import List, Optional

from uci.models import round_half_up

from .blunder_smoother import clamp_percent

DEFAULT_WINDOW_SIZE = 20


class BlunderDecisionBag:
    """
    Draws decisions from a shuffled window of round(window * percent / 100)
    blunders, refilling when the window is used up.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        self.window_size = window_size
        self._rng = rng if rng is not None else random.Random(seed)
        self._bag: List[bool] = []

    def _refill(self, percent) -> None:
        blunder_count = round_half_up(self.window_size * clamp_percent(percent) / 100)
        bag = [True] * blunder_count + [False] * (self.window_size - blunder_count)

        # Fisher-Yates with the injected rng
        for i in range(len(bag) - 1, 0, -1):
            j = int(self._rng.random() * (i + 1))
            bag[i], bag[j] = bag[j], bag[i]
        self._bag = bag

    def next(self, percent) -> bool:
        if not self._bag:
            self._refill(percent)
        return self._bag.pop()

    def reset(self, percent=0) -> None:
        """Discard the current window and refill it with the new odds."""
        self._refill(percent)

    @property
    def remaining(self) -> int:
        return len(self._bag)
