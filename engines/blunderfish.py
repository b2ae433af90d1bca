"""
Blunderfish: full-strength Stockfish that throws in deliberate mistakes.

Strategy:
1. Ask the decision source (smoother or bag) whether this turn blunders
2. Normal turn: play the engine's best move
3. Blunder turn: run a MultiPV search and pick a clearly worse legal move
"""

import logging
import random
from typing import Callable, List, Optional, Sequence, Union

import chess

from uci.models import RankedCandidate
from utils import score_to_comparable_cp

from .base_engine import BaseEngine, MoveDecision, ShouldContinue, still_wanted
from .blunder_bag import DEFAULT_WINDOW_SIZE, BlunderDecisionBag
from .blunder_smoother import BlunderDecisionSmoother
from .stockfish_engine import StockfishEngine

logger = logging.getLogger(__name__)

DEFAULT_BLUNDER_PERCENT = 20
DEFAULT_MULTI_PV = 8
DEFAULT_MIN_LOSS_CP = 150  # A "blunder" must cost at least this much against the best line


def _random_choice(items: Sequence, rng) -> object:
    return items[int(rng.random() * len(items))]


def choose_blunder_move(
    ranked: List[RankedCandidate],
    legal_moves: List[chess.Move],
    is_legal_move: Callable[[chess.Move], bool],
    rng,
    min_loss_cp: int = DEFAULT_MIN_LOSS_CP,
) -> Optional[chess.Move]:
    """
    Pick a deliberately inferior move from MultiPV results.

    Preference order:
    1. legal non-best candidates losing at least min_loss_cp, at random
    2. the worst-ranked legal non-best candidate
    3. any legal move other than the best, at random
    4. the best move itself

    Returns:
        The chosen move, or None if there is nothing legal to play
    """
    best = ranked[0] if ranked else None
    best_move = best.move if best is not None else None

    alternatives = [
        c for c in ranked[1:]
        if c.move != best_move and is_legal_move(c.move)
    ]

    if best is not None and best.score is not None:
        best_cp = score_to_comparable_cp(best.score)
        losing = [
            c for c in alternatives
            if c.score is not None and best_cp - score_to_comparable_cp(c.score) >= min_loss_cp
        ]
        if losing:
            return _random_choice(losing, rng).move

    if alternatives:
        return alternatives[-1].move

    others = [m for m in legal_moves if m != best_move]
    if others:
        return _random_choice(others, rng)

    if best_move is not None and is_legal_move(best_move):
        return best_move
    return legal_moves[0] if legal_moves else None


class BlunderfishEngine(BaseEngine):
    """
    Stockfish with a configurable blunder rate.

    Blunder decisions come from an error-diffusion smoother by default, or
    from a shuffle bag with an exact count per window.
    """

    def __init__(
        self,
        engine: StockfishEngine,
        player_id: str = "blunderfish",
        blunder_percent: float = DEFAULT_BLUNDER_PERCENT,
        decision: str = "smoother",
        window_size: int = DEFAULT_WINDOW_SIZE,
        multi_pv: int = DEFAULT_MULTI_PV,
        min_loss_cp: int = DEFAULT_MIN_LOSS_CP,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        **kwargs,
    ):
        """
        Initialize blunderfish.

        Args:
            engine: Facade used for searches
            player_id: Name shown in results
            blunder_percent: Share of engine moves that should be blunders (0-100)
            decision: "smoother" (error diffusion) or "bag" (shuffled window)
            window_size: Bag window length in turns
            multi_pv: Upper bound on candidates requested on blunder turns
            min_loss_cp: Minimum centipawn loss for a preferred blunder
            seed: Random seed for reproducibility
            rng: Explicit random source (overrides seed)
        """
        super().__init__(player_id, engine, **kwargs)
        if decision not in ("smoother", "bag"):
            raise ValueError(f"Unknown blunder decision source: {decision}")

        self._rng = rng if rng is not None else random.Random(seed)
        self.blunder_percent = blunder_percent
        self.multi_pv = multi_pv
        self.min_loss_cp = min_loss_cp
        self.decisions: Union[BlunderDecisionSmoother, BlunderDecisionBag]
        if decision == "bag":
            self.decisions = BlunderDecisionBag(window_size, rng=self._rng)
        else:
            self.decisions = BlunderDecisionSmoother(rng=self._rng)
        self.blunders_played = 0

    def set_blunder_percent(self, percent: float) -> None:
        """Change the blunder rate; accumulated decision state is discarded."""
        if percent == self.blunder_percent:
            return
        self.blunder_percent = percent
        self.decisions.reset(percent)

    async def new_game(self) -> None:
        self.decisions.reset(self.blunder_percent)
        self.blunders_played = 0
        await super().new_game()

    async def select_move(
        self,
        rules,
        should_continue: Optional[ShouldContinue] = None,
    ) -> Optional[MoveDecision]:
        legal_moves = rules.all_legal_moves()
        if not legal_moves:
            return None

        fen = rules.fen()
        if not self.decisions.next(self.blunder_percent):
            move = await self.engine.get_best_move(fen, self.movetime_ms)
            if not still_wanted(should_continue):
                return None
            return MoveDecision(move=move, kind="best")

        ranked = await self.engine.get_ranked_moves_with_scores(
            fen,
            movetime_ms=self.movetime_ms,
            multi_pv=min(len(legal_moves), self.multi_pv),
        )
        if not still_wanted(should_continue):
            return None

        move = choose_blunder_move(ranked, legal_moves, rules.is_legal_move, self._rng, self.min_loss_cp)
        if move is None:
            return None

        is_best = bool(ranked) and move == ranked[0].move
        if not is_best:
            self.blunders_played += 1
        logger.debug(f"Blunder turn: {len(ranked)} candidates, playing {move.uci()}")
        return MoveDecision(move=move, kind="best" if is_best else "blunder")
