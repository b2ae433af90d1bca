"""
Rampfish ("clapback"): throws the game early, then claws it back.

Strategy:
1. Each engine turn has a target evaluation, interpolated from -2000cp at
   turn 1 to +2000cp at the final ramp move (engine's perspective)
2. Search every legal move at full strength and play the one whose score
   lands closest to the target
3. Past the final ramp move, play normally with the end-of-ramp profile
"""

import logging
import math
from enum import Enum
from typing import List, NamedTuple, Optional

from uci.client import MAX_SKILL_LEVEL
from uci.models import RankedCandidate, round_half_up
from utils import score_to_comparable_cp

from .base_engine import BaseEngine, MoveDecision, ShouldContinue, still_wanted
from .stockfish_engine import StockfishEngine

logger = logging.getLogger(__name__)

RAMP_DEFAULT_FINAL_MOVE = 40
RAMP_MIN_FINAL_MOVE = 1
RAMP_TARGET_CP_MIN = -2000
RAMP_TARGET_CP_MAX = 2000


class RampDirection(str, Enum):
    """UP throws then recovers; DOWN starts strong and fades."""
    UP = "up"
    DOWN = "down"


class RampProfile(NamedTuple):
    skill_level: int
    depth: int
    movetime_ms: int


RAMP_PROFILE_MIN = RampProfile(skill_level=0, depth=1, movetime_ms=50)
RAMP_PROFILE_MAX = RampProfile(skill_level=20, depth=40, movetime_ms=1500)
RAMP_SEARCH_MOVETIME_MS = RAMP_PROFILE_MAX.movetime_ms  # ramp turns ignore the configured movetime


def _to_number(value) -> Optional[float]:
    if isinstance(value, str) and not value.strip():
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def clamp_final_move(value) -> int:
    """Round half up with a floor of 1; None or non-numeric means the default."""
    number = _to_number(value)
    if number is None:
        return RAMP_DEFAULT_FINAL_MOVE
    return max(RAMP_MIN_FINAL_MOVE, round_half_up(number))


def compute_ramp_progress(engine_turn_index, final_move) -> float:
    """0.0 at turn 1, 1.0 at or after the final move, linear in between."""
    final = clamp_final_move(final_move)
    turn = _to_number(engine_turn_index)

    if turn is None or turn <= 1 or final <= 1:
        return 1.0 if turn is not None and turn >= final else 0.0
    if turn >= final:
        return 1.0
    return (turn - 1) / (final - 1)


def _lerp_rounded(start: int, end: int, progress: float) -> int:
    return round_half_up(start + (end - start) * progress)


def interpolate_ramp_profile(
    engine_turn_index,
    final_move,
    direction: RampDirection = RampDirection.UP,
) -> RampProfile:
    """Engine strength for this turn; DOWN runs the ramp from MAX to MIN."""
    progress = compute_ramp_progress(engine_turn_index, final_move)
    start, end = RAMP_PROFILE_MIN, RAMP_PROFILE_MAX
    if RampDirection(direction) == RampDirection.DOWN:
        start, end = end, start

    return RampProfile(
        skill_level=_lerp_rounded(start.skill_level, end.skill_level, progress),
        depth=_lerp_rounded(start.depth, end.depth, progress),
        movetime_ms=_lerp_rounded(start.movetime_ms, end.movetime_ms, progress),
    )


def compute_target_eval_cp(
    engine_turn_index,
    final_move,
    direction: RampDirection = RampDirection.UP,
) -> int:
    """Target evaluation in centipawns, from the engine's own perspective."""
    progress = compute_ramp_progress(engine_turn_index, final_move)
    if RampDirection(direction) == RampDirection.DOWN:
        return _lerp_rounded(RAMP_TARGET_CP_MAX, RAMP_TARGET_CP_MIN, progress)
    return _lerp_rounded(RAMP_TARGET_CP_MIN, RAMP_TARGET_CP_MAX, progress)


def is_post_ramp_phase(engine_turn_index, final_move) -> bool:
    turn = _to_number(engine_turn_index)
    if turn is None:
        return False
    return turn > clamp_final_move(final_move)


def pick_closest_to_target(candidates: List[RankedCandidate], target_cp: int) -> Optional[RankedCandidate]:
    """
    Candidate whose score is nearest the target.

    Scores are those of the searched position, whose side to move is the
    engine, so they are already in the engine's perspective. Ties go to the
    better rank; with no scores at all the first candidate wins.
    """
    best = None
    best_distance = None
    for candidate in sorted(candidates, key=lambda c: c.rank):
        if candidate.score is None:
            continue
        distance = abs(score_to_comparable_cp(candidate.score) - target_cp)
        if best_distance is None or distance < best_distance:
            best, best_distance = candidate, distance

    if best is None and candidates:
        return candidates[0]
    return best


class RampfishEngine(BaseEngine):
    """Personality that steers the evaluation along a ramp."""

    def __init__(
        self,
        engine: StockfishEngine,
        player_id: str = "rampfish",
        final_move: int = RAMP_DEFAULT_FINAL_MOVE,
        direction: RampDirection = RampDirection.UP,
        **kwargs,
    ):
        """
        Initialize rampfish.

        Args:
            engine: Facade used for searches
            player_id: Name shown in results
            final_move: Engine turn at which the target saturates
            direction: Ramp direction
        """
        super().__init__(player_id, engine, **kwargs)
        self.final_move = clamp_final_move(final_move)
        self.direction = RampDirection(direction)
        self.engine_turn_index = 1
        self.last_target_cp: Optional[int] = None

    async def new_game(self) -> None:
        self.engine_turn_index = 1
        self.last_target_cp = None
        await super().new_game()

    def current_target_cp(self) -> int:
        return compute_target_eval_cp(self.engine_turn_index, self.final_move, self.direction)

    async def select_move(
        self,
        rules,
        should_continue: Optional[ShouldContinue] = None,
    ) -> Optional[MoveDecision]:
        legal_moves = rules.all_legal_moves()
        if not legal_moves:
            return None

        fen = rules.fen()
        turn = self.engine_turn_index

        if is_post_ramp_phase(turn, self.final_move):
            profile = interpolate_ramp_profile(turn, self.final_move, self.direction)
            await self.engine.set_skill_level(profile.skill_level)
            move = await self.engine.get_best_move(
                fen, {"movetime_ms": profile.movetime_ms, "depth": profile.depth}
            )
            if not still_wanted(should_continue):
                return None
            self.engine_turn_index += 1
            self.last_target_cp = None
            return MoveDecision(move=move, kind="best")

        target_cp = self.current_target_cp()
        await self.engine.set_skill_level(MAX_SKILL_LEVEL)
        ranked = await self.engine.get_ranked_moves_with_scores(
            fen, movetime_ms=RAMP_SEARCH_MOVETIME_MS, multi_pv=len(legal_moves)
        )
        if not still_wanted(should_continue):
            return None

        legal_ranked = [c for c in ranked if rules.is_legal_move(c.move)]
        chosen = pick_closest_to_target(legal_ranked, target_cp)
        if chosen is None:
            move = await self.engine.get_best_move(fen, RAMP_SEARCH_MOVETIME_MS)
            if not still_wanted(should_continue):
                return None
            chosen_move = move
        else:
            chosen_move = chosen.move

        self.engine_turn_index += 1
        self.last_target_cp = target_cp
        logger.debug(f"Ramp turn {turn}: target {target_cp}cp, playing {chosen_move.uci()}")
        return MoveDecision(move=chosen_move, kind="ramp", target_cp=target_cp)
