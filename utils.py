"""Shared evaluation helpers for display and move comparison."""

import math

import chess

from uci.models import ScoreReport

# Mate scores compare as this many centipawns, far outside any ramp target
MATE_SCORE_CP = 10000


def score_to_comparable_cp(score: ScoreReport) -> int:
    """Collapse a score to centipawns; mates saturate at +/-MATE_SCORE_CP."""
    if score.type == "cp":
        return score.value
    return MATE_SCORE_CP if score.value > 0 else -MATE_SCORE_CP


def flip_score(score: ScoreReport) -> ScoreReport:
    """Same evaluation seen from the other side."""
    return ScoreReport(type=score.type, value=-score.value)


def score_for_color(score: ScoreReport, side_to_move: chess.Color, perspective: chess.Color) -> ScoreReport:
    """
    Re-express a side-to-move score from `perspective`'s point of view.

    Args:
        score: Score as reported by the engine for the searched position
        side_to_move: Side to move in that position
        perspective: Color the result should be relative to
    """
    return score if side_to_move == perspective else flip_score(score)


def score_to_white_percent(score: ScoreReport) -> float:
    """
    Eval bar fill for White, 0-100.

    Uses a tanh squash over 600cp so small advantages stay visible and
    decisive ones approach the edge without overflowing it.
    """
    cp = score_to_comparable_cp(score)
    white_fraction = (math.tanh(cp / 600) + 1) / 2
    return max(0.0, min(100.0, white_fraction * 100))


def format_eval_label(score: ScoreReport) -> str:
    """'+1.35', '-0.42', 'M3', '-M5'."""
    if score.type == "mate":
        sign = "-" if score.value < 0 else ""
        return f"{sign}M{abs(score.value)}"
    return f"{score.value / 100:+.2f}"


def format_ramp_target(target_cp: int, engine_color: chess.Color) -> str:
    """Rampfish target as a White-relative readout, e.g. 'White +20.00'."""
    white_cp = target_cp if engine_color == chess.WHITE else -target_cp
    return f"White {format_eval_label(ScoreReport(type='cp', value=white_cp))}"
