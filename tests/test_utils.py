"""Tests for score conversion and formatting helpers."""

import chess

from uci.models import ScoreReport
from utils import (
    MATE_SCORE_CP,
    flip_score,
    format_eval_label,
    format_ramp_target,
    score_for_color,
    score_to_comparable_cp,
    score_to_white_percent,
)


def cp(value):
    return ScoreReport(type="cp", value=value)


def mate(value):
    return ScoreReport(type="mate", value=value)


class TestScores:
    def test_comparable_cp(self):
        assert score_to_comparable_cp(cp(-35)) == -35
        assert score_to_comparable_cp(mate(3)) == MATE_SCORE_CP
        assert score_to_comparable_cp(mate(-1)) == -MATE_SCORE_CP

    def test_flip(self):
        assert flip_score(cp(42)) == cp(-42)
        assert flip_score(mate(-2)) == mate(2)

    def test_score_for_color(self):
        assert score_for_color(cp(42), chess.BLACK, chess.WHITE) == cp(-42)
        assert score_for_color(cp(42), chess.WHITE, chess.WHITE) == cp(42)

    def test_white_percent(self):
        assert score_to_white_percent(cp(0)) == 50.0
        assert score_to_white_percent(cp(300)) > 70
        assert score_to_white_percent(cp(-300)) < 30
        assert 99 < score_to_white_percent(mate(2)) <= 100
        assert 0 <= score_to_white_percent(mate(-2)) < 1


class TestFormatting:
    def test_eval_label(self):
        assert format_eval_label(cp(135)) == "+1.35"
        assert format_eval_label(cp(-42)) == "-0.42"
        assert format_eval_label(cp(0)) == "+0.00"
        assert format_eval_label(mate(3)) == "M3"
        assert format_eval_label(mate(-5)) == "-M5"

    def test_ramp_target_is_white_relative(self):
        assert format_ramp_target(-2000, chess.BLACK) == "White +20.00"
        assert format_ramp_target(-2000, chess.WHITE) == "White -20.00"
