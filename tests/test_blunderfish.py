"""Tests for blunder move selection and the blunderfish personality."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import chess
import pytest

from engines.blunder_bag import BlunderDecisionBag
from engines.blunder_smoother import BlunderDecisionSmoother
from engines.blunderfish import BlunderfishEngine, choose_blunder_move
from game.rules import ChessRules
from uci.models import RankedCandidate, ScoreReport


def move(uci):
    return chess.Move.from_uci(uci)


def candidate(rank, uci, cp=None, mate=None):
    score = None
    if cp is not None:
        score = ScoreReport(type="cp", value=cp)
    elif mate is not None:
        score = ScoreReport(type="mate", value=mate)
    return RankedCandidate(rank=rank, move=move(uci), score=score)


def fixed_rng(value):
    rng = Mock()
    rng.random.return_value = value
    return rng


def always_legal(m):
    return True


@pytest.fixture
def mock_facade():
    engine = MagicMock()
    engine.get_best_move = AsyncMock(return_value=move("e2e4"))
    engine.get_ranked_moves_with_scores = AsyncMock(return_value=[
        candidate(1, "e2e4", cp=40),
        candidate(2, "d2d4", cp=30),
        candidate(3, "g2g4", cp=-200),
    ])
    engine.set_skill_level = AsyncMock()
    return engine


class TestChooseBlunderMove:
    ranked = [
        candidate(1, "e2e4", cp=50),
        candidate(2, "d2d4", cp=30),
        candidate(3, "g1f3", cp=-200),
        candidate(4, "b1c3", cp=-150),
    ]

    def test_prefers_clearly_losing_candidates(self):
        legal = [c.move for c in self.ranked]
        assert choose_blunder_move(self.ranked, legal, always_legal, fixed_rng(0.0)) == move("g1f3")
        assert choose_blunder_move(self.ranked, legal, always_legal, fixed_rng(0.99)) == move("b1c3")

    def test_skips_candidates_illegal_on_the_real_board(self):
        legal = [c.move for c in self.ranked]
        chosen = choose_blunder_move(self.ranked, legal, lambda m: m != move("g1f3"), fixed_rng(0.0))
        assert chosen == move("b1c3")

    def test_worst_ranked_alternative_when_nothing_loses_enough(self):
        ranked = [candidate(1, "e2e4", cp=50), candidate(2, "d2d4", cp=40), candidate(3, "c2c4", cp=45)]
        legal = [c.move for c in ranked]
        assert choose_blunder_move(ranked, legal, always_legal, fixed_rng(0.0)) == move("c2c4")

    def test_any_other_legal_move_when_only_best_was_searched(self):
        ranked = [candidate(1, "e2e4", cp=50)]
        legal = [move("e2e4"), move("d2d4")]
        assert choose_blunder_move(ranked, legal, always_legal, fixed_rng(0.0)) == move("d2d4")

    def test_best_move_when_it_is_the_only_move(self):
        ranked = [candidate(1, "e1f1", cp=-50)]
        assert choose_blunder_move(ranked, [move("e1f1")], always_legal, fixed_rng(0.5)) == move("e1f1")

    def test_mate_scores_count_as_large_losses(self):
        ranked = [candidate(1, "d1h5", mate=3), candidate(2, "e2e4", cp=500)]
        legal = [c.move for c in ranked]
        assert choose_blunder_move(ranked, legal, always_legal, fixed_rng(0.0)) == move("e2e4")

    def test_nothing_legal(self):
        assert choose_blunder_move([], [], always_legal, fixed_rng(0.0)) is None


class TestBlunderfishEngine:
    def test_normal_turn_plays_best_move(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade, blunder_percent=0)
            rules = ChessRules()
            decision = await personality.select_move(rules)

            assert decision.move == move("e2e4")
            assert decision.kind == "best"
            mock_facade.get_best_move.assert_awaited_once_with(rules.fen(), 1500)
            mock_facade.get_ranked_moves_with_scores.assert_not_awaited()

        asyncio.run(scenario())

    def test_blunder_turn_uses_multipv_search(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade, blunder_percent=100, rng=fixed_rng(0.0))
            rules = ChessRules()
            decision = await personality.select_move(rules)

            assert decision.kind == "blunder"
            assert decision.move == move("g2g4")
            assert personality.blunders_played == 1
            mock_facade.get_ranked_moves_with_scores.assert_awaited_once_with(
                rules.fen(), movetime_ms=1500, multi_pv=8
            )

        asyncio.run(scenario())

    def test_multipv_never_exceeds_legal_move_count(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade, blunder_percent=100, rng=fixed_rng(0.0))
            rules = ChessRules("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
            mock_facade.get_ranked_moves_with_scores.return_value = [candidate(1, "e1d1", cp=0)]
            await personality.select_move(rules)

            kwargs = mock_facade.get_ranked_moves_with_scores.await_args.kwargs
            assert kwargs["multi_pv"] == 5

        asyncio.run(scenario())

    def test_superseded_turn_returns_nothing(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade, blunder_percent=0)
            assert await personality.select_move(ChessRules(), lambda: False) is None

        asyncio.run(scenario())

    def test_no_legal_moves(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade)
            mated = ChessRules("rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3")
            assert await personality.select_move(mated) is None
            mock_facade.get_best_move.assert_not_awaited()

        asyncio.run(scenario())

    def test_new_game_resets_state_and_applies_skill(self, mock_facade):
        async def scenario():
            personality = BlunderfishEngine(mock_facade, blunder_percent=100, rng=fixed_rng(0.0), skill_level=12)
            await personality.select_move(ChessRules())
            await personality.new_game()

            assert personality.blunders_played == 0
            mock_facade.set_skill_level.assert_awaited_once_with(12)

        asyncio.run(scenario())

    def test_changing_percent_resets_decision_state(self, mock_facade):
        personality = BlunderfishEngine(mock_facade, blunder_percent=30, rng=fixed_rng(0.99))
        personality.decisions.next(30)
        assert personality.decisions.error != 0.0

        personality.set_blunder_percent(50)
        assert personality.blunder_percent == 50
        assert personality.decisions.error == 0.0

    def test_decision_sources(self, mock_facade):
        assert isinstance(BlunderfishEngine(mock_facade).decisions, BlunderDecisionSmoother)
        assert isinstance(BlunderfishEngine(mock_facade, decision="bag").decisions, BlunderDecisionBag)
        with pytest.raises(ValueError, match="Unknown blunder decision source"):
            BlunderfishEngine(mock_facade, decision="dice")
