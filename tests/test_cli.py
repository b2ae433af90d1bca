"""Tests for configuration loading and CLI wiring."""

import argparse
import random
import sys
from pathlib import Path
from unittest.mock import MagicMock

import chess
import pytest

from cli import apply_overrides, create_personality, eval_bar_text, load_config, main, resolve_color
from engines.blindfish import BlindfishEngine
from engines.blunder_bag import BlunderDecisionBag
from engines.blunderfish import BlunderfishEngine
from engines.rampfish import RampDirection, RampfishEngine
from game.models import AppConfig, GameMode
from uci.models import ScoreReport

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "blunderfish.yaml"


def make_args(**overrides):
    values = dict(
        stockfish_path=None,
        seed=None,
        movetime=None,
        no_eval=False,
        blunder_percent=None,
        blunder_bag=False,
        blindness=None,
        orthodox=False,
        final_move=None,
        direction=None,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


class TestLoadConfig:
    def test_shipped_config(self):
        config = load_config(str(REPO_CONFIG))
        assert config.engine.timeout == 20.0
        assert config.blunderfish.blunder_percent == 20
        assert config.blindfish.blindness_count == 2
        assert config.rampfish.final_move == 40

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == AppConfig()

    def test_invalid_values_are_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("blunderfish:\n  blunder_percent: 150\n")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestApplyOverrides:
    def test_flags_override_file_values(self, monkeypatch):
        monkeypatch.delenv("STOCKFISH_PATH", raising=False)
        config = apply_overrides(
            AppConfig(),
            make_args(seed=7, movetime=500, blunder_percent=35, blunder_bag=True, no_eval=True, direction="down"),
        )
        assert config.seed == 7
        assert config.engine.movetime_ms == 500
        assert config.blunderfish.blunder_percent == 35
        assert config.blunderfish.decision == "bag"
        assert not config.analysis.enabled
        assert config.rampfish.direction == "down"

    def test_stockfish_path_from_environment(self, monkeypatch):
        monkeypatch.setenv("STOCKFISH_PATH", "/env/stockfish")
        assert apply_overrides(AppConfig(), make_args()).engine.path == "/env/stockfish"

    def test_flag_beats_environment(self, monkeypatch):
        monkeypatch.setenv("STOCKFISH_PATH", "/env/stockfish")
        config = apply_overrides(AppConfig(), make_args(stockfish_path="/flag/stockfish"))
        assert config.engine.path == "/flag/stockfish"

    def test_flag_values_are_validated(self):
        with pytest.raises(ValueError):
            apply_overrides(AppConfig(), make_args(blindness=-1))


class TestCreatePersonality:
    def test_blunderfish(self):
        config = AppConfig.model_validate({"seed": 3, "blunderfish": {"decision": "bag", "blunder_percent": 40}})
        personality = create_personality(GameMode.BLUNDERFISH, MagicMock(), config)
        assert isinstance(personality, BlunderfishEngine)
        assert isinstance(personality.decisions, BlunderDecisionBag)
        assert personality.blunder_percent == 40

    def test_blindfish_orthodox(self):
        config = AppConfig.model_validate({"blindfish": {"orthodox": True}})
        personality = create_personality(GameMode.BLINDFISH, MagicMock(), config)
        assert isinstance(personality, BlindfishEngine)
        assert personality.orthodox
        assert personality.player_id == "blindfish-orthodox"

    def test_rampfish(self):
        config = AppConfig.model_validate({"engine": {"movetime_ms": 900}, "rampfish": {"final_move": 12, "direction": "down"}})
        personality = create_personality(GameMode.RAMPFISH, MagicMock(), config)
        assert isinstance(personality, RampfishEngine)
        assert personality.final_move == 12
        assert personality.direction == RampDirection.DOWN
        assert personality.movetime_ms == 900


class TestHelpers:
    def test_resolve_color(self):
        rng = random.Random(0)
        assert resolve_color("w", rng) == chess.WHITE
        assert resolve_color("b", rng) == chess.BLACK
        assert resolve_color("random", rng) in (chess.WHITE, chess.BLACK)

    def test_eval_bar(self):
        session = MagicMock()
        session.white_score = None
        assert eval_bar_text(session) == "Eval: ..."
        session.white_score = ScoreReport(type="cp", value=0)
        assert eval_bar_text(session).endswith("] +0.00")
        assert eval_bar_text(session).count("#") == 15


class TestMain:
    def test_no_command_prints_help(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["blunderfish"])
        assert main() == 0
        assert "usage" in capsys.readouterr().out

    def test_missing_config_file(self, monkeypatch, tmp_path, capsys):
        missing = tmp_path / "missing.yaml"
        monkeypatch.setattr(sys, "argv", ["blunderfish", "analyze", chess.STARTING_FEN, "--config", str(missing)])
        assert main() == 1
        assert "Error" in capsys.readouterr().out

    def test_broken_yaml(self, monkeypatch, tmp_path, capsys):
        path = tmp_path / "broken.yaml"
        path.write_text("engine: [unclosed\n")
        monkeypatch.setattr(sys, "argv", ["blunderfish", "analyze", chess.STARTING_FEN, "--config", str(path)])
        assert main() == 1
        assert "invalid YAML" in capsys.readouterr().out

    def test_invalid_fen(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["blunderfish", "analyze", "not a fen"])
        assert main() == 1
        assert "Invalid FEN" in capsys.readouterr().out
