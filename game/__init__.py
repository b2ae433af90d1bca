# Game management
from .models import AppConfig, GameMode, GameResult, GameStatus, MoveOutcome
from .rules import ChessRules
from .game_runner import GameSession

__all__ = [
    "AppConfig",
    "GameMode",
    "GameResult",
    "GameStatus",
    "MoveOutcome",
    "ChessRules",
    "GameSession",
]
