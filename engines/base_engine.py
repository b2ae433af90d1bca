"""
Base class for engine personalities.
"""

import abc
from typing import Callable, List, Literal, Optional

import chess
from pydantic import BaseModel, ConfigDict, Field

from uci.client import MAX_SKILL_LEVEL
from uci.models import DEFAULT_MOVETIME_MS

from .stockfish_engine import StockfishEngine

ShouldContinue = Callable[[], bool]

DecisionKind = Literal["best", "blunder", "blind", "ramp", "random_fallback"]


class MoveDecision(BaseModel):
    """A move chosen by a personality, with what led to it."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    move: chess.Move
    kind: DecisionKind
    blind_squares: List[str] = Field(default_factory=list)  # Squares hidden from the search
    target_cp: Optional[int] = None                         # Rampfish target, engine's perspective


class BaseEngine(abc.ABC):
    """
    Abstract personality playing through a StockfishEngine facade.

    Personalities never touch the board themselves: they read it through the
    rules adapter passed to select_move() and return a MoveDecision.
    """

    def __init__(
        self,
        player_id: str,
        engine: StockfishEngine,
        skill_level: int = MAX_SKILL_LEVEL,
        movetime_ms: int = DEFAULT_MOVETIME_MS,
    ):
        """
        Initialize the personality.

        Args:
            player_id: Name shown in results and PGN headers
            engine: Facade used for every search
            skill_level: Stockfish Skill Level applied at new game
            movetime_ms: Search time per move in milliseconds
        """
        self.player_id = player_id
        self.engine = engine
        self.skill_level = skill_level
        self.movetime_ms = movetime_ms

    async def new_game(self) -> None:
        """Reset per-game state and apply this personality's strength."""
        await self.engine.set_skill_level(self.skill_level)

    @abc.abstractmethod
    async def select_move(
        self,
        rules,
        should_continue: Optional[ShouldContinue] = None,
    ) -> Optional[MoveDecision]:
        """
        Choose a move for the side to move.

        Args:
            rules: ChessRules adapter for the current game
            should_continue: Returns False once the turn was superseded

        Returns:
            MoveDecision, or None when no move is available or the turn was
            abandoned
        """
        ...


def still_wanted(should_continue: Optional[ShouldContinue]) -> bool:
    return should_continue is None or should_continue()
