"""
Data models for blunderfish games and configuration.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class GameMode(str, Enum):
    """Engine personality the human plays against."""
    BLUNDERFISH = "blunderfish"
    BLINDFISH = "blindfish"
    RAMPFISH = "rampfish"


class GameStatus(BaseModel):
    """Snapshot of whether, and how, the game ended."""
    over: bool = False
    result: Optional[str] = None    # "white", "black", "draw"
    reason: Optional[str] = None    # "checkmate", "stalemate", "threefold_repetition",
                                    # "insufficient_material", "fifty_move_rule",
                                    # "draw", "forfeit"
    check: bool = False


class MoveOutcome(BaseModel):
    """Result of trying to apply a move to the real game."""
    ok: bool
    needs_promotion: bool = False
    reason: Optional[str] = None    # "illegal_move", "illegal_promotion"
    san: Optional[str] = None
    promotion_choices: List[str] = Field(default_factory=list)


class GameResult(BaseModel):
    """Summary of a finished game."""
    game_id: str
    mode: GameMode
    human_color: str                # "white", "black"
    winner: str                     # "white", "black", "draw"
    termination: str
    moves: int                      # Total half-moves (plies)
    blunders: int = 0               # Deliberate engine blunders played
    engine_errors: int = 0
    created_at: str                 # ISO timestamp

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return self.model_dump(mode="json")


# ----------------------------------------------------------------------
# Configuration (config/blunderfish.yaml)
# ----------------------------------------------------------------------

class EngineConfig(BaseModel):
    """Stockfish process settings."""
    path: Optional[str] = None                  # Discovered when omitted
    timeout: float = Field(default=20.0, gt=0)  # Seconds per engine response
    skill_level: int = Field(default=20, ge=0, le=20)
    movetime_ms: int = Field(default=1500, gt=0)


class AnalysisConfig(BaseModel):
    """Background evaluation for the eval bar."""
    enabled: bool = True
    movetime_ms: int = Field(default=300, gt=0)


class BlunderfishConfig(BaseModel):
    blunder_percent: float = Field(default=20, ge=0, le=100)
    decision: str = Field(default="smoother", pattern="^(smoother|bag)$")
    window_size: int = Field(default=20, ge=1)
    multi_pv: int = Field(default=8, ge=2)
    min_loss_cp: int = Field(default=150, ge=0)


class BlindfishConfig(BaseModel):
    blindness_count: int = Field(default=2, ge=0)
    max_retries: int = Field(default=3, ge=0)
    multi_pv: int = Field(default=10, ge=1)
    include_white: bool = True
    include_black: bool = True
    exclude_last_moved: bool = True
    orthodox: bool = False                      # Hide exactly the human's bishops


class RampfishConfig(BaseModel):
    final_move: int = Field(default=40, ge=1)
    direction: str = Field(default="up", pattern="^(up|down)$")


class AppConfig(BaseModel):
    """Top-level configuration file."""
    seed: Optional[int] = None
    engine: EngineConfig = Field(default_factory=EngineConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    blunderfish: BlunderfishConfig = Field(default_factory=BlunderfishConfig)
    blindfish: BlindfishConfig = Field(default_factory=BlindfishConfig)
    rampfish: RampfishConfig = Field(default_factory=RampfishConfig)
