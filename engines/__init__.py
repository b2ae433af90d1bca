# Engine facade and personalities
from .base_engine import BaseEngine, MoveDecision
from .blindfish import BlindfishEngine
from .blunderfish import BlunderfishEngine
from .rampfish import RampDirection, RampfishEngine
from .stockfish_engine import StockfishEngine

__all__ = [
    "BaseEngine",
    "MoveDecision",
    "BlindfishEngine",
    "BlunderfishEngine",
    "RampDirection",
    "RampfishEngine",
    "StockfishEngine",
]
