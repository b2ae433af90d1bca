"""
Data models for values parsed from, and sent to, a UCI engine.
"""

import math
from typing import Literal, Optional, Union

import chess
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_MOVETIME_MS = 1500


class ScoreReport(BaseModel):
    """
    Centipawn or mate-distance score, from the side to move's perspective
    at the position it was computed for. Callers track whose side that is.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["cp", "mate"]
    value: int


class RankedCandidate(BaseModel):
    """One MultiPV slot: rank 1 is the engine's primary line."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    rank: int = Field(ge=1)
    move: chess.Move
    score: Optional[ScoreReport] = None  # None only for the bestmove fallback entry


class LegacySearch(BaseModel):
    """Plain time budget: always `go movetime <ms>`."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["legacy"] = "legacy"
    movetime_ms: int


class BudgetedSearch(BaseModel):
    """Time budget with an optional depth cap."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["budgeted"] = "budgeted"
    movetime_ms: int = DEFAULT_MOVETIME_MS
    depth: Optional[int] = None


SearchBudget = Union[LegacySearch, BudgetedSearch]


def positive_int(value) -> Optional[int]:
    """Round a numeric value half up; None unless the result is positive."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return round_half_up(number)


def round_half_up(value: float) -> int:
    """Round with halves going up (2.5 -> 3, -2.5 -> -2), unlike round()."""
    return math.floor(value + 0.5)


def normalize_search(search) -> SearchBudget:
    """
    Convert the accepted search arguments into a SearchBudget.

    - int/float: legacy movetime
    - None: budgeted default
    - mapping: budgeted, invalid movetime replaced by the default and
      invalid depth dropped
    - SearchBudget: returned unchanged
    """
    if isinstance(search, (LegacySearch, BudgetedSearch)):
        return search
    if isinstance(search, bool):
        return BudgetedSearch()
    if isinstance(search, (int, float)):
        return LegacySearch(movetime_ms=positive_int(search) or DEFAULT_MOVETIME_MS)
    if not isinstance(search, dict):
        return BudgetedSearch()

    movetime_ms = positive_int(search.get("movetime_ms"))
    depth = positive_int(search.get("depth"))
    return BudgetedSearch(
        movetime_ms=movetime_ms if movetime_ms is not None else DEFAULT_MOVETIME_MS,
        depth=depth,
    )
