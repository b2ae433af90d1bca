"""
Pure parsing helpers for UCI engine output lines.

Handles:
- bestmove lines ("bestmove e2e4 ponder e7e5", "bestmove (none)")
- info score fields ("score cp 42", "score mate -3")
- MultiPV info lines ("info ... multipv 2 score cp 10 pv d2d4 d7d5")
- ranking and deduplication of harvested candidates
"""

import re
from typing import Iterable, List, Optional

import chess

from .models import RankedCandidate, ScoreReport

BESTMOVE_PREFIX = "bestmove "
INFO_PREFIX = "info "
NO_MOVE_TOKEN = "(none)"

_SCORE_RE = re.compile(r"\bscore\s+(cp|mate)\s+(-?\d+)\b")
_MULTIPV_RE = re.compile(r"\bmultipv\s+(\d+)\b")
_PV_MOVE_RE = re.compile(r"\bpv\s+([a-h][1-8][a-h][1-8][qrbn]?)\b", re.IGNORECASE)


def parse_move_token(token: Optional[str]) -> Optional[chess.Move]:
    """
    Parse a UCI move token into a chess.Move.

    Returns None for empty tokens, the "(none)" sentinel, tokens shorter than
    four characters, and anything python-chess refuses (including 0000).
    """
    if not token or token == NO_MOVE_TOKEN or len(token) < 4:
        return None

    # Positional split: from, to, optional promotion letter
    text = token[:4].lower()
    if len(token) > 4:
        text += token[4].lower()

    try:
        move = chess.Move.from_uci(text)
    except (ValueError, chess.InvalidMoveError):
        return None
    return move if move else None


def parse_best_move(line: Optional[str]) -> Optional[chess.Move]:
    """Parse the move out of a bestmove line; None for anything else."""
    if not line or not line.startswith(BESTMOVE_PREFIX):
        return None

    parts = line.split(" ")
    return parse_move_token(parts[1] if len(parts) > 1 else None)


def parse_score(line: Optional[str]) -> Optional[ScoreReport]:
    """Extract the score field of an info line."""
    if not line or not line.startswith(INFO_PREFIX):
        return None

    match = _SCORE_RE.search(line)
    if not match:
        return None

    return ScoreReport(type=match.group(1), value=int(match.group(2)))


def parse_multipv_rank(line: Optional[str]) -> Optional[int]:
    """Extract the multipv rank of an info line."""
    if not line or not line.startswith(INFO_PREFIX):
        return None

    match = _MULTIPV_RE.search(line)
    if not match:
        return None
    return int(match.group(1))


def parse_ranked_candidate(line: Optional[str]) -> Optional[RankedCandidate]:
    """
    Parse a MultiPV info line into a RankedCandidate.

    Both the multipv rank and the first pv move are required; malformed
    lines yield None. The score is attached when present.
    """
    if not line or not line.startswith(INFO_PREFIX):
        return None

    rank_match = _MULTIPV_RE.search(line)
    pv_match = _PV_MOVE_RE.search(line)
    if not rank_match or not pv_match:
        return None

    rank = int(rank_match.group(1))
    move = parse_move_token(pv_match.group(1))
    if move is None or rank < 1:
        return None

    return RankedCandidate(rank=rank, move=move, score=parse_score(line))


def rank_and_dedupe(entries: Iterable[RankedCandidate]) -> List[RankedCandidate]:
    """
    Sort candidates by rank and keep the first occurrence of each move.

    The sort is stable, so equal ranks keep their original order.
    """
    seen = set()
    result = []
    for entry in sorted(entries, key=lambda e: e.rank):
        key = entry.move.uci()
        if key in seen:
            continue
        seen.add(key)
        result.append(entry)
    return result


def rank_and_dedupe_moves(entries: Iterable[RankedCandidate]) -> List[chess.Move]:
    """Same ordering as rank_and_dedupe, moves only."""
    return [entry.move for entry in rank_and_dedupe(entries)]
