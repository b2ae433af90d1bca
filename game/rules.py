"""
Rules adapter over python-chess.

Handles:
- the real game board (legal moves, promotion checks, status)
- picking squares to hide for blindfish and building the blind FEN
- deciding whether a blind FEN is sane enough to search
"""

import logging
from typing import Iterable, List, Optional

import chess

from .models import GameStatus, MoveOutcome

logger = logging.getLogger(__name__)

PROMOTION_CHOICES = ["q", "r", "b", "n"]


def eligible_blind_squares(
    board: chess.Board,
    include_white: bool = True,
    include_black: bool = True,
    exclude_squares: Iterable[str] = (),
) -> List[str]:
    """Squares of non-king pieces that may be hidden, in a1..h8 order."""
    excluded = set(exclude_squares)
    colors = []
    if include_white:
        colors.append(chess.WHITE)
    if include_black:
        colors.append(chess.BLACK)

    pool = []
    for square, piece in sorted(board.piece_map().items()):
        if piece.piece_type == chess.KING or piece.color not in colors:
            continue
        name = chess.square_name(square)
        if name not in excluded:
            pool.append(name)
    return pool


def select_blind_squares(
    board: chess.Board,
    count,
    rng,
    include_white: bool = True,
    include_black: bool = True,
    exclude_squares: Iterable[str] = (),
) -> List[str]:
    """
    Sample up to `count` distinct non-king squares without replacement.

    Args:
        board: Position to sample from
        count: Pieces to hide (floored; non-positive means none)
        rng: Object with random() returning floats in [0, 1)
        include_white: Allow hiding white pieces
        include_black: Allow hiding black pieces
        exclude_squares: Squares that must stay visible

    Returns:
        Square names, in draw order
    """
    try:
        requested = max(0, int(count))
    except (TypeError, ValueError, OverflowError):
        return []
    if requested == 0 or not (include_white or include_black):
        return []

    pool = eligible_blind_squares(board, include_white, include_black, exclude_squares)
    picks = []
    for _ in range(min(requested, len(pool))):
        index = int(rng.random() * len(pool))
        picks.append(pool.pop(index))
    return picks


def _has_live_en_passant(board: chess.Board) -> bool:
    # has_legal_en_passant() does not check that the pushed pawn still exists
    pushed = board.ep_square - 8 if board.turn == chess.WHITE else board.ep_square + 8
    if not 0 <= pushed < 64 or board.piece_at(pushed) != chess.Piece(chess.PAWN, not board.turn):
        return False
    return board.has_legal_en_passant()


def build_fen_with_removed_squares(fen: str, squares: Iterable[str]) -> str:
    """
    Rebuild a FEN with the pieces on `squares` removed.

    Kings are never removed. Castling rights survive only where king and
    rook are still on their home squares, and an en passant square with no
    legal capture left is dropped. Unparseable input is returned unchanged.
    """
    try:
        board = chess.Board(fen)
    except ValueError:
        return fen

    for name in squares:
        try:
            square = chess.parse_square(name)
        except ValueError:
            continue
        piece = board.piece_at(square)
        if piece is None or piece.piece_type == chess.KING:
            continue
        board.remove_piece_at(square)

    board.castling_rights = board.clean_castling_rights()
    if board.ep_square is not None and not _has_live_en_passant(board):
        board.ep_square = None
    return board.fen()


def is_blind_fen_search_safe(fen: str) -> bool:
    """
    False when the side that just moved is left in check.

    Removing pieces can open a line onto the king of the side not to move,
    a position no legal game reaches; searching it is meaningless.
    """
    try:
        board = chess.Board(fen)
    except ValueError:
        return False
    return not board.was_into_check()


class ChessRules:
    """
    The real game, as seen by sessions and personalities.

    Moves are chess.Move values; squares cross the boundary as names
    ("e4") so callers can report them.
    """

    def __init__(self, fen: Optional[str] = None):
        self.board = chess.Board(fen) if fen else chess.Board()

    def new_game(self, fen: Optional[str] = None) -> None:
        self.board = chess.Board(fen) if fen else chess.Board()

    def load_fen(self, fen: str) -> None:
        """Replace the position. Raises ValueError for an invalid FEN."""
        self.board = chess.Board(fen)

    def fen(self) -> str:
        return self.board.fen()

    @property
    def turn(self) -> chess.Color:
        return self.board.turn

    @property
    def last_move(self) -> Optional[chess.Move]:
        return self.board.peek() if self.board.move_stack else None

    def position(self) -> chess.Board:
        """A copy of the current board; mutating it does not affect the game."""
        return self.board.copy(stack=False)

    def legal_moves_from(self, square: str) -> List[chess.Move]:
        from_square = chess.parse_square(square)
        return [m for m in self.board.legal_moves if m.from_square == from_square]

    def all_legal_moves(self) -> List[chess.Move]:
        return list(self.board.legal_moves)

    def _candidates(self, move: chess.Move) -> List[chess.Move]:
        return [
            m for m in self.board.legal_moves
            if m.from_square == move.from_square and m.to_square == move.to_square
        ]

    def is_legal_move(self, move: chess.Move) -> bool:
        """Legality check that never mutates the board; promotions must match exactly."""
        candidates = self._candidates(move)
        if not candidates:
            return False

        promotions = [m for m in candidates if m.promotion]
        if promotions:
            return any(m.promotion == move.promotion for m in promotions)
        return move.promotion is None

    def apply_move(self, move: chess.Move) -> MoveOutcome:
        """
        Play a move on the real board.

        A pawn reaching the last rank without a promotion piece is rejected
        with needs_promotion so the caller can ask for one.
        """
        candidates = self._candidates(move)
        if not candidates:
            return MoveOutcome(ok=False, reason="illegal_move")

        promotions = [m for m in candidates if m.promotion]
        if promotions and move.promotion is None:
            return MoveOutcome(ok=False, needs_promotion=True, promotion_choices=PROMOTION_CHOICES)
        if move.promotion is not None and not any(m.promotion == move.promotion for m in promotions):
            return MoveOutcome(ok=False, reason="illegal_promotion")

        san = self.board.san(move)
        self.board.push(move)
        return MoveOutcome(ok=True, san=san)

    def parse_move(self, text: str) -> Optional[chess.Move]:
        """
        Read a move typed by a human, SAN ("Nf3") or UCI ("g1f3", "a7a8q").

        A UCI pawn move to the last rank without a piece is returned as-is
        so apply_move() can report needs_promotion.
        """
        text = text.strip()
        if not text:
            return None
        try:
            return self.board.parse_san(text)
        except ValueError:
            pass
        try:
            return chess.Move.from_uci(text.lower())
        except ValueError:
            return None

    def game_status(self) -> GameStatus:
        board = self.board
        check = board.is_check()

        if board.is_checkmate():
            winner = "black" if board.turn == chess.WHITE else "white"
            return GameStatus(over=True, result=winner, reason="checkmate", check=check)
        if board.is_stalemate():
            return GameStatus(over=True, result="draw", reason="stalemate", check=check)
        if board.is_repetition(3):
            return GameStatus(over=True, result="draw", reason="threefold_repetition", check=check)
        if board.is_insufficient_material():
            return GameStatus(over=True, result="draw", reason="insufficient_material", check=check)
        if board.halfmove_clock >= 100:
            return GameStatus(over=True, result="draw", reason="fifty_move_rule", check=check)
        if board.is_game_over():
            return GameStatus(over=True, result="draw", reason="draw", check=check)
        return GameStatus(over=False, check=check)

    def move_history(self) -> List[str]:
        """Moves played so far, in SAN."""
        replay = self.board.root()
        history = []
        for move in self.board.move_stack:
            history.append(replay.san(move))
            replay.push(move)
        return history

    # Blindfish hooks bound to the current position

    def eligible_blind_squares(self, include_white=True, include_black=True, exclude_squares=()) -> List[str]:
        return eligible_blind_squares(self.board, include_white, include_black, exclude_squares)

    def select_blind_squares(self, count, rng, include_white=True, include_black=True, exclude_squares=()) -> List[str]:
        return select_blind_squares(self.board, count, rng, include_white, include_black, exclude_squares)

    def build_blind_fen(self, squares: Iterable[str]) -> str:
        return build_fen_with_removed_squares(self.board.fen(), squares)

    def is_blind_fen_search_safe(self, fen: str) -> bool:
        return is_blind_fen_search_safe(fen)
