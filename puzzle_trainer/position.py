"""Position string decoding: FEN piece placement -> square/piece mapping."""

from __future__ import annotations

from typing import Dict, Optional

import chess

from .errors import PositionDecodeError

# Square -> piece letter (KQRBNP white, kqrbnp black) or None when empty
BoardLayout = Dict[str, Optional[str]]

PIECE_LETTERS = frozenset("KQRBNPkqrbnp")


def is_square_name(name: str) -> bool:
    """True for "a1".."h8"."""
    return name in chess.SQUARE_NAMES


def decode_position(fen: str) -> BoardLayout:
    """Decode the placement field of a FEN string into all 64 squares.

    Only the first FEN field is read; side to move, castling rights and
    counters are ignored. Raises :class:`PositionDecodeError` for a wrong
    rank count, a bad rank width, or an unrecognized character.
    """
    if not isinstance(fen, str) or not fen.strip():
        raise PositionDecodeError(f"Empty position string: {fen!r}")

    placement = fen.split()[0]
    ranks = placement.split("/")
    if len(ranks) != 8:
        raise PositionDecodeError(f"Invalid position (must contain 8 ranks): {fen!r}")
    for ch in placement:
        if ch != "/" and not ch.isdigit() and ch not in PIECE_LETTERS:
            raise PositionDecodeError(f"Invalid piece character {ch!r}: {fen!r}")

    try:
        board = chess.BaseBoard(placement)
    except ValueError as exc:
        raise PositionDecodeError(f"Invalid position {fen!r}: {exc}") from exc

    layout: BoardLayout = {name: None for name in chess.SQUARE_NAMES}
    for square, piece in board.piece_map().items():
        layout[chess.square_name(square)] = piece.symbol()
    return layout


def render_ascii(layout: BoardLayout) -> str:
    """Text diagram of a decoded board, rank 8 at the top, "." for empty squares."""
    rows = []
    for rank in range(7, -1, -1):
        cells = []
        for file in range(8):
            piece = layout.get(chess.square_name(chess.square(file, rank)))
            cells.append(piece or ".")
        rows.append(f"{rank + 1} " + " ".join(cells))
    rows.append("  " + " ".join(chess.FILE_NAMES))
    return "\n".join(rows)
