"""Core rules for classic 3x3 tic-tac-toe: board snapshots, results, legal moves."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

EMPTY = " "
BOARD_SIZE = 9

WinLine = Tuple[int, int, int]

# Priority order matters: rows top-to-bottom, columns left-to-right, diagonals.
WINNING_LINES: Tuple[WinLine, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

_EMPTY_ALIASES = {EMPTY, ".", "_"}
_IGNORED_CHARS = {"|", "/", "\n", "\r", "\t"}


class InvalidMove(ValueError):
    """Raised when a mark cannot be placed on the requested cell."""


class Player(str, Enum):
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Player":
        return Player.O if self is Player.X else Player.X


class Outcome(str, Enum):
    IN_PROGRESS = "inProgress"
    DRAW = "draw"
    WIN = "win"


# ---------- Board ----------


@dataclass(frozen=True)
class Board:
    """Immutable 3x3 board; cells are row-major ``"X"``, ``"O"`` or ``" "``."""

    cells: Tuple[str, ...] = (EMPTY,) * BOARD_SIZE

    def __post_init__(self) -> None:
        cells = tuple(self.cells)
        if len(cells) != BOARD_SIZE:
            raise ValueError(f"Board needs exactly {BOARD_SIZE} cells, got {len(cells)}")
        normalized = []
        for cell in cells:
            if cell is None or cell in _EMPTY_ALIASES:
                normalized.append(EMPTY)
            elif cell in (Player.X, Player.O):
                normalized.append(Player(cell).value)
            else:
                raise ValueError(f"Unknown cell value {cell!r}")
        object.__setattr__(self, "cells", tuple(normalized))

    @classmethod
    def empty(cls) -> "Board":
        return cls()

    @classmethod
    def from_string(cls, text: str) -> "Board":
        """Parse ``"XO.|.X.|..O"`` style notation (``.``, ``_`` or space for empty)."""
        return cls(tuple(ch for ch in text if ch not in _IGNORED_CHARS))

    def __len__(self) -> int:
        return len(self.cells)

    def __getitem__(self, index: int) -> str:
        return self.cells[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self.cells)

    @property
    def occupied_count(self) -> int:
        return sum(1 for c in self.cells if c != EMPTY)

    @property
    def current_player(self) -> Player:
        """X moves on an even number of occupied cells, O on an odd one."""
        return Player.X if self.occupied_count % 2 == 0 else Player.O

    def is_full(self) -> bool:
        return all(c != EMPTY for c in self.cells)

    def place(self, index: int, player: Player | str) -> "Board":
        if not 0 <= index < BOARD_SIZE:
            raise InvalidMove(f"Cell {index} is outside the board")
        if self.cells[index] != EMPTY:
            raise InvalidMove(f"Cell {index} is already occupied")
        cells = list(self.cells)
        cells[index] = Player(player).value
        return Board(tuple(cells))

    def to_string(self) -> str:
        rows = ("".join(self.cells[r : r + 3]).replace(EMPTY, ".") for r in (0, 3, 6))
        return "|".join(rows)

    def __str__(self) -> str:
        return self.to_string()


# ---------- Result ----------


@dataclass(frozen=True)
class GameResult:
    outcome: Outcome
    winner: Optional[Player] = None
    line: Optional[WinLine] = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not Outcome.IN_PROGRESS

    @classmethod
    def win(cls, winner: Player, line: WinLine) -> "GameResult":
        return cls(Outcome.WIN, winner=winner, line=line)


IN_PROGRESS = GameResult(Outcome.IN_PROGRESS)
DRAW = GameResult(Outcome.DRAW)


def evaluate(board: Board) -> GameResult:
    """Classify ``board``; the first complete line in priority order wins."""
    cells = board.cells
    for a, b, c in WINNING_LINES:
        v = cells[a]
        if v != EMPTY and v == cells[b] == cells[c]:
            return GameResult.win(Player(v), (a, b, c))
    if board.is_full():
        return DRAW
    return IN_PROGRESS


def legal_moves(board: Board) -> List[int]:
    """Ascending indices of every empty cell."""
    return [i for i, c in enumerate(board.cells) if c == EMPTY]
