"""Exhaustive minimax with a per-instance memo table, plus difficulty-aware move picking."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .game import Board, Player, evaluate, legal_moves

WIN_SCORE = 10
MEDIUM_RANDOM_RATE = 0.4

CacheKey = Tuple[Tuple[str, ...], Player]


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class NoLegalMoves(RuntimeError):
    """A move was requested on a board that cannot produce one."""


@dataclass
class SearchEngine:
    """Minimax scorer for X (maximizing) against O (minimizing).

    Scores are ``10 - depth`` for an X win, ``depth - 10`` for an O win and
    ``0`` for a draw, where ``depth`` counts plies from the query root. The
    memo table is keyed by board content and side to move only, and lives
    as long as this instance (``clear()`` it between rounds).
    """

    use_cache: bool = True
    _cache: Dict[CacheKey, int] = field(default_factory=dict, repr=False)
    nodes: int = field(default=0, init=False)

    # ---- public API ----

    def score(self, board: Board, player: Player | str, depth: int = 0) -> int:
        return self._minimax(board, Player(player), depth)

    def clear(self) -> None:
        self._cache.clear()
        self.nodes = 0

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ---- core search ----

    def _minimax(self, board: Board, player: Player, depth: int) -> int:
        key = (board.cells, player)
        if self.use_cache:
            hit = self._cache.get(key)
            if hit is not None:
                return hit

        self.nodes += 1
        result = evaluate(board)

        if result.winner is not None:
            value = WIN_SCORE - depth if result.winner is Player.X else depth - WIN_SCORE
        elif result.is_terminal:
            value = 0
        else:
            maximizing = player is Player.X
            # Best score still reachable from here; hitting it ends the scan.
            ceiling = WIN_SCORE - depth if maximizing else depth - WIN_SCORE
            value = -WIN_SCORE - 1 if maximizing else WIN_SCORE + 1
            for move in legal_moves(board):
                child = board.place(move, player)
                score = self._minimax(child, player.opponent, depth + 1)
                value = max(value, score) if maximizing else min(value, score)
                if value == ceiling:
                    break

        if self.use_cache:
            self._cache[key] = value
        return value


@dataclass
class MoveSelector:
    """Picks moves for the computer player according to a ``Difficulty``.

    Randomness comes from ``rng`` so a seeded ``random.Random`` reproduces
    the same games. The engine cache is shared by every call on this
    selector; whoever owns the selector decides when to clear it.
    """

    engine: SearchEngine = field(default_factory=SearchEngine)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def select_move(
        self, board: Board, player: Player | str, difficulty: Difficulty | str
    ) -> Optional[int]:
        player = Player(player)
        difficulty = Difficulty(difficulty)

        moves = legal_moves(board)
        if not moves:
            if not evaluate(board).is_terminal:
                raise NoLegalMoves(f"No legal moves on non-terminal board {board}")
            return None

        if difficulty is Difficulty.EASY:
            return self.rng.choice(moves)
        if difficulty is Difficulty.MEDIUM and self.rng.random() < MEDIUM_RANDOM_RATE:
            return self.rng.choice(moves)
        return self._best_move(board, player, moves)

    def _best_move(self, board: Board, player: Player, moves: List[int]) -> int:
        maximizing = player is Player.X
        best_move = moves[0]
        best_score: Optional[int] = None
        for move in moves:
            score = self.engine.score(board.place(move, player), player.opponent, 1)
            # Strict comparison: the earliest index keeps ties.
            if (
                best_score is None
                or (maximizing and score > best_score)
                or (not maximizing and score < best_score)
            ):
                best_score, best_move = score, move
        return best_move


def select_move(
    board: Board,
    player: Player | str,
    difficulty: Difficulty | str,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """One-off move selection with a fresh engine (and cache)."""
    selector = MoveSelector(rng=rng if rng is not None else random.Random())
    return selector.select_move(board, player, difficulty)
