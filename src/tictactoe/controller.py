"""Turn-taking state machine for one tic-tac-toe session."""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .ai import Difficulty, MoveSelector, NoLegalMoves
from .config import DEFAULT_THINK_DELAY
from .game import BOARD_SIZE, EMPTY, Board, GameResult, Player, evaluate

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    COMPUTER_VS_HUMAN = "computer"
    HUMAN_VS_HUMAN = "human"


@dataclass(frozen=True)
class RoundSettings:
    mode: Mode = Mode.COMPUTER_VS_HUMAN
    human_player: Player = Player.X
    difficulty: Difficulty = Difficulty.EASY

    @property
    def computer_player(self) -> Optional[Player]:
        if self.mode is Mode.COMPUTER_VS_HUMAN:
            return self.human_player.opponent
        return None


@dataclass(frozen=True)
class PendingTurn:
    """Token for a scheduled computer reply; stale once replaced or dropped."""

    token: int
    player: Player


MoveListener = Callable[["TurnController", Player, int], None]


class TurnController:
    """Owns the board of one session and decides who may move next.

    The player to move is always derived from the board. When the computer
    is to move the controller is ``thinking``: a ``PendingTurn`` is recorded
    and ``play_computer_turn()`` must be awaited (directly, as a background
    task, or via ``schedule_computer_turn()``) to actually answer. Starting a
    new round or resetting drops the pending turn, so a reply that wakes up
    afterwards is discarded instead of being applied to the new board.

    Settings changes are recorded immediately but only take effect when the
    next round starts.
    """

    def __init__(
        self,
        settings: Optional[RoundSettings] = None,
        selector: Optional[MoveSelector] = None,
        think_delay: float = DEFAULT_THINK_DELAY,
    ) -> None:
        self.selector = selector if selector is not None else MoveSelector()
        self.think_delay = think_delay
        self._requested = settings if settings is not None else RoundSettings()
        self._active = self._requested
        self._board = Board.empty()
        self._history: List[Tuple[Player, int]] = []
        self._pending: Optional[PendingTurn] = None
        self._task: Optional[asyncio.Task] = None
        self._tokens = itertools.count(1)
        self._listeners: List[MoveListener] = []
        self.round = 0
        self.start_new_round()

    # ---- read accessors ----

    @property
    def board(self) -> Board:
        return self._board

    @property
    def current_player(self) -> Player:
        return self._board.current_player

    @property
    def result(self) -> GameResult:
        return evaluate(self._board)

    @property
    def thinking(self) -> bool:
        return self._pending is not None

    @property
    def pending_token(self) -> Optional[int]:
        return self._pending.token if self._pending else None

    @property
    def settings(self) -> RoundSettings:
        """Settings governing the round in progress."""
        return self._active

    @property
    def requested_settings(self) -> RoundSettings:
        """Settings that the next round will use."""
        return self._requested

    @property
    def computer_player(self) -> Optional[Player]:
        return self._active.computer_player

    @property
    def history(self) -> Tuple[Tuple[Player, int], ...]:
        return tuple(self._history)

    def add_listener(self, listener: MoveListener) -> None:
        """Call ``listener(controller, player, index)`` after every applied move."""
        self._listeners.append(listener)

    # ---- settings ----

    def set_mode(self, mode: Mode | str) -> None:
        self._requested = replace(self._requested, mode=Mode(mode))

    def set_human_player(self, player: Player | str) -> None:
        self._requested = replace(self._requested, human_player=Player(player))

    def set_difficulty(self, difficulty: Difficulty | str) -> None:
        self._requested = replace(self._requested, difficulty=Difficulty(difficulty))

    # ---- round lifecycle ----

    def start_new_round(self) -> None:
        self._cancel_pending()
        self._board = Board.empty()
        self._history.clear()
        self.selector.engine.clear()
        self._active = self._requested
        self.round += 1
        logger.info(
            "Round %d started (mode=%s, human=%s, difficulty=%s)",
            self.round,
            self._active.mode.value,
            self._active.human_player.value,
            self._active.difficulty.value,
        )
        self._schedule_if_computer_to_move()

    def full_reset(self) -> None:
        logger.info("Restoring default settings")
        self._requested = RoundSettings()
        self.start_new_round()

    # ---- moves ----

    def rejection_reason(self, index: int) -> Optional[str]:
        """Why ``apply_move(index)`` would be refused, or ``None`` if it is allowed."""
        if self.result.is_terminal:
            return "Game already finished"
        if not isinstance(index, int) or not 0 <= index < BOARD_SIZE:
            return f"Cell index must be between 0 and {BOARD_SIZE - 1}"
        if self._board[index] != EMPTY:
            return f"Cell {index} is already occupied"
        if self._pending is not None:
            return "Computer is still thinking"
        computer = self.computer_player
        if computer is not None and self.current_player is computer:
            return "It is not your turn"
        return None

    def apply_move(self, index: int) -> bool:
        reason = self.rejection_reason(index)
        if reason is not None:
            logger.debug("Rejected move %r: %s", index, reason)
            return False
        self._place(index)
        return True

    async def play_computer_turn(self) -> Optional[int]:
        """Wait out the thinking delay, then answer unless the turn went stale."""
        pending = self._pending
        if pending is None:
            return None

        await asyncio.sleep(max(0.0, self.think_delay))

        if self._pending is not pending:
            logger.debug("Discarding stale computer turn %d", pending.token)
            return None

        move = self.selector.select_move(self._board, pending.player, self._active.difficulty)
        if move is None:
            raise NoLegalMoves(f"Computer has no move on board {self._board}")
        self._pending = None
        self._task = None
        self._place(move)
        return move

    def schedule_computer_turn(self) -> Optional[asyncio.Task]:
        """Run ``play_computer_turn()`` as a task on the running event loop."""
        if self._pending is None:
            return None
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.play_computer_turn())
        return self._task

    # ---- helpers ----

    def _place(self, index: int) -> None:
        player = self._board.current_player
        self._board = self._board.place(index, player)
        self._history.append((player, index))
        self._schedule_if_computer_to_move()
        for listener in list(self._listeners):
            listener(self, player, index)

    def _schedule_if_computer_to_move(self) -> None:
        computer = self.computer_player
        if computer is None or self.result.is_terminal:
            return
        if self._board.current_player is computer:
            self._pending = PendingTurn(token=next(self._tokens), player=computer)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            logger.debug("Cancelled computer turn %d", self._pending.token)
        self._pending = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
