"""Tic-tac-toe package exposing game rules, the minimax engine, and the web application."""

from .ai import Difficulty, MoveSelector, SearchEngine, select_move
from .controller import Mode, RoundSettings, TurnController
from .game import Board, GameResult, Player, evaluate, legal_moves
from .ui import app

__all__ = [
    "Board",
    "Difficulty",
    "GameResult",
    "Mode",
    "MoveSelector",
    "Player",
    "RoundSettings",
    "SearchEngine",
    "TurnController",
    "app",
    "evaluate",
    "legal_moves",
    "select_move",
]
