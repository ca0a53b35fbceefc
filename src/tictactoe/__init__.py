"""Tic-tac-toe package exposing game rules, AI strategies, and the web application."""

from .ai import (
    AlphaBetaStrategy,
    HeuristicStrategy,
    MinimaxStrategy,
    PerfectStrategy,
    RandomStrategy,
)
from .engine import AIEngine
from .evaluator import Evaluator
from .game import GameState, TicTacToeGame, check_win, check_win_from_move
from .ui import app

__all__ = [
    "AIEngine",
    "AlphaBetaStrategy",
    "Evaluator",
    "GameState",
    "HeuristicStrategy",
    "MinimaxStrategy",
    "PerfectStrategy",
    "RandomStrategy",
    "TicTacToeGame",
    "app",
    "check_win",
    "check_win_from_move",
]
