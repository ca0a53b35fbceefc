"""Exception hierarchy shared by the game rules, the AI engine and the web API.

Every error carries a machine-readable ``code`` so the HTTP layer can report
failures without inspecting exception types.
"""

from __future__ import annotations

from typing import Dict, Optional

__all__ = [
    "AIMovePendingError",
    "GameOverError",
    "InvalidBoardShapeError",
    "InvalidMoveError",
    "NoValidMovesError",
    "SessionNotFoundError",
    "TicTacToeError",
    "UnknownDifficultyError",
]


class TicTacToeError(Exception):
    """Base class for all errors raised by this package."""

    code: str = "TICTACTOE_ERROR"
    status_code: int = 400

    def __init__(self, message: str = "", code: Optional[str] = None) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


class NoValidMovesError(TicTacToeError):
    """No valid moves available"""

    code = "NO_VALID_MOVES"


class UnknownDifficultyError(TicTacToeError):
    """Difficulty label has no configured strategy"""

    code = "UNKNOWN_DIFFICULTY"

    def __init__(self, difficulty: str) -> None:
        self.difficulty = difficulty
        super().__init__(f"Unknown difficulty: {difficulty}")


class InvalidBoardShapeError(TicTacToeError):
    """Board is malformed"""

    code = "INVALID_BOARD"


class InvalidMoveError(TicTacToeError):
    """Move is not allowed"""

    code = "INVALID_MOVE"


class GameOverError(TicTacToeError):
    """Game is already finished"""

    code = "GAME_OVER"


class SessionNotFoundError(TicTacToeError):
    """Game session does not exist"""

    code = "SESSION_NOT_FOUND"
    status_code = 404

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"Game not found: {game_id}")


class AIMovePendingError(TicTacToeError):
    """AI is completing its move"""

    code = "AI_MOVE_PENDING"
