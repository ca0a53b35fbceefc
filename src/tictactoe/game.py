"""Core rules for N×N tic-tac-toe with a configurable run length to win."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import MAX_BOARD_SIZE, MIN_BOARD_SIZE, MIN_WIN_CONDITION
from .errors import GameOverError, InvalidBoardShapeError, InvalidMoveError

Player = str  # "X" or "O"
Cell = Optional[Player]
Board = List[List[Cell]]
Move = Tuple[int, int]

PLAYER_X: Player = "X"
PLAYER_O: Player = "O"
PLAYERS: Tuple[Player, Player] = (PLAYER_X, PLAYER_O)
EMPTY: Cell = None

# Scan order of the terminal detector: rows, columns, "\" diagonals, "/" diagonals.
DIRECTIONS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 0), (1, 1), (1, -1))

PLAYING, WON, DRAW = "playing", "won", "draw"


def opponent(player: Player) -> Player:
    return PLAYER_O if player == PLAYER_X else PLAYER_X


def empty_board(size: int = 3) -> Board:
    return [[EMPTY] * size for _ in range(size)]


def copy_board(board: Board) -> Board:
    return [list(row) for row in board]


def board_key(board: Board) -> str:
    """Canonical string form of a board, e.g. ``"X.O/.X./..O"``."""

    return "/".join("".join(cell or "." for cell in row) for row in board)


def parse_board(text: str) -> Board:
    """Inverse of :func:`board_key`."""

    return [[None if ch == "." else ch for ch in row] for row in text.split("/")]


def available_moves(board: Board) -> List[Move]:
    """Empty cells in row-major order."""

    return [
        (row, col)
        for row, cells in enumerate(board)
        for col, cell in enumerate(cells)
        if cell is EMPTY
    ]


def count_moves(board: Board) -> int:
    return sum(1 for cells in board for cell in cells if cell is not EMPTY)


def is_full(board: Board) -> bool:
    return all(cell is not EMPTY for cells in board for cell in cells)


# ---------- Terminal detection ----------


@dataclass
class WinResult:
    winner: Optional[Player] = None
    line: Optional[List[Move]] = None

    def __bool__(self) -> bool:
        return self.winner is not None


def check_win(board: Board, win_condition: int = 3) -> WinResult:
    """Full scan for a run of ``win_condition`` identical symbols.

    Families are scanned in ``DIRECTIONS`` order and, within a family, window
    starts in row-major order. The first qualifying window is reported.
    """

    size = len(board)
    span = win_condition - 1
    for dr, dc in DIRECTIONS:
        for row in range(size):
            for col in range(size):
                end_row, end_col = row + dr * span, col + dc * span
                if not (0 <= end_row < size and 0 <= end_col < size):
                    continue
                first = board[row][col]
                if first is EMPTY:
                    continue
                if all(
                    board[row + dr * i][col + dc * i] == first
                    for i in range(1, win_condition)
                ):
                    line = [(row + dr * i, col + dc * i) for i in range(win_condition)]
                    return WinResult(winner=first, line=line)
    return WinResult()


def check_win_from_move(
    board: Board, row: int, col: int, win_condition: int = 3
) -> WinResult:
    """Fast win check through the cell at ``(row, col)`` only.

    For a board that was undecided before ``(row, col)`` was filled this
    reports the same winner and line as :func:`check_win`.
    """

    player = board[row][col]
    if player is EMPTY:
        return WinResult()

    size = len(board)
    for dr, dc in DIRECTIONS:
        # back up to the end of the run that the full scan reaches first
        start_row, start_col = row, col
        while (
            0 <= start_row - dr < size
            and 0 <= start_col - dc < size
            and board[start_row - dr][start_col - dc] == player
        ):
            start_row -= dr
            start_col -= dc

        line: List[Move] = []
        r, c = start_row, start_col
        while 0 <= r < size and 0 <= c < size and board[r][c] == player:
            line.append((r, c))
            if len(line) == win_condition:
                return WinResult(winner=player, line=line)
            r += dr
            c += dc
    return WinResult()


def is_draw(board: Board, win_condition: int = 3) -> bool:
    return is_full(board) and not check_win(board, win_condition)


# ---------- Validation ----------


def validate_player(player: object) -> Player:
    if player not in PLAYERS:
        raise InvalidBoardShapeError(f"Invalid player symbol: {player!r}")
    return player  # type: ignore[return-value]


def validate_board(board: object, win_condition: int = 3) -> Board:
    """Fail fast on boards the search cannot handle."""

    if not isinstance(board, list):
        raise InvalidBoardShapeError("Board must be a list of rows")
    size = len(board)
    if not MIN_BOARD_SIZE <= size <= MAX_BOARD_SIZE:
        raise InvalidBoardShapeError(
            f"Board size must be between {MIN_BOARD_SIZE} and {MAX_BOARD_SIZE}"
        )
    for row in board:
        if not isinstance(row, list) or len(row) != size:
            raise InvalidBoardShapeError("Board must be square (NxN)")
        for cell in row:
            if cell is not EMPTY and cell not in PLAYERS:
                raise InvalidBoardShapeError("Board contains invalid symbols")
    if not MIN_WIN_CONDITION <= win_condition <= size:
        raise InvalidBoardShapeError(
            f"Win condition must be between {MIN_WIN_CONDITION} and board size"
        )
    return board


# ---------- Game ----------


@dataclass
class GameState:
    """Snapshot handed to the AI: whose turn it is on which board."""

    board: Board
    current_player: Player = PLAYER_X
    win_condition: int = 3

    @property
    def size(self) -> int:
        return len(self.board)


@dataclass(frozen=True)
class MoveRecord:
    player: Player
    row: int
    col: int


@dataclass
class TicTacToeGame:
    size: int = 3
    win_condition: int = 3
    current_player: Player = PLAYER_X
    board: Board = field(default_factory=list)
    move_history: List[MoveRecord] = field(default_factory=list)
    status: str = PLAYING
    winner: Optional[Player] = None
    winning_line: Optional[List[Move]] = None

    def __post_init__(self) -> None:
        if not self.board:
            self.board = empty_board(self.size)
        validate_board(self.board, self.win_condition)
        self.size = len(self.board)

    @property
    def finished(self) -> bool:
        return self.status != PLAYING

    def available_moves(self) -> List[Move]:
        if self.finished:
            return []
        return available_moves(self.board)

    def play_move(self, row: int, col: int, player: Optional[Player] = None) -> None:
        """Place the current player's symbol and update win/draw status."""

        if self.finished:
            raise GameOverError("Game is already finished")
        if not (0 <= row < self.size and 0 <= col < self.size):
            raise InvalidMoveError("Position out of bounds")
        if self.board[row][col] is not EMPTY:
            raise InvalidMoveError("Cell already occupied")
        if player is not None and player != self.current_player:
            raise InvalidMoveError("Not your turn")

        mover = self.current_player
        self.board[row][col] = mover
        self.move_history.append(MoveRecord(player=mover, row=row, col=col))

        result = check_win_from_move(self.board, row, col, self.win_condition)
        if result:
            self.status = WON
            self.winner = result.winner
            self.winning_line = result.line
            return
        if is_full(self.board):
            self.status = DRAW
            return
        self.current_player = opponent(mover)

    def undo_move(self) -> Optional[MoveRecord]:
        if not self.move_history:
            return None
        last = self.move_history.pop()
        self.board[last.row][last.col] = EMPTY
        self.status = PLAYING
        self.winner = None
        self.winning_line = None
        self.current_player = last.player
        return last

    def reset(self) -> None:
        self.board = empty_board(self.size)
        self.current_player = PLAYER_X
        self.move_history = []
        self.status = PLAYING
        self.winner = None
        self.winning_line = None

    def state(self) -> GameState:
        return GameState(
            board=copy_board(self.board),
            current_player=self.current_player,
            win_condition=self.win_condition,
        )
