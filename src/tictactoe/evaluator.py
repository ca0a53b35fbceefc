"""Static evaluation of non-terminal positions."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Tuple

from .game import EMPTY, Board, Move, Player, available_moves, opponent

# Window scores by number of own symbols in a window free of opponent symbols.
WINDOW_WIN = 100
WINDOW_THREAT = 10
WINDOW_POTENTIAL = 3
WINDOW_PRESENCE = 1

POSITION_WEIGHT = 0.5
MOBILITY_WEIGHT = 0.2
CORNER_BONUS = 2

Window = Tuple[Move, ...]


@lru_cache(maxsize=None)
def board_lines(size: int, min_length: int = 3) -> Tuple[Tuple[Move, ...], ...]:
    """Every maximal row, column and diagonal at least ``min_length`` long."""

    lines: List[Tuple[Move, ...]] = []
    lines.extend(tuple((r, c) for c in range(size)) for r in range(size))
    lines.extend(tuple((r, c) for r in range(size)) for c in range(size))

    # "\" diagonals start on the top row or the left column
    starts = [(0, c) for c in range(size)] + [(r, 0) for r in range(1, size)]
    for r0, c0 in starts:
        length = size - max(r0, c0)
        lines.append(tuple((r0 + i, c0 + i) for i in range(length)))

    # "/" diagonals start on the top row or the right column
    starts = [(0, c) for c in range(size)] + [(r, size - 1) for r in range(1, size)]
    for r0, c0 in starts:
        length = min(size - r0, c0 + 1)
        lines.append(tuple((r0 + i, c0 - i) for i in range(length)))

    return tuple(line for line in lines if len(line) >= min_length)


@lru_cache(maxsize=None)
def board_windows(size: int, win_condition: int = 3) -> Tuple[Window, ...]:
    """All length-``win_condition`` windows of every line that can hold one."""

    windows: List[Window] = []
    for line in board_lines(size, win_condition):
        for start in range(len(line) - win_condition + 1):
            windows.append(line[start : start + win_condition])
    return tuple(windows)


def score_window(cells: List[object], player: Player, win_condition: int) -> int:
    opp = opponent(player)
    own = cells.count(player)
    theirs = cells.count(opp)
    empty = len(cells) - own - theirs

    if own and theirs:
        return 0
    if own == win_condition:
        return WINDOW_WIN
    if own == win_condition - 1 and empty >= 1:
        return WINDOW_THREAT
    if own == win_condition - 2 and empty >= 2:
        return WINDOW_POTENTIAL
    if own > 0:
        return WINDOW_PRESENCE
    return 0


class Evaluator:
    """Heuristic scoring: line potential, board geometry and mobility.

    Positive scores favour ``player``. The mobility term counts empty cells
    and is the same for both players on a given board.
    """

    def evaluate(self, board: Board, player: Player, win_condition: int = 3) -> float:
        opp = opponent(player)
        score = float(self.line_score(board, player, win_condition))
        score -= self.line_score(board, opp, win_condition)
        score += self.position_score(board, player) * POSITION_WEIGHT
        score -= self.position_score(board, opp) * POSITION_WEIGHT
        score += self.mobility_score(board) * MOBILITY_WEIGHT
        return score

    def detailed_evaluation(
        self, board: Board, player: Player, win_condition: int = 3
    ) -> Dict[str, object]:
        opp = opponent(player)
        return {
            "lineScore": self.line_score(board, player, win_condition),
            "opponentLineScore": self.line_score(board, opp, win_condition),
            "positionScore": self.position_score(board, player),
            "mobilityScore": self.mobility_score(board),
            "threats": self.immediate_threats(board, opp, win_condition),
            "opportunities": self.immediate_threats(board, player, win_condition),
        }

    def line_score(self, board: Board, player: Player, win_condition: int = 3) -> int:
        total = 0
        for window in board_windows(len(board), win_condition):
            cells = [board[r][c] for r, c in window]
            total += score_window(cells, player, win_condition)
        return total

    def position_score(self, board: Board, player: Player) -> float:
        size = len(board)
        center = (size - 1) / 2
        last = size - 1
        score = 0.0
        for r, cells in enumerate(board):
            for c, cell in enumerate(cells):
                if cell != player:
                    continue
                score += size - (abs(r - center) + abs(c - center))
                if r in (0, last) and c in (0, last):
                    score += CORNER_BONUS
        return score

    def mobility_score(self, board: Board) -> int:
        return len(available_moves(board))

    def immediate_threats(
        self, board: Board, player: Player, win_condition: int = 3
    ) -> List[Dict[str, object]]:
        """Windows ``player`` completes with a single move."""

        threats: List[Dict[str, object]] = []
        for window in board_windows(len(board), win_condition):
            cells = [board[r][c] for r, c in window]
            if cells.count(player) != win_condition - 1 or cells.count(EMPTY) != 1:
                continue
            gap = window[cells.index(EMPTY)]
            threats.append(
                {
                    "type": "immediate",
                    "player": player,
                    "line": [list(cell) for cell in window],
                    "cell": list(gap),
                }
            )
        return threats
