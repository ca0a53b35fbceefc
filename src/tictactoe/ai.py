"""Move-selection strategies behind the difficulty levels.

Every strategy mutates the caller's board while it searches (place, recurse,
erase) and leaves it exactly as it found it, including when it raises.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from .cache import BoundedCache
from .errors import NoValidMovesError
from .evaluator import Evaluator
from .game import (
    EMPTY,
    Board,
    GameState,
    Move,
    Player,
    available_moves,
    board_key,
    check_win_from_move,
    count_moves,
    opponent,
)

logger = logging.getLogger(__name__)

# TT entry flags
EXACT, LOWER, UPPER = 0, 1, 2

DEFAULT_REASON = "Best move according to AI"


@dataclass
class MoveChoice:
    row: int
    col: int
    evaluation: float = 0.0
    reason: Optional[str] = None

    @property
    def move(self) -> Move:
        return (self.row, self.col)


@dataclass
class TTEntry:
    depth: int
    score: float
    flag: int
    best_move: Optional[Move]


class TranspositionTable(BoundedCache):
    """Search results keyed by position; deeper entries are authoritative."""

    def probe(self, key: Tuple, depth: int) -> Optional[TTEntry]:
        entry = self.get(key)
        if entry is not None and entry.depth >= depth:
            return entry
        return None

    def store(self, key: Tuple, entry: TTEntry) -> None:
        current = self._table.get(key)
        if current is not None and current.depth > entry.depth:
            return
        self.put(key, entry)


def find_winning_move(
    board: Board, player: Player, win_condition: int = 3
) -> Optional[Move]:
    """First empty cell (row-major) that completes a line for ``player``."""

    for row, col in available_moves(board):
        board[row][col] = player
        try:
            won = bool(check_win_from_move(board, row, col, win_condition))
        finally:
            board[row][col] = EMPTY
        if won:
            return (row, col)
    return None


def _completes_line(
    board: Board, move: Move, player: Player, win_condition: int
) -> bool:
    row, col = move
    board[row][col] = player
    try:
        return bool(check_win_from_move(board, row, col, win_condition))
    finally:
        board[row][col] = EMPTY


@lru_cache(maxsize=None)
def _ordering_weights(size: int) -> Dict[Move, float]:
    center = (size - 1) / 2
    last = size - 1
    weights: Dict[Move, float] = {}
    for r in range(size):
        for c in range(size):
            score = (size - (abs(r - center) + abs(c - center))) * 2
            if r in (0, last) and c in (0, last):
                score += 5
            weights[(r, c)] = score
    return weights


@dataclass
class Strategy:
    """Common contract: ``select_move`` and ``analyze_position``."""

    evaluator: Evaluator = field(default_factory=Evaluator, repr=False)

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 2000
    ) -> MoveChoice:
        raise NotImplementedError

    def analyze_position(self, state: GameState) -> Dict[str, object]:
        board, player = state.board, state.current_player
        evaluation = self.evaluator.evaluate(board, player, state.win_condition)
        if evaluation > 0:
            advantage = player
        elif evaluation < 0:
            advantage = opponent(player)
        else:
            advantage = "equal"
        return {
            "evaluation": evaluation,
            "advantage": advantage,
            "details": self.evaluator.detailed_evaluation(
                board, player, state.win_condition
            ),
        }

    def clear_cache(self) -> None:
        """Drop any memoized search results."""

    def _valid_moves(self, board: Board) -> List[Move]:
        moves = available_moves(board)
        if not moves:
            raise NoValidMovesError("No valid moves available")
        return moves


@dataclass
class RandomStrategy(Strategy):
    """Uniformly random legal move (easy)."""

    rng: random.Random = field(default_factory=random.Random, repr=False)
    think_delay: Tuple[float, float] = (0.0, 0.0)

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 2000
    ) -> MoveChoice:
        moves = self._valid_moves(state.board)
        low, high = self.think_delay
        if high > 0:
            time.sleep(max(0.0, self.rng.uniform(low, high)))
        row, col = self.rng.choice(moves)
        return MoveChoice(row, col, 0.0, "Random move")


@dataclass
class HeuristicStrategy(Strategy):
    """Win, block, take the centre, else the best-looking cell (medium)."""

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 2000
    ) -> MoveChoice:
        board, player, k = state.board, state.current_player, state.win_condition
        moves = self._valid_moves(board)

        winning = find_winning_move(board, player, k)
        if winning:
            return MoveChoice(*winning, evaluation=1.0, reason="Winning move")

        blocking = find_winning_move(board, opponent(player), k)
        if blocking:
            return MoveChoice(*blocking, evaluation=0.8, reason="Blocking opponent")

        if len(board) == 3 and board[1][1] is EMPTY:
            return MoveChoice(1, 1, evaluation=0.7, reason="Center position")

        best_move, best_score = moves[0], -math.inf
        for row, col in moves:
            score = self._cell_score(board, row, col, player)
            if score > best_score:
                best_move, best_score = (row, col), score
        return MoveChoice(*best_move, evaluation=0.5, reason="Best positional move")

    def _cell_score(self, board: Board, row: int, col: int, player: Player) -> float:
        size = len(board)
        last = size - 1
        center = (size - 1) / 2
        score = 0.0

        if row in (0, last) and col in (0, last):
            score += 3
        elif row in (0, last) or col in (0, last):
            score += 1
        elif abs(row - center) < 1 and abs(col - center) < 1:
            score += 4

        opp = opponent(player)
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                if dr == dc == 0:
                    continue
                r, c = row + dr, col + dc
                if 0 <= r < size and 0 <= c < size:
                    if board[r][c] == player:
                        score += 2
                    elif board[r][c] == opp:
                        score += 1
        return score


@dataclass
class SearchStrategy(Strategy):
    """Shared plumbing for the tree-walking strategies."""

    depth: int = 4
    win_score: float = 10.0
    nodes: int = field(default=0, init=False, repr=False)

    def _terminal_score(
        self, board: Board, last_move: Move, me: Player, win_condition: int
    ) -> Optional[float]:
        result = check_win_from_move(board, last_move[0], last_move[1], win_condition)
        if result:
            return self.win_score if result.winner == me else -self.win_score
        return None

    def _reason(
        self, board: Board, move: Move, player: Player, win_condition: int, score: float
    ) -> str:
        if _completes_line(board, move, player, win_condition):
            return "Winning move"
        if _completes_line(board, move, opponent(player), win_condition):
            return "Blocks the opponent's winning line"
        if score >= self.win_score:
            return "Leads to a forced win"
        if score <= -self.win_score:
            return "Best defence in a lost position"
        return DEFAULT_REASON


@dataclass
class MinimaxStrategy(SearchStrategy):
    """Plain depth-limited minimax without pruning (hard)."""

    depth: int = 4
    win_score: float = 10.0

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 2000
    ) -> MoveChoice:
        board, me, k = state.board, state.current_player, state.win_condition
        moves = self._valid_moves(board)
        size = len(board)

        if len(moves) == size * size:
            if size == 3:
                return MoveChoice(1, 1, 0.0, "Center position")
            return MoveChoice(0, 0, 0.0, "Corner position")

        self.nodes = 0
        best_move, best_score = moves[0], -math.inf
        for row, col in moves:
            board[row][col] = me
            try:
                score = self._minimax(board, self.depth - 1, False, me, k, (row, col))
            finally:
                board[row][col] = EMPTY
            if score > best_score:
                best_move, best_score = (row, col), score

        logger.debug("minimax depth=%d visited %d nodes", self.depth, self.nodes)
        reason = self._reason(board, best_move, me, k, best_score)
        return MoveChoice(*best_move, evaluation=best_score, reason=reason)

    def _minimax(
        self,
        board: Board,
        depth: int,
        maximizing: bool,
        me: Player,
        win_condition: int,
        last_move: Move,
    ) -> float:
        self.nodes += 1
        terminal = self._terminal_score(board, last_move, me, win_condition)
        if terminal is not None:
            return terminal

        moves = available_moves(board)
        if not moves:
            return 0.0
        if depth <= 0:
            return self.evaluator.evaluate(board, me, win_condition)

        mover = me if maximizing else opponent(me)
        value = -math.inf if maximizing else math.inf
        for row, col in moves:
            board[row][col] = mover
            try:
                score = self._minimax(
                    board, depth - 1, not maximizing, me, win_condition, (row, col)
                )
            finally:
                board[row][col] = EMPTY
            value = max(value, score) if maximizing else min(value, score)
        return value


@dataclass
class AlphaBetaStrategy(SearchStrategy):
    """Alpha-beta with move ordering and a transposition table (expert)."""

    depth: int = 6
    win_score: float = 100.0
    max_table_entries: Optional[int] = None
    table: TranspositionTable = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.table = TranspositionTable(self.max_table_entries)

    def clear_cache(self) -> None:
        self.table.clear()

    def order_moves(self, board: Board, moves: List[Move]) -> List[Move]:
        """Centre- and corner-weighted, best first; ties keep scan order."""

        weights = _ordering_weights(len(board))
        return sorted(moves, key=weights.__getitem__, reverse=True)

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 2000
    ) -> MoveChoice:
        board, me, k = state.board, state.current_player, state.win_condition
        moves = self._valid_moves(board)
        size = len(board)

        if len(moves) == size * size:
            center = size // 2
            return MoveChoice(center, center, 0.0, "Center position")

        self.nodes = 0
        ordered = self.order_moves(board, moves)
        best_move, best_score = ordered[0], -math.inf
        alpha, beta = -math.inf, math.inf
        for row, col in ordered:
            board[row][col] = me
            try:
                score = self._alphabeta(
                    board, self.depth - 1, alpha, beta, False, me, k, (row, col)
                )
            finally:
                board[row][col] = EMPTY
            if score > best_score:
                best_move, best_score = (row, col), score
            alpha = max(alpha, best_score)

        logger.debug(
            "alpha-beta depth=%d visited %d nodes, table size %d",
            self.depth,
            self.nodes,
            len(self.table),
        )
        reason = self._reason(board, best_move, me, k, best_score)
        return MoveChoice(*best_move, evaluation=best_score, reason=reason)

    def _alphabeta(
        self,
        board: Board,
        depth: int,
        alpha: float,
        beta: float,
        maximizing: bool,
        me: Player,
        win_condition: int,
        last_move: Move,
    ) -> float:
        self.nodes += 1
        terminal = self._terminal_score(board, last_move, me, win_condition)
        if terminal is not None:
            return terminal

        moves = available_moves(board)
        if not moves:
            return 0.0
        if depth <= 0:
            return self.evaluator.evaluate(board, me, win_condition)

        key = (me, maximizing, win_condition, board_key(board))
        alpha_orig, beta_orig = alpha, beta

        # TT probe
        hit = self.table.probe(key, depth)
        if hit is not None:
            if hit.flag == EXACT:
                return hit.score
            if hit.flag == LOWER:
                alpha = max(alpha, hit.score)
            elif hit.flag == UPPER:
                beta = min(beta, hit.score)
            if alpha >= beta:
                return hit.score

        ordered = self.order_moves(board, moves)
        if hit is not None and hit.best_move in ordered:
            ordered.remove(hit.best_move)
            ordered.insert(0, hit.best_move)

        mover = me if maximizing else opponent(me)
        best_move: Optional[Move] = None
        value = -math.inf if maximizing else math.inf
        for row, col in ordered:
            board[row][col] = mover
            try:
                score = self._alphabeta(
                    board,
                    depth - 1,
                    alpha,
                    beta,
                    not maximizing,
                    me,
                    win_condition,
                    (row, col),
                )
            finally:
                board[row][col] = EMPTY

            if maximizing:
                if score > value:
                    value, best_move = score, (row, col)
                alpha = max(alpha, value)
            else:
                if score < value:
                    value, best_move = score, (row, col)
                beta = min(beta, value)
            if alpha >= beta:
                break

        if value <= alpha_orig:
            flag = UPPER
        elif value >= beta_orig:
            flag = LOWER
        else:
            flag = EXACT
        self.table.store(key, TTEntry(depth=depth, score=value, flag=flag, best_move=best_move))
        return value


CORNERS: Tuple[Move, ...] = ((0, 0), (0, 2), (2, 0), (2, 2))


@dataclass
class PerfectStrategy(Strategy):
    """Opening book on 3×3, otherwise a deep alpha-beta search (impossible)."""

    depth: int = 10
    rng: random.Random = field(default_factory=random.Random, repr=False)
    max_table_entries: Optional[int] = None
    alpha_beta: AlphaBetaStrategy = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.alpha_beta = AlphaBetaStrategy(
            evaluator=self.evaluator,
            depth=self.depth,
            max_table_entries=self.max_table_entries,
        )

    def select_move(
        self, state: GameState, max_thinking_time_ms: int = 5000
    ) -> MoveChoice:
        board = state.board
        self._valid_moves(board)

        if len(board) == 3:
            opening = self._opening_move(board)
            if opening is not None:
                return opening
        return self.alpha_beta.select_move(state, max_thinking_time_ms)

    def analyze_position(self, state: GameState) -> Dict[str, object]:
        return self.alpha_beta.analyze_position(state)

    def clear_cache(self) -> None:
        self.alpha_beta.clear_cache()

    def _opening_move(self, board: Board) -> Optional[MoveChoice]:
        played = count_moves(board)
        if played == 0:
            return MoveChoice(1, 1, 0.0, "Opening book: take the center")
        if played == 1:
            if board[1][1] is not EMPTY:
                row, col = self.rng.choice(CORNERS)
                return MoveChoice(row, col, 0.0, "Opening book: answer the center with a corner")
            return MoveChoice(1, 1, 0.0, "Opening book: take the center")
        return None
