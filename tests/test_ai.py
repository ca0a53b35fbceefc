"""Tests for the move-selection strategies."""

import random

import pytest

from tictactoe.ai import (
    CORNERS,
    AlphaBetaStrategy,
    HeuristicStrategy,
    MinimaxStrategy,
    PerfectStrategy,
    EXACT,
    LOWER,
    RandomStrategy,
    TranspositionTable,
    TTEntry,
    find_winning_move,
)
from tictactoe.errors import NoValidMovesError
from tictactoe.evaluator import Evaluator
from tictactoe.game import (
    GameState,
    TicTacToeGame,
    available_moves,
    copy_board,
    empty_board,
    opponent,
    parse_board,
)


def _state(text, player, win_condition=3):
    return GameState(board=parse_board(text), current_player=player, win_condition=win_condition)


def _all_strategies():
    return [
        RandomStrategy(rng=random.Random(1)),
        HeuristicStrategy(),
        MinimaxStrategy(depth=3),
        AlphaBetaStrategy(depth=4),
        PerfectStrategy(rng=random.Random(1), depth=4),
    ]


class ExplodingEvaluator(Evaluator):
    def __init__(self, fuse):
        self.fuse = fuse

    def evaluate(self, board, player, win_condition=3):
        self.fuse -= 1
        if self.fuse <= 0:
            raise RuntimeError("evaluator failure")
        return super().evaluate(board, player, win_condition)


@pytest.mark.parametrize(
    "text,player,win_condition",
    [
        ("X../.O./...", "X", 3),
        ("XX./OO./...", "X", 3),
        ("XO./.X./...", "O", 3),
        ("X.../.O../..X./....", "O", 3),
        ("X.../.O../..../....", "X", 4),
    ],
)
def test_board_is_restored_after_search(text, player, win_condition):
    for strategy in _all_strategies():
        state = _state(text, player, win_condition)
        before = copy_board(state.board)
        choice = strategy.select_move(state)
        assert state.board == before, type(strategy).__name__
        assert choice.move in available_moves(before)


def test_full_board_raises_and_is_untouched():
    for strategy in _all_strategies():
        state = _state("XOX/XOO/OXX", "O")
        before = copy_board(state.board)
        with pytest.raises(NoValidMovesError):
            strategy.select_move(state)
        assert state.board == before


@pytest.mark.parametrize("strategy_cls", [MinimaxStrategy, AlphaBetaStrategy])
def test_board_is_restored_when_search_fails(strategy_cls):
    strategy = strategy_cls(evaluator=ExplodingEvaluator(fuse=5), depth=2)
    state = _state("X../.O./...", "X")
    before = copy_board(state.board)
    with pytest.raises(RuntimeError):
        strategy.select_move(state)
    assert state.board == before


def test_find_winning_move():
    board = parse_board("X.X/OO./...")
    assert find_winning_move(board, "X") == (0, 1)
    assert find_winning_move(board, "O") == (1, 2)
    assert find_winning_move(parse_board("X../.../..."), "X") is None


def test_random_strategy_is_reproducible():
    state = _state("X../.O./...", "X")
    first = RandomStrategy(rng=random.Random(42)).select_move(state)
    second = RandomStrategy(rng=random.Random(42)).select_move(state)
    assert first.move == second.move
    assert first.evaluation == 0


def test_random_think_delay_uses_injected_rng(monkeypatch):
    class RecordingRandom(random.Random):
        calls = []

        def uniform(self, a, b):
            self.calls.append((a, b))
            return 0.25

    def fail(*args):
        raise AssertionError("module-level random used")

    sleeps = []
    monkeypatch.setattr(random, "uniform", fail)
    monkeypatch.setattr("tictactoe.ai.time.sleep", sleeps.append)
    rng = RecordingRandom(3)
    RandomStrategy(rng=rng, think_delay=(0.1, 0.3)).select_move(_state("X../.O./...", "X"))
    assert rng.calls == [(0.1, 0.3)]
    assert sleeps == [0.25]


def test_heuristic_priorities():
    strategy = HeuristicStrategy()

    win = strategy.select_move(_state("XX./OO./...", "X"))
    assert (win.move, win.evaluation, win.reason) == ((0, 2), 1.0, "Winning move")

    block = strategy.select_move(_state("XX./.O./...", "O"))
    assert (block.move, block.evaluation) == ((0, 2), 0.8)

    center = strategy.select_move(_state("X../.../...", "O"))
    assert (center.move, center.evaluation) == ((1, 1), 0.7)

    positional = strategy.select_move(GameState(board=empty_board(4), current_player="X"))
    assert positional.move == (1, 1)
    assert positional.evaluation == 0.5


def test_heuristic_prefers_neighbours():
    state = GameState(board=parse_board("..../..../...X/...."), current_player="X")
    choice = HeuristicStrategy().select_move(state)
    # first centre cell touching our own stone diagonally
    assert choice.move == (1, 2)


def test_minimax_takes_immediate_win():
    choice = MinimaxStrategy().select_move(_state("XX./OO./...", "X"))
    assert choice.move == (0, 2)
    assert choice.evaluation == 10


def test_minimax_blocks_threat():
    choice = MinimaxStrategy().select_move(_state("XX./.O./...", "O"))
    assert choice.move == (0, 2)
    assert choice.reason == "Blocks the opponent's winning line"


def test_minimax_empty_board_shortcut():
    assert MinimaxStrategy().select_move(GameState(empty_board(3), "X")).move == (1, 1)
    assert MinimaxStrategy().select_move(GameState(empty_board(4), "X")).move == (0, 0)


def test_alphabeta_empty_board_shortcut():
    assert AlphaBetaStrategy().select_move(GameState(empty_board(3), "X")).move == (1, 1)
    assert AlphaBetaStrategy().select_move(GameState(empty_board(4), "X")).move == (2, 2)


def test_alphabeta_takes_immediate_win():
    choice = AlphaBetaStrategy().select_move(_state("XX./OO./...", "X"))
    assert choice.move == (0, 2)
    assert choice.evaluation == 100
    assert choice.reason == "Winning move"


def test_move_ordering_prefers_corners_then_centre():
    strategy = AlphaBetaStrategy()
    board = empty_board(3)
    ordered = strategy.order_moves(board, available_moves(board))
    assert set(ordered[:4]) == set(CORNERS)
    assert ordered[4] == (1, 1)


@pytest.mark.parametrize(
    "text,player,depth",
    [
        ("X../.O./...", "X", 7),
        ("XO./.X./...", "O", 6),
        ("X.O/.../...", "X", 7),
        ("XOX/.O./...", "X", 5),
        ("XX./OO./...", "X", 3),
    ],
)
def test_alphabeta_matches_minimax(text, player, depth):
    pruned = AlphaBetaStrategy(depth=depth).select_move(_state(text, player))
    full = MinimaxStrategy(depth=depth, win_score=100).select_move(_state(text, player))
    assert pruned.evaluation == full.evaluation


def test_alphabeta_matches_minimax_with_heuristic_leaves():
    text = "X.../.O../..../...."
    pruned = AlphaBetaStrategy(depth=3).select_move(_state(text, "X"))
    full = MinimaxStrategy(depth=3, win_score=100).select_move(_state(text, "X"))
    assert pruned.evaluation == pytest.approx(full.evaluation)


def test_transposition_table_lifecycle():
    strategy = AlphaBetaStrategy(depth=6)
    state = _state("X../.O./...", "X")
    first = strategy.select_move(state)
    assert len(strategy.table) > 0

    again = strategy.select_move(_state("X../.O./...", "X"))
    assert again.move == first.move
    assert again.evaluation == first.evaluation

    strategy.clear_cache()
    assert len(strategy.table) == 0


def test_transposition_entries_need_enough_depth():
    table = TranspositionTable()
    key = ("X", True, 3, "X../.O./...")
    table.store(key, TTEntry(depth=2, score=1.0, flag=EXACT, best_move=(0, 1)))
    assert table.probe(key, 3) is None
    assert table.probe(key, 2).score == 1.0
    assert table.probe(key, 1).best_move == (0, 1)

    table.store(key, TTEntry(depth=4, score=-2.0, flag=LOWER, best_move=(2, 2)))
    assert table.probe(key, 3).score == -2.0

    table.store(key, TTEntry(depth=2, score=5.0, flag=EXACT, best_move=(0, 0)))
    kept = table.probe(key, 4)
    assert kept.score == -2.0
    assert kept.flag == LOWER
    assert kept.best_move == (2, 2)


def test_bounded_transposition_table():
    bounded = AlphaBetaStrategy(depth=7, max_table_entries=16)
    unbounded = AlphaBetaStrategy(depth=7)
    state_text = "X../.O./..."
    assert (
        bounded.select_move(_state(state_text, "X")).evaluation
        == unbounded.select_move(_state(state_text, "X")).evaluation
    )
    assert len(bounded.table) <= 16


def test_perfect_opening_book():
    strategy = PerfectStrategy(rng=random.Random(7))
    opening = strategy.select_move(GameState(empty_board(3), "X"))
    assert (opening.move, opening.evaluation) == ((1, 1), 0)

    reply = strategy.select_move(_state(".../.X./...", "O"))
    assert reply.move == random.Random(7).choice(CORNERS)

    assert strategy.select_move(_state("X../.../...", "O")).move == (1, 1)
    assert strategy.select_move(_state(".X./.../...", "O")).move == (1, 1)


def test_perfect_searches_after_opening():
    choice = PerfectStrategy(rng=random.Random(0)).select_move(_state("XX./.O./...", "O"))
    assert choice.move == (0, 2)


def _count_losses(strategy, ai_player):
    outcome = {"games": 0, "losses": 0}

    def explore(game):
        if game.finished:
            outcome["games"] += 1
            if game.winner == opponent(ai_player):
                outcome["losses"] += 1
            return
        if game.current_player == ai_player:
            choice = strategy.select_move(game.state())
            game.play_move(choice.row, choice.col)
            explore(game)
            game.undo_move()
            return
        for row, col in game.available_moves():
            game.play_move(row, col)
            explore(game)
            game.undo_move()

    explore(TicTacToeGame())
    return outcome


@pytest.mark.parametrize("ai_player", ["X", "O"])
def test_perfect_never_loses(ai_player):
    outcome = _count_losses(PerfectStrategy(rng=random.Random(3)), ai_player)
    assert outcome["games"] > 0
    assert outcome["losses"] == 0


def test_analyze_position_reports_advantage():
    strategy = AlphaBetaStrategy()
    analysis = strategy.analyze_position(_state("XX./O../...", "X"))
    assert analysis["advantage"] == "X"
    assert analysis["evaluation"] > 0
    assert analysis["details"]["opportunities"]

    against = strategy.analyze_position(_state("XX./O../...", "O"))
    assert against["advantage"] == "X"
    assert against["details"]["threats"]
