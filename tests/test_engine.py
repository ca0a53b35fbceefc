"""Tests for difficulty dispatch, result caching and hints."""

import logging
import random

import pytest

from tictactoe.config import DIFFICULTIES, INTERACTIVE_SIZE_LIMITS, EngineSettings, strongest_difficulty_for
from tictactoe.engine import AIEngine
from tictactoe.errors import InvalidBoardShapeError, NoValidMovesError, UnknownDifficultyError
from tictactoe.game import GameState, copy_board, empty_board, parse_board


def _engine(**overrides):
    settings = EngineSettings(random_think_delay=(0.0, 0.0), **overrides)
    return AIEngine(settings, rng=random.Random(5))


def _state(text, player, win_condition=3):
    return GameState(board=parse_board(text), current_player=player, win_condition=win_condition)


def test_every_difficulty_is_configured():
    engine = _engine()
    assert set(engine.strategies) == set(DIFFICULTIES)


def test_impossible_opens_in_the_centre():
    move = _engine().select_move(GameState(empty_board(3), "X"), "impossible")
    assert (move.row, move.col) == (1, 1)
    assert move.evaluation == 0
    assert move.from_cache is False


@pytest.mark.parametrize("difficulty", ["medium", "hard", "expert", "impossible"])
def test_immediate_win_beats_blocking(difficulty):
    move = _engine().select_move(_state("XX./OO./...", "X"), difficulty)
    assert (move.row, move.col) == (0, 2)


@pytest.mark.parametrize("difficulty", ["hard", "expert", "impossible"])
def test_defender_blocks_open_line(difficulty):
    move = _engine().select_move(_state("XX./.O./...", "O"), difficulty)
    assert (move.row, move.col) == (0, 2)


def test_result_cache_is_idempotent():
    engine = _engine()
    first = engine.select_move(_state("X../.O./...", "X"), "expert")
    second = engine.select_move(_state("X../.O./...", "X"), "expert")
    assert first.from_cache is False
    assert second.from_cache is True
    assert (first.row, first.col, first.evaluation) == (second.row, second.col, second.evaluation)
    assert len(engine.cache) == 1


def test_cache_key_includes_player_and_difficulty():
    engine = _engine()
    engine.select_move(_state("X../.O./...", "X"), "hard")
    assert engine.select_move(_state("X../.O./...", "X"), "expert").from_cache is False
    assert engine.select_move(_state("X../.O./...", "O"), "hard").from_cache is False
    assert len(engine.cache) == 3


def test_cache_can_be_disabled_and_cleared():
    engine = _engine()
    engine.set_cache_enabled(False)
    assert engine.select_move(_state("X../.O./...", "X"), "hard").from_cache is False
    assert engine.select_move(_state("X../.O./...", "X"), "hard").from_cache is False
    assert len(engine.cache) == 0

    engine.set_cache_enabled(True)
    engine.select_move(_state("X../.O./...", "X"), "expert")
    assert len(engine.cache) == 1
    assert len(engine.strategies["expert"].table) > 0

    engine.clear_cache()
    assert len(engine.cache) == 0
    assert len(engine.strategies["expert"].table) == 0
    assert engine.select_move(_state("X../.O./...", "X"), "expert").from_cache is False


def test_bounded_result_cache():
    engine = _engine(result_cache_size=2)
    for text in ("X../.../...", ".X./.../...", "..X/.../..."):
        engine.select_move(_state(text, "O"), "medium")
    assert len(engine.cache) == 2


def test_unknown_difficulty():
    with pytest.raises(UnknownDifficultyError) as info:
        _engine().select_move(GameState(empty_board(3), "X"), "nightmare")
    assert info.value.code == "UNKNOWN_DIFFICULTY"
    assert "nightmare" in str(info.value)


@pytest.mark.parametrize("difficulty", DIFFICULTIES)
def test_full_board_propagates_no_valid_moves(difficulty):
    state = _state("XOX/XOO/OXX", "O")
    before = copy_board(state.board)
    with pytest.raises(NoValidMovesError):
        _engine().select_move(state, difficulty)
    assert state.board == before


def test_malformed_board_fails_fast():
    engine = _engine()
    with pytest.raises(InvalidBoardShapeError):
        engine.select_move(GameState([[None, None], [None, None]], "X"), "hard")
    with pytest.raises(InvalidBoardShapeError):
        engine.select_move(GameState(empty_board(3), "Z"), "hard")
    with pytest.raises(InvalidBoardShapeError):
        engine.analyze_position(GameState(empty_board(3), "X", win_condition=5))


def test_analyze_position():
    analysis = _engine().analyze_position(_state("XX./O../...", "O"))
    assert analysis["advantage"] == "X"
    assert analysis["evaluation"] < 0
    details = analysis["details"]
    assert details["threats"][0]["cell"] == [0, 2]
    assert details["mobilityScore"] == 6


def test_analyze_empty_board_is_not_equal_because_of_mobility():
    analysis = _engine().analyze_position(GameState(empty_board(3), "X"))
    assert analysis["evaluation"] > 0
    assert analysis["details"]["lineScore"] == 0


def test_hint_explains_block():
    hint = _engine().get_hint(_state("XX./.O./...", "O"))
    assert (hint["row"], hint["col"]) == (0, 2)
    assert hint["reason"] == "Blocks the opponent's winning line"
    assert hint["evaluation"] == 0


def test_hint_uses_opening_book():
    hint = _engine().get_hint(GameState(empty_board(3), "X"))
    assert (hint["row"], hint["col"]) == (1, 1)
    assert hint["reason"].startswith("Opening book")


def test_hint_at_a_chosen_difficulty():
    engine = _engine()
    hint = engine.get_hint(_state("XX../..../.O../....", "O"), "medium")
    assert (hint["row"], hint["col"]) == (0, 2)
    assert hint["reason"] == "Blocking opponent"
    with pytest.raises(UnknownDifficultyError):
        engine.get_hint(GameState(empty_board(3), "X"), "nightmare")


def test_strongest_difficulty_for_board_size():
    assert strongest_difficulty_for(3) == "impossible"
    assert strongest_difficulty_for(4) == "expert"
    assert strongest_difficulty_for(10) == "medium"
    for size in range(3, 11):
        assert size <= INTERACTIVE_SIZE_LIMITS[strongest_difficulty_for(size)]


def test_over_budget_search_is_logged(caplog):
    engine = _engine()
    with caplog.at_level(logging.WARNING, logger="tictactoe.engine"):
        move = engine.select_move(_state("X../.O./...", "X"), "hard", max_thinking_time_ms=0)
    assert move.thinking_time_ms > 0
    assert "over the 0 ms budget" in caplog.text


def test_settings_from_env():
    settings = EngineSettings.from_env(
        {
            "TICTACTOE_MINIMAX_DEPTH": "3",
            "TICTACTOE_CACHE_ENABLED": "false",
            "TICTACTOE_RESULT_CACHE_SIZE": "128",
            "TICTACTOE_RANDOM_DELAY_MIN": "0",
            "TICTACTOE_RANDOM_DELAY_MAX": "0",
        }
    )
    assert settings.minimax_depth == 3
    assert settings.alphabeta_depth == 6
    assert settings.cache_enabled is False
    assert settings.result_cache_size == 128
    assert settings.random_think_delay == (0.0, 0.0)

    engine = AIEngine(settings)
    assert engine.cache_enabled is False
    assert engine.strategies["hard"].depth == 3
