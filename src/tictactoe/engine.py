"""Difficulty-keyed dispatch over the AI strategies, with result caching."""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from .ai import (
    AlphaBetaStrategy,
    HeuristicStrategy,
    MinimaxStrategy,
    MoveChoice,
    PerfectStrategy,
    RandomStrategy,
    Strategy,
)
from .cache import LockedCache
from .config import STRONGEST_DIFFICULTY, EngineSettings
from .errors import UnknownDifficultyError
from .evaluator import Evaluator
from .game import GameState, board_key, validate_board, validate_player

logger = logging.getLogger(__name__)


@dataclass
class EngineMove:
    row: int
    col: int
    evaluation: float
    thinking_time_ms: float
    from_cache: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "row": self.row,
            "col": self.col,
            "evaluation": self.evaluation,
            "thinkingTime": self.thinking_time_ms,
            "fromCache": self.from_cache,
        }


def build_strategies(settings: EngineSettings, rng: random.Random) -> Dict[str, Strategy]:
    """Label -> strategy table; every strategy shares one evaluator."""

    evaluator = Evaluator()
    return {
        "easy": RandomStrategy(
            evaluator=evaluator, rng=rng, think_delay=settings.random_think_delay
        ),
        "medium": HeuristicStrategy(evaluator=evaluator),
        "hard": MinimaxStrategy(evaluator=evaluator, depth=settings.minimax_depth),
        "expert": AlphaBetaStrategy(
            evaluator=evaluator,
            depth=settings.alphabeta_depth,
            max_table_entries=settings.transposition_table_size,
        ),
        "impossible": PerfectStrategy(
            evaluator=evaluator,
            depth=settings.perfect_depth,
            rng=rng,
            max_table_entries=settings.transposition_table_size,
        ),
    }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class AIEngine:
    """Picks moves for a difficulty label and memoizes the answers.

    The thinking-time budget is advisory: searches always run to completion
    and an overrun is only logged.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.strategies = build_strategies(self.settings, rng or random.Random())
        # one search at a time per strategy; they share transposition tables
        self._locks = {label: threading.Lock() for label in self.strategies}
        self.cache = LockedCache(self.settings.result_cache_size)
        self.cache_enabled = self.settings.cache_enabled

    # ---- public API ----

    def select_move(
        self,
        state: GameState,
        difficulty: str = "medium",
        max_thinking_time_ms: Optional[int] = None,
    ) -> EngineMove:
        start = time.perf_counter()
        strategy = self._strategy(difficulty)
        self._validate(state)
        budget = (
            self.settings.max_thinking_time_ms
            if max_thinking_time_ms is None
            else max_thinking_time_ms
        )

        key = self.cache_key(state, difficulty)
        if self.cache_enabled:
            cached: Optional[MoveChoice] = self.cache.get(key)
            if cached is not None:
                logger.debug("result cache hit for %s", key)
                return EngineMove(
                    row=cached.row,
                    col=cached.col,
                    evaluation=cached.evaluation,
                    thinking_time_ms=_elapsed_ms(start),
                    from_cache=True,
                )

        with self._locks[difficulty]:
            choice = strategy.select_move(state, budget)
        elapsed = _elapsed_ms(start)
        if elapsed > budget:
            logger.warning(
                "%s move took %.0f ms, over the %d ms budget", difficulty, elapsed, budget
            )

        if self.cache_enabled:
            self.cache.put(key, choice)
        return EngineMove(
            row=choice.row,
            col=choice.col,
            evaluation=choice.evaluation or 0.0,
            thinking_time_ms=elapsed,
            from_cache=False,
        )

    def analyze_position(self, state: GameState) -> Dict[str, object]:
        self._validate(state)
        return self.strategies[STRONGEST_DIFFICULTY].analyze_position(state)

    def get_hint(
        self, state: GameState, difficulty: str = STRONGEST_DIFFICULTY
    ) -> Dict[str, object]:
        strategy = self._strategy(difficulty)
        self._validate(state)
        with self._locks[difficulty]:
            choice = strategy.select_move(state, self.settings.hint_thinking_time_ms)
        return {
            "row": choice.row,
            "col": choice.col,
            "reason": choice.reason or "Best move according to AI",
            "evaluation": choice.evaluation,
        }

    def clear_cache(self) -> None:
        """Forget cached results and every strategy's transposition table."""

        self.cache.clear()
        for label, strategy in self.strategies.items():
            with self._locks[label]:
                strategy.clear_cache()
        logger.info("AI caches cleared")

    def set_cache_enabled(self, enabled: bool) -> None:
        self.cache_enabled = bool(enabled)

    # ---- helpers ----

    @staticmethod
    def cache_key(state: GameState, difficulty: str) -> str:
        return (
            f"{difficulty}:{board_key(state.board)}:"
            f"{state.win_condition}:{state.current_player}"
        )

    def _strategy(self, difficulty: str) -> Strategy:
        try:
            return self.strategies[difficulty]
        except KeyError:
            raise UnknownDifficultyError(difficulty) from None

    @staticmethod
    def _validate(state: GameState) -> None:
        validate_board(state.board, state.win_condition)
        validate_player(state.current_player)
