"""Engine settings and difficulty levels."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple


DIFFICULTIES: Tuple[str, ...] = ("easy", "medium", "hard", "expert", "impossible")
STRONGEST_DIFFICULTY = "impossible"

MIN_BOARD_SIZE = 3
MAX_BOARD_SIZE = 10
MIN_WIN_CONDITION = 3

# Largest board each level answers in interactive time. Full-width searches
# grow with the number of empty cells, so the deep levels stay on small boards.
INTERACTIVE_SIZE_LIMITS: Dict[str, int] = {
    "easy": MAX_BOARD_SIZE,
    "medium": MAX_BOARD_SIZE,
    "hard": 4,
    "expert": 4,
    "impossible": 3,
}


def strongest_difficulty_for(size: int) -> str:
    """Strongest level whose interactive limit covers a ``size``×``size`` board."""

    for difficulty in reversed(DIFFICULTIES):
        if size <= INTERACTIVE_SIZE_LIMITS[difficulty]:
            return difficulty
    return DIFFICULTIES[0]


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    if raw.strip().lower() == "none":
        return None
    return int(raw)


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineSettings:
    minimax_depth: int = 4
    alphabeta_depth: int = 6
    perfect_depth: int = 10
    max_thinking_time_ms: int = 2000
    hint_thinking_time_ms: int = 5000
    # seconds; (0, 0) disables the artificial pause of the easy level
    random_think_delay: Tuple[float, float] = (0.1, 0.3)
    cache_enabled: bool = True
    result_cache_size: Optional[int] = None  # None means unbounded
    transposition_table_size: Optional[int] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Build settings from ``TICTACTOE_*`` environment variables."""

        env = os.environ if env is None else env
        defaults = cls()
        delay_min = float(env.get("TICTACTOE_RANDOM_DELAY_MIN", defaults.random_think_delay[0]))
        delay_max = float(env.get("TICTACTOE_RANDOM_DELAY_MAX", defaults.random_think_delay[1]))
        return cls(
            minimax_depth=_env_int(env, "TICTACTOE_MINIMAX_DEPTH", defaults.minimax_depth),
            alphabeta_depth=_env_int(env, "TICTACTOE_ALPHABETA_DEPTH", defaults.alphabeta_depth),
            perfect_depth=_env_int(env, "TICTACTOE_PERFECT_DEPTH", defaults.perfect_depth),
            max_thinking_time_ms=_env_int(
                env, "TICTACTOE_MAX_THINKING_MS", defaults.max_thinking_time_ms
            ),
            hint_thinking_time_ms=_env_int(
                env, "TICTACTOE_HINT_THINKING_MS", defaults.hint_thinking_time_ms
            ),
            random_think_delay=(delay_min, max(delay_min, delay_max)),
            cache_enabled=_env_bool(env, "TICTACTOE_CACHE_ENABLED", defaults.cache_enabled),
            result_cache_size=_env_int(
                env, "TICTACTOE_RESULT_CACHE_SIZE", defaults.result_cache_size
            ),
            transposition_table_size=_env_int(
                env, "TICTACTOE_TT_SIZE", defaults.transposition_table_size
            ),
        )
