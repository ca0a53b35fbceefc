"""FastAPI app: stateless AI endpoints plus browser-playable games against the AI."""

from __future__ import annotations

import json
import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import (
    DIFFICULTIES,
    INTERACTIVE_SIZE_LIMITS,
    MAX_BOARD_SIZE,
    MIN_BOARD_SIZE,
    EngineSettings,
    strongest_difficulty_for,
)
from .engine import AIEngine
from .errors import (
    AIMovePendingError,
    GameOverError,
    InvalidMoveError,
    SessionNotFoundError,
    TicTacToeError,
)
from .game import GameState, Player, TicTacToeGame, opponent

logger = logging.getLogger(__name__)

Symbol = Literal["X", "O"]


@dataclass
class GameSession:
    """An active game, the side the AI plays and its strength."""

    game: TicTacToeGame
    difficulty: str
    human_player: Player
    move_log: List[Dict[str, object]] = field(default_factory=list)
    ai_pending: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def ai_player(self) -> Player:
        return opponent(self.human_player)

    def ai_to_move(self) -> bool:
        return not self.game.finished and self.game.current_player == self.ai_player


SESSIONS: Dict[str, GameSession] = {}
ENGINE = AIEngine(EngineSettings.from_env())
app = FastAPI(title="Tic-Tac-Toe", description="N×N tic-tac-toe against pluggable AI opponents")

AI_THINK_DELAY: Tuple[float, float] = (0.3, 0.8)


# ---------- Request models ----------


class PositionRequest(BaseModel):
    """A board to analyse, from the point of view of ``currentPlayer``."""

    model_config = ConfigDict(populate_by_name=True)

    board: List[List[Optional[Symbol]]]
    current_player: Symbol = Field(alias="currentPlayer")
    win_condition: int = Field(default=3, alias="winCondition", ge=3, le=MAX_BOARD_SIZE)

    def to_state(self) -> GameState:
        return GameState(
            board=[list(row) for row in self.board],
            current_player=self.current_player,
            win_condition=self.win_condition,
        )


class AIMoveRequest(PositionRequest):
    difficulty: str = "medium"
    max_thinking_time: Optional[int] = Field(default=None, alias="maxThinkingTime", ge=0)


class CacheSettingsRequest(BaseModel):
    enabled: bool


class NewGameRequest(BaseModel):
    """Request payload for starting a new game against the AI."""

    model_config = ConfigDict(populate_by_name=True)

    size: int = Field(default=3, ge=MIN_BOARD_SIZE, le=MAX_BOARD_SIZE)
    win_condition: int = Field(default=3, alias="winCondition", ge=3, le=MAX_BOARD_SIZE)
    difficulty: str = "medium"
    human_player: Symbol = Field(default="X", alias="humanPlayer")

    @field_validator("difficulty")
    @classmethod
    def ensure_supported_difficulty(cls, value: str) -> str:
        if value not in DIFFICULTIES:
            raise ValueError(
                f"Unsupported difficulty {value!r}. Choose one of {', '.join(DIFFICULTIES)}."
            )
        return value

    @model_validator(mode="after")
    def ensure_win_condition_fits(self) -> "NewGameRequest":
        if self.win_condition > self.size:
            raise ValueError("Win condition must not exceed the board size")
        limit = INTERACTIVE_SIZE_LIMITS[self.difficulty]
        if self.size > limit:
            raise ValueError(
                f"The {self.difficulty} AI plays on boards up to {limit}x{limit}"
            )
        return self


class MoveRequest(BaseModel):
    row: int = Field(ge=0, lt=MAX_BOARD_SIZE)
    col: int = Field(ge=0, lt=MAX_BOARD_SIZE)


# ---------- Stateless AI endpoints ----------


def _http_error(exc: TicTacToeError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


@app.post("/api/ai/move")
def ai_move(request: AIMoveRequest) -> Dict[str, object]:
    try:
        move = ENGINE.select_move(
            request.to_state(), request.difficulty, request.max_thinking_time
        )
    except TicTacToeError as exc:
        raise _http_error(exc) from exc
    payload = move.to_dict()
    payload["difficulty"] = request.difficulty
    return payload


@app.post("/api/ai/analyze")
def ai_analyze(request: PositionRequest) -> Dict[str, object]:
    try:
        return ENGINE.analyze_position(request.to_state())
    except TicTacToeError as exc:
        raise _http_error(exc) from exc


@app.post("/api/ai/hint")
def ai_hint(request: PositionRequest) -> Dict[str, object]:
    try:
        return ENGINE.get_hint(request.to_state())
    except TicTacToeError as exc:
        raise _http_error(exc) from exc


@app.post("/api/ai/cache/clear")
def ai_cache_clear() -> Dict[str, object]:
    ENGINE.clear_cache()
    return {"success": True, "message": "AI cache cleared"}


@app.post("/api/ai/cache")
def ai_cache_settings(request: CacheSettingsRequest) -> Dict[str, object]:
    ENGINE.set_cache_enabled(request.enabled)
    return {"enabled": ENGINE.cache_enabled, **ENGINE.cache.stats()}


# ---------- Games against the AI ----------


def _create_session(request: NewGameRequest) -> Tuple[str, GameSession]:
    """Create a new game session and register it for later access."""

    game = TicTacToeGame(size=request.size, win_condition=request.win_condition)
    session = GameSession(
        game=game, difficulty=request.difficulty, human_player=request.human_player
    )
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    logger.info(
        "created game %s (%dx%d, k=%d, %s)",
        session_id,
        request.size,
        request.size,
        request.win_condition,
        request.difficulty,
    )
    return session_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError:
        raise _http_error(SessionNotFoundError(game_id)) from None


def _run_ai_turn(game_id: str) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with session.lock:
        try:
            if not session.ai_to_move():
                return
            game = session.game
            move = ENGINE.select_move(game.state(), session.difficulty)
            game.play_move(move.row, move.col, session.ai_player)
            session.move_log.append(
                {"player": session.ai_player, "row": move.row, "col": move.col}
            )
        except TicTacToeError:
            logger.exception("AI turn failed for game %s", game_id)
        finally:
            session.ai_pending = False


def _schedule_ai(
    game_id: str, session: GameSession, background_tasks: Optional[BackgroundTasks]
) -> None:
    """Mark the AI as thinking; caller must hold ``session.lock``."""

    if session.ai_to_move():
        session.ai_pending = True
        if background_tasks is not None:
            background_tasks.add_task(_run_ai_turn, game_id)


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        game = session.game
        state: Dict[str, object] = {
            "id": game_id,
            "size": game.size,
            "winCondition": game.win_condition,
            "difficulty": session.difficulty,
            "humanPlayer": session.human_player,
            "aiPlayer": session.ai_player,
            "currentPlayer": game.current_player,
            "board": [list(row) for row in game.board],
            "status": game.status,
            "winner": game.winner,
            "winningLine": game.winning_line,
            "availableMoves": [
                {"row": row, "col": col} for row, col in game.available_moves()
            ],
            "moveLog": list(session.move_log),
            "aiPending": session.ai_pending,
        }
        if session.move_log:
            state["lastMove"] = session.move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    session: GameSession,
    row: int,
    col: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    with session.lock:
        try:
            if session.ai_pending:
                raise AIMovePendingError()
            session.game.play_move(row, col, session.human_player)
        except TicTacToeError as exc:
            raise _http_error(exc) from exc

        session.move_log.append({"player": session.human_player, "row": row, "col": col})
        _schedule_ai(game_id, session, background_tasks)


@app.post("/api/game")
def create_game(
    request: NewGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    game_id, session = _create_session(request)
    with session.lock:
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    _apply_player_move(game_id, session, request.row, request.col, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/hint")
def game_hint(game_id: str) -> Dict[str, object]:
    """Suggest a move with the strongest level that is quick on this board size."""

    session = _get_session(game_id)
    with session.lock:
        if session.game.finished:
            raise _http_error(GameOverError())
        state = session.game.state()
    try:
        return ENGINE.get_hint(state, strongest_difficulty_for(state.size))
    except TicTacToeError as exc:
        raise _http_error(exc) from exc


@app.post("/api/game/{game_id}/undo")
def undo_move(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    """Take back moves until the human's last move has been undone."""

    session = _get_session(game_id)
    with session.lock:
        if session.ai_pending:
            raise _http_error(AIMovePendingError())
        game = session.game
        if not game.move_history:
            raise _http_error(InvalidMoveError("No moves to undo"))
        while game.move_history:
            undone = game.undo_move()
            session.move_log.pop()
            if undone is not None and undone.player == session.human_player:
                break
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/reset")
def reset_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        if session.ai_pending:
            raise _http_error(AIMovePendingError())
        session.game.reset()
        session.move_log.clear()
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.delete("/api/game/{game_id}")
def delete_game(game_id: str) -> Dict[str, object]:
    _get_session(game_id)
    SESSIONS.pop(game_id, None)
    logger.info("deleted game %s", game_id)
    return {"success": True}


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE.replace("__SIZE_LIMITS__", json.dumps(INTERACTIVE_SIZE_LIMITS))


HTML_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Tic-Tac-Toe</title>
    <style>
      body { font-family: system-ui, sans-serif; background: #0f172a; color: #e2e8f0;
             display: flex; flex-direction: column; align-items: center; margin: 0; padding: 2rem; }
      form, .actions { display: flex; gap: .75rem; flex-wrap: wrap; justify-content: center; margin-bottom: 1rem; }
      select, button { font: inherit; padding: .35rem .7rem; border-radius: .4rem; border: 1px solid #334155;
                       background: #1e293b; color: inherit; cursor: pointer; }
      #board { display: grid; gap: 4px; margin: 1rem 0; }
      .cell { width: 3.2rem; height: 3.2rem; font-size: 1.6rem; font-weight: 700; }
      .cell.win { background: #166534; }
      .cell.hint { outline: 2px solid #facc15; }
      #status { min-height: 1.5rem; }
    </style>
  </head>
  <body>
    <h1>Tic-Tac-Toe</h1>
    <form id="setup">
      <label>Size <select name="size"></select></label>
      <label>Win <select name="winCondition"></select></label>
      <label>AI <select name="difficulty">
        <option>easy</option><option selected>medium</option><option>hard</option>
        <option>expert</option><option>impossible</option>
      </select></label>
      <label>Play as <select name="humanPlayer"><option>X</option><option>O</option></select></label>
      <button type="submit">New game</button>
    </form>
    <div class="actions">
      <button id="hint" type="button">Hint</button>
      <button id="undo" type="button">Undo</button>
    </div>
    <div id="status"></div>
    <div id="board"></div>
    <script>
      const form = document.getElementById("setup");
      const boardEl = document.getElementById("board");
      const statusEl = document.getElementById("status");
      let game = null;
      let hint = null;

      const sizeLimits = __SIZE_LIMITS__;

      function fillSelect(select, max) {
        const previous = Number(select.value) || 3;
        select.innerHTML = "";
        for (let n = 3; n <= max; n++) select.add(new Option(n, n));
        select.value = String(Math.min(previous, max));
      }

      function syncOptions() {
        fillSelect(form.size, sizeLimits[form.difficulty.value]);
        fillSelect(form.winCondition, Number(form.size.value));
      }

      form.difficulty.onchange = syncOptions;
      form.size.onchange = () => fillSelect(form.winCondition, Number(form.size.value));
      syncOptions();

      async function api(path, body, method = "POST") {
        const response = await fetch(path, {
          method,
          headers: { "Content-Type": "application/json" },
          body: body === undefined ? undefined : JSON.stringify(body),
        });
        const payload = await response.json();
        if (!response.ok) {
          const detail = payload.detail;
          throw new Error(typeof detail === "string" ? detail : (detail.message || JSON.stringify(detail)));
        }
        return payload;
      }

      function render() {
        boardEl.innerHTML = "";
        if (!game) return;
        boardEl.style.gridTemplateColumns = `repeat(${game.size}, 3.2rem)`;
        const winning = new Set((game.winningLine || []).map(([r, c]) => `${r},${c}`));
        game.board.forEach((cells, row) => cells.forEach((cell, col) => {
          const button = document.createElement("button");
          button.className = "cell";
          button.textContent = cell || "";
          if (winning.has(`${row},${col}`)) button.classList.add("win");
          if (hint && hint.row === row && hint.col === col) button.classList.add("hint");
          button.onclick = () => play(row, col);
          boardEl.appendChild(button);
        }));
        if (game.status === "won") statusEl.textContent = `${game.winner} wins`;
        else if (game.status === "draw") statusEl.textContent = "Draw";
        else if (game.aiPending) statusEl.textContent = "AI is thinking…";
        else statusEl.textContent = `${game.currentPlayer} to move`;
      }

      async function refresh() {
        game = await api(`/api/game/${game.id}`, undefined, "GET");
        render();
        if (game.aiPending) setTimeout(refresh, 250);
      }

      async function play(row, col) {
        if (!game || game.aiPending || game.status !== "playing") return;
        try {
          hint = null;
          game = await api(`/api/game/${game.id}/move`, { row, col });
          render();
          if (game.aiPending) setTimeout(refresh, 250);
        } catch (error) {
          statusEl.textContent = error.message;
        }
      }

      form.addEventListener("submit", async (event) => {
        event.preventDefault();
        const data = new FormData(form);
        try {
          hint = null;
          game = await api("/api/game", {
            size: Number(data.get("size")),
            winCondition: Number(data.get("winCondition")),
            difficulty: data.get("difficulty"),
            humanPlayer: data.get("humanPlayer"),
          });
          render();
          if (game.aiPending) setTimeout(refresh, 250);
        } catch (error) {
          statusEl.textContent = error.message;
        }
      });

      document.getElementById("hint").onclick = async () => {
        if (!game) return;
        try {
          hint = await api(`/api/game/${game.id}/hint`);
          render();
          statusEl.textContent = hint.reason;
        } catch (error) {
          statusEl.textContent = error.message;
        }
      };

      document.getElementById("undo").onclick = async () => {
        if (!game) return;
        try {
          hint = null;
          game = await api(`/api/game/${game.id}/undo`);
          render();
          if (game.aiPending) setTimeout(refresh, 250);
        } catch (error) {
          statusEl.textContent = error.message;
        }
      };
    </script>
  </body>
</html>
"""
