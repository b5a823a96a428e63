"""FastAPI-powered web UI for playing tic-tac-toe in the browser."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field

from .ai import Difficulty
from .config import Settings
from .controller import Mode, RoundSettings, TurnController
from .game import EMPTY, Outcome, Player

logger = logging.getLogger(__name__)

SETTINGS = Settings.from_env()
THINK_DELAY: float = SETTINGS.think_delay
SESSION_TTL_SECONDS: float = SETTINGS.session_ttl


@dataclass
class GameSession:
    """Container for one browser's controller and its bookkeeping."""

    controller: TurnController
    updated_at: float = field(default_factory=time.time)
    rounds_won: Dict[str, int] = field(
        default_factory=lambda: {Player.X.value: 0, Player.O.value: 0, "draw": 0}
    )

    def touch(self) -> None:
        self.updated_at = time.time()


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="Tic-Tac-Toe", description="Classic tic-tac-toe played in the browser")


class NewGameRequest(BaseModel):
    """Request payload for starting a new game session."""

    model_config = ConfigDict(populate_by_name=True)

    mode: Mode = Mode.COMPUTER_VS_HUMAN
    human_player: Player = Field(default=Player.X, alias="humanPlayer")
    difficulty: Difficulty = Difficulty.EASY


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, le=8)


class SettingsRequest(BaseModel):
    """Settings for the next round; omitted fields stay as they are."""

    model_config = ConfigDict(populate_by_name=True)

    mode: Optional[Mode] = None
    human_player: Optional[Player] = Field(default=None, alias="humanPlayer")
    difficulty: Optional[Difficulty] = None


def _cleanup_sessions() -> None:
    """Drop sessions nobody has touched for ``SESSION_TTL_SECONDS``."""

    now = time.time()
    expired = [
        game_id
        for game_id, session in list(SESSIONS.items())
        if now - session.updated_at >= SESSION_TTL_SECONDS
    ]
    for game_id in expired:
        SESSIONS.pop(game_id, None)
    if expired:
        logger.info("Dropped %d idle game session(s)", len(expired))


def _record_finished_round(
    session: GameSession,
) -> Callable[[TurnController, Player, int], None]:
    def listener(controller: TurnController, player: Player, index: int) -> None:
        session.touch()
        result = controller.result
        if result.outcome is Outcome.WIN:
            session.rounds_won[result.winner.value] += 1
        elif result.outcome is Outcome.DRAW:
            session.rounds_won["draw"] += 1

    return listener


def _create_session(settings: RoundSettings) -> Tuple[str, GameSession]:
    """Create a new game session and register it for later access."""

    _cleanup_sessions()
    controller = TurnController(settings=settings, think_delay=THINK_DELAY)
    session = GameSession(controller=controller)
    controller.add_listener(_record_finished_round(session))
    game_id = uuid.uuid4().hex
    SESSIONS[game_id] = session
    logger.info(
        "Created game %s (mode=%s, human=%s, difficulty=%s)",
        game_id,
        settings.mode.value,
        settings.human_player.value,
        settings.difficulty.value,
    )
    return game_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        session = SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc
    session.touch()
    return session


def _schedule_reply(
    session: GameSession,
    previous_token: Optional[int],
    background_tasks: BackgroundTasks,
) -> None:
    """Queue the computer's reply if this request put the controller into thinking."""

    token = session.controller.pending_token
    if token is not None and token != previous_token:
        background_tasks.add_task(session.controller.play_computer_turn)


def _status_message(controller: TurnController) -> str:
    result = controller.result
    settings = controller.settings

    if settings.mode is Mode.HUMAN_VS_HUMAN:
        if result.outcome is Outcome.WIN:
            return f"{result.winner.value} wins!"
        if result.outcome is Outcome.DRAW:
            return "It's a draw! Well played!"
        return f"{controller.current_player.value}'s turn"

    if result.outcome is Outcome.WIN:
        if result.winner is settings.human_player:
            return "You won! Great job!"
        return "Computer wins! Try again?"
    if result.outcome is Outcome.DRAW:
        return "It's a draw! Well played!"
    if controller.thinking:
        return "Computer is thinking..."
    if controller.current_player is settings.human_player:
        return "Your turn!"
    return "Computer's turn..."


def _serialize_settings(settings: RoundSettings) -> Dict[str, object]:
    computer = settings.computer_player
    return {
        "mode": settings.mode.value,
        "humanPlayer": settings.human_player.value,
        "computerPlayer": computer.value if computer else None,
        "difficulty": settings.difficulty.value,
    }


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    controller = session.controller
    result = controller.result
    move_log: List[Dict[str, object]] = [
        {"player": player.value, "cellIndex": index}
        for player, index in controller.history
    ]
    state: Dict[str, object] = {
        "id": game_id,
        "round": controller.round,
        "board": [None if cell == EMPTY else cell for cell in controller.board],
        "currentPlayer": controller.current_player.value,
        "result": result.outcome.value,
        "winner": result.winner.value if result.winner else None,
        "winningLine": list(result.line) if result.line else None,
        "thinking": controller.thinking,
        **_serialize_settings(controller.settings),
        "requested": _serialize_settings(controller.requested_settings),
        "moveLog": move_log,
        "score": dict(session.rounds_won),
        "statusMessage": _status_message(controller),
    }
    if move_log:
        state["lastMove"] = move_log[-1]
    return state


@app.post("/api/game")
async def create_game(
    background_tasks: BackgroundTasks, request: Optional[NewGameRequest] = None
) -> Dict[str, object]:
    request = request or NewGameRequest()
    game_id, session = _create_session(
        RoundSettings(
            mode=request.mode,
            human_player=request.human_player,
            difficulty=request.difficulty,
        )
    )
    # The computer opens when the human picked O.
    _schedule_reply(session, None, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
async def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
async def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    controller = session.controller
    previous_token = controller.pending_token

    reason = controller.rejection_reason(request.cell_index)
    if reason is not None:
        raise HTTPException(status_code=400, detail=reason)
    controller.apply_move(request.cell_index)

    _schedule_reply(session, previous_token, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/new-round")
async def new_round(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    previous_token = session.controller.pending_token
    session.controller.start_new_round()
    _schedule_reply(session, previous_token, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/reset")
async def reset_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    previous_token = session.controller.pending_token
    session.controller.full_reset()
    session.rounds_won = {Player.X.value: 0, Player.O.value: 0, "draw": 0}
    _schedule_reply(session, previous_token, background_tasks)
    return _serialize_session(game_id, session)


@app.put("/api/game/{game_id}/settings")
async def update_settings(game_id: str, request: SettingsRequest) -> Dict[str, object]:
    session = _get_session(game_id)
    controller = session.controller
    if request.mode is not None:
        controller.set_mode(request.mode)
    if request.human_player is not None:
        controller.set_human_player(request.human_player)
    if request.difficulty is not None:
        controller.set_difficulty(request.difficulty)
    return _serialize_session(game_id, session)


@app.get("/", response_class=HTMLResponse)
async def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>Tic-Tac-Toe</title>
    <style>
      :root {
        color-scheme: light;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem 3rem;
        background: radial-gradient(circle at top, #f2f5ff, #dbe0ff 40%, #cfd8ff 70%);
        color: #13203a;
      }
      main {
        background: rgba(255, 255, 255, 0.92);
        border-radius: 18px;
        box-shadow: 0 20px 40px rgba(34, 47, 79, 0.16);
        padding: clamp(1.5rem, 4vw, 2.5rem);
        width: min(720px, 100%);
      }
      h1 {
        margin: 0 0 1rem;
        text-align: center;
        letter-spacing: 0.06em;
      }
      .controls {
        display: grid;
        grid-template-columns: repeat(auto-fit, minmax(180px, 1fr));
        gap: 1rem;
        margin-bottom: 1.5rem;
      }
      fieldset {
        border: 1px solid rgba(60, 70, 120, 0.2);
        border-radius: 12px;
        display: flex;
        flex-direction: column;
        gap: 0.4rem;
      }
      button {
        font-size: 1rem;
        padding: 0.5rem 0.9rem;
        border-radius: 999px;
        border: 1px solid rgba(60, 70, 120, 0.25);
        background: white;
        cursor: pointer;
        font-family: inherit;
      }
      button.selected {
        background: #3a66ff;
        color: white;
      }
      button:disabled {
        cursor: default;
        opacity: 0.6;
      }
      #status {
        text-align: center;
        font-weight: 600;
        margin: 0 0 1rem;
      }
      #board {
        display: grid;
        grid-template-columns: repeat(3, 88px);
        grid-template-rows: repeat(3, 88px);
        gap: 6px;
        justify-content: center;
        margin-bottom: 1.5rem;
      }
      #board.thinking {
        opacity: 0.7;
      }
      .cell {
        border-radius: 10px;
        font-size: 2.6rem;
        font-weight: 700;
        padding: 0;
      }
      .cell.x {
        color: #d7263d;
      }
      .cell.o {
        color: #1b98e0;
      }
      .cell.win {
        background: #fff4c2;
      }
      .actions {
        display: flex;
        justify-content: center;
        gap: 1rem;
      }
      #score {
        text-align: center;
        margin-top: 1rem;
        color: rgba(19, 32, 58, 0.75);
      }
    </style>
  </head>
  <body>
    <main>
      <h1>Tic-Tac-Toe</h1>
      <section class=\"controls\">
        <fieldset>
          <legend>Game mode</legend>
          <button data-setting=\"mode\" data-value=\"computer\">Computer vs Human</button>
          <button data-setting=\"mode\" data-value=\"human\">Human vs Human</button>
        </fieldset>
        <fieldset>
          <legend>Your symbol</legend>
          <button data-setting=\"humanPlayer\" data-value=\"X\">X</button>
          <button data-setting=\"humanPlayer\" data-value=\"O\">O</button>
        </fieldset>
        <fieldset>
          <legend>Difficulty</legend>
          <button data-setting=\"difficulty\" data-value=\"easy\">Easy</button>
          <button data-setting=\"difficulty\" data-value=\"medium\">Medium</button>
          <button data-setting=\"difficulty\" data-value=\"hard\">Hard</button>
        </fieldset>
      </section>
      <p id=\"status\">Setting up your game…</p>
      <div id=\"board\"></div>
      <div class=\"actions\">
        <button id=\"new-round\">New round</button>
        <button id=\"reset\">Reset</button>
      </div>
      <p id=\"score\"></p>
    </main>
    <script>
      const boardEl = document.getElementById('board');
      const statusEl = document.getElementById('status');
      const scoreEl = document.getElementById('score');
      const settingButtons = document.querySelectorAll('[data-setting]');
      let gameId = null;
      let gameState = null;
      let pollHandle = null;
      let isRequestPending = false;

      for (let index = 0; index < 9; index += 1) {
        const cell = document.createElement('button');
        cell.className = 'cell';
        cell.addEventListener('click', () => sendMove(index));
        boardEl.appendChild(cell);
      }

      async function request(path, options = {}) {
        const response = await fetch(path, {
          headers: { 'Content-Type': 'application/json' },
          ...options,
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload?.detail || 'Request failed');
        }
        return payload;
      }

      function render() {
        if (!gameState) return;
        const cells = boardEl.querySelectorAll('.cell');
        const line = gameState.winningLine || [];
        cells.forEach((cell, index) => {
          const mark = gameState.board[index];
          cell.textContent = mark || '';
          cell.className = 'cell' + (mark ? ' ' + mark.toLowerCase() : '');
          if (line.includes(index)) cell.classList.add('win');
          cell.disabled = Boolean(mark) || gameState.result !== 'inProgress' || gameState.thinking;
        });
        boardEl.classList.toggle('thinking', gameState.thinking);
        statusEl.textContent = gameState.statusMessage;
        const requested = gameState.requested;
        settingButtons.forEach((button) => {
          const key = button.dataset.setting;
          button.classList.toggle('selected', requested[key] === button.dataset.value);
          button.disabled = key === 'difficulty' && requested.mode !== 'computer';
        });
        const score = gameState.score;
        scoreEl.textContent = `X: ${score.X} · O: ${score.O} · Draws: ${score.draw}`;
      }

      function setState(data) {
        gameId = data.id;
        gameState = data;
        render();
        if (gameState.thinking) {
          ensurePolling();
        } else if (pollHandle) {
          clearTimeout(pollHandle);
          pollHandle = null;
        }
      }

      function ensurePolling() {
        if (pollHandle) return;
        pollHandle = setTimeout(async () => {
          pollHandle = null;
          try {
            setState(await request(`/api/game/${gameId}`));
          } catch (error) {
            console.error('Polling failed', error);
            ensurePolling();
          }
        }, 250);
      }

      async function run(action) {
        if (isRequestPending) return;
        isRequestPending = true;
        try {
          setState(await action());
        } catch (error) {
          statusEl.textContent = error.message || 'Network error. Please try again.';
        } finally {
          isRequestPending = false;
        }
      }

      function sendMove(cellIndex) {
        if (!gameState || gameState.thinking) return;
        run(() =>
          request(`/api/game/${gameId}/move`, {
            method: 'POST',
            body: JSON.stringify({ cellIndex }),
          })
        );
      }

      settingButtons.forEach((button) => {
        button.addEventListener('click', () => {
          const body = { [button.dataset.setting]: button.dataset.value };
          run(async () => {
            await request(`/api/game/${gameId}/settings`, {
              method: 'PUT',
              body: JSON.stringify(body),
            });
            // Settings apply from the next round; start it right away.
            return request(`/api/game/${gameId}/new-round`, { method: 'POST' });
          });
        });
      });

      document.getElementById('new-round').addEventListener('click', () => {
        run(() => request(`/api/game/${gameId}/new-round`, { method: 'POST' }));
      });
      document.getElementById('reset').addEventListener('click', () => {
        run(() => request(`/api/game/${gameId}/reset`, { method: 'POST' }));
      });

      run(() => request('/api/game', { method: 'POST', body: JSON.stringify({}) }));
    </script>
  </body>
</html>
"""
