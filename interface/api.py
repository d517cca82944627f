"""FastAPI REST interface for the engine."""

import threading
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from connect4 import __version__
from connect4.config import CONFIG, configure_logging
from connect4.errors import Connect4Error
from connect4.main import Engine, build_batch_evaluator

app = FastAPI(title=CONFIG.ui.engine_name, version=__version__)

# Shared game session; every request goes through the lock.
engine = Engine(CONFIG)
# One batch evaluator per mode, built on first use.
_batch_evaluators = {engine.use_accelerator: engine.search.batch_evaluator}
_board_lock = threading.Lock()


class MoveRequest(BaseModel):
    column: int


class SearchRequest(BaseModel):
    depth: Optional[int] = None
    use_accelerator: Optional[bool] = None


def _board_state():
    board = engine.board
    winner = board.winner()
    return {
        "rows": str(board).splitlines(),
        "turn": board.turn.name,
        "legal_columns": board.legal_columns(),
        "status": engine.status(),
        "winner": winner.name if winner is not None else None,
        "is_game_over": engine.is_game_over(),
    }


def _batch_evaluator(use_accelerator: bool):
    if use_accelerator not in _batch_evaluators:
        _batch_evaluators[use_accelerator] = build_batch_evaluator(CONFIG, use_accelerator)
    return _batch_evaluators[use_accelerator]


@app.get("/board")
def get_board():
    with _board_lock:
        return _board_state()


@app.post("/move")
def make_move(req: MoveRequest):
    with _board_lock:
        try:
            engine.play(req.column)
        except Connect4Error as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _board_state()


@app.post("/search")
def search_move(req: SearchRequest = SearchRequest()):
    use_accelerator = engine.use_accelerator if req.use_accelerator is None else req.use_accelerator
    depth = req.depth if req.depth is not None else CONFIG.search.effective_depth(use_accelerator)
    limit = CONFIG.search.depth_limit
    if req.depth is not None and not 1 <= req.depth <= limit:
        raise HTTPException(status_code=400, detail=f"depth must be within 1..{limit}")

    with _board_lock:
        if engine.is_game_over():
            raise HTTPException(status_code=400, detail="Game is already over")
        search = engine.search
        saved = search.max_depth, search.batch_evaluator
        search.max_depth = depth
        try:
            search.batch_evaluator = _batch_evaluator(use_accelerator)
            result = engine.ai_move()
        except Connect4Error as e:
            raise HTTPException(status_code=400, detail=str(e))
        finally:
            search.max_depth, search.batch_evaluator = saved
        state = _board_state()
        state.update({
            "column": result.column,
            "score": result.score if abs(result.score) != float("inf") else None,
            "nodes": result.nodes,
            "eval_calls": result.eval_calls,
        })
        return state


@app.post("/reset")
def reset_board():
    with _board_lock:
        engine.reset()
        return _board_state()


def main():
    import uvicorn

    configure_logging(CONFIG.log_level)
    uvicorn.run(app, host=CONFIG.ui.api_host, port=CONFIG.ui.api_port)


if __name__ == "__main__":
    main()
