from enum import IntEnum
from typing import Optional, Sequence, Tuple

from connect4.config import CONFIG, EvalConfig
from connect4.core.board import Board, Cell, windows_for
from connect4.errors import EmptyBatchError


class EvalMode(IntEnum):
    # Values double as the packet mode byte.
    MINIMIZE = 0
    MAXIMIZE = 1

    @classmethod
    def for_player(cls, player: Cell) -> "EvalMode":
        return cls.MAXIMIZE if player is Cell.MAX else cls.MINIMIZE


def select_best(scores: Sequence, mode: EvalMode) -> Tuple[int, int]:
    """Index and value of the best score; the lowest index wins ties."""
    if not scores:
        raise EmptyBatchError()
    best_index = 0
    best = scores[0]
    for i in range(1, len(scores)):
        s = scores[i]
        if (s > best) if mode == EvalMode.MAXIMIZE else (s < best):
            best = s
            best_index = i
    return best_index, best


class Evaluator:
    """Center-column bias plus scoring of every 4-cell window.

    Scores are from MAX's point of view and depend only on the cells, never
    on whose turn it is.
    """

    def __init__(self, cfg: Optional[EvalConfig] = None):
        self.cfg = cfg or CONFIG.eval

    def evaluate(self, board: Board) -> int:
        return self.center_score(board) + self.window_score(board)

    def center_score(self, board: Board) -> int:
        score = 0
        weight = self.cfg.center_weight
        col = board.center_column
        for row in range(board.rows):
            cell = board.cell(row, col)
            if cell is Cell.MAX:
                score += weight
            elif cell is Cell.MIN:
                score -= weight
        return score

    def window_score(self, board: Board) -> int:
        cells = board.cells
        score = 0
        for window in windows_for(board.rows, board.cols):
            score += self.score_window([cells[i] for i in window])
        return score

    def score_window(self, window) -> int:
        n_max = n_min = n_empty = 0
        for cell in window:
            if cell is Cell.MAX:
                n_max += 1
            elif cell is Cell.MIN:
                n_min += 1
            else:
                n_empty += 1

        if n_max == 4:
            return self.cfg.win_weight
        if n_min == 4:
            return -self.cfg.win_weight
        if n_max == 3 and n_empty == 1:
            return self.cfg.three_weight
        if n_min == 3 and n_empty == 1:
            return -self.cfg.three_weight
        if n_max == 2 and n_empty == 2:
            return self.cfg.two_weight
        if n_min == 2 and n_empty == 2:
            return -self.cfg.two_weight
        return 0
