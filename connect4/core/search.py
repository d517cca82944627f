import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from connect4.config import CONFIG
from connect4.core.batch import BatchEvaluator, LocalBatchEvaluator
from connect4.core.board import Board, Cell
from connect4.core.evaluator import EvalMode
from connect4.core.packet import MAX_BOARDS
from connect4.errors import ConfigError, GameOverError

logger = logging.getLogger(__name__)

INF = float("inf")


@dataclass
class SearchResult:
    column: Optional[int]
    score: float
    nodes: int = 0
    eval_calls: int = 0
    boards_evaluated: int = 0
    eval_time: float = 0.0
    elapsed: float = 0.0


class SearchEngine:
    """Depth-limited minimax with alpha-beta and batched frontier scoring.

    A node one ply above the depth limit does not recurse into its
    children: it gathers every non-terminal child into one batch and asks
    the BatchEvaluator for a single max (or min) over the whole group, so an
    accelerator round trip covers a full sibling frontier.

    Columns are explored in increasing order and a better value must be
    strictly better, so the lowest column wins ties.
    """

    def __init__(self, batch_evaluator: Optional[BatchEvaluator] = None, depth: Optional[int] = None,
                 use_alpha_beta: Optional[bool] = None, max_batch: int = MAX_BOARDS):
        self.batch_evaluator = batch_evaluator or LocalBatchEvaluator()
        self.max_depth = CONFIG.search.depth if depth is None else depth
        self.use_alpha_beta = CONFIG.search.use_alpha_beta if use_alpha_beta is None else use_alpha_beta
        self.max_batch = max_batch
        if self.max_depth < 0:
            raise ConfigError(f"Search depth cannot be negative, got {self.max_depth}")
        if max_batch < 1:
            raise ConfigError("max_batch must be at least 1")
        self.nodes = 0

    def search_best_move(self, board: Board) -> SearchResult:
        if board.is_terminal():
            raise GameOverError("Game is already over")

        self.nodes = 0
        stats = self.batch_evaluator.stats
        stats.reset()
        start = time.perf_counter()

        if self.max_depth == 0:
            column = None
            score = self._evaluate([board], EvalMode.for_player(board.turn))
        else:
            column, score = self._search_root(board)

        elapsed = time.perf_counter() - start
        result = SearchResult(
            column=column,
            score=score,
            nodes=self.nodes,
            eval_calls=stats.calls,
            boards_evaluated=stats.boards,
            eval_time=stats.seconds,
            elapsed=elapsed,
        )
        self._log_result(result)
        return result

    def _search_root(self, board: Board) -> Tuple[int, float]:
        self.nodes += 1
        maximizing = board.turn is Cell.MAX
        mode = EvalMode.for_player(board.turn)
        alpha, beta = -INF, INF
        columns = board.legal_columns()
        # Stays put if every child comes back as a sentinel.
        best_column = columns[0]
        best = -INF if maximizing else INF

        for col in columns:
            child = board.drop(col)
            if self.max_depth == 1:
                # The root is the frontier here; score children one by one so
                # the winning column stays known. Game-ending children are
                # scored in their own mode, as at any other frontier.
                child_mode = EvalMode.for_player(child.turn) if child.is_terminal() else mode
                score = self._evaluate([child], child_mode)
            else:
                score = self._minimax(child, 1, alpha, beta)

            if (score > best) if maximizing else (score < best):
                best = score
                best_column = col
            if maximizing:
                alpha = max(alpha, best)
            else:
                beta = min(beta, best)

        return best_column, best

    def _minimax(self, board: Board, ply: int, alpha: float, beta: float) -> float:
        maximizing = board.turn is Cell.MAX
        mode = EvalMode.for_player(board.turn)

        if board.is_terminal():
            return self._evaluate([board], mode)

        self.nodes += 1
        if ply == self.max_depth - 1:
            return self._frontier(board, maximizing, mode, alpha, beta)

        best = -INF if maximizing else INF
        for col in board.legal_columns():
            score = self._minimax(board.drop(col), ply + 1, alpha, beta)
            if maximizing:
                if score > best:
                    best = score
                if self.use_alpha_beta and best >= beta:
                    return best
                alpha = max(alpha, best)
            else:
                if score < best:
                    best = score
                if self.use_alpha_beta and best <= alpha:
                    return best
                beta = min(beta, best)
        return best

    def _frontier(self, board: Board, maximizing: bool, mode: EvalMode,
                  alpha: float, beta: float) -> float:
        best = -INF if maximizing else INF
        pending: List[Board] = []

        for col in board.legal_columns():
            child = board.drop(col)
            if not child.is_terminal():
                pending.append(child)
                continue
            score = self._evaluate([child], EvalMode.for_player(child.turn))
            if maximizing:
                if score > best:
                    best = score
                if self.use_alpha_beta and best >= beta:
                    return best
            else:
                if score < best:
                    best = score
                if self.use_alpha_beta and best <= alpha:
                    return best

        for i in range(0, len(pending), self.max_batch):
            score = self._evaluate(pending[i:i + self.max_batch], mode)
            if (score > best) if maximizing else (score < best):
                best = score
        return best

    def _evaluate(self, boards: List[Board], mode: EvalMode) -> float:
        return self.batch_evaluator.evaluate(boards, mode)

    def _log_result(self, result: SearchResult):
        if not logger.isEnabledFor(logging.DEBUG):
            return
        percent = 100.0 * result.eval_time / result.elapsed if result.elapsed > 0 else 0.0
        logger.debug(
            f"depth {self.max_depth} column {result.column} score {result.score} "
            f"nodes {result.nodes} eval_calls {result.eval_calls} "
            f"boards {result.boards_evaluated} search {result.elapsed * 1000:.2f} ms "
            f"eval {result.eval_time * 1000:.2f} ms ({percent:.2f}%)"
        )
