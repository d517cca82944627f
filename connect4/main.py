import logging
from typing import Optional

from connect4.config import CONFIG, Config
from connect4.core.batch import AcceleratedBatchEvaluator, BatchEvaluator, LocalBatchEvaluator
from connect4.core.board import Board, Cell
from connect4.core.evaluator import Evaluator
from connect4.core.link import AcceleratorLink, create_link
from connect4.core.packet import PacketCodec
from connect4.core.search import SearchEngine, SearchResult
from connect4.errors import ColumnFullError, ConfigError, GameOverError, IllegalMoveError, InvalidColumnError

logger = logging.getLogger(__name__)

HUMAN = Cell.MIN
AI = Cell.MAX


def build_batch_evaluator(cfg: Config, use_accelerator: bool,
                          link: Optional[AcceleratorLink] = None) -> BatchEvaluator:
    evaluator = Evaluator(cfg.eval)
    if not use_accelerator:
        return LocalBatchEvaluator(evaluator)
    codec = PacketCodec(cfg.board.rows, cfg.board.cols, cfg.accelerator.max_boards)
    link = link or create_link(cfg.accelerator, cfg.board, evaluator)
    return AcceleratedBatchEvaluator(link, codec, cfg.accelerator.timeout_ms)


class Engine:
    """One game between a human (MIN, moves first) and the engine (MAX)."""

    def __init__(self, config: Optional[Config] = None, use_accelerator: Optional[bool] = None,
                 depth: Optional[int] = None, link: Optional[AcceleratorLink] = None):
        self.config = config or CONFIG
        if use_accelerator is None:
            use_accelerator = self.config.search.use_accelerator
        self.use_accelerator = use_accelerator
        if depth is None:
            depth = self.config.search.effective_depth(use_accelerator)
        if depth < 1:
            raise ConfigError("A playing engine needs a search depth of at least 1")
        self.search = SearchEngine(
            build_batch_evaluator(self.config, use_accelerator, link),
            depth=depth,
            use_alpha_beta=self.config.search.use_alpha_beta,
            max_batch=self.config.accelerator.max_boards,
        )
        self.board = self.new_board()
        self.last_result: Optional[SearchResult] = None

    def new_board(self, ai_first: bool = False) -> Board:
        return Board(self.config.board.rows, self.config.board.cols, turn=AI if ai_first else HUMAN)

    def reset(self, ai_first: bool = False):
        self.board = self.new_board(ai_first)
        self.last_result = None

    def is_game_over(self) -> bool:
        return self.board.is_terminal()

    def status(self) -> str:
        winner = self.board.winner()
        if winner is HUMAN:
            return "human_wins"
        if winner is AI:
            return "ai_wins"
        if self.board.is_full():
            return "draw"
        return "human_turn" if self.board.turn is HUMAN else "ai_turn"

    def play(self, column: int) -> Board:
        """Apply the human's move."""
        if self.is_game_over():
            raise IllegalMoveError("Game is already over")
        if self.board.turn is not HUMAN:
            raise IllegalMoveError("It is not the human's turn")
        try:
            self.board = self.board.drop(column, HUMAN)
        except (ColumnFullError, InvalidColumnError) as e:
            raise IllegalMoveError(str(e)) from e
        logger.info(f"Human dropped in column {column}")
        return self.board

    def ai_move(self) -> SearchResult:
        """Search for and apply the engine's move."""
        if self.is_game_over():
            raise GameOverError("Game is already over")
        if self.board.turn is not AI:
            raise IllegalMoveError("It is not the engine's turn")
        result = self.search.search_best_move(self.board)
        self.board = self.board.drop(result.column, AI)
        self.last_result = result
        logger.info(f"Engine dropped in column {result.column} (score {result.score})")
        return result
