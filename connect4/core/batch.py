"""Batch evaluation: score up to seven sibling boards with a single call."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from connect4.core.board import Board
from connect4.core.evaluator import EvalMode, Evaluator, select_best
from connect4.core.link import AcceleratorLink
from connect4.core.packet import PacketCodec
from connect4.errors import EmptyBatchError, LinkTimeout, ProtocolError

logger = logging.getLogger(__name__)

INF = float("inf")


def sentinel(mode: EvalMode) -> float:
    """Worst possible value for the side the batch is evaluated for."""
    return -INF if mode == EvalMode.MAXIMIZE else INF


@dataclass
class EvalStats:
    calls: int = 0
    boards: int = 0
    failures: int = 0
    seconds: float = 0.0

    def reset(self):
        self.calls = 0
        self.boards = 0
        self.failures = 0
        self.seconds = 0.0


class BatchEvaluator(ABC):
    def __init__(self):
        self.stats = EvalStats()

    def evaluate(self, boards: Sequence[Board], mode: EvalMode):
        """Score ``boards`` as one unit: the max (or min) of their scores."""
        if not boards:
            raise EmptyBatchError()
        start = time.perf_counter()
        try:
            return self._evaluate(boards, mode)
        finally:
            self.stats.calls += 1
            self.stats.boards += len(boards)
            self.stats.seconds += time.perf_counter() - start

    @abstractmethod
    def _evaluate(self, boards: Sequence[Board], mode: EvalMode):
        ...


class LocalBatchEvaluator(BatchEvaluator):
    def __init__(self, evaluator: Optional[Evaluator] = None):
        super().__init__()
        self.evaluator = evaluator or Evaluator()

    def _evaluate(self, boards, mode):
        scores = [self.evaluator.evaluate(b) for b in boards]
        return select_best(scores, mode)[1]


class AcceleratedBatchEvaluator(BatchEvaluator):
    """Delegates each batch to an accelerator over an AcceleratorLink.

    A timeout or a corrupt response does not abort the search: the batch is
    scored with the sentinel for its mode instead.
    """

    def __init__(self, link: AcceleratorLink, codec: Optional[PacketCodec] = None,
                 timeout_ms: int = 5000):
        super().__init__()
        self.link = link
        self.codec = codec or PacketCodec()
        self.timeout_ms = timeout_ms

    def _evaluate(self, boards, mode):
        packet = self.codec.encode(boards, mode)
        try:
            raw = self.link.transact(packet, self.timeout_ms)
            return self.codec.parse_response(raw)
        except LinkTimeout as e:
            logger.warning(f"Accelerator timeout, using sentinel for {len(boards)} board(s): {e}")
        except ProtocolError as e:
            logger.warning(f"Bad accelerator response, using sentinel: {e}")
        self.stats.failures += 1
        return sentinel(mode)
