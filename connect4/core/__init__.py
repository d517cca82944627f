"""Core components: board, evaluator, wire codec, accelerator model, links and search."""

from .board import Board, Cell
from .evaluator import EvalMode, Evaluator, select_best
from .packet import PacketCodec
from .accelerator import AcceleratorStateMachine
from .link import AcceleratorLink, SimulatedLink, SocketLink, create_link
from .batch import AcceleratedBatchEvaluator, BatchEvaluator, LocalBatchEvaluator
from .search import SearchEngine, SearchResult
