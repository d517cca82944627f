"""Software model of the accelerator side of the link.

The peer is a deterministic state machine::

    IDLE -> RECEIVE -> LATCH -> ENABLE -> AWAIT_ALL -> REDUCE -> SEND -> DONE -> IDLE

Bits are clocked in one at a time until a whole packet has arrived, the
packet is split into mode/count/boards, one evaluator unit per board is
started, their scores are folded with max or min, and the result is
clocked out as a 33-bit frame (one framing bit, then 32 score bits).
"""

import logging
from enum import Enum
from typing import List, Optional

from connect4.core.board import Board
from connect4.core.evaluator import EvalMode, Evaluator, select_best
from connect4.core.packet import MAX_BOARDS, RESPONSE_BITS, PacketCodec, from_bits, to_bits
from connect4.errors import PacketError, ProtocolError

logger = logging.getLogger(__name__)


class State(Enum):
    IDLE = "idle"
    RECEIVE = "receive"
    LATCH = "latch"
    ENABLE = "enable"
    AWAIT_ALL = "await_all"
    REDUCE = "reduce"
    SEND = "send"
    DONE = "done"


class BoardEvaluatorUnit:
    """One of the seven scoring units. Scores a single board when enabled."""

    def __init__(self, index: int, evaluator: Evaluator):
        self.index = index
        self.evaluator = evaluator
        self.enabled = False
        self.stable = False
        self.score: Optional[int] = None
        self._board: Optional[Board] = None

    def start(self, board: Board):
        self._board = board
        self.enabled = True
        self.stable = False
        self.score = None

    def tick(self):
        if not self.enabled or self.stable:
            return
        self.score = self.evaluator.evaluate(self._board)
        self.stable = True

    def clear(self):
        self.enabled = False
        self.stable = False
        self.score = None
        self._board = None


class AcceleratorStateMachine:
    def __init__(self, codec: Optional[PacketCodec] = None, evaluator: Optional[Evaluator] = None):
        self.codec = codec or PacketCodec()
        self.evaluator = evaluator or Evaluator()
        self.units = [BoardEvaluatorUnit(i, self.evaluator) for i in range(MAX_BOARDS)]
        self.reset()

    def reset(self):
        self.state = State.IDLE
        self._rx_bits: List[int] = []
        self._tx_bits: List[int] = []
        self.mode: Optional[EvalMode] = None
        self.count = 0
        self._boards: List[Board] = []
        self.result: Optional[int] = None
        for unit in self.units:
            unit.clear()

    @property
    def ready(self) -> bool:
        """Out-of-band readiness signal: a result is waiting to be clocked out."""
        return self.state is State.SEND

    @property
    def enabled_units(self) -> List[BoardEvaluatorUnit]:
        return [u for u in self.units if u.enabled]

    # ---- input ----

    def clock_in(self, bit: int):
        if self.state is State.IDLE:
            self.state = State.RECEIVE
        elif self.state is not State.RECEIVE:
            raise ProtocolError(f"Cannot receive while in state {self.state.name}")
        self._rx_bits.append(1 if bit else 0)
        if len(self._rx_bits) == self.codec.packet_size * 8:
            self.state = State.LATCH

    def load(self, packet: bytes):
        for bit in to_bits(packet):
            self.clock_in(bit)

    # ---- processing ----

    def step(self) -> State:
        """Advance one state; returns the new state."""
        state = self.state
        if state is State.LATCH:
            self._latch()
        elif state is State.ENABLE:
            # Boards occupy the trailing slots, so do the units that score them.
            first = MAX_BOARDS - self.count
            for unit, board in zip(self.units[first:], self._boards):
                unit.start(board)
            self.state = State.AWAIT_ALL
        elif state is State.AWAIT_ALL:
            for unit in self.enabled_units:
                unit.tick()
            if all(u.stable for u in self.enabled_units):
                self.state = State.REDUCE
        elif state is State.REDUCE:
            scores = [u.score for u in self.enabled_units]
            _, self.result = select_best(scores, self.mode)
            self._tx_bits = to_bits(self.codec.frame_response(self.result))[:RESPONSE_BITS]
            self.state = State.SEND
        elif state is State.DONE:
            self.reset()
        # IDLE, RECEIVE and SEND wait on the link
        return self.state

    def _latch(self):
        packet = from_bits(self._rx_bits)
        try:
            self.mode, self.count, self._boards = self.codec.decode(packet)
        except PacketError:
            logger.warning("Discarding corrupt packet")
            self.reset()
            raise
        self.state = State.ENABLE

    def run_until_ready(self, max_steps: int = 64):
        steps = 0
        while not self.ready:
            if self.state in (State.IDLE, State.RECEIVE):
                raise ProtocolError(f"No complete packet to process (state {self.state.name})")
            self.step()
            steps += 1
            if steps > max_steps:
                raise ProtocolError("Accelerator did not settle")

    # ---- output ----

    def clock_out(self) -> int:
        if self.state is not State.SEND:
            raise ProtocolError(f"No response to send in state {self.state.name}")
        bit = self._tx_bits.pop(0)
        if not self._tx_bits:
            self.state = State.DONE
        return bit

    def process(self, packet: bytes) -> bytes:
        """Run one whole transaction and return the 5-byte response frame."""
        if self.state is not State.IDLE:
            self.reset()
        self.load(packet)
        self.run_until_ready()
        bits = [self.clock_out() for _ in range(RESPONSE_BITS)]
        self.step()
        return from_bits(bits)
