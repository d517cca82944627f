"""Wire format between a batch evaluator and an accelerator peer.

Request packet (79 bytes for a 6x7 board)::

    byte 0      mode   (1 = maximize, 0 = minimize)
    byte 1      count  (1..7 boards actually present)
    bytes 2..   7 board slots, the real boards in the trailing ``count``

Each slot holds 4 reserved zero bits followed by one 2-bit code per cell in
row-major order from the top row (``00`` empty, ``01`` MAX, ``10`` MIN),
padded with zero bits up to a whole byte.

Response frame: 33 bits, MSB first. The first bit is a framing bit and is
dropped; the following 32 bits are a signed big-endian score. The frame is
padded with zero bits to 5 bytes.
"""

from typing import Iterable, List, Sequence, Tuple

from connect4.core.board import COLS, ROWS, Board, Cell, infer_turn
from connect4.core.evaluator import EvalMode
from connect4.errors import EmptyBatchError, PacketError, ProtocolError

MAX_BOARDS = 7
RESERVED_BITS = 4
BITS_PER_CELL = 2
HEADER_BYTES = 2
RESPONSE_BITS = 33
RESPONSE_BYTES = 5
SCORE_BYTES = 4

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


def to_bits(data: bytes) -> List[int]:
    """Expand bytes into bits, most significant bit first."""
    return [(byte >> shift) & 1 for byte in data for shift in range(7, -1, -1)]


def from_bits(bits: Iterable[int]) -> bytes:
    """Pack bits (MSB first) into bytes, zero-filling the last byte."""
    out = bytearray()
    acc = 0
    n = 0
    for bit in bits:
        acc = (acc << 1) | (1 if bit else 0)
        n += 1
        if n == 8:
            out.append(acc)
            acc = 0
            n = 0
    if n:
        out.append(acc << (8 - n))
    return bytes(out)


class PacketCodec:
    def __init__(self, rows: int = ROWS, cols: int = COLS, max_boards: int = MAX_BOARDS):
        if not 1 <= max_boards <= MAX_BOARDS:
            raise PacketError(f"max_boards must be within 1..{MAX_BOARDS}")
        self.rows = rows
        self.cols = cols
        self.max_boards = max_boards
        self.slot_bits = RESERVED_BITS + BITS_PER_CELL * rows * cols
        self.slot_bytes = (self.slot_bits + 7) // 8
        self.pad_bits = self.slot_bytes * 8 - self.slot_bits
        # The packet always carries all seven slots, whatever the batch capacity.
        self.packet_size = HEADER_BYTES + MAX_BOARDS * self.slot_bytes

    # ---- request ----

    def encode(self, batch: Sequence[Board], mode: EvalMode) -> bytes:
        count = len(batch)
        if count == 0:
            raise EmptyBatchError()
        if count > self.max_boards:
            raise PacketError(f"Batch of {count} boards exceeds capacity {self.max_boards}")

        packet = bytearray(self.packet_size)
        packet[0] = 1 if mode == EvalMode.MAXIMIZE else 0
        packet[1] = count
        # Right-align: leading slots stay zero.
        offset = HEADER_BYTES + (MAX_BOARDS - count) * self.slot_bytes
        for board in batch:
            packet[offset:offset + self.slot_bytes] = self.encode_board(board)
            offset += self.slot_bytes
        return bytes(packet)

    def encode_board(self, board: Board) -> bytes:
        if (board.rows, board.cols) != (self.rows, self.cols):
            raise PacketError(
                f"Board is {board.rows}x{board.cols}, codec expects {self.rows}x{self.cols}"
            )
        value = 0
        for cell in board.cells:
            value = (value << BITS_PER_CELL) | int(cell)
        # reserved bits are the implicit leading zeros
        value <<= self.pad_bits
        return value.to_bytes(self.slot_bytes, "big")

    def decode(self, packet: bytes, first: Cell = Cell.MIN) -> Tuple[EvalMode, int, List[Board]]:
        """Unpack a request. The wire carries no turn, so each board's side to
        move is rebuilt from its piece counts and ``first``, the side that
        opened the game.
        """
        if len(packet) != self.packet_size:
            raise PacketError(f"Packet must be {self.packet_size} bytes, got {len(packet)}")
        mode_byte, count = packet[0], packet[1]
        if mode_byte not in (0, 1):
            raise PacketError(f"Invalid mode byte {mode_byte}")
        if not 1 <= count <= MAX_BOARDS:
            raise PacketError(f"Invalid board count {count}")

        boards = []
        for slot in range(MAX_BOARDS):
            start = HEADER_BYTES + slot * self.slot_bytes
            chunk = packet[start:start + self.slot_bytes]
            if slot < MAX_BOARDS - count:
                if any(chunk):
                    raise PacketError(f"Padding slot {slot} is not zero")
                continue
            boards.append(self.decode_board(chunk, first))
        return EvalMode(mode_byte), count, boards

    def decode_board(self, chunk: bytes, first: Cell = Cell.MIN) -> Board:
        value = int.from_bytes(chunk, "big")
        if value >> (self.slot_bytes * 8 - RESERVED_BITS):
            raise PacketError("Reserved bits are set")
        if value & ((1 << self.pad_bits) - 1):
            raise PacketError("Slot padding bits are set")
        value >>= self.pad_bits
        n = self.rows * self.cols
        cells = []
        for i in range(n):
            code = (value >> (BITS_PER_CELL * (n - 1 - i))) & 0b11
            if code == 0b11:
                raise PacketError(f"Invalid cell code at index {i}")
            cells.append(Cell(code))
        return Board(self.rows, self.cols, cells, infer_turn(cells, first))

    # ---- response ----

    @staticmethod
    def parse_response(raw: bytes) -> int:
        """Recover the signed score from a 33-bit frame (5 bytes).

        Four bytes are taken as an already realigned score.
        """
        if raw is None:
            raise ProtocolError("No response")
        raw = bytes(raw)
        if len(raw) == SCORE_BYTES:
            return int.from_bytes(raw, "big", signed=True)
        if len(raw) != RESPONSE_BYTES:
            raise ProtocolError(f"Expected {RESPONSE_BYTES} response bytes, got {len(raw)}")
        # Drop the framing bit and shift the rest left by one across byte boundaries.
        realigned = bytes(
            ((raw[i] << 1) | (raw[i + 1] >> 7)) & 0xFF for i in range(SCORE_BYTES)
        )
        return int.from_bytes(realigned, "big", signed=True)

    @staticmethod
    def frame_response(score: int) -> bytes:
        score = int(score)
        if not INT32_MIN <= score <= INT32_MAX:
            raise PacketError(f"Score {score} does not fit in 32 bits")
        bits = [0] + to_bits(score.to_bytes(SCORE_BYTES, "big", signed=True))
        return from_bits(bits)
