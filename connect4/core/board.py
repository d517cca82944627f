"""Immutable Connect Four board with gravity-based moves."""

from enum import IntEnum
from typing import Iterable, List, Optional, Tuple

from connect4.errors import ColumnFullError, InvalidCellError, InvalidColumnError, PreconditionError

ROWS = 6
COLS = 7
CONNECT = 4


class Cell(IntEnum):
    # Values double as the 2-bit wire codes.
    EMPTY = 0
    MAX = 1
    MIN = 2

    def opponent(self) -> "Cell":
        if self is Cell.MAX:
            return Cell.MIN
        if self is Cell.MIN:
            return Cell.MAX
        raise PreconditionError("EMPTY has no opponent")

    @property
    def symbol(self) -> str:
        return SYMBOLS[self]


SYMBOLS = {Cell.EMPTY: ".", Cell.MAX: "X", Cell.MIN: "O"}
_FROM_SYMBOL = {v: k for k, v in SYMBOLS.items()}

# Line directions as (delta_row, delta_col): horizontal, vertical, "\" and "/".
DIRECTIONS = ((0, 1), (1, 0), (1, 1), (-1, 1))


def line_windows(rows: int, cols: int, length: int = CONNECT) -> List[Tuple[int, ...]]:
    """Flat cell indices of every contiguous run of ``length`` cells."""
    windows = []
    for row in range(rows):
        for col in range(cols):
            for dr, dc in DIRECTIONS:
                end_r = row + dr * (length - 1)
                end_c = col + dc * (length - 1)
                if not (0 <= end_r < rows and 0 <= end_c < cols):
                    continue
                windows.append(tuple((row + i * dr) * cols + col + i * dc for i in range(length)))
    return windows


_WINDOW_CACHE = {}


def windows_for(rows: int, cols: int) -> List[Tuple[int, ...]]:
    key = (rows, cols)
    if key not in _WINDOW_CACHE:
        _WINDOW_CACHE[key] = line_windows(rows, cols)
    return _WINDOW_CACHE[key]


class Board:
    """Grid of cells plus the side to move. Row 0 is the top row.

    Boards are never modified after construction; ``drop`` returns a new
    board so every search branch owns its own copy.
    """

    __slots__ = ("rows", "cols", "_cells", "turn")

    def __init__(self, rows: int = ROWS, cols: int = COLS, cells: Optional[Iterable[int]] = None,
                 turn: Cell = Cell.MIN):
        self.rows = rows
        self.cols = cols
        if cells is None:
            self._cells = (Cell.EMPTY,) * (rows * cols)
        else:
            try:
                self._cells = tuple(Cell(c) for c in cells)
            except ValueError as e:
                raise PreconditionError(f"Invalid cell value: {e}") from e
            if len(self._cells) != rows * cols:
                raise PreconditionError(f"Expected {rows * cols} cells, got {len(self._cells)}")
        if turn not in (Cell.MAX, Cell.MIN):
            raise PreconditionError("Turn must be MAX or MIN")
        self.turn = Cell(turn)

    @classmethod
    def from_rows(cls, lines: Iterable[str], turn: Optional[Cell] = None) -> "Board":
        """Parse rows of ``.``/``X``/``O`` (top row first).

        When ``turn`` is omitted it is inferred from the piece counts, MIN
        having moved first.
        """
        lines = [line.strip() for line in lines if line.strip()]
        if not lines:
            raise PreconditionError("No rows given")
        cols = len(lines[0])
        cells = []
        for line in lines:
            if len(line) != cols:
                raise PreconditionError("Rows have different lengths")
            for ch in line:
                if ch not in _FROM_SYMBOL:
                    raise PreconditionError(f"Unknown cell symbol {ch!r}")
                cells.append(_FROM_SYMBOL[ch])
        if turn is None:
            turn = infer_turn(cells)
        board = cls(len(lines), cols, cells, turn)
        board.check_gravity()
        return board

    # ---- queries ----

    @property
    def cells(self) -> Tuple[Cell, ...]:
        return self._cells

    @property
    def center_column(self) -> int:
        return self.cols // 2

    def cell(self, row: int, col: int) -> Cell:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise InvalidCellError(row, col)
        return self._cells[row * self.cols + col]

    def landing_row(self, column: int) -> Optional[int]:
        """Lowest empty row of ``column``, or None when it is full."""
        if not 0 <= column < self.cols:
            raise InvalidColumnError(column, self.cols)
        for row in range(self.rows - 1, -1, -1):
            if self._cells[row * self.cols + column] is Cell.EMPTY:
                return row
        return None

    def legal_columns(self) -> List[int]:
        return [c for c in range(self.cols) if self._cells[c] is Cell.EMPTY]

    def is_full(self) -> bool:
        return all(self._cells[c] is not Cell.EMPTY for c in range(self.cols))

    def winner(self) -> Optional[Cell]:
        cells = self._cells
        for window in windows_for(self.rows, self.cols):
            first = cells[window[0]]
            if first is Cell.EMPTY:
                continue
            if all(cells[i] is first for i in window[1:]):
                return first
        return None

    def is_terminal(self) -> bool:
        return self.winner() is not None or self.is_full()

    def piece_count(self, player: Optional[Cell] = None) -> int:
        if player is None:
            return sum(1 for c in self._cells if c is not Cell.EMPTY)
        return sum(1 for c in self._cells if c is player)

    def check_gravity(self):
        """Raise if any piece sits above an empty cell."""
        for col in range(self.cols):
            seen_piece = False
            for row in range(self.rows):
                occupied = self._cells[row * self.cols + col] is not Cell.EMPTY
                if seen_piece and not occupied:
                    raise PreconditionError(f"Floating piece in column {col}")
                seen_piece = seen_piece or occupied

    # ---- transitions ----

    def drop(self, column: int, player: Optional[Cell] = None) -> "Board":
        """Return the successor with ``player``'s piece in the lowest empty cell."""
        row = self.landing_row(column)
        if row is None:
            raise ColumnFullError(column)
        player = self.turn if player is None else Cell(player)
        if player is Cell.EMPTY:
            raise PreconditionError("Cannot drop an EMPTY piece")
        cells = list(self._cells)
        cells[row * self.cols + column] = player
        return Board._successor(self.rows, self.cols, tuple(cells), player.opponent())

    @classmethod
    def _successor(cls, rows: int, cols: int, cells: Tuple[Cell, ...], turn: Cell) -> "Board":
        # Hot path of the search: cells are already validated Cell members.
        board = cls.__new__(cls)
        board.rows = rows
        board.cols = cols
        board._cells = cells
        board.turn = turn
        return board

    # ---- dunder ----

    def __eq__(self, other):
        if not isinstance(other, Board):
            return NotImplemented
        return (self.rows, self.cols, self.turn, self._cells) == (other.rows, other.cols, other.turn, other._cells)

    def __hash__(self):
        return hash((self.rows, self.cols, self.turn, self._cells))

    def __str__(self):
        lines = []
        for row in range(self.rows):
            start = row * self.cols
            lines.append("".join(c.symbol for c in self._cells[start:start + self.cols]))
        return "\n".join(lines)

    def __repr__(self):
        return f"Board({self.rows}x{self.cols}, turn={self.turn.name}, pieces={self.piece_count()})"

    def pretty(self) -> str:
        """Framed rendering with column numbers, used by the terminal game."""
        header = " " + " ".join(str(c) for c in range(self.cols))
        body = [" " + " ".join(line) for line in str(self).splitlines()]
        return "\n".join([header] + body)


def infer_turn(cells: Iterable[int], first: Cell = Cell.MIN) -> Cell:
    """Side to move, given which side opened the game."""
    first = Cell(first)
    second = first.opponent()
    cells = list(cells)
    n_first = sum(1 for c in cells if c == first)
    n_second = sum(1 for c in cells if c == second)
    return second if n_first > n_second else first
