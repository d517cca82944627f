"""Exception hierarchy shared by the board, codec, links and search."""


class Connect4Error(Exception):
    """Base class for every error raised by this package."""


class PreconditionError(Connect4Error, ValueError):
    """A caller asked for something the current state does not allow."""


class ColumnFullError(PreconditionError):
    def __init__(self, column: int):
        super().__init__(f"Column {column} is full")
        self.column = column


class InvalidColumnError(PreconditionError):
    def __init__(self, column: int, cols: int):
        super().__init__(f"Column {column} is outside 0..{cols - 1}")
        self.column = column


class InvalidCellError(PreconditionError, IndexError):
    def __init__(self, row: int, col: int):
        super().__init__(f"Invalid cell coordinates ({row}, {col})")
        self.row = row
        self.col = col


class EmptyBatchError(PreconditionError):
    def __init__(self):
        super().__init__("Cannot evaluate an empty batch")


class IllegalMoveError(PreconditionError):
    pass


class GameOverError(PreconditionError):
    pass


class PacketError(Connect4Error, ValueError):
    """A request packet cannot be built or does not parse."""


class ProtocolError(Connect4Error):
    """A response frame is malformed or too short."""


class LinkTimeout(Connect4Error, TimeoutError):
    """The accelerator did not signal readiness before the deadline."""


class ConfigError(Connect4Error, ValueError):
    pass
