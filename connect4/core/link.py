"""Transports that carry one packet to an accelerator and bring back its frame."""

import logging
import socket
import time
from abc import ABC, abstractmethod
from typing import Optional

from connect4.config import AcceleratorConfig, BoardConfig
from connect4.core.accelerator import AcceleratorStateMachine
from connect4.core.evaluator import Evaluator
from connect4.core.packet import RESPONSE_BITS, RESPONSE_BYTES, PacketCodec, from_bits
from connect4.errors import ConfigError, LinkTimeout, PacketError, ProtocolError

logger = logging.getLogger(__name__)


class AcceleratorLink(ABC):
    """Blocking request/response channel with a single transaction in flight.

    Implementations are not thread-safe; give each search its own link.
    """

    @abstractmethod
    def transact(self, packet: bytes, timeout_ms: int) -> bytes:
        """Send ``packet`` and return the raw response frame.

        Raises LinkTimeout when the peer is not ready in time and
        ProtocolError when the frame is missing or malformed.
        """

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SimulatedLink(AcceleratorLink):
    """In-process peer driving an AcceleratorStateMachine bit by bit."""

    def __init__(self, machine: Optional[AcceleratorStateMachine] = None, latency: float = 0.0):
        self.machine = machine or AcceleratorStateMachine()
        self.latency = latency
        self.transactions = 0

    def transact(self, packet: bytes, timeout_ms: int) -> bytes:
        deadline = time.monotonic() + timeout_ms / 1000.0
        machine = self.machine
        machine.reset()
        machine.load(packet)

        if self.latency:
            remaining = deadline - time.monotonic()
            time.sleep(max(0.0, min(self.latency, remaining)))
            if self.latency >= timeout_ms / 1000.0:
                machine.reset()
                raise LinkTimeout(f"Accelerator not ready after {timeout_ms} ms")

        while not machine.ready:
            if time.monotonic() > deadline:
                machine.reset()
                raise LinkTimeout(f"Accelerator not ready after {timeout_ms} ms")
            try:
                machine.step()
            except PacketError as e:
                raise ProtocolError(f"Accelerator rejected packet: {e}") from e

        bits = [machine.clock_out() for _ in range(RESPONSE_BITS)]
        machine.step()
        self.transactions += 1
        return from_bits(bits)


class SocketLink(AcceleratorLink):
    """TCP client for an accelerator peer served by ``interface.peer``.

    One connection per transaction, mirroring the open/transfer/close cycle
    of a physical link.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 9750):
        self.host = host
        self.port = port

    def transact(self, packet: bytes, timeout_ms: int) -> bytes:
        timeout = timeout_ms / 1000.0
        deadline = time.monotonic() + timeout
        try:
            with socket.create_connection((self.host, self.port), timeout=timeout) as sock:
                sock.sendall(packet)
                chunks = b""
                while len(chunks) < RESPONSE_BYTES:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise LinkTimeout(f"Accelerator not ready after {timeout_ms} ms")
                    sock.settimeout(remaining)
                    chunk = sock.recv(RESPONSE_BYTES - len(chunks))
                    if not chunk:
                        raise ProtocolError(
                            f"Peer closed after {len(chunks)} of {RESPONSE_BYTES} bytes"
                        )
                    chunks += chunk
                return chunks
        except LinkTimeout:
            raise
        except socket.timeout as e:
            raise LinkTimeout(f"Accelerator not ready after {timeout_ms} ms") from e
        except OSError as e:
            raise ProtocolError(f"Link failure talking to {self.host}:{self.port}: {e}") from e


def create_link(cfg: AcceleratorConfig, board_cfg: Optional[BoardConfig] = None,
                evaluator: Optional[Evaluator] = None) -> AcceleratorLink:
    board_cfg = board_cfg or BoardConfig()
    if cfg.link == "simulated":
        codec = PacketCodec(board_cfg.rows, board_cfg.cols)
        machine = AcceleratorStateMachine(codec, evaluator or Evaluator())
        return SimulatedLink(machine, latency=cfg.latency_ms / 1000.0)
    if cfg.link == "socket":
        return SocketLink(cfg.host, cfg.port)
    raise ConfigError(f"Unknown accelerator link: {cfg.link!r}")
