"""Serve the software accelerator model over TCP.

Each connection carries exactly one transaction: the client writes one
request packet and reads back one 5-byte response frame. A packet that does
not decode closes the connection without a response.
"""

import argparse
import logging
import socket
import socketserver
import threading

from connect4.config import CONFIG, configure_logging
from connect4.core.accelerator import AcceleratorStateMachine
from connect4.core.evaluator import Evaluator
from connect4.core.packet import PacketCodec
from connect4.errors import PacketError

logger = logging.getLogger(__name__)


class PeerHandler(socketserver.BaseRequestHandler):
    def handle(self):
        server = self.server
        size = server.codec.packet_size
        data = b""
        self.request.settimeout(server.read_timeout)
        while len(data) < size:
            try:
                chunk = self.request.recv(size - len(data))
            except socket.timeout:
                logger.warning(f"Client {self.client_address} stalled after {len(data)} bytes")
                return
            if not chunk:
                logger.warning(f"Client {self.client_address} sent {len(data)} of {size} bytes")
                return
            data += chunk

        # The hardware has a single state machine; so does the server.
        with server.lock:
            try:
                frame = server.machine.process(data)
            except PacketError as e:
                logger.warning(f"Rejected packet from {self.client_address}: {e}")
                server.machine.reset()
                return
        server.transactions += 1
        self.request.sendall(frame)


class PeerServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address, codec=None, evaluator=None, read_timeout: float = 5.0):
        self.codec = codec or PacketCodec(CONFIG.board.rows, CONFIG.board.cols)
        self.machine = AcceleratorStateMachine(self.codec, evaluator or Evaluator(CONFIG.eval))
        self.lock = threading.Lock()
        self.read_timeout = read_timeout
        self.transactions = 0
        super().__init__(address, PeerHandler)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Software accelerator peer.")
    parser.add_argument("--host", default=CONFIG.accelerator.host)
    parser.add_argument("--port", type=int, default=CONFIG.accelerator.port)
    parser.add_argument("--log-level", default=CONFIG.log_level)
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    with PeerServer((args.host, args.port)) as server:
        logger.info(f"Accelerator peer listening on {args.host}:{args.port}")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")


if __name__ == "__main__":
    main()
