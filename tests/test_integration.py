"""
Integration test suite for the Connect Four engine.

Tests components working together end-to-end:
- Full game simulations (engine vs engine, local and accelerated)
- Socket accelerator peer + SocketLink
- Terminal game loop
- FastAPI REST API
"""

import socket
import threading
import time
from unittest.mock import patch

import pytest

from connect4.config import Config
from connect4.core.batch import AcceleratedBatchEvaluator, LocalBatchEvaluator
from connect4.core.board import Board, Cell
from connect4.core.evaluator import EvalMode, Evaluator
from connect4.core.link import SimulatedLink, SocketLink
from connect4.core.packet import PacketCodec
from connect4.core.search import SearchEngine
from connect4.errors import LinkTimeout, ProtocolError
from connect4.main import Engine
from interface.cli import apply_args, build_parser, play
from interface.peer import PeerServer


def free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def peer():
    server = PeerServer(("127.0.0.1", 0), read_timeout=1.0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


# ════════════════════════════════════════════════════════════════════════════
#  ENGINE VS ENGINE: FULL GAME SIMULATIONS
# ════════════════════════════════════════════════════════════════════════════


class TestFullGame:
    """The engine can play complete games without crashing."""

    def play_out(self, max_engine, min_engine, board=None, max_moves=42):
        board = board or Board()
        moves = 0
        while not board.is_terminal() and moves < max_moves:
            engine = max_engine if board.turn is Cell.MAX else min_engine
            result = engine.search_best_move(board)
            assert result.column in board.legal_columns()
            board = board.drop(result.column)
            moves += 1
        return board, moves

    def test_engine_vs_engine_completes(self):
        a = SearchEngine(LocalBatchEvaluator(), depth=2)
        b = SearchEngine(LocalBatchEvaluator(), depth=3)
        board, moves = self.play_out(a, b)
        assert board.is_terminal()
        assert 7 <= moves <= 42

    def test_accelerated_game_matches_local_game(self):
        local = SearchEngine(LocalBatchEvaluator(), depth=3)
        accel = SearchEngine(AcceleratedBatchEvaluator(SimulatedLink(), PacketCodec(), 1000), depth=3)
        local_board, _ = self.play_out(local, local, max_moves=12)
        accel_board, _ = self.play_out(accel, accel, max_moves=12)
        assert accel_board == local_board

    def test_session_game(self):
        engine = Engine(Config(), depth=2)
        while not engine.is_game_over():
            if engine.status() == "human_turn":
                engine.play(engine.board.legal_columns()[0])
            else:
                engine.ai_move()
        assert engine.status() in ("human_wins", "ai_wins", "draw")


# ════════════════════════════════════════════════════════════════════════════
#  SOCKET ACCELERATOR PEER
# ════════════════════════════════════════════════════════════════════════════


class TestSocketPeer:
    def test_round_trip(self, peer):
        host, port = peer.server_address
        link = SocketLink(host, port)
        codec = PacketCodec()
        batch = [Board().drop(c, Cell.MAX) for c in range(7)]
        raw = link.transact(codec.encode(batch, EvalMode.MAXIMIZE), 2000)
        assert len(raw) == 5
        assert codec.parse_response(raw) == 3
        assert peer.transactions == 1

    def test_socket_search_agrees_with_local(self, peer):
        host, port = peer.server_address
        board = Board().drop(3).drop(3).drop(2)
        remote = SearchEngine(AcceleratedBatchEvaluator(SocketLink(host, port), timeout_ms=2000), depth=3)
        local = SearchEngine(LocalBatchEvaluator(), depth=3)
        a = remote.search_best_move(board)
        b = local.search_best_move(board)
        assert (a.column, a.score) == (b.column, b.score)
        assert peer.transactions == a.eval_calls

    def test_corrupt_packet_gets_no_response(self, peer):
        host, port = peer.server_address
        packet = bytearray(PacketCodec().encode([Board()], EvalMode.MAXIMIZE))
        packet[1] = 9
        with pytest.raises(ProtocolError):
            SocketLink(host, port).transact(bytes(packet), 2000)

    def test_unreachable_peer_falls_back_to_sentinel(self):
        evaluator = AcceleratedBatchEvaluator(SocketLink("127.0.0.1", free_port()), timeout_ms=500)
        assert evaluator.evaluate([Board()], EvalMode.MINIMIZE) == float("inf")
        assert evaluator.stats.failures == 1

    def test_silent_peer_times_out(self):
        listener = socket.socket()
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        host, port = listener.getsockname()
        try:
            start = time.monotonic()
            with pytest.raises(LinkTimeout):
                SocketLink(host, port).transact(PacketCodec().encode([Board()], EvalMode.MAXIMIZE), 100)
            assert time.monotonic() - start < 2.0
        finally:
            listener.close()

    def test_peer_uses_evaluator(self):
        server = PeerServer(("127.0.0.1", 0), evaluator=Evaluator())
        try:
            assert server.codec.packet_size == 79
            assert server.machine.evaluator is not None
        finally:
            server.server_close()


# ════════════════════════════════════════════════════════════════════════════
#  TERMINAL GAME LOOP
# ════════════════════════════════════════════════════════════════════════════


class TestCLI:
    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.depth is None
        assert args.accelerator is None
        assert args.ai_first is False

    def test_apply_args(self):
        cfg = Config()
        args = build_parser().parse_args(["--link", "socket", "--port", "9999", "--timeout-ms", "250"])
        apply_args(args, cfg)
        assert cfg.accelerator.link == "socket"
        assert cfg.accelerator.port == 9999
        assert cfg.accelerator.timeout_ms == 250

    def test_bad_input_then_quit(self):
        engine = Engine(Config(), depth=1)
        inputs = iter(["x", "9", "0", "q"])
        output = []
        outcome = play(engine, input_fn=lambda prompt: next(inputs), output_fn=output.append)
        assert outcome is None
        assert output[0] == Board().pretty()
        assert "Please enter a column number." in output
        assert any(line.startswith("Illegal move") for line in output)
        assert any(line.startswith("Engine plays:") for line in output)
        assert engine.board.piece_count() == 2

    def test_game_to_completion(self):
        engine = Engine(Config(), depth=2)
        output = []

        def human(prompt):
            return str(engine.board.legal_columns()[0])

        outcome = play(engine, input_fn=human, output_fn=output.append)
        assert outcome in ("human_wins", "ai_wins", "draw")
        assert output[-1] in ("You win!", "Engine wins!", "It's a tie!")


# ════════════════════════════════════════════════════════════════════════════
#  REST API
# ════════════════════════════════════════════════════════════════════════════


class TestAPIIntegration:
    """Tests FastAPI REST API endpoints."""

    @pytest.fixture(autouse=True)
    def setup_client(self):
        from fastapi.testclient import TestClient
        from interface.api import app, engine

        self.client = TestClient(app)
        self.engine = engine
        engine.reset()

    def test_get_board_initial(self):
        response = self.client.get("/board")
        assert response.status_code == 200
        data = response.json()
        assert data["rows"] == ["......."] * 6
        assert data["turn"] == "MIN"
        assert data["legal_columns"] == list(range(7))
        assert data["status"] == "human_turn"
        assert data["is_game_over"] is False

    def test_post_move_valid(self):
        response = self.client.post("/move", json={"column": 3})
        assert response.status_code == 200
        data = response.json()
        assert data["rows"][-1] == "...O..."
        assert data["status"] == "ai_turn"

    def test_post_move_out_of_range(self):
        response = self.client.post("/move", json={"column": 12})
        assert response.status_code == 400

    def test_post_move_wrong_turn(self):
        self.client.post("/move", json={"column": 3})
        response = self.client.post("/move", json={"column": 3})
        assert response.status_code == 400

    def test_search_plays_move(self):
        self.client.post("/move", json={"column": 3})
        response = self.client.post("/search", json={"depth": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["column"] in range(7)
        assert data["status"] == "human_turn"
        assert data["nodes"] > 0
        assert self.engine.board.piece_count() == 2

    def test_search_with_accelerator(self):
        self.client.post("/move", json={"column": 0})
        response = self.client.post("/search", json={"depth": 2, "use_accelerator": True})
        assert response.status_code == 200
        assert response.json()["eval_calls"] > 0

    def test_search_on_human_turn(self):
        response = self.client.post("/search", json={"depth": 1})
        assert response.status_code == 400

    def test_search_bad_depth(self):
        self.client.post("/move", json={"column": 0})
        response = self.client.post("/search", json={"depth": 0})
        assert response.status_code == 400

    def test_search_depth_over_limit(self):
        from connect4.config import CONFIG

        self.client.post("/move", json={"column": 0})
        response = self.client.post("/search", json={"depth": CONFIG.search.depth_limit + 1})
        assert response.status_code == 400
        assert self.engine.board.piece_count() == 1

    def test_search_depth_is_per_request(self):
        from interface.api import _batch_evaluators

        depth = self.engine.search.max_depth
        evaluator = self.engine.search.batch_evaluator
        for column, use_accelerator in ((0, True), (1, False), (2, True)):
            self.client.post("/move", json={"column": column})
            response = self.client.post("/search", json={"depth": 1, "use_accelerator": use_accelerator})
            assert response.status_code == 200
        assert self.engine.search.max_depth == depth
        assert self.engine.search.batch_evaluator is evaluator
        assert set(_batch_evaluators) == {False, True}

    def test_search_game_over_returns_400(self):
        self.engine.board = Board.from_rows(["." * 7] * 2 + ["O......"] * 4, turn=Cell.MAX)
        response = self.client.post("/search", json={"depth": 1})
        assert response.status_code == 400

    def test_reset_board(self):
        self.client.post("/move", json={"column": 3})
        response = self.client.post("/reset")
        assert response.status_code == 200
        assert response.json()["rows"] == ["......."] * 6

    def test_full_api_game_flow(self):
        for _ in range(25):
            state = self.client.get("/board").json()
            if state["is_game_over"]:
                break
            if state["status"] == "human_turn":
                r = self.client.post("/move", json={"column": state["legal_columns"][0]})
            else:
                r = self.client.post("/search", json={"depth": 2})
            assert r.status_code == 200
        state = self.client.get("/board").json()
        assert state["status"] in ("human_turn", "ai_turn", "human_wins", "ai_wins", "draw")

    def test_main_serves_configured_address(self):
        from connect4.config import CONFIG
        from interface import api

        with patch("uvicorn.run") as run, patch("interface.api.configure_logging"):
            api.main()
        run.assert_called_once_with(api.app, host=CONFIG.ui.api_host, port=CONFIG.ui.api_port)
