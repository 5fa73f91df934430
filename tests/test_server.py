"""
WebSocket transport tests. Messages are fed straight into SessionServer with
an in-memory connection; no socket is opened.
"""

import asyncio
import json

import pytest

from lionhunt.server import SessionServer, handle_console_command


class FakeConnection:
    """Stands in for a websockets ServerConnection."""

    def __init__(self):
        self.remote_address = ("127.0.0.1", 50000)
        self.sent = []

    async def send(self, message):
        self.sent.append(json.loads(message))

    def types(self):
        return [m["type"] for m in self.sent]


@pytest.fixture
def server():
    return SessionServer(animation_delay=0)


@pytest.fixture
def connection(server):
    ws = FakeConnection()
    asyncio.run(server.register(ws))
    return ws


def send(server, ws, message):
    ws.sent.clear()
    raw = message if isinstance(message, str) else json.dumps(message)
    asyncio.run(server.handle_message(ws, raw))
    return ws.sent


class TestSessionServer:

    def test_register_greets_client(self, server, connection):
        assert connection.types() == ["connection_confirmed", "game_state"]
        greeting = connection.sent[0]
        assert greeting["session_id"] == "session-1"
        assert greeting["render_config"]["node_radius"] == 18
        assert greeting["graphs"][0]["name"] == "example"

    def test_each_connection_has_its_own_session(self, server, connection):
        other = FakeConnection()
        asyncio.run(server.register(other))

        send(server, connection, {"type": "load_catalog_graph", "name": "example"})

        assert len(server.get_session(connection).state.graph.nodes) == 8
        assert len(server.get_session(other).state.graph.nodes) == 0

    def test_full_game_flow(self, server, connection):
        messages = send(server, connection, {"type": "load_catalog_graph", "name": "example"})
        assert [m["type"] for m in messages] == ["game_state"]

        messages = send(server, connection, {"type": "place_lion", "node": 2})
        assert messages[0] == {"type": "lion_placed", "lion_id": 1, "node": "2"}
        assert messages[1]["type"] == "game_state"

        messages = send(server, connection, {"type": "start"})
        assert messages[0]["started"] is True
        assert "2" not in messages[0]["contaminated"]

        messages = send(server, connection, {"type": "queue_from_node", "from": "2", "to": "1"})
        assert messages[0]["queued_move_counts"] == [{"from": "2", "to": "1", "count": 1}]

        messages = send(server, connection, {"type": "execute_turn"})
        assert [m["type"] for m in messages] == ["turn_processed", "game_state"]
        assert messages[0]["moves"] == [{"lion_id": 1, "from": "2", "to": "1"}]
        assert messages[1]["lions"] == [{"id": 1, "node": "1"}]
        assert "1" not in messages[1]["contaminated"]

    def test_queue_from_node_by_point(self, server, connection):
        send(server, connection, {"type": "load_catalog_graph", "name": "example"})
        send(server, connection, {"type": "place_lion", "node": "1"})
        send(server, connection, {"type": "start"})

        messages = send(server, connection, {"type": "queue_from_node", "from": "1", "x": 148, "y": 152})

        assert messages[0]["queued_moves"] == [{"lion_id": 1, "to": "7"}]

    def test_cancel_move(self, server, connection):
        send(server, connection, {"type": "load_catalog_graph", "name": "example"})
        send(server, connection, {"type": "place_lion", "node": "1"})
        send(server, connection, {"type": "start"})
        send(server, connection, {"type": "queue_move", "lion_id": 1, "to": "4"})

        messages = send(server, connection, {"type": "cancel_move", "from": "1", "to": "4"})
        assert messages[0]["queued_moves"] == []

        messages = send(server, connection, {"type": "cancel_move", "from": "1", "to": "4"})
        assert messages[0]["type"] == "error"

    def test_load_graph_message(self, server, connection):
        graph = {"nodes": [{"id": 1, "x": 0, "y": 0}, {"id": 2, "x": 1, "y": 0}],
                 "edges": [{"from": 1, "to": 2}]}

        messages = send(server, connection, {"type": "load_graph", "graph": graph})

        assert messages[0]["graph"]["edges"] == [{"from": "1", "to": "2"}]

    def test_malformed_graph_reported(self, server, connection):
        messages = send(server, connection, {"type": "load_graph", "graph": {"nodes": []}})

        assert messages[0]["type"] == "error"
        assert messages[0]["message"].startswith("Malformed graph")

    def test_soft_failures_reported(self, server, connection):
        send(server, connection, {"type": "load_catalog_graph", "name": "example"})

        assert send(server, connection, {"type": "place_lion", "node": "99"})[0]["type"] == "error"
        assert send(server, connection, {"type": "execute_turn"})[0]["type"] == "error"
        assert send(server, connection, {"type": "queue_move", "lion_id": "1", "to": "2"})[0]["type"] == "error"
        assert send(server, connection, {"type": "load_catalog_graph", "name": "nope"})[0]["type"] == "error"

    def test_start_twice_reported(self, server, connection):
        send(server, connection, {"type": "start"})

        messages = send(server, connection, {"type": "start"})

        assert messages == [{"type": "error", "message": "Simulation already started"}]

    def test_invalid_json(self, server, connection):
        messages = send(server, connection, "{oops")

        assert messages == [{"type": "error", "message": "Invalid JSON format"}]

    def test_unknown_type(self, server, connection):
        messages = send(server, connection, {"type": "teleport"})

        assert messages == [{"type": "error", "message": "Unknown message type: teleport"}]

    def test_list_graphs(self, server, connection):
        messages = send(server, connection, {"type": "list_graphs"})

        assert messages[0]["type"] == "graph_list"

    def test_unregistered_connection(self, server):
        ws = FakeConnection()

        messages = send(server, ws, {"type": "get_state"})

        assert messages[0]["type"] == "error"

    def test_cleanup_drops_session(self, server, connection):
        server.cleanup_connection(connection)

        assert server.get_session(connection) is None


class TestConsoleCommands:

    def test_quit_stops_server(self, server):
        assert asyncio.run(handle_console_command(server, "quit")) is False
        assert server.shutdown_requested is True

    @pytest.mark.parametrize("command", ["help", "status", "sessions", "", "reset session-9", "bogus"])
    def test_other_commands_keep_running(self, server, connection, command):
        assert asyncio.run(handle_console_command(server, command)) is True

    def test_reset_session_pushes_state_to_client(self, server, connection):
        send(server, connection, {"type": "load_catalog_graph", "name": "example"})
        send(server, connection, {"type": "place_lion", "node": "1"})
        send(server, connection, {"type": "start"})
        connection.sent.clear()

        asyncio.run(handle_console_command(server, "reset session-1"))

        assert server.get_session(connection).state.lions == []
        assert connection.types() == ["game_state"]
        assert connection.sent[0]["lions"] == []
        assert connection.sent[0]["started"] is False
        assert server.pending_messages[connection] == []

    def test_reset_without_graph_sends_nothing(self, server, connection):
        connection.sent.clear()

        asyncio.run(handle_console_command(server, "reset session-1"))

        assert connection.sent == []

    def test_find_connection(self, server, connection):
        assert server.find_connection("session-1") is connection
        assert server.find_connection("session-9") is None
