"""
WebSocket front-end server for Lion Hunt.

Every browser connection gets its own private SimulationSession; nothing is
shared between connections.
"""

import asyncio
import json
import logging
import websockets
from websockets.asyncio.server import ServerConnection
from websockets.typing import Data
from pathlib import Path
from typing import Any, Dict, List, Optional

from .catalog import GraphCatalog
from .config import GameDefaults, RenderConfig, ServerConfig
from .core import MalformedGraph, TurnResult
from .session import SimulationSession

logger = logging.getLogger(__name__)


class ConnectionUtils:
    """Utility class for WebSocket communication."""

    @staticmethod
    async def send_message(websocket: ServerConnection, message: Dict[str, Any]) -> bool:
        """Send a message to a specific websocket connection."""
        try:
            await websocket.send(json.dumps(message))
            return True
        except websockets.exceptions.ConnectionClosed:
            return False
        except Exception as e:
            logger.error(f"Error sending message: {e}")
            return False

    @staticmethod
    async def send_error(websocket: ServerConnection, error_message: str) -> bool:
        """Send an error message to a client."""
        return await ConnectionUtils.send_message(websocket, {
            "type": "error",
            "message": error_message
        })


class SessionServer:
    """
    WebSocket server that owns one SimulationSession per connection.
    Messages of a connection are handled strictly in order, so at most one
    turn per session is ever in flight.
    """

    def __init__(self, catalog: Optional[GraphCatalog] = None, animation_delay: Optional[float] = None):
        """
        Initialize the server.

        Args:
            catalog: Graph catalogue offered to clients; built-in example only if omitted
            animation_delay: Seconds between turn_processed and game_state
        """
        self.catalog = catalog or GraphCatalog()
        self.animation_delay = RenderConfig.ANIMATION_DURATION if animation_delay is None else animation_delay

        self.sessions: Dict[ServerConnection, SimulationSession] = {}
        self.pending_messages: Dict[ServerConnection, List[Dict[str, Any]]] = {}
        self._session_counter = 0

        self.shutdown_requested = False

        logger.info("Session server initialized")

    def create_session(self, websocket: ServerConnection) -> SimulationSession:
        """Create and wire the private session of a new connection."""
        self._session_counter += 1
        session = SimulationSession(f"session-{self._session_counter}")
        outbox: List[Dict[str, Any]] = []

        def on_turn_processed(result: TurnResult) -> None:
            outbox.append(result.to_dict())

        def on_state_changed(state_dict: Dict[str, Any]) -> None:
            outbox.append(state_dict)

        session.on_turn_processed = on_turn_processed
        session.on_state_changed = on_state_changed

        self.sessions[websocket] = session
        self.pending_messages[websocket] = outbox

        if GameDefaults.INITIAL_GRAPH is not None:
            try:
                session.load_graph(self.catalog.load(GameDefaults.INITIAL_GRAPH))
            except (KeyError, MalformedGraph) as e:
                logger.error(f"Cannot load initial graph {GameDefaults.INITIAL_GRAPH!r}: {e}")

        return session

    def get_session(self, websocket: ServerConnection) -> Optional[SimulationSession]:
        return self.sessions.get(websocket)

    async def flush(self, websocket: ServerConnection) -> None:
        """Send everything the session queued, pausing after each turn for the animation."""
        outbox = self.pending_messages.get(websocket)
        if not outbox:
            return

        messages = list(outbox)
        outbox.clear()

        for index, message in enumerate(messages):
            await ConnectionUtils.send_message(websocket, message)
            if message.get("type") == "turn_processed" and index < len(messages) - 1 and self.animation_delay > 0:
                await asyncio.sleep(self.animation_delay)

    async def handle_client(self, websocket: ServerConnection, path: str = "/") -> None:
        """Handle a new WebSocket client connection."""
        logger.info(f"New connection from {websocket.remote_address}")

        try:
            await self.register(websocket)
            async for message in websocket:
                await self.handle_message(websocket, message)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Connection closed: {websocket.remote_address}")
        except Exception as e:
            logger.error(f"Error handling client: {e}")
        finally:
            self.cleanup_connection(websocket)

    async def register(self, websocket: ServerConnection) -> SimulationSession:
        """Create the connection's session and greet the client."""
        session = self.create_session(websocket)
        self.pending_messages[websocket].clear()

        await ConnectionUtils.send_message(websocket, {
            "type": "connection_confirmed",
            "session_id": session.session_id,
            "render_config": RenderConfig.to_dict(),
            "graphs": self.catalog.list_graphs(),
        })
        await ConnectionUtils.send_message(websocket, session.get_state_dict())

        logger.info(f"Session {session.session_id} opened")
        return session

    async def handle_message(self, websocket: ServerConnection, message: Data) -> None:
        """Parse and route incoming messages to the connection's session."""
        session = self.get_session(websocket)
        if session is None:
            await ConnectionUtils.send_error(websocket, "Not registered")
            return

        try:
            data = json.loads(message)
            if not isinstance(data, dict):
                await ConnectionUtils.send_error(websocket, "Message must be a JSON object")
                return

            message_type = data.get("type")

            if message_type == "load_graph":
                await self.handle_load_graph(websocket, session, data)

            elif message_type == "load_catalog_graph":
                await self.handle_load_catalog_graph(websocket, session, data)

            elif message_type == "list_graphs":
                await ConnectionUtils.send_message(websocket, {
                    "type": "graph_list",
                    "graphs": self.catalog.list_graphs()
                })

            elif message_type == "place_lion":
                await self.handle_place_lion(websocket, session, data)

            elif message_type == "start":
                if not session.start_game():
                    await ConnectionUtils.send_error(websocket, "Simulation already started")

            elif message_type == "queue_move":
                await self.handle_queue_move(websocket, session, data)

            elif message_type == "queue_from_node":
                await self.handle_queue_from_node(websocket, session, data)

            elif message_type == "cancel_move":
                if not session.cancel_queued_move(data.get("from"), data.get("to")):
                    await ConnectionUtils.send_error(websocket, "No queued move along that edge")

            elif message_type == "execute_turn":
                if session.execute_turn() is None:
                    await ConnectionUtils.send_error(websocket, "No moves queued")

            elif message_type == "reset":
                if not session.reset_game():
                    await ConnectionUtils.send_error(websocket, "No graph loaded")

            elif message_type == "get_state":
                await ConnectionUtils.send_message(websocket, session.get_state_dict())

            else:
                await ConnectionUtils.send_error(websocket, f"Unknown message type: {message_type}")

            await self.flush(websocket)

        except json.JSONDecodeError:
            await ConnectionUtils.send_error(websocket, "Invalid JSON format")
        except Exception as e:
            logger.error(f"Error handling message: {e}")
            await ConnectionUtils.send_error(websocket, "Internal server error")

    async def handle_load_graph(self, websocket: ServerConnection, session: SimulationSession,
                                data: Dict[str, Any]) -> None:
        """Handle a graph submitted by the client."""
        try:
            session.load_graph(data.get("graph"))
        except MalformedGraph as e:
            logger.warning(f"Session {session.session_id}: Rejected graph - {e}")
            await ConnectionUtils.send_error(websocket, f"Malformed graph: {e}")

    async def handle_load_catalog_graph(self, websocket: ServerConnection, session: SimulationSession,
                                        data: Dict[str, Any]) -> None:
        """Handle loading a graph from the catalogue."""
        name = data.get("name")
        if not name:
            await ConnectionUtils.send_error(websocket, "name is required")
            return

        try:
            session.load_graph(self.catalog.load(name))
        except KeyError:
            await ConnectionUtils.send_error(websocket, f"Unknown graph: {name}")
        except MalformedGraph as e:
            logger.warning(f"Catalogue graph {name!r} is malformed: {e}")
            await ConnectionUtils.send_error(websocket, f"Malformed graph: {e}")

    async def handle_place_lion(self, websocket: ServerConnection, session: SimulationSession,
                                data: Dict[str, Any]) -> None:
        """Handle a lion placement during the placement phase."""
        lion_id = session.place_token(data.get("node"))
        if lion_id is None:
            await ConnectionUtils.send_error(websocket, "Cannot place a lion there")
            return

        await ConnectionUtils.send_message(websocket, {
            "type": "lion_placed",
            "lion_id": lion_id,
            "node": session.state.get_lion(lion_id).node_id
        })

    async def handle_queue_move(self, websocket: ServerConnection, session: SimulationSession,
                                data: Dict[str, Any]) -> None:
        """Handle a move queued for a specific lion."""
        lion_id = data.get("lion_id")
        if not isinstance(lion_id, int) or isinstance(lion_id, bool):
            await ConnectionUtils.send_error(websocket, "lion_id must be an integer")
            return

        if not session.queue_move(lion_id, data.get("to")):
            await ConnectionUtils.send_error(websocket, "Invalid move")

    async def handle_queue_from_node(self, websocket: ServerConnection, session: SimulationSession,
                                     data: Dict[str, Any]) -> None:
        """Handle a drag from a node, ending either on a node or at a point."""
        from_node = data.get("from")
        if "to" in data:
            lion_id = session.queue_move_from(from_node, data["to"])
        elif "x" in data and "y" in data:
            try:
                x, y = float(data["x"]), float(data["y"])
            except (TypeError, ValueError):
                await ConnectionUtils.send_error(websocket, "x and y must be numbers")
                return
            lion_id = session.queue_move_towards(from_node, x, y)
        else:
            await ConnectionUtils.send_error(websocket, "Either 'to' or 'x' and 'y' are required")
            return

        if lion_id is None:
            await ConnectionUtils.send_error(websocket, "No idle lion can make that move")

    def cleanup_connection(self, websocket: ServerConnection) -> None:
        """Drop the session of a disconnected client."""
        session = self.sessions.pop(websocket, None)
        self.pending_messages.pop(websocket, None)
        if session is not None:
            logger.info(f"Session {session.session_id} closed")

    def find_connection(self, session_id: str) -> Optional[ServerConnection]:
        for websocket, session in self.sessions.items():
            if session.session_id == session_id:
                return websocket
        return None


async def handle_console_command(server: SessionServer, command: str) -> bool:
    """
    Execute one operator console command.

    Args:
        server: The running server
        command: Raw command line

    Returns:
        False if the server should shut down, True otherwise
    """
    command = command.strip().lower()

    if command == "quit" or command == "exit":
        logger.info("Shutdown requested by user")
        server.shutdown_requested = True
        return False

    elif command == "sessions":
        if not server.sessions:
            logger.info("No active sessions")
        else:
            logger.info(f"=== Active Sessions ({len(server.sessions)}) ===")
            for session in server.sessions.values():
                state = session.state
                phase = "Playing" if state.started else "Placement"
                logger.info(f"  {session.session_id}: {phase}, Turn {state.current_turn}, "
                            f"{len(state.graph.nodes)} nodes, {len(state.lions)} lions, "
                            f"{len(state.contaminated)} contaminated")

    elif command == "status":
        logger.info("=== Server Status ===")
        logger.info(f"Active Sessions: {len(server.sessions)}")
        cleared = sum(1 for session in server.sessions.values() if session.is_cleared)
        logger.info(f"Cleared Sessions: {cleared}")
        logger.info(f"Catalogue Graphs: {[g['name'] for g in server.catalog.list_graphs()]}")

    elif command.startswith("reset "):
        session_id = command.split(maxsplit=1)[1]
        websocket = server.find_connection(session_id)
        if websocket is None:
            logger.warning(f"Session {session_id} does not exist")
        elif not server.sessions[websocket].reset_game():
            logger.warning(f"Session {session_id} has no graph to reset")
        else:
            await server.flush(websocket)

    elif command == "help":
        logger.info("=== Available Commands ===")
        logger.info("  'quit' or 'exit' - Stop the server")
        logger.info("  'sessions' - List all active sessions")
        logger.info("  'reset <session_id>' - Reset a session to the placement phase")
        logger.info("  'status' - Show current server status")
        logger.info("  'help' - Show this help message")

    elif command == "":
        pass

    else:
        logger.warning(f"Unknown command: '{command}'. Type 'help' for available commands.")

    return True


async def keyboard_input_handler(server: SessionServer) -> None:
    """Handle keyboard input for server commands."""
    logger.info("Keyboard command handler started. Type 'help' for available commands.")

    loop = asyncio.get_event_loop()

    try:
        while not server.shutdown_requested:
            try:
                command = await loop.run_in_executor(None, input, "Server> ")
                if not await handle_console_command(server, command):
                    break
            except EOFError:
                logger.info("EOF received, shutting down server")
                server.shutdown_requested = True
                break
            except KeyboardInterrupt:
                logger.info("Keyboard interrupt received, shutting down server")
                server.shutdown_requested = True
                break
    finally:
        logger.info("Keyboard command handler shutting down")


async def run_server(host: str | None = None, port: int | None = None,
                     graph_dir: str | None = None) -> None:
    """Run the session server with keyboard command support."""
    # Use config defaults if not provided
    host = host or ServerConfig.HOST
    port = port or ServerConfig.PORT
    graph_dir = graph_dir or ServerConfig.GRAPH_DIR

    catalog = GraphCatalog(Path(graph_dir) if graph_dir else None)
    server = SessionServer(catalog)

    logger.info(f"Starting session server on {host}:{port}")

    websocket_server = await websockets.serve(server.handle_client, host, port)
    keyboard_task = asyncio.create_task(keyboard_input_handler(server))

    try:
        await keyboard_task

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        server.shutdown_requested = True

    finally:
        logger.info("Shutting down server...")

        websocket_server.close()
        await websocket_server.wait_closed()

        if not keyboard_task.done():
            keyboard_task.cancel()

        logger.info("Server shutdown complete")


if __name__ == "__main__":
    logging.basicConfig(level=ServerConfig.LOG_LEVEL, format=ServerConfig.LOG_FORMAT)
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
