"""
Session controller for one Lion Hunt simulation.

Owns a single SimulationState and exposes the commands the presentation layer
issues. Every command reports success or failure through its return value and,
on success, notifies the presentation layer through the optional callbacks.
"""

import logging
from typing import Any, Callable, Dict, Optional

from .catalog import EXAMPLE_GRAPH
from .core import Graph, InvalidOperation, SimulationState, TurnEngine, TurnResult

logger = logging.getLogger(__name__)


class SimulationSession:
    """
    One simulation, one state. No direct WebSocket handling - the transport
    subscribes through on_state_changed and on_turn_processed.
    """

    def __init__(self, session_id: str = "local", graph: Optional[Graph] = None):
        """
        Initialize the session.

        Args:
            session_id: Identifier used in log messages
            graph: Graph to start with; an empty graph if omitted
        """
        self.session_id = session_id
        self.state = SimulationState(graph)
        self.engine = TurnEngine(self.state)

        # Callbacks
        self.on_state_changed: Optional[Callable[[Dict[str, Any]], None]] = None
        self.on_turn_processed: Optional[Callable[[TurnResult], None]] = None

    def _notify_state_changed(self) -> None:
        if self.on_state_changed:
            self.on_state_changed(self.get_state_dict())

    def get_state_dict(self) -> Dict[str, Any]:
        """Get the current simulation state as a dictionary."""
        return self.state.to_dict()

    def load_graph(self, graph_data: Any) -> Graph:
        """
        Replace the graph and discard all simulation state.

        Args:
            graph_data: Raw ``{nodes, edges}`` record or an already built Graph

        Returns:
            The installed graph

        Raises:
            MalformedGraph: If the record fails validation; the previous graph stays installed
        """
        graph = graph_data if isinstance(graph_data, Graph) else Graph.from_dict(graph_data)

        self.state = SimulationState(graph)
        self.engine = TurnEngine(self.state)

        logger.info(f"Session {self.session_id}: Loaded graph with {len(graph.nodes)} nodes and {len(graph.edges)} edges")
        self._notify_state_changed()
        return graph

    def load_example_graph(self) -> Graph:
        """Load the built-in example graph."""
        return self.load_graph(EXAMPLE_GRAPH)

    def place_token(self, node_id: Any) -> Optional[int]:
        """
        Place a lion during the placement phase.

        Args:
            node_id: Node to place the lion on

        Returns:
            The new lion's id, or None if placement is not possible
        """
        try:
            lion_id = self.state.add_lion(node_id)
        except InvalidOperation as e:
            logger.warning(f"Session {self.session_id}: Cannot place lion - {e}")
            return None

        logger.debug(f"Session {self.session_id}: Lion {lion_id} placed on node {node_id}")
        self._notify_state_changed()
        return lion_id

    def start_game(self) -> bool:
        """Start the simulation; a second call is a no-op that returns False."""
        if not self.state.start_simulation():
            return False

        logger.info(f"Session {self.session_id}: Started with {len(self.state.lions)} lions, "
                    f"{len(self.state.contaminated)} contaminated nodes")
        self._notify_state_changed()
        return True

    def queue_move(self, lion_id: int, target_node_id: Any) -> bool:
        """
        Queue a move for one lion.

        Args:
            lion_id: ID of the lion to move
            target_node_id: Adjacent node to move to

        Returns:
            True if the move was queued
        """
        if not self.state.queue_move(lion_id, target_node_id):
            logger.debug(f"Session {self.session_id}: Rejected move of lion {lion_id} to {target_node_id}")
            return False

        self._notify_state_changed()
        return True

    def queue_move_from(self, from_node_id: Any, to_node_id: Any) -> Optional[int]:
        """
        Queue a move for an idle lion on a node, the way a drag gesture does.

        Args:
            from_node_id: Node the drag started on
            to_node_id: Node the drag ended on

        Returns:
            ID of the lion that was queued, or None
        """
        lion_id = self.state.queue_move_from(from_node_id, to_node_id)
        if lion_id is None:
            return None

        self._notify_state_changed()
        return lion_id

    def queue_move_towards(self, from_node_id: Any, x: float, y: float) -> Optional[int]:
        """
        Queue a move towards the node nearest to a drop point.

        Args:
            from_node_id: Node the drag started on
            x: X coordinate of the drop point in graph space
            y: Y coordinate of the drop point in graph space

        Returns:
            ID of the lion that was queued, or None
        """
        to_node_id = self.state.graph.nearest_node(x, y)
        if to_node_id is None:
            return None
        return self.queue_move_from(from_node_id, to_node_id)

    def cancel_queued_move(self, from_node_id: Any, to_node_id: Any) -> bool:
        """
        Cancel a single queued move along a from -> to pair.

        Returns:
            True if a queued move was removed
        """
        lion_id = self.state.cancel_moves(from_node_id, to_node_id)
        if lion_id is None:
            return False

        logger.debug(f"Session {self.session_id}: Cancelled move of lion {lion_id}")
        self._notify_state_changed()
        return True

    def execute_turn(self) -> Optional[TurnResult]:
        """
        Resolve one turn.

        Returns:
            The turn result, or None if no move was queued
        """
        result = self.engine.execute_turn()
        if result is None:
            return None

        logger.info(f"Session {self.session_id}: Turn {result.turn} processed - "
                    f"{len(result.moves)} moves, {len(result.dropped)} dropped, "
                    f"{len(result.contaminated)} contaminated")

        if self.on_turn_processed:
            self.on_turn_processed(result)
        self._notify_state_changed()
        return result

    def reset_game(self) -> bool:
        """
        Return to the placement phase, keeping the loaded graph.

        Returns:
            False if there is no graph to reset on
        """
        if not self.state.graph.nodes:
            return False

        self.state.reset_all()
        logger.info(f"Session {self.session_id}: Reset")
        self._notify_state_changed()
        return True

    @property
    def is_cleared(self) -> bool:
        """True once a started simulation has no contaminated node left."""
        return self.state.started and not self.state.contaminated
