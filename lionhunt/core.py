"""
Lion Hunt - Core Data Structures and Turn Resolution

This module contains the graph model, the simulation state and the turn engine
for a graph-cleaning game: lions sit on the nodes of an undirected graph and
move along its edges each turn, while contamination spreads across every node
the lions do not guard.
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple
from dataclasses import dataclass, field

from .config import GameDefaults


class MalformedGraph(ValueError):
    """Raised when graph input fails shape validation. No partial graph is installed."""


class InvalidOperation(ValueError):
    """Raised when an operation is not allowed in the current phase."""


def normalize_node_id(value: Any) -> str:
    """
    Coerce a node identifier to its canonical string form.

    Numeric and string ids compare equal after normalization, so ``1``, ``1.0``
    and ``"1"`` all become ``"1"``.

    Args:
        value: Raw identifier from the input data

    Returns:
        Canonical string identifier

    Raises:
        MalformedGraph: If the value cannot serve as an identifier
    """
    if isinstance(value, bool) or value is None:
        raise MalformedGraph(f"Invalid node id: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise MalformedGraph(f"Invalid node id: {value!r}")
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, str):
        return value
    raise MalformedGraph(f"Invalid node id: {value!r}")


def edge_key(node_a: str, node_b: str) -> FrozenSet[str]:
    """Canonical undirected key for the edge between two nodes."""
    return frozenset((node_a, node_b))


@dataclass
class Node:
    """
    Represents a node in the game graph.

    Attributes:
        id: Unique identifier for the node
        position: (x, y) coordinates for visualization only
    """
    id: str
    position: Tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True)
class Edge:
    """
    Represents an undirected edge between two nodes.

    Attributes:
        from_node: One endpoint, as written in the input
        to_node: The other endpoint
    """
    from_node: str
    to_node: str

    @property
    def key(self) -> FrozenSet[str]:
        return edge_key(self.from_node, self.to_node)


@dataclass
class Lion:
    """
    A searcher token occupying exactly one node.

    Attributes:
        id: Monotonically increasing identifier, never reused within a session
        node_id: Node the lion currently stands on
    """
    id: int
    node_id: str


@dataclass(frozen=True)
class ValidMove:
    """A queued move that passed adjacency validation for the current turn."""
    lion_id: int
    from_node: str
    to_node: str


def build_adjacency(nodes: Iterable[Node], edges: Iterable[Edge]) -> Dict[str, Set[str]]:
    """
    Build the symmetric adjacency relation for a set of nodes and edges.

    Args:
        nodes: Graph nodes
        edges: Graph edges

    Returns:
        Mapping from node id to the set of ids reachable by exactly one edge

    Raises:
        MalformedGraph: If an edge references a node that does not exist
    """
    adjacency: Dict[str, Set[str]] = {node.id: set() for node in nodes}
    for edge in edges:
        if edge.from_node not in adjacency:
            raise MalformedGraph(f"Edge references unknown node {edge.from_node!r}")
        if edge.to_node not in adjacency:
            raise MalformedGraph(f"Edge references unknown node {edge.to_node!r}")
        adjacency[edge.from_node].add(edge.to_node)
        adjacency[edge.to_node].add(edge.from_node)
    return adjacency


def _parse_coordinate(node_data: Mapping[str, Any], axis: str) -> float:
    raw = node_data.get(axis, 0.0)
    if isinstance(raw, bool):
        raise MalformedGraph(f"Node {node_data.get('id')!r} has a non-numeric {axis} coordinate")
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise MalformedGraph(f"Node {node_data.get('id')!r} has a non-numeric {axis} coordinate") from None


class Graph:
    """
    Immutable-per-session topology: nodes, undirected edges and their adjacency.
    """

    def __init__(self, nodes: Optional[Iterable[Node]] = None, edges: Optional[Iterable[Edge]] = None):
        """
        Initialize a graph.

        Args:
            nodes: Nodes of the graph; ids must be unique
            edges: Edges of the graph; endpoints must be existing node ids

        Raises:
            MalformedGraph: If node ids repeat or an edge endpoint is unknown
        """
        self.nodes: Dict[str, Node] = {}
        for node in nodes or []:
            if node.id in self.nodes:
                raise MalformedGraph(f"Duplicate node id {node.id!r}")
            self.nodes[node.id] = node

        self.edges: List[Edge] = list(edges or [])
        self._adjacency: Dict[str, FrozenSet[str]] = {
            node_id: frozenset(neighbors)
            for node_id, neighbors in build_adjacency(self.nodes.values(), self.edges).items()
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Graph":
        """
        Build a graph from a ``{nodes: [{id, x, y}], edges: [{from, to}]}`` record.

        Args:
            data: Decoded graph record; ids may be numeric or strings

        Returns:
            The normalized graph

        Raises:
            MalformedGraph: If the record has the wrong shape
        """
        if not isinstance(data, Mapping):
            raise MalformedGraph("Graph data must be an object with 'nodes' and 'edges'")

        nodes_data = data.get("nodes")
        edges_data = data.get("edges")
        if not isinstance(nodes_data, list):
            raise MalformedGraph("Graph data is missing a 'nodes' array")
        if not isinstance(edges_data, list):
            raise MalformedGraph("Graph data is missing an 'edges' array")

        nodes = []
        for index, node_data in enumerate(nodes_data):
            if not isinstance(node_data, Mapping) or "id" not in node_data:
                raise MalformedGraph(f"Node entry {index} has no 'id'")
            node_id = normalize_node_id(node_data["id"])
            position = (_parse_coordinate(node_data, "x"), _parse_coordinate(node_data, "y"))
            nodes.append(Node(node_id, position))

        edges = []
        for index, edge_data in enumerate(edges_data):
            if not isinstance(edge_data, Mapping) or "from" not in edge_data or "to" not in edge_data:
                raise MalformedGraph(f"Edge entry {index} needs 'from' and 'to'")
            edges.append(Edge(normalize_node_id(edge_data["from"]), normalize_node_id(edge_data["to"])))

        return cls(nodes, edges)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the graph to its normalized JSON form.

        Returns:
            Dictionary with string ids and float coordinates
        """
        return {
            "nodes": [
                {"id": n.id, "x": n.position[0], "y": n.position[1]}
                for n in self.nodes.values()
            ],
            "edges": [
                {"from": e.from_node, "to": e.to_node}
                for e in self.edges
            ],
        }

    @property
    def adjacency(self) -> Dict[str, FrozenSet[str]]:
        return dict(self._adjacency)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_adjacent_nodes(self, node_id: str) -> FrozenSet[str]:
        """
        Get all nodes adjacent to the given node.

        Args:
            node_id: ID of the node to get neighbors for

        Returns:
            Set of adjacent node IDs (empty for an unknown node)
        """
        return self._adjacency.get(node_id, frozenset())

    def are_adjacent(self, node_a: str, node_b: str) -> bool:
        return node_b in self._adjacency.get(node_a, ())

    def nearest_node(self, x: float, y: float) -> Optional[str]:
        """
        Find the node closest to a point.

        Args:
            x: X coordinate of the point
            y: Y coordinate of the point

        Returns:
            ID of the closest node, or None if the graph has no nodes
        """
        best_node_id = None
        best_distance = float('inf')

        for node in self.nodes.values():
            distance = _squared_euclidean_distance(node.position, (x, y))
            if distance < best_distance:
                best_distance = distance
                best_node_id = node.id

        return best_node_id


def _squared_euclidean_distance(pos1: Tuple[float, float], pos2: Tuple[float, float]) -> float:
    dx = pos1[0] - pos2[0]
    dy = pos1[1] - pos2[1]
    return dx * dx + dy * dy


def initial_contamination(graph: Graph, lion_nodes: Set[str]) -> Set[str]:
    """Every node not hosting a lion starts contaminated."""
    return {node_id for node_id in graph.nodes if node_id not in lion_nodes}


def spread_contamination(contaminated_before: Set[str], used_edges: Set[FrozenSet[str]],
                         final_lion_nodes: Set[str], graph: Graph) -> Set[str]:
    """
    Compute the next contamination set after a turn.

    Contamination survives on every previously contaminated node that no lion
    occupies now, and spreads one step from every previously contaminated node
    to each neighbor, except into lion-occupied nodes and across edges a lion
    traversed this turn.

    Args:
        contaminated_before: Contamination set as it stood before the turn
        used_edges: Undirected keys of the edges traversed by lions this turn
        final_lion_nodes: Nodes hosting at least one lion after the moves
        graph: Graph supplying the adjacency relation

    Returns:
        The new contamination set; never contains a lion-occupied node
    """
    next_contaminated = {node_id for node_id in contaminated_before if node_id not in final_lion_nodes}

    for node_id in contaminated_before:
        for neighbor in graph.get_adjacent_nodes(node_id):
            if neighbor in final_lion_nodes:
                continue
            if edge_key(node_id, neighbor) in used_edges:
                continue
            next_contaminated.add(neighbor)

    return next_contaminated


def validate_moves(lions: Iterable[Lion], queued_moves: Mapping[int, Any], graph: Graph) -> List[ValidMove]:
    """
    Filter queued intents down to those whose source and target share an edge.

    Intents for unknown lions or nodes are dropped silently.

    Args:
        lions: Lions in creation order
        queued_moves: Mapping of lion id to intended target node id
        graph: Graph supplying the adjacency relation

    Returns:
        The valid moves, in lion creation order
    """
    valid_moves = []
    for lion in lions:
        target = queued_moves.get(lion.id)
        if target is None:
            continue
        try:
            target = normalize_node_id(target)
        except MalformedGraph:
            continue
        if graph.are_adjacent(lion.node_id, target):
            valid_moves.append(ValidMove(lion.id, lion.node_id, target))
    return valid_moves


class SimulationState:
    """
    Represents the complete mutable state of one simulation.

    Attributes:
        graph: The loaded graph
        lions: Lions in creation order
        queued_moves: Lion id -> intended target node id, at most one per lion
        contaminated: Ids of nodes not yet cleared
        started: False during placement, True during play
        last_lion_id: Id handed out to the most recently placed lion
        current_turn: 0 before start, then the number of the upcoming turn
    """

    def __init__(self, graph: Optional[Graph] = None):
        """
        Initialize a new simulation state in the placement phase.

        Args:
            graph: Graph to play on; an empty graph if omitted
        """
        self.graph = graph if graph is not None else Graph()
        self.lions: List[Lion] = []
        self.queued_moves: Dict[int, str] = {}
        self.contaminated: Set[str] = set()
        self.started = False
        self.last_lion_id = GameDefaults.LION_ID_START
        self.current_turn = 0

    def reset_all(self) -> None:
        """Return to an empty placement phase, keeping the loaded graph."""
        self.lions = []
        self.queued_moves.clear()
        self.contaminated.clear()
        self.started = False
        self.last_lion_id = GameDefaults.LION_ID_START
        self.current_turn = 0

    def get_lion(self, lion_id: int) -> Optional[Lion]:
        for lion in self.lions:
            if lion.id == lion_id:
                return lion
        return None

    def lions_at(self, node_id: str) -> List[Lion]:
        return [lion for lion in self.lions if lion.node_id == node_id]

    def lion_nodes(self) -> Set[str]:
        return {lion.node_id for lion in self.lions}

    def add_lion(self, node_id: Any) -> int:
        """
        Place a new lion during the placement phase.

        Args:
            node_id: Node to place the lion on; may already host lions

        Returns:
            The new lion's id

        Raises:
            InvalidOperation: If the simulation has started or the node doesn't exist
        """
        if self.started:
            raise InvalidOperation("Cannot place lions after the simulation has started")
        try:
            node_id = normalize_node_id(node_id)
        except MalformedGraph:
            raise InvalidOperation(f"Node {node_id!r} doesn't exist") from None
        if not self.graph.has_node(node_id):
            raise InvalidOperation(f"Node {node_id!r} doesn't exist")

        self.last_lion_id += 1
        self.lions.append(Lion(self.last_lion_id, node_id))
        return self.last_lion_id

    def start_simulation(self) -> bool:
        """
        Leave the placement phase and contaminate every unguarded node.

        Returns:
            True if the simulation was started, False if it was already running
        """
        if self.started:
            return False

        self.started = True
        self.current_turn = 1
        self.contaminated = initial_contamination(self.graph, self.lion_nodes())
        return True

    def queue_move(self, lion_id: int, target_node_id: Any) -> bool:
        """
        Queue a move for a lion, replacing any move it already had queued.

        Args:
            lion_id: ID of the lion to move
            target_node_id: Node the lion should move to

        Returns:
            True if the move was queued, False if it was rejected
        """
        if not self.started:
            return False

        lion = self.get_lion(lion_id)
        if lion is None:
            return False

        try:
            target_node_id = normalize_node_id(target_node_id)
        except MalformedGraph:
            return False

        if not self.graph.are_adjacent(lion.node_id, target_node_id):
            return False

        self.queued_moves[lion_id] = target_node_id
        return True

    def queue_move_from(self, from_node_id: Any, to_node_id: Any) -> Optional[int]:
        """
        Queue a move for the first idle lion standing on a node.

        Args:
            from_node_id: Node the lion should leave
            to_node_id: Adjacent node the lion should move to

        Returns:
            ID of the lion that was queued, or None if no lion could be queued
        """
        try:
            from_node_id = normalize_node_id(from_node_id)
            to_node_id = normalize_node_id(to_node_id)
        except MalformedGraph:
            return None

        if not self.started or not self.graph.are_adjacent(from_node_id, to_node_id):
            return None

        for lion in self.lions_at(from_node_id):
            if lion.id not in self.queued_moves:
                self.queued_moves[lion.id] = to_node_id
                return lion.id
        return None

    def cancel_moves(self, from_node_id: Any, to_node_id: Any) -> Optional[int]:
        """
        Cancel one queued move along a from -> to pair.

        Only the first matching lion (creation order) loses its queued move;
        other lions queued along the same pair keep theirs.

        Args:
            from_node_id: Node the queued lions currently stand on
            to_node_id: Target of the queued moves

        Returns:
            ID of the lion whose move was cancelled, or None if nothing matched
        """
        try:
            from_node_id = normalize_node_id(from_node_id)
            to_node_id = normalize_node_id(to_node_id)
        except MalformedGraph:
            return None

        for lion in self.lions:
            if lion.node_id == from_node_id and self.queued_moves.get(lion.id) == to_node_id:
                del self.queued_moves[lion.id]
                return lion.id
        return None

    def queued_move_counts(self) -> List[Tuple[str, str, int]]:
        """
        Group queued moves by their from -> to pair.

        Returns:
            List of (from_node, to_node, count) in first-queued order
        """
        positions = {lion.id: lion.node_id for lion in self.lions}
        counts: Dict[Tuple[str, str], int] = {}
        for lion_id, target in self.queued_moves.items():
            if lion_id not in positions:
                continue
            pair = (positions[lion_id], target)
            counts[pair] = counts.get(pair, 0) + 1
        return [(from_node, to_node, count) for (from_node, to_node), count in counts.items()]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the state to dictionary format for JSON serialization.

        Returns:
            Dictionary representation of the simulation state
        """
        return {
            "type": "game_state",
            "turn": self.current_turn,
            "started": self.started,
            "graph": self.graph.to_dict(),
            "lions": [{"id": lion.id, "node": lion.node_id} for lion in self.lions],
            "queued_moves": [
                {"lion_id": lion_id, "to": target}
                for lion_id, target in self.queued_moves.items()
            ],
            "queued_move_counts": [
                {"from": from_node, "to": to_node, "count": count}
                for from_node, to_node, count in self.queued_move_counts()
            ],
            "contaminated": [node_id for node_id in self.graph.nodes if node_id in self.contaminated],
        }


@dataclass
class TurnResult:
    """
    Outcome of one executed turn.

    Attributes:
        turn: Number of the turn that was executed
        moves: Moves that were applied
        dropped: IDs of lions whose queued move failed validation
        contaminated: Contamination set after the turn
        cleared: Nodes that were contaminated before the turn and are not now
        newly_contaminated: Nodes contaminated now that were clean before
        animations: Display-only movement entries for lions and contamination
    """
    turn: int
    moves: List[ValidMove]
    dropped: List[int]
    contaminated: Set[str]
    cleared: Set[str] = field(default_factory=set)
    newly_contaminated: Set[str] = field(default_factory=set)
    animations: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "turn_processed",
            "turn": self.turn,
            "moves": [
                {"lion_id": m.lion_id, "from": m.from_node, "to": m.to_node}
                for m in self.moves
            ],
            "dropped": list(self.dropped),
            "cleared": sorted(self.cleared),
            "newly_contaminated": sorted(self.newly_contaminated),
            "animations": self.animations,
        }


class TurnEngine:
    """
    Resolves turns: validates queued moves, applies them simultaneously and
    recomputes contamination.
    """

    def __init__(self, state: SimulationState):
        """
        Initialize the turn engine with a simulation state.

        Args:
            state: The simulation state to operate on
        """
        self.state = state

    def execute_turn(self) -> Optional[TurnResult]:
        """
        Execute one turn using the currently queued moves.

        Does nothing when no move is queued. Otherwise the whole turn is
        resolved before returning: moves are applied simultaneously, the
        contamination set is recomputed and the queue is cleared, including
        the entries that failed validation.

        Returns:
            The turn result, or None if no move was queued
        """
        state = self.state
        if not state.queued_moves:
            return None

        graph = state.graph
        contaminated_before = set(state.contaminated)

        # Step 1: Validate against the live adjacency
        valid_moves = validate_moves(state.lions, state.queued_moves, graph)
        moving = {move.lion_id: move.to_node for move in valid_moves}
        dropped = [lion.id for lion in state.lions
                   if lion.id in state.queued_moves and lion.id not in moving]

        # Step 2: Apply all moves at once
        for lion in state.lions:
            if lion.id in moving:
                lion.node_id = moving[lion.id]

        # Step 3: Recompute contamination from the pre-move snapshot
        final_lion_nodes = state.lion_nodes()
        used_edges = {edge_key(move.from_node, move.to_node) for move in valid_moves}
        state.contaminated = spread_contamination(contaminated_before, used_edges, final_lion_nodes, graph)

        state.queued_moves.clear()

        result = TurnResult(
            turn=state.current_turn,
            moves=valid_moves,
            dropped=dropped,
            contaminated=set(state.contaminated),
            cleared=contaminated_before - state.contaminated,
            newly_contaminated=state.contaminated - contaminated_before,
        )
        result.animations = self._build_animations(valid_moves, used_edges, contaminated_before,
                                                   result.newly_contaminated)

        state.current_turn += 1
        return result

    def _build_animations(self, moves: List[ValidMove], used_edges: Set[FrozenSet[str]],
                          contaminated_before: Set[str], newly_contaminated: Set[str]) -> List[Dict[str, Any]]:
        """
        Build the display-only movement entries for a resolved turn.

        Args:
            moves: Moves that were applied
            used_edges: Undirected keys of the traversed edges
            contaminated_before: Contamination set before the turn
            newly_contaminated: Nodes that became contaminated during the turn

        Returns:
            List of {subject, from, to} entries with node positions
        """
        graph = self.state.graph
        animations = [
            {
                "subject": "lion",
                "from": self._position_dict(move.from_node),
                "to": self._position_dict(move.to_node),
            }
            for move in moves
        ]

        for node_id in graph.nodes:
            if node_id not in contaminated_before:
                continue
            for neighbor in sorted(graph.get_adjacent_nodes(node_id)):
                if neighbor in newly_contaminated and edge_key(node_id, neighbor) not in used_edges:
                    animations.append({
                        "subject": "contamination",
                        "from": self._position_dict(node_id),
                        "to": self._position_dict(neighbor),
                    })

        return animations

    def _position_dict(self, node_id: str) -> Dict[str, Any]:
        x, y = self.state.graph.nodes[node_id].position
        return {"id": node_id, "x": x, "y": y}
