"""Lion Hunt: a graph-cleaning pursuit game engine with a WebSocket front end."""

from .core import (
    Edge,
    Graph,
    InvalidOperation,
    Lion,
    MalformedGraph,
    Node,
    SimulationState,
    TurnEngine,
    TurnResult,
    ValidMove,
    build_adjacency,
    spread_contamination,
    validate_moves,
)
from .session import SimulationSession

__version__ = "0.1.0"
