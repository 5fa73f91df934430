"""
Graph catalogue: the built-in example graph plus graphs listed in an
``all-graphs.json`` index file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import GameDefaults
from .core import Graph, MalformedGraph

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "all-graphs.json"

EXAMPLE_GRAPH: Dict[str, Any] = {
    "nodes": [
        {"id": 1, "x": 100, "y": 100},
        {"id": 2, "x": 200, "y": 100},
        {"id": 3, "x": 300, "y": 100},
        {"id": 4, "x": 100, "y": 200},
        {"id": 5, "x": 200, "y": 200},
        {"id": 6, "x": 300, "y": 200},
        {"id": 7, "x": 150, "y": 150},
        {"id": 8, "x": 250, "y": 150},
    ],
    "edges": [
        {"from": 1, "to": 2}, {"from": 2, "to": 3}, {"from": 1, "to": 4},
        {"from": 2, "to": 5}, {"from": 3, "to": 6}, {"from": 4, "to": 5},
        {"from": 5, "to": 6}, {"from": 1, "to": 7}, {"from": 2, "to": 7},
        {"from": 4, "to": 7}, {"from": 5, "to": 7}, {"from": 2, "to": 8},
        {"from": 3, "to": 8}, {"from": 5, "to": 8}, {"from": 6, "to": 8},
    ],
}


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise MalformedGraph(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedGraph(f"Invalid JSON in {path}: {e}") from e


def load_graph_file(path: Path) -> Graph:
    """
    Load a graph from a JSON file.

    Args:
        path: Path to a ``{nodes, edges}`` JSON document

    Returns:
        The normalized graph

    Raises:
        MalformedGraph: If the file cannot be read or does not hold a valid graph
    """
    return Graph.from_dict(_read_json(Path(path)))


class GraphCatalog:
    """
    Named graphs a session can load.

    The index file has the form ``{"graphs": [{"name", "description", "filePath"}]}``;
    each ``filePath`` is resolved relative to the catalogue directory.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else None
        self._entries: Dict[str, Dict[str, str]] = {
            GameDefaults.EXAMPLE_GRAPH_NAME: {
                "name": GameDefaults.EXAMPLE_GRAPH_NAME,
                "description": "8 nodes, 15 edges",
                "filePath": "",
            }
        }
        if self.directory is not None:
            self._load_index()

    def _load_index(self) -> None:
        index_path = self.directory / INDEX_FILE_NAME
        if not index_path.exists():
            logger.warning(f"No {INDEX_FILE_NAME} in {self.directory}, only the built-in graph is available")
            return

        index = _read_json(index_path)
        graphs = index.get("graphs") if isinstance(index, dict) else None
        if not isinstance(graphs, list):
            raise MalformedGraph(f"{index_path} must contain a 'graphs' array")

        for entry in graphs:
            if not isinstance(entry, dict) or "name" not in entry or "filePath" not in entry:
                logger.warning(f"Skipping catalogue entry without name/filePath: {entry!r}")
                continue
            self._entries[str(entry["name"])] = {
                "name": str(entry["name"]),
                "description": str(entry.get("description", "")),
                "filePath": str(entry["filePath"]),
            }

        logger.info(f"Graph catalogue loaded from {self.directory}: {len(self._entries)} graphs")

    def list_graphs(self) -> List[Dict[str, str]]:
        """List the available graphs as {name, description} entries."""
        return [{"name": e["name"], "description": e["description"]} for e in self._entries.values()]

    def load(self, name: str) -> Graph:
        """
        Load a graph by catalogue name.

        Args:
            name: Catalogue entry name

        Returns:
            The normalized graph

        Raises:
            KeyError: If no entry has that name
            MalformedGraph: If the entry's file is unreadable or invalid
        """
        entry = self._entries[name]
        if name == GameDefaults.EXAMPLE_GRAPH_NAME and not entry["filePath"]:
            return Graph.from_dict(EXAMPLE_GRAPH)
        return load_graph_file(self.directory / entry["filePath"])
