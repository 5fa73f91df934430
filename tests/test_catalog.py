"""Graph catalogue tests."""

import json

import pytest

from lionhunt.catalog import GraphCatalog, load_graph_file
from lionhunt.core import MalformedGraph

SQUARE = {
    "nodes": [{"id": "a", "x": 0, "y": 0}, {"id": "b", "x": 1, "y": 0},
              {"id": "c", "x": 1, "y": 1}, {"id": "d", "x": 0, "y": 1}],
    "edges": [{"from": "a", "to": "b"}, {"from": "b", "to": "c"},
              {"from": "c", "to": "d"}, {"from": "d", "to": "a"}],
}


@pytest.fixture
def graph_dir(tmp_path):
    (tmp_path / "square.json").write_text(json.dumps(SQUARE), encoding="utf-8")
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "all-graphs.json").write_text(json.dumps({
        "graphs": [
            {"name": "square", "description": "4-cycle", "filePath": "square.json"},
            {"name": "broken", "description": "bad file", "filePath": "broken.json"},
            {"description": "no name"},
        ]
    }), encoding="utf-8")
    return tmp_path


class TestGraphCatalog:

    def test_builtin_example_only(self):
        catalog = GraphCatalog()

        assert [g["name"] for g in catalog.list_graphs()] == ["example"]
        graph = catalog.load("example")
        assert len(graph.nodes) == 8
        assert graph.get_adjacent_nodes("7") == {"1", "2", "4", "5"}

    def test_index_entries_listed_after_example(self, graph_dir):
        catalog = GraphCatalog(graph_dir)

        assert catalog.list_graphs() == [
            {"name": "example", "description": "8 nodes, 15 edges"},
            {"name": "square", "description": "4-cycle"},
            {"name": "broken", "description": "bad file"},
        ]

    def test_load_from_index(self, graph_dir):
        graph = GraphCatalog(graph_dir).load("square")

        assert graph.get_adjacent_nodes("a") == {"b", "d"}

    def test_unknown_name(self, graph_dir):
        with pytest.raises(KeyError):
            GraphCatalog(graph_dir).load("missing")

    def test_broken_file(self, graph_dir):
        with pytest.raises(MalformedGraph):
            GraphCatalog(graph_dir).load("broken")

    def test_directory_without_index(self, tmp_path):
        catalog = GraphCatalog(tmp_path)

        assert [g["name"] for g in catalog.list_graphs()] == ["example"]

    def test_index_without_graphs_array(self, tmp_path):
        (tmp_path / "all-graphs.json").write_text(json.dumps({"graphs": {}}), encoding="utf-8")

        with pytest.raises(MalformedGraph):
            GraphCatalog(tmp_path)

    def test_load_graph_file_missing(self, tmp_path):
        with pytest.raises(MalformedGraph):
            load_graph_file(tmp_path / "nope.json")
