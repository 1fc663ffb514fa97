"""Nation succession graph: state, traversal and export."""

from nations_graph.graph.builder import (
    build_graph_sync,
    build_nation_graph,
    interpret_page,
    step,
)
from nations_graph.graph.export import graph_to_dict, write_graph_json
from nations_graph.graph.models import (
    BuildingNationGraph,
    NationKey,
    NationNode,
    NationValue,
    Redirect,
    SubdivisionNode,
    TitleOutcome,
)

__all__ = [
    "BuildingNationGraph",
    "NationKey",
    "NationNode",
    "NationValue",
    "Redirect",
    "SubdivisionNode",
    "TitleOutcome",
    "build_graph_sync",
    "build_nation_graph",
    "graph_to_dict",
    "interpret_page",
    "step",
    "write_graph_json",
]
