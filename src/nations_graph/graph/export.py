"""JSON output for a built nation graph.

The export is a read-only view of BuildingNationGraph: node maps,
synonyms, errors and whatever is still pending. Edge names can be
rewritten through the synonym map so that consumers see canonical
keys only.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from nations_graph.graph.models import (
        BuildingNationGraph,
        NationKey,
        NationValue,
    )

logger = logging.getLogger(__name__)


def _serialize_value(value: NationValue) -> dict[str, Any]:
    return {
        "name": value.name,
        "start_year": value.start_year,
        "end_year": value.end_year,
        "position": list(value.position) if value.position is not None else None,
        "wiki_article": value.wiki_article,
    }


def _edges(
    graph: BuildingNationGraph,
    names: set[NationKey],
    resolve_synonyms: bool,
) -> list[str]:
    if resolve_synonyms:
        names = {graph.resolve_key(name) for name in names}
    return sorted(names)


def graph_to_dict(graph: BuildingNationGraph, resolve_synonyms: bool = True) -> dict[str, Any]:
    """Convert the graph to a JSON-serializable dict.

    Args:
        graph: Built (or partially built) graph.
        resolve_synonyms: Rewrite edge names through the synonym map.

    Returns:
        Dict with nations, subdivisions, synonyms, errors and pending keys.
        Edge lists are sorted; parent candidates keep their order.
    """
    nations = {
        key: {
            **_serialize_value(node.value),
            "precursors": _edges(graph, node.precursors, resolve_synonyms),
            "successors": _edges(graph, node.successors, resolve_synonyms),
        }
        for key, node in sorted(graph.nations.items())
    }

    subdivisions = {
        key: {
            **_serialize_value(node.value),
            "precursors": _edges(graph, node.precursors, resolve_synonyms),
            "successors": _edges(graph, node.successors, resolve_synonyms),
            "possible_parents": [
                graph.resolve_key(parent) if resolve_synonyms else parent
                for parent in node.possible_parents
            ],
        }
        for key, node in sorted(graph.subdivisions.items())
    }

    errors = {
        title: {"type": type(error).__name__, "message": str(error)}
        for title, error in sorted(graph.errors.items())
    }

    return {
        "nations": nations,
        "subdivisions": subdivisions,
        "synonyms": dict(sorted(graph.synonyms.items())),
        "errors": errors,
        "pending": list(graph.todo),
    }


def write_graph_json(
    graph: BuildingNationGraph,
    output_path: Path,
    resolve_synonyms: bool = True,
) -> None:
    """Write the graph to a JSON file.

    Args:
        graph: Graph to write.
        output_path: Destination file; parent directories are created.
        resolve_synonyms: Rewrite edge names through the synonym map.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data = graph_to_dict(graph, resolve_synonyms=resolve_synonyms)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")
    logger.info(f"Wrote graph to {output_path}")
