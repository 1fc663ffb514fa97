"""Data models for the nation succession graph.

This module contains the graph state built by the traversal:
- NationValue: Facts about one entity
- NationNode / SubdivisionNode: An entity with its succession edges
- Redirect: Outcome of processing a redirect page
- BuildingNationGraph: The traversal's maps and worklist

Edges are stored as page titles exactly as the infoboxes name them.
A title may turn out to be a synonym of another page; resolve_key()
maps such names to their canonical key at read time.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeAlias

from nations_graph.errors import HistoryError
from nations_graph.wiki.types import Infobox, SubdivisionInfobox

logger = logging.getLogger(__name__)

NationKey: TypeAlias = str
"""Canonical entity identifier: the article title."""


@dataclass(frozen=True)
class NationValue:
    """Facts about a nation or subdivision.

    Attributes:
        name: Display name (the infobox's conventional long name)
        start_year: Founding year, negative for BC
        end_year: Dissolution year, negative for BC
        position: Map coordinate, not filled in by the traversal
        wiki_article: Title of the article the facts were read from
    """

    name: str
    start_year: int | None
    end_year: int | None
    position: tuple[float, float] | None
    wiki_article: str


@dataclass
class NationNode:
    """A former country and its succession edges."""

    value: NationValue
    precursors: set[NationKey] = field(default_factory=set)
    successors: set[NationKey] = field(default_factory=set)


@dataclass
class SubdivisionNode:
    """A former subdivision, its succession edges and claimed parents.

    Attributes:
        possible_parents: Link targets of the |nation= field, in order.
            These are the subdivision's own claims and are not validated.
    """

    value: NationValue
    precursors: set[NationKey] = field(default_factory=set)
    successors: set[NationKey] = field(default_factory=set)
    possible_parents: list[NationKey] = field(default_factory=list)


@dataclass(frozen=True)
class Redirect:
    """The processed title is an alias of ``target``."""

    target: str


TitleOutcome: TypeAlias = "Infobox | Redirect | HistoryError"
"""Result of processing one title, applied by BuildingNationGraph.apply_outcome."""


@dataclass
class BuildingNationGraph:
    """Mutable traversal state.

    Attributes:
        nations: Former countries keyed by article title
        subdivisions: Former subdivisions keyed by article title
        synonyms: Redirect title -> title it redirects to
        todo: FIFO worklist of titles still to process
        errors: Title -> error that ended its processing

    Entries are never removed, and every title leaves the worklist as
    exactly one of a node, a synonym or an error.
    """

    nations: dict[NationKey, NationNode] = field(default_factory=dict)
    subdivisions: dict[NationKey, SubdivisionNode] = field(default_factory=dict)
    synonyms: dict[str, NationKey] = field(default_factory=dict)
    todo: deque[str] = field(default_factory=deque)
    errors: dict[str, HistoryError] = field(default_factory=dict)

    @classmethod
    def from_seeds(cls, titles: Iterable[str]) -> BuildingNationGraph:
        """Create an empty graph with ``titles`` pending."""
        return cls(todo=deque(titles))

    @property
    def is_complete(self) -> bool:
        """True once the worklist is empty."""
        return not self.todo

    def is_resolved(self, title: str) -> bool:
        """Whether ``title`` already has a node, synonym or error."""
        return (
            title in self.nations
            or title in self.subdivisions
            or title in self.synonyms
            or title in self.errors
        )

    def _enqueue_unresolved(self, titles: Iterable[str]) -> list[str]:
        enqueued: list[str] = []
        for title in titles:
            if not self.is_resolved(title) and title not in enqueued:
                self.todo.append(title)
                enqueued.append(title)
        return enqueued

    def apply_outcome(self, title: str, outcome: TitleOutcome) -> list[str]:
        """Record the outcome of processing ``title``.

        This is the only mutation of the maps. An already resolved
        title is left untouched, so applying an outcome twice is a no-op.

        Args:
            title: The processed title.
            outcome: Extracted infobox, redirect, or the error raised.

        Returns:
            Titles newly added to the worklist.
        """
        if self.is_resolved(title):
            logger.debug(f"Skipping {title!r}: already resolved")
            return []

        if isinstance(outcome, HistoryError):
            self.errors[title] = outcome
            logger.info(f"Error for {title!r}: {type(outcome).__name__}: {outcome}")
            return []

        if isinstance(outcome, Redirect):
            self.synonyms[title] = outcome.target
            logger.info(f"Synonym {title!r} -> {outcome.target!r}")
            return self._enqueue_unresolved([outcome.target])

        value = NationValue(
            name=outcome.name,
            start_year=outcome.start_year,
            end_year=outcome.end_year,
            position=None,
            wiki_article=title,
        )
        names = [*outcome.precursors, *outcome.successors]
        if isinstance(outcome, SubdivisionInfobox):
            self.subdivisions[title] = SubdivisionNode(
                value=value,
                precursors=set(outcome.precursors),
                successors=set(outcome.successors),
                possible_parents=list(outcome.parent_candidates),
            )
            names.extend(outcome.parent_candidates)
            logger.info(f"Subdivision {title!r} ({outcome.name})")
        else:
            self.nations[title] = NationNode(
                value=value,
                precursors=set(outcome.precursors),
                successors=set(outcome.successors),
            )
            logger.info(f"Nation {title!r} ({outcome.name})")

        return self._enqueue_unresolved(names)

    def resolve_key(self, name: str) -> NationKey:
        """Follow synonyms from ``name`` to its canonical key.

        Cycles of redirects end at the first repeated title.

        Examples:
            >>> graph = BuildingNationGraph(synonyms={"Rome": "Roman Empire"})
            >>> graph.resolve_key("Rome")
            'Roman Empire'
        """
        seen = {name}
        while name in self.synonyms:
            target = self.synonyms[name]
            if target in seen:
                break
            seen.add(target)
            name = target
        return name

    def stats(self) -> dict[str, int]:
        """Count entries in each map and the worklist."""
        return {
            "nations": len(self.nations),
            "subdivisions": len(self.subdivisions),
            "synonyms": len(self.synonyms),
            "errors": len(self.errors),
            "pending": len(self.todo),
        }
