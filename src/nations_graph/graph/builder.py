"""Traversal that builds the nation succession graph.

Starting from seed titles, each pending title is fetched, parsed and
interpreted, and every title its infobox names is queued in turn until
the worklist is empty.

Processing a title is split in two:
1. interpret_page(): fetch result -> infobox, redirect or error.
   Pure, so any number of workers can run it at once.
2. BuildingNationGraph.apply_outcome(): the single writer that records
   the outcome and queues new titles.

build_nation_graph() runs fetches concurrently as asyncio tasks; only
the coordinating coroutine calls apply_outcome().
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from nations_graph.errors import HistoryError
from nations_graph.fetch import PageRedirect
from nations_graph.graph.models import BuildingNationGraph, Redirect
from nations_graph.wiki.infobox import extract_infobox
from nations_graph.wiki.markup import DEFAULT_MAX_DEPTH, parse_wiki, redirect_target

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from nations_graph.fetch import FetchResult, PageFetcher
    from nations_graph.graph.models import TitleOutcome

logger = logging.getLogger(__name__)


def interpret_page(page: FetchResult, max_depth: int = DEFAULT_MAX_DEPTH) -> TitleOutcome:
    """Turn a fetched page into the outcome for its title.

    Args:
        page: Page text or API redirect returned by the fetcher.
        max_depth: Nesting limit for the markup parser.

    Returns:
        Redirect for redirect pages, the extracted infobox otherwise,
        or the HistoryError that prevented extraction.
    """
    if isinstance(page, PageRedirect):
        return Redirect(page.target)

    try:
        document = parse_wiki(page.text, max_depth)
        target = redirect_target(document)
        if target is not None:
            return Redirect(target)
        return extract_infobox(document)
    except HistoryError as e:
        return e


def step(
    graph: BuildingNationGraph,
    fetch: Callable[[str], FetchResult],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> str | None:
    """Process the title at the front of the worklist.

    Args:
        graph: Traversal state, modified in place.
        fetch: Returns the page for a title, raising HTTPError or
            JsonParseError on failure.
        max_depth: Nesting limit for the markup parser.

    Returns:
        The dequeued title, or None if the worklist was empty.
    """
    if not graph.todo:
        return None

    title = graph.todo.popleft()
    if graph.is_resolved(title):
        return title

    try:
        outcome = interpret_page(fetch(title), max_depth)
    except HistoryError as e:
        outcome = e
    graph.apply_outcome(title, outcome)
    return title


def build_graph_sync(
    seeds: Iterable[str],
    fetch: Callable[[str], FetchResult],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> BuildingNationGraph:
    """Run step() until the worklist is empty."""
    graph = BuildingNationGraph.from_seeds(seeds)
    while step(graph, fetch, max_depth) is not None:
        pass
    return graph


async def _process_title(
    title: str,
    fetcher: PageFetcher,
    max_depth: int,
) -> TitleOutcome:
    try:
        page = await fetcher.fetch(title)
    except HistoryError as e:
        return e
    return interpret_page(page, max_depth)


async def build_nation_graph(
    seeds: Iterable[str],
    fetcher: PageFetcher,
    max_concurrent: int = 8,
    max_pages: int | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    progress_callback: Callable[[int, BuildingNationGraph], None] | None = None,
) -> BuildingNationGraph:
    """Build the succession graph reachable from ``seeds``.

    Up to ``max_concurrent`` titles are fetched and interpreted at once.
    Outcomes are applied one at a time by this coroutine, so the
    resolved-check, insertion and enqueueing of a title never interleave
    with another title's.

    Args:
        seeds: Initial titles.
        fetcher: Page source.
        max_concurrent: Maximum number of titles in flight.
        max_pages: Stop dispatching after this many fetches. Titles not
            yet dispatched stay in the worklist.
        max_depth: Nesting limit for the markup parser.
        progress_callback: Optional callback(pages_done, graph) called
            after each applied outcome.

    Returns:
        The graph; complete unless ``max_pages`` was reached.
    """
    if max_concurrent <= 0:
        raise ValueError("max_concurrent must be positive")

    graph = BuildingNationGraph.from_seeds(seeds)
    in_flight: dict[asyncio.Task[TitleOutcome], str] = {}
    dispatched = 0
    done_count = 0

    def budget_left() -> bool:
        return max_pages is None or dispatched < max_pages

    try:
        while True:
            while graph.todo and len(in_flight) < max_concurrent and budget_left():
                title = graph.todo.popleft()
                if graph.is_resolved(title) or title in in_flight.values():
                    continue
                task = asyncio.create_task(_process_title(title, fetcher, max_depth))
                in_flight[task] = title
                dispatched += 1

            if not in_flight:
                break

            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                title = in_flight.pop(task)
                graph.apply_outcome(title, task.result())
                done_count += 1
                if progress_callback is not None:
                    progress_callback(done_count, graph)
    finally:
        for task in in_flight:
            task.cancel()
        if in_flight:
            # Put unfinished titles back so the graph stays resumable
            graph.todo.extendleft(reversed(list(in_flight.values())))
            await asyncio.gather(*in_flight, return_exceptions=True)

    if max_pages is not None and graph.todo:
        logger.warning(f"Stopped after {dispatched} pages with {len(graph.todo)} titles pending")
    logger.info(f"Graph built: {graph.stats()}")
    return graph
