"""Unit tests for the graph traversal.

Test strategy:
- interpret_page maps fetch results to outcomes
- step/build_graph_sync drive the worklist to completion
- build_nation_graph gives the same graph concurrently
- Concurrency and page limits are honoured
"""

import asyncio
from collections.abc import Sequence

import httpx
import pytest

from nations_graph.config import NationsGraphConfig
from nations_graph.errors import HTTPError, JsonParseError, MissingInfoboxError, WikiParseError
from nations_graph.fetch import FetchResult, MediaWikiFetcher, PageRedirect, PageText
from nations_graph.graph.builder import (
    build_graph_sync,
    build_nation_graph,
    interpret_page,
    step,
)
from nations_graph.graph.models import BuildingNationGraph, Redirect
from nations_graph.wiki.types import NationInfobox


def _country(name: str, precursors: Sequence[str] = (), successors: Sequence[str] = ()) -> str:
    fields = [f"|conventional_long_name={name}"]
    fields += [f"|p{i}={title}" for i, title in enumerate(precursors, start=1)]
    fields += [f"|s{i}={title}" for i, title in enumerate(successors, start=1)]
    return "{{Infobox former country\n" + "\n".join(fields) + "\n}}\nProse."


# A small succession chain with a redirect, an error page and a cycle
PAGES: dict[str, str] = {
    "Roman Kingdom": _country("Roman Kingdom", successors=["Roman Republic"]),
    "Roman Republic": _country(
        "Roman Republic", precursors=["Roman Kingdom"], successors=["Rome (empire)"]
    ),
    "Rome (empire)": "#REDIRECT [[Roman Empire]]",
    "Roman Empire": _country(
        "Roman Empire",
        precursors=["Roman Republic"],
        successors=["Western Roman Empire", "Byzantine Empire"],
    ),
    "Western Roman Empire": "No infobox here.",
    "Byzantine Empire": "{{Infobox former country|conventional_long_name=Byzantine Empire",
}


class CountingFetch:
    """Synchronous fetch over an in-memory page dict."""

    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def __call__(self, title: str) -> FetchResult:
        self.calls.append(title)
        if title not in self.pages:
            raise JsonParseError(f"page {title!r} does not exist")
        return PageText(title=title, text=self.pages[title])


class FakeFetcher:
    """Asynchronous fetcher that records how many fetches overlap."""

    def __init__(self, pages: dict[str, str], delay: float = 0.0) -> None:
        self.pages = pages
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, title: str) -> FetchResult:
        self.calls.append(title)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if title not in self.pages:
                raise JsonParseError(f"page {title!r} does not exist")
            return PageText(title=title, text=self.pages[title])
        finally:
            self.active -= 1


def _snapshot(graph: BuildingNationGraph) -> tuple[object, ...]:
    """Order-independent view of a graph's contents."""
    return (
        graph.nations,
        graph.subdivisions,
        graph.synonyms,
        {title: type(error) for title, error in graph.errors.items()},
    )


# =============================================================================
# INTERPRET PAGE
# =============================================================================


class TestInterpretPage:
    """Tests for interpret_page()."""

    @pytest.mark.unit
    def test_infobox(self) -> None:
        """A page with an infobox should give the infobox."""
        outcome = interpret_page(PageText("A", _country("A", successors=["B"])))
        assert outcome == NationInfobox("A", None, None, [], ["B"])

    @pytest.mark.unit
    def test_redirect_text(self) -> None:
        """A #REDIRECT page should give a Redirect."""
        assert interpret_page(PageText("A", "#REDIRECT [[B]]")) == Redirect("B")

    @pytest.mark.unit
    def test_api_redirect(self) -> None:
        """A redirect resolved by the API should give a Redirect."""
        assert interpret_page(PageRedirect("A", "B")) == Redirect("B")

    @pytest.mark.unit
    def test_parse_error_returned(self) -> None:
        """Parse errors should be returned, not raised."""
        outcome = interpret_page(PageText("A", "{{broken"))
        assert isinstance(outcome, WikiParseError)

    @pytest.mark.unit
    def test_depth_limit_passed_through(self) -> None:
        """The nesting limit should reach the parser."""
        outcome = interpret_page(PageText("A", "{{a|{{b|{{c|}}}}}}"), max_depth=2)
        assert isinstance(outcome, WikiParseError)

    @pytest.mark.unit
    def test_nesting_beyond_interpreter_stack_returned(self) -> None:
        """Nesting too deep for the interpreter stack should be a parse error."""
        text = "{{a|" * 1500 + "}}" * 1500
        outcome = interpret_page(PageText("A", text), max_depth=5000)
        assert isinstance(outcome, WikiParseError)


# =============================================================================
# SYNCHRONOUS TRAVERSAL
# =============================================================================


class TestStep:
    """Tests for step()."""

    @pytest.mark.unit
    def test_empty_worklist(self) -> None:
        """An empty worklist should return None."""
        assert step(BuildingNationGraph(), CountingFetch({})) is None

    @pytest.mark.unit
    def test_resolved_title_not_fetched(self) -> None:
        """A queued title that is already resolved should be skipped."""
        graph = BuildingNationGraph.from_seeds(["A"])
        graph.errors["A"] = MissingInfoboxError()
        fetch = CountingFetch({})

        assert step(graph, fetch) == "A"
        assert fetch.calls == []

    @pytest.mark.unit
    def test_fetch_error_recorded(self) -> None:
        """A failing fetch should be recorded as the title's error."""

        def failing_fetch(title: str) -> FetchResult:
            raise HTTPError("server returned 500", status_code=500)

        graph = BuildingNationGraph.from_seeds(["A"])
        step(graph, failing_fetch)
        assert isinstance(graph.errors["A"], HTTPError)
        assert graph.is_complete


class TestBuildGraphSync:
    """Tests for build_graph_sync()."""

    @pytest.mark.unit
    def test_chain_is_followed(self) -> None:
        """Every reachable title should end up resolved."""
        graph = build_graph_sync(["Roman Kingdom"], CountingFetch(PAGES))

        assert graph.is_complete
        assert set(graph.nations) == {"Roman Kingdom", "Roman Republic", "Roman Empire"}
        assert graph.synonyms == {"Rome (empire)": "Roman Empire"}
        assert isinstance(graph.errors["Western Roman Empire"], MissingInfoboxError)
        assert isinstance(graph.errors["Byzantine Empire"], WikiParseError)

    @pytest.mark.unit
    def test_edges_keep_written_names(self) -> None:
        """Edges should name titles as the infobox wrote them."""
        graph = build_graph_sync(["Roman Kingdom"], CountingFetch(PAGES))
        assert graph.nations["Roman Republic"].successors == {"Rome (empire)"}
        assert graph.resolve_key("Rome (empire)") == "Roman Empire"

    @pytest.mark.unit
    def test_each_title_fetched_once(self) -> None:
        """Mutual references and duplicate seeds should not refetch."""
        fetch = CountingFetch(PAGES)
        build_graph_sync(["Roman Kingdom", "Roman Kingdom", "Roman Republic"], fetch)
        assert len(fetch.calls) == len(set(fetch.calls))

    @pytest.mark.unit
    def test_mutual_references_terminate(self) -> None:
        """A <-> B should converge with two nodes."""
        pages = {"A": _country("A", successors=["B"]), "B": _country("B", precursors=["A"])}
        graph = build_graph_sync(["A"], CountingFetch(pages))
        assert set(graph.nations) == {"A", "B"}
        assert graph.is_complete

    @pytest.mark.unit
    def test_error_title_attempted_once(self) -> None:
        """A failing title queued twice should be fetched once."""
        fetch = CountingFetch({})
        graph = build_graph_sync(["Atlantis", "Atlantis"], fetch)
        assert fetch.calls == ["Atlantis"]
        assert list(graph.errors) == ["Atlantis"]

    @pytest.mark.unit
    def test_seed_order_does_not_change_result(self) -> None:
        """The final maps should not depend on seed order."""
        forward = build_graph_sync(["Roman Kingdom", "Roman Empire"], CountingFetch(PAGES))
        backward = build_graph_sync(["Roman Empire", "Roman Kingdom"], CountingFetch(PAGES))
        assert _snapshot(forward) == _snapshot(backward)


# =============================================================================
# CONCURRENT TRAVERSAL
# =============================================================================


class TestBuildNationGraph:
    """Tests for build_nation_graph()."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_matches_sync_traversal(self) -> None:
        """The concurrent build should produce the same graph."""
        expected = build_graph_sync(["Roman Kingdom"], CountingFetch(PAGES))
        graph = await build_nation_graph(["Roman Kingdom"], FakeFetcher(PAGES), max_concurrent=4)

        assert graph.is_complete
        assert _snapshot(graph) == _snapshot(expected)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrency_limit(self) -> None:
        """No more than max_concurrent fetches should overlap."""
        pages = {f"N{i}": _country(f"N{i}") for i in range(10)}
        fetcher = FakeFetcher(pages, delay=0.01)

        graph = await build_nation_graph(list(pages), fetcher, max_concurrent=3)

        assert len(graph.nations) == 10
        assert fetcher.max_active == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_in_flight_title_not_fetched_twice(self) -> None:
        """A title queued while already in flight should not be refetched."""
        fetcher = FakeFetcher({"A": _country("A")}, delay=0.01)
        graph = await build_nation_graph(["A", "A", "A"], fetcher, max_concurrent=3)

        assert fetcher.calls == ["A"]
        assert list(graph.nations) == ["A"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_max_pages_leaves_pending(self) -> None:
        """Stopping at max_pages should keep undispatched titles queued."""
        fetcher = FakeFetcher(PAGES)
        graph = await build_nation_graph(
            ["Roman Kingdom"], fetcher, max_concurrent=1, max_pages=2
        )

        assert len(fetcher.calls) == 2
        assert set(graph.nations) == {"Roman Kingdom", "Roman Republic"}
        assert list(graph.todo) == ["Rome (empire)"]
        assert not graph.is_complete

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_progress_callback(self) -> None:
        """The callback should be called once per applied outcome."""
        calls: list[int] = []

        def callback(done: int, graph: BuildingNationGraph) -> None:
            calls.append(done)

        await build_nation_graph(["Roman Kingdom"], FakeFetcher(PAGES), progress_callback=callback)

        assert calls == list(range(1, len(calls) + 1))
        assert len(calls) == 6

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_concurrent", [0, -1])
    async def test_invalid_concurrency(self, max_concurrent: int) -> None:
        """A non-positive limit should raise ValueError."""
        with pytest.raises(ValueError, match="max_concurrent"):
            await build_nation_graph(["A"], FakeFetcher({}), max_concurrent=max_concurrent)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancellation_stops_in_flight_fetches(self) -> None:
        """Cancelling the build should cancel its in-flight fetches."""
        fetcher = FakeFetcher({"A": _country("A")}, delay=10)
        task = asyncio.create_task(build_nation_graph(["A"], fetcher))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert fetcher.calls == ["A"]
        assert fetcher.active == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreadable_responses_do_not_stop_traversal(self) -> None:
        """Undecodable or non-UTF-8 responses should be recorded per title."""
        hub = _country("Hub", successors=["Gzip Garbage", "Latin-1 Body", "Leaf"])
        leaf = _country("Leaf", precursors=["Hub"])

        def handler(request: httpx.Request) -> httpx.Response:
            title = request.url.params["titles"]
            if title == "Gzip Garbage":
                return httpx.Response(
                    200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all"
                )
            if title == "Latin-1 Body":
                return httpx.Response(200, content=b'{"query": "\xff\xfe"}')
            text = {"Hub": hub, "Leaf": leaf}[title]
            revision = {"slots": {"main": {"content": text}}}
            return httpx.Response(
                200, json={"query": {"pages": [{"title": title, "revisions": [revision]}]}}
            )

        config = NationsGraphConfig(api_url="https://wiki.test/w/api.php", retry_delay_seconds=0)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = MediaWikiFetcher(config, client=client)
            graph = await build_nation_graph(["Hub"], fetcher, max_concurrent=3)

        assert graph.is_complete
        assert set(graph.nations) == {"Hub", "Leaf"}
        assert isinstance(graph.errors["Gzip Garbage"], HTTPError)
        assert isinstance(graph.errors["Latin-1 Body"], JsonParseError)
