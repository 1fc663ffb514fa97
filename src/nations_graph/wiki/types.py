"""Shared type definitions for the wiki modules.

This module contains the document tree produced by the markup parser
and the infobox records produced by the infobox extractor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeAlias


@dataclass
class WikiText:
    """A maximal run of literal characters."""

    text: str


@dataclass
class WikiTemplate:
    """A {{template}} with its parameters.

    Attributes:
        title: Template name, stripped of surrounding whitespace.
        positional: Unnamed parameters in source order.
        named: Named parameters keyed by stripped name (last duplicate wins).
    """

    title: str
    positional: list[Document] = field(default_factory=list)
    named: dict[str, Document] = field(default_factory=dict)


@dataclass
class WikiLink:
    """An internal [[link]].

    Attributes:
        target: Text before the first pipe, taken verbatim.
        parts: Pipe-separated renderings, each parsed as a document.
    """

    target: str
    parts: list[Document] = field(default_factory=list)


@dataclass
class WikiHtmlTag:
    """A single HTML tag: opening, closing (</name>) or self-closing (<name/>)."""

    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    closing: bool = False
    self_closing: bool = False


@dataclass
class WikiComment:
    """An <!-- comment -->, content kept verbatim."""

    text: str


WikiNode: TypeAlias = "WikiText | WikiTemplate | WikiLink | WikiHtmlTag | WikiComment"
"""Any node of a parsed document."""

Document: TypeAlias = "list[WikiNode]"
"""Parsed markup span: non-empty, with no two adjacent WikiText nodes."""


@dataclass
class NationInfobox:
    """Facts read from an {{Infobox former country}}.

    Attributes:
        name: The conventional long name.
        start_year: Founding year, negative for BC, None if not given.
        end_year: Dissolution year, negative for BC, None if not given.
        precursors: Titles from p1..p15 in numeric order.
        successors: Titles from s1..s15 in numeric order.
    """

    name: str
    start_year: int | None
    end_year: int | None
    precursors: list[str] = field(default_factory=list)
    successors: list[str] = field(default_factory=list)


@dataclass
class SubdivisionInfobox:
    """Facts read from an {{Infobox former subdivision}}.

    Same fields as NationInfobox, plus the link targets of the |nation=
    field as unvalidated parent candidates.
    """

    name: str
    start_year: int | None
    end_year: int | None
    precursors: list[str] = field(default_factory=list)
    successors: list[str] = field(default_factory=list)
    parent_candidates: list[str] = field(default_factory=list)


Infobox: TypeAlias = "NationInfobox | SubdivisionInfobox"
