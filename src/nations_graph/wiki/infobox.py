"""Infobox extractor for former countries and former subdivisions.

This module reads the succession facts out of a parsed page:
the {{Infobox former country}} or {{Infobox former subdivision}}
template is located among the top-level nodes, and its named
parameters are interpreted as

- conventional_long_name: the entity's name (mandatory)
- year_start / year_end: signed years, "44 BC" is -44
- p1..p15 / s1..s15: precursor and successor page titles
- nation: parent candidates of a subdivision (link targets)

A malformed optional field fails the whole extraction; absent fields
are simply skipped.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from nations_graph.errors import (
    DoubleInfoboxError,
    MissingInfoboxError,
    MissingInfoboxFieldError,
    PropInterpretationError,
)
from nations_graph.wiki.markup import link_title
from nations_graph.wiki.types import (
    NationInfobox,
    SubdivisionInfobox,
    WikiComment,
    WikiHtmlTag,
    WikiLink,
    WikiTemplate,
    WikiText,
)

if TYPE_CHECKING:
    from nations_graph.wiki.types import Document, Infobox, WikiNode

FORMER_COUNTRY_TEMPLATE: Final[str] = "infobox former country"
FORMER_SUBDIVISION_TEMPLATE: Final[str] = "infobox former subdivision"

NAME_FIELD: Final[str] = "conventional_long_name"
YEAR_START_FIELD: Final[str] = "year_start"
YEAR_END_FIELD: Final[str] = "year_end"
NATION_FIELD: Final[str] = "nation"

# p1..p15 and s1..s15
MAX_CONNECTIONS: Final[int] = 15

# Tags that only decorate a field value
DECORATIVE_TAGS: Final[frozenset[str]] = frozenset(["br", "small"])

# Template that follows a connection value to mark a footnote
FOOTNOTE_TEMPLATE: Final[str] = "!"

# "1776", "44 BC", "44BC"
YEAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"([0-9]+)(\s*BC)?")

_WHITESPACE: Final[re.Pattern[str]] = re.compile(r"\s+")


def _normalize_title(title: str) -> str:
    """Normalize a template title for comparison.

    Examples:
        >>> _normalize_title("Infobox_Former  Country")
        'infobox former country'
    """
    return _WHITESPACE.sub(" ", title.replace("_", " ")).strip().lower()


def find_template(document: Document, title: str) -> WikiTemplate | None:
    """Find the first top-level template with the given title.

    Nested templates are not searched. Titles are compared
    case-insensitively, with underscores treated as spaces.

    Args:
        document: Parsed page.
        title: Template title to look for.

    Returns:
        The first matching template, or None.
    """
    wanted = _normalize_title(title)
    for node in document:
        if isinstance(node, WikiTemplate) and _normalize_title(node.title) == wanted:
            return node
    return None


def _is_decoration(node: WikiNode) -> bool:
    if isinstance(node, WikiComment):
        return True
    return isinstance(node, WikiHtmlTag) and node.name.lower() in DECORATIVE_TAGS


def _strip_decorations(value: Document) -> list[WikiNode]:
    """Remove comments, <br>/<small> tags and whitespace-only text.

    Text that was separated only by removed nodes is merged first, so
    "Foo<!-- note -->Bar" becomes a single "FooBar" text node.
    """
    merged: list[WikiNode] = []
    for node in value:
        if _is_decoration(node):
            continue
        if isinstance(node, WikiText) and merged and isinstance(merged[-1], WikiText):
            merged[-1] = WikiText(merged[-1].text + node.text)
        else:
            merged.append(node)
    return [node for node in merged if not (isinstance(node, WikiText) and not node.text.strip())]


def get_prop_as_text(
    named: dict[str, Document],
    key: str,
    is_auto_linked: bool,
) -> str | None:
    """Read a named template parameter as plain text.

    Accepted shapes, after decorations are removed:
    - nothing at all: ""
    - a single text node: its text
    - a single link, when the field is not auto-linked: the link target
    - text followed by {{!}}, when the field is auto-linked: the text

    Args:
        named: Named parameters of the infobox template.
        key: Parameter name.
        is_auto_linked: Whether the template links this field itself,
            in which case an author-written link is not a valid value.

    Returns:
        The text, or None if the parameter is absent.

    Raises:
        PropInterpretationError: If the value has any other shape.

    Examples:
        >>> from nations_graph.wiki.markup import parse_wiki
        >>> box = parse_wiki("{{x|capital=[[Rome]]}}")[0]
        >>> get_prop_as_text(box.named, "capital", is_auto_linked=False)
        'Rome'
    """
    value = named.get(key)
    if value is None:
        return None

    nodes = _strip_decorations(value)
    if not nodes:
        return ""

    first = nodes[0]
    if len(nodes) == 1:
        if isinstance(first, WikiText):
            return first.text
        if isinstance(first, WikiLink) and not is_auto_linked:
            return first.target
    elif is_auto_linked and isinstance(first, WikiText):
        second = nodes[1]
        if isinstance(second, WikiTemplate) and second.title == FOOTNOTE_TEMPLATE:
            return first.text

    raise PropInterpretationError(key)


def parse_year(text: str) -> int | None:
    """Parse a year literal, negating years marked BC.

    Args:
        text: Field text such as "1776" or "44 BC".

    Returns:
        The signed year, or None if the text is not a year literal.

    Examples:
        >>> parse_year("44 BC")
        -44
        >>> parse_year("1776")
        1776
        >>> parse_year("nope") is None
        True
    """
    match = YEAR_PATTERN.fullmatch(text.strip())
    if match is None:
        return None
    year = int(match.group(1))
    return -year if match.group(2) else year


def _get_year(named: dict[str, Document], key: str) -> int | None:
    text = get_prop_as_text(named, key, is_auto_linked=False)
    if text is None or not text.strip():
        return None
    year = parse_year(text)
    if year is None:
        raise PropInterpretationError(key)
    return year


def _get_name(named: dict[str, Document]) -> str:
    try:
        text = get_prop_as_text(named, NAME_FIELD, is_auto_linked=False)
    except PropInterpretationError as e:
        raise MissingInfoboxFieldError(NAME_FIELD) from e
    if text is None or not text.strip():
        raise MissingInfoboxFieldError(NAME_FIELD)
    return text.strip()


def _get_connections(named: dict[str, Document], prefix: str) -> list[str]:
    """Collect p1..p15 or s1..s15 in numeric order, skipping blanks."""
    connections: list[str] = []
    for index in range(1, MAX_CONNECTIONS + 1):
        text = get_prop_as_text(named, f"{prefix}{index}", is_auto_linked=True)
        if text is None:
            continue
        title = text.strip()
        if title:
            connections.append(title)
    return connections


def _get_parent_candidates(named: dict[str, Document]) -> list[str]:
    value = named.get(NATION_FIELD, [])
    return [link_title(node.target) for node in value if isinstance(node, WikiLink)]


def extract_infobox(document: Document) -> Infobox:
    """Extract a former country or subdivision infobox from a page.

    Exactly one of the two templates must be present at the top level.

    Args:
        document: Parsed page.

    Returns:
        NationInfobox or SubdivisionInfobox.

    Raises:
        MissingInfoboxError: If neither template is present.
        DoubleInfoboxError: If both templates are present.
        MissingInfoboxFieldError: If the name cannot be read.
        PropInterpretationError: If a year or connection field is malformed.
    """
    country = find_template(document, FORMER_COUNTRY_TEMPLATE)
    subdivision = find_template(document, FORMER_SUBDIVISION_TEMPLATE)

    if country is not None and subdivision is not None:
        raise DoubleInfoboxError()
    if country is not None:
        props = country.named
        return NationInfobox(
            name=_get_name(props),
            start_year=_get_year(props, YEAR_START_FIELD),
            end_year=_get_year(props, YEAR_END_FIELD),
            precursors=_get_connections(props, "p"),
            successors=_get_connections(props, "s"),
        )
    if subdivision is not None:
        props = subdivision.named
        return SubdivisionInfobox(
            name=_get_name(props),
            start_year=_get_year(props, YEAR_START_FIELD),
            end_year=_get_year(props, YEAR_END_FIELD),
            precursors=_get_connections(props, "p"),
            successors=_get_connections(props, "s"),
            parent_candidates=_get_parent_candidates(props),
        )
    raise MissingInfoboxError()
