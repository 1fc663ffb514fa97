"""Recursive-descent parser for MediaWiki markup.

This module turns raw wikitext into a document tree of WikiText,
WikiTemplate, WikiLink, WikiHtmlTag and WikiComment nodes. Only the
subset of the grammar needed for infobox extraction is recognised:

- <!-- comments -->
- <tag attr="value">, </tag> and <tag/> HTML tags
- [[Target|part|...]] links
- {{Title|positional|key=value|...}} templates
- everything else as literal text

At every position the alternatives are tried in that order and the
first one that succeeds is kept (ordered choice, no backtracking into
an alternative that already matched). A nested document ends when none
of the alternatives can consume the next character, which is how a
pipe, ]] or }} hands control back to the enclosing link or template.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from nations_graph.errors import WikiParseError
from nations_graph.wiki.types import (
    WikiComment,
    WikiHtmlTag,
    WikiLink,
    WikiTemplate,
    WikiText,
)

if TYPE_CHECKING:
    from nations_graph.wiki.types import Document, WikiNode

# Maximum nesting of links/templates before the input is rejected
DEFAULT_MAX_DEPTH: Final[int] = 50

REDIRECT_TOKEN: Final[str] = "#REDIRECT"

# Compile patterns once at module level for performance

# <!-- ... --> where the content never holds two consecutive dashes
COMMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"<!--((?:[^-]|-[^-])*)-->")

# XML-style name: letter, underscore or colon, then word characters . - :
_XML_NAME: Final[str] = r"(?:[^\W\d]|:)[\w.\-:]*"

# <name attr="value" ...>, </name> or <name .../>
HTML_TAG_PATTERN: Final[re.Pattern[str]] = re.compile(
    rf"<(?P<closing>/)?(?P<name>{_XML_NAME})"
    rf"(?P<attributes>(?:\s*{_XML_NAME}=\"[^\"]*\")*)"
    r"\s*(?P<end>/?>)"
)

HTML_ATTRIBUTE_PATTERN: Final[re.Pattern[str]] = re.compile(rf"({_XML_NAME})=\"([^\"]*)\"")

# Longest run of characters that cannot start or end a construct
TEXT_RUN_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^{}\[\]<>|]*")

# Link target: everything up to the first pipe or closing bracket
LINK_TARGET_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^|\]]*")

# Template title: everything up to the first pipe or closing brace
TEMPLATE_TITLE_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^|}]*")

# Candidate key of a named template parameter
PARAMETER_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^|=}]*")

SINGLE_DELIMITERS: Final[str] = "{}[]"


def _append_node(nodes: list[WikiNode], node: WikiNode) -> None:
    """Append a node, merging it into a preceding text node.

    Empty text nodes are dropped so that the document never holds
    two adjacent WikiText nodes.
    """
    if isinstance(node, WikiText):
        if not node.text:
            return
        if nodes and isinstance(nodes[-1], WikiText):
            nodes[-1] = WikiText(nodes[-1].text + node.text)
            return
    nodes.append(node)


class _MarkupParser:
    """Parser state: the input text and the nesting limit.

    Every sub-parser takes a start offset and returns either
    ``(node, end_offset)`` or ``None`` when its alternative does not match.
    """

    def __init__(self, text: str, max_depth: int) -> None:
        self.text = text
        self.length = len(text)
        self.max_depth = max_depth

    def document(self, pos: int, depth: int) -> tuple[Document, int]:
        """Parse nodes from ``pos`` until the input ends or nothing matches."""
        if depth > self.max_depth:
            raise WikiParseError(f"markup nested deeper than {self.max_depth} levels", pos)

        nodes: list[WikiNode] = []
        while pos < self.length:
            node, end = self._node(pos, depth)
            if isinstance(node, WikiText) and not node.text:
                break
            _append_node(nodes, node)
            pos = end

        if not nodes:
            nodes.append(WikiText(""))
        return nodes, pos

    def _node(self, pos: int, depth: int) -> tuple[WikiNode, int]:
        char = self.text[pos]

        if char == "<":
            result = self._comment(pos) or self._html_tag(pos)
            if result is not None:
                return result
        elif char == "[":
            result = self._link(pos, depth)
            if result is not None:
                return result
        elif char == "{":
            result = self._template(pos, depth)
            if result is not None:
                return result

        if char in "<>":
            return WikiText(char), pos + 1

        # A delimiter that is not doubled cannot open or close anything
        if char in SINGLE_DELIMITERS and self.text[pos + 1 : pos + 2] != char:
            return WikiText(char), pos + 1

        end = self._scan(TEXT_RUN_PATTERN, pos)
        return WikiText(self.text[pos:end]), end

    def _scan(self, pattern: re.Pattern[str], pos: int) -> int:
        """Return where a match of ``pattern`` at ``pos`` ends (``pos`` if none)."""
        match = pattern.match(self.text, pos)
        if match is None:
            return pos
        return match.end()

    def _comment(self, pos: int) -> tuple[WikiNode, int] | None:
        match = COMMENT_PATTERN.match(self.text, pos)
        if match is None:
            return None
        return WikiComment(match.group(1)), match.end()

    def _html_tag(self, pos: int) -> tuple[WikiNode, int] | None:
        match = HTML_TAG_PATTERN.match(self.text, pos)
        if match is None:
            return None
        attributes = dict(HTML_ATTRIBUTE_PATTERN.findall(match.group("attributes")))
        tag = WikiHtmlTag(
            name=match.group("name"),
            attributes=attributes,
            closing=match.group("closing") is not None,
            self_closing=match.group("end") == "/>",
        )
        return tag, match.end()

    def _link(self, pos: int, depth: int) -> tuple[WikiNode, int] | None:
        if not self.text.startswith("[[", pos):
            return None

        target_end = self._scan(LINK_TARGET_PATTERN, pos + 2)
        target = self.text[pos + 2 : target_end]
        pos = target_end

        parts: list[Document] = []
        while self.text.startswith("|", pos):
            part, pos = self.document(pos + 1, depth + 1)
            parts.append(part)

        if not self.text.startswith("]]", pos):
            return None
        return WikiLink(target, parts), pos + 2

    def _template(self, pos: int, depth: int) -> tuple[WikiNode, int] | None:
        if not self.text.startswith("{{", pos):
            return None

        title_end = self._scan(TEMPLATE_TITLE_PATTERN, pos + 2)
        title = self.text[pos + 2 : title_end].strip()
        pos = title_end

        positional: list[Document] = []
        named: dict[str, Document] = {}
        while self.text.startswith("|", pos):
            key_end = self._scan(PARAMETER_KEY_PATTERN, pos + 1)
            if self.text.startswith("=", key_end):
                key = self.text[pos + 1 : key_end].strip()
                value, pos = self.document(key_end + 1, depth + 1)
                named[key] = value
            else:
                value, pos = self.document(pos + 1, depth + 1)
                positional.append(value)

        if not self.text.startswith("}}", pos):
            return None
        return WikiTemplate(title, positional, named), pos + 2


def parse_wiki(text: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Document:
    """Parse MediaWiki markup into a document tree.

    The whole input must be consumed. Outside of any link or template
    a stray pipe, ]] or }} has nothing to close and is kept as text,
    while a {{ or [[ that never closes is an error.

    Args:
        text: Raw wikitext.
        max_depth: Maximum nesting of links and templates.

    Returns:
        Non-empty list of nodes with adjacent text coalesced.

    Raises:
        WikiParseError: On an unmatched opener, nesting beyond ``max_depth``,
            or nesting the interpreter stack cannot hold.

    Examples:
        >>> parse_wiki("{{foo|bar|key=val}}")
        [WikiTemplate(title='foo', positional=[[WikiText(text='bar')]], named={'key': [WikiText(text='val')]})]
        >>> parse_wiki("a{b")
        [WikiText(text='a{b')]
    """
    parser = _MarkupParser(text, max_depth)
    nodes: list[WikiNode] = []
    pos = 0

    while True:
        try:
            document, end = parser.document(pos, 0)
        except RecursionError as e:
            # A max_depth too large for the interpreter stack ends up here
            raise WikiParseError("markup nested too deeply for the parser stack", pos) from e
        pos = end
        for node in document:
            _append_node(nodes, node)
        if pos >= len(text):
            break

        if text.startswith("{{", pos):
            raise WikiParseError("unterminated template", pos)
        if text.startswith("[[", pos):
            raise WikiParseError("unterminated link", pos)

        literal = text[pos : pos + 2] if text.startswith(("]]", "}}"), pos) else text[pos]
        _append_node(nodes, WikiText(literal))
        pos += len(literal)

    if not nodes:
        nodes.append(WikiText(""))
    return nodes


def link_title(target: str) -> str:
    """Normalise a link target to a page title.

    Strips surrounding whitespace and any #section anchor.

    Examples:
        >>> link_title(" Roman Empire#Late period ")
        'Roman Empire'
    """
    return target.split("#", maxsplit=1)[0].strip()


def redirect_target(document: Document) -> str | None:
    """Return the destination of a #REDIRECT document, if it is one.

    A redirect document starts with ``#REDIRECT``, optional whitespace
    and a link. Anything after the link (redirect category templates,
    for instance) is ignored.

    Args:
        document: Parsed page.

    Returns:
        The link's page title, or None if the document is not a redirect.

    Examples:
        >>> redirect_target(parse_wiki("#REDIRECT [[New Country]]"))
        'New Country'
    """
    if len(document) < 2:
        return None
    head, link = document[0], document[1]
    if not isinstance(head, WikiText) or not isinstance(link, WikiLink):
        return None
    if not head.text.startswith(REDIRECT_TOKEN) or head.text[len(REDIRECT_TOKEN) :].strip():
        return None
    return link_title(link.target)


def parse_redirect(text: str, max_depth: int = DEFAULT_MAX_DEPTH) -> str | None:
    """Parse raw wikitext and return its redirect destination, if any.

    Raises:
        WikiParseError: If the text cannot be parsed.
    """
    return redirect_target(parse_wiki(text, max_depth))
