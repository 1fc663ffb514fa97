"""Wiki markup parsing and infobox extraction.

This package turns MediaWiki markup into a document tree and reads
succession facts out of it:

- **Markup**: comments, HTML tags, [[links]] and {{templates}}
- **Redirects**: #REDIRECT [[Target]] pages
- **Infoboxes**: {{Infobox former country}} and {{Infobox former subdivision}}

Example usage::

    from nations_graph.wiki import extract_infobox, parse_wiki

    document = parse_wiki(page_text)
    infobox = extract_infobox(document)
    print(infobox.precursors, infobox.successors)

Public API:
    Types:
        - WikiText, WikiTemplate, WikiLink, WikiHtmlTag, WikiComment: nodes
        - WikiNode, Document: node union and node list
        - NationInfobox, SubdivisionInfobox, Infobox: extracted records

    Functions:
        - parse_wiki: Parse markup into a document
        - redirect_target: Destination of a redirect document
        - parse_redirect: Destination of redirect markup
        - extract_infobox: Read the infobox of a parsed page
        - get_prop_as_text: Read one template field as text
        - find_template: Find a top-level template by title
        - parse_year: Parse "1776" / "44 BC" year literals
"""

from nations_graph.wiki.infobox import (
    extract_infobox,
    find_template,
    get_prop_as_text,
    parse_year,
)
from nations_graph.wiki.markup import (
    DEFAULT_MAX_DEPTH,
    link_title,
    parse_redirect,
    parse_wiki,
    redirect_target,
)
from nations_graph.wiki.types import (
    Document,
    Infobox,
    NationInfobox,
    SubdivisionInfobox,
    WikiComment,
    WikiHtmlTag,
    WikiLink,
    WikiNode,
    WikiTemplate,
    WikiText,
)

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "Document",
    "Infobox",
    "NationInfobox",
    "SubdivisionInfobox",
    "WikiComment",
    "WikiHtmlTag",
    "WikiLink",
    "WikiNode",
    "WikiTemplate",
    "WikiText",
    "extract_infobox",
    "find_template",
    "get_prop_as_text",
    "link_title",
    "parse_redirect",
    "parse_wiki",
    "parse_year",
    "redirect_target",
]
