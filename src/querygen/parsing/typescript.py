"""TypeScript front end for fragment extraction, built on tree-sitter."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import PurePath

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from querygen.parsing.fragments import SQL_TAG, Fragment, TaggedTemplate, extract_fragments
from querygen.parsing.query import ParsedQuery, ParseEvent, parse_query

_IDENTIFIER_TYPES = frozenset({"identifier", "property_identifier"})


@dataclass(slots=True)
class TSParseResult:
    """Queries found in one TypeScript file plus all parser diagnostics."""

    queries: list[ParsedQuery] = field(default_factory=list)
    events: list[ParseEvent] = field(default_factory=list)


class TreeSitterTemplateSyntax:
    """Reads tagged templates (``call_expression`` with a template argument)."""

    def children(self, node: Node) -> Iterable[Node]:
        return node.children

    def tagged_template(self, node: Node) -> TaggedTemplate | None:
        if node.type != "call_expression":
            return None
        template = node.child_by_field_name("arguments")
        tag = node.child_by_field_name("function")
        if template is None or template.type != "template_string" or tag is None:
            return None
        return TaggedTemplate(
            tag=_text(tag),
            template=_text(template),
            declaration_name=_declaration_name(node.parent),
        )


class TypeScriptFragmentReader:
    """Parses TypeScript/TSX sources and extracts tagged query fragments.

    Parsers are built once per reader, so a worker context creates one reader
    and reuses it for every file it processes.
    """

    def __init__(self, *, marker: str = SQL_TAG) -> None:
        self.marker = marker
        self._syntax = TreeSitterTemplateSyntax()
        self._typescript = Parser(Language(tree_sitter_typescript.language_typescript()))
        self._tsx = Parser(Language(tree_sitter_typescript.language_tsx()))

    def extract(self, source: str, file_name: str = "unnamed.ts") -> list[Fragment]:
        parser = self._tsx if PurePath(file_name).suffix.lower() == ".tsx" else self._typescript
        tree = parser.parse(source.encode("utf-8"))
        return extract_fragments(tree.root_node, self._syntax, marker=self.marker)


def parse_fragments(fragments: Iterable[Fragment]) -> TSParseResult:
    """Run every fragment through the query parser, keeping document order."""

    result = TSParseResult()
    for fragment in fragments:
        parsed = parse_query(fragment.text, fragment.name)
        result.queries.append(parsed.query)
        result.events.extend(parsed.events)
    return result


def parse_code(
    source: str,
    file_name: str = "unnamed.ts",
    *,
    reader: TypeScriptFragmentReader | None = None,
) -> TSParseResult:
    """Extract and parse every ``sql`` tagged query in a TypeScript source."""

    reader = reader or TypeScriptFragmentReader()
    return parse_fragments(reader.extract(source, file_name))


def _declaration_name(parent: Node | None) -> str:
    if parent is None or not parent.children:
        return ""
    for child in parent.children:
        if child.type in _IDENTIFIER_TYPES:
            return _text(child)
    return _text(parent.children[0])


def _text(node: Node) -> str:
    raw = node.text
    return raw.decode("utf-8") if raw is not None else ""
