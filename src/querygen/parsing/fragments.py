"""Extraction of tagged query templates from any syntax tree.

The traversal is generic: a :class:`TemplateSyntax` adapter tells it how to
enumerate a node's children and how to read a tagged-template expression. The
TypeScript adapter lives in :mod:`querygen.parsing.typescript`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol, TypeVar

SQL_TAG = "sql"

NodeT = TypeVar("NodeT")


@dataclass(slots=True, frozen=True)
class Fragment:
    """A named query embedded in a source file."""

    name: str
    text: str


@dataclass(slots=True, frozen=True)
class TaggedTemplate:
    """Host-language independent view of ``tag`template```.

    ``template`` is the raw template text including its delimiters.
    ``declaration_name`` is the first identifier child of the enclosing node,
    or the text of that node's first child when it has no identifier.
    """

    tag: str
    template: str
    declaration_name: str


class TemplateSyntax(Protocol[NodeT]):
    """Adapter between a concrete parser's nodes and the extractor."""

    def children(self, node: NodeT) -> Iterable[NodeT]:
        """Direct children in document order."""

    def tagged_template(self, node: NodeT) -> TaggedTemplate | None:
        """Describe ``node`` if it is a tagged-template expression."""


def walk(root: NodeT, syntax: TemplateSyntax[NodeT]) -> Iterator[NodeT]:
    """Yield every node of the tree in pre-order."""

    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(syntax.children(node))))


def template_body(raw_template: str) -> str:
    """Strip the delimiters, drop the first newline, trim surrounding whitespace."""

    return raw_template[1:-1].replace("\n", "", 1).strip()


def extract_fragments(
    root: NodeT,
    syntax: TemplateSyntax[NodeT],
    *,
    marker: str = SQL_TAG,
) -> list[Fragment]:
    """Collect every template tagged exactly ``marker``, in document order."""

    fragments: list[Fragment] = []
    for node in walk(root, syntax):
        tagged = syntax.tagged_template(node)
        if tagged is None or tagged.tag != marker:
            continue
        fragments.append(
            Fragment(name=tagged.declaration_name, text=template_body(tagged.template)),
        )
    return fragments
