"""Splitting of plain SQL files into named queries."""

from __future__ import annotations

import re

from querygen.parsing.fragments import Fragment

_NAME_ANNOTATION = re.compile(r"/\*\s*@name\s+([A-Za-z_][A-Za-z0-9_]*)\b[^*]*\*/")


def split_sql_file(text: str) -> list[Fragment]:
    """Return one fragment per ``/* @name Foo */`` annotation, in file order.

    A query body runs from the end of its annotation to the next annotation (or
    the end of the file), without surrounding whitespace or a trailing ``;``.
    Text before the first annotation is ignored.
    """

    matches = list(_NAME_ANNOTATION.finditer(text))
    fragments: list[Fragment] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        body = text[match.end() : end].strip()
        if body.endswith(";"):
            body = body[:-1].rstrip()
        fragments.append(Fragment(name=match.group(1), text=body))
    return fragments
