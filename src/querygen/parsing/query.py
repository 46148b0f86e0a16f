"""Lightweight parser for annotated query text."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


_QUOTE_LABELS = {"'": "string literal", '"': "quoted identifier"}


class ParamKind(str, Enum):
    """How a parameter is bound at call time."""

    SCALAR = "scalar"
    SPREAD = "spread"


class ParseEventKind(str, Enum):
    """Severity of a parse diagnostic."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(slots=True, frozen=True)
class QueryParam:
    """One named parameter referenced by a query."""

    name: str
    kind: ParamKind = ParamKind.SCALAR
    required: bool = False


@dataclass(slots=True, frozen=True)
class ParseEvent:
    """Diagnostic produced while parsing one query."""

    kind: ParseEventKind
    message: str
    query_name: str
    offset: int | None = None


@dataclass(slots=True)
class ParsedQuery:
    """Structured representation of one named query."""

    name: str
    text: str
    params: list[QueryParam] = field(default_factory=list)

    def to_declaration(self) -> dict[str, object]:
        return {
            "name": self.name,
            "sql": self.text,
            "params": [
                {"name": param.name, "kind": param.kind.value, "required": param.required}
                for param in self.params
            ],
        }


@dataclass(slots=True)
class QueryParseResult:
    """Parsed query and the diagnostics collected along the way."""

    query: ParsedQuery
    events: list[ParseEvent] = field(default_factory=list)


def parse_query(query_text: str, query_name: str) -> QueryParseResult:
    """Collect ``$param``, ``$param!`` and ``$$param`` references from query text.

    Quoted literals, quoted identifiers and ``--`` comments are skipped. Numeric
    placeholders such as ``$1`` are not parameters.
    """

    events: list[ParseEvent] = []
    if not query_text.strip():
        events.append(
            ParseEvent(
                kind=ParseEventKind.WARNING,
                message="Query text is empty",
                query_name=query_name,
            ),
        )

    params: dict[str, QueryParam] = {}
    index = 0
    length = len(query_text)
    while index < length:
        char = query_text[index]
        if char in {"'", '"'}:
            end = query_text.find(char, index + 1)
            if end == -1:
                events.append(
                    ParseEvent(
                        kind=ParseEventKind.ERROR,
                        message=f"Unterminated {_QUOTE_LABELS[char]}",
                        query_name=query_name,
                        offset=index,
                    ),
                )
                break
            index = end + 1
            continue
        if query_text.startswith("--", index):
            end = query_text.find("\n", index)
            index = length if end == -1 else end + 1
            continue
        if char == "$":
            param, index = _read_param(query_text, index)
            if param is not None:
                _merge_param(params, param)
            continue
        index += 1

    return QueryParseResult(
        query=ParsedQuery(name=query_name, text=query_text, params=list(params.values())),
        events=events,
    )


def _read_param(text: str, start: int) -> tuple[QueryParam | None, int]:
    index = start + 1
    kind = ParamKind.SCALAR
    if index < len(text) and text[index] == "$":
        kind = ParamKind.SPREAD
        index += 1
    name_start = index
    while index < len(text) and (text[index].isalnum() or text[index] == "_"):
        index += 1
    name = text[name_start:index]
    if not name or name[0].isdigit():
        return None, max(index, start + 1)
    required = index < len(text) and text[index] == "!"
    if required:
        index += 1
    return QueryParam(name=name, kind=kind, required=required), index


def _merge_param(params: dict[str, QueryParam], param: QueryParam) -> None:
    existing = params.get(param.name)
    if existing is None:
        params[param.name] = param
        return
    params[param.name] = QueryParam(
        name=param.name,
        kind=existing.kind,
        required=existing.required or param.required,
    )
