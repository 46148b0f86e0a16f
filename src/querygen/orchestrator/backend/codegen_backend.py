"""Default job runner: extract queries from one file and emit declarations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from querygen.config import Settings, TransformRule
from querygen.orchestrator.models import Job, WorkResult
from querygen.parsing.fragments import Fragment
from querygen.parsing.query import ParseEventKind
from querygen.parsing.sql_file import split_sql_file
from querygen.parsing.typescript import TypeScriptFragmentReader, parse_fragments

CONTRACT_VERSION = 1


class QueryParseError(ValueError):
    """One or more queries in a file could not be parsed."""


class CodegenBackend:
    """Runs inside a worker context; built once per context from settings."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._typescript = TypeScriptFragmentReader()

    def run(self, job: Job) -> WorkResult:
        source_path = job.path
        source = source_path.read_text("utf-8")
        fragments = self._extract(source, source_path, job.transform)
        if not fragments:
            return WorkResult(skipped=True)

        parsed = parse_fragments(fragments)
        errors = [event for event in parsed.events if event.kind is ParseEventKind.ERROR]
        if errors:
            details = "; ".join(f"{event.query_name}: {event.message}" for event in errors)
            raise QueryParseError(f"Failed to parse queries in {job.file_name}: {details}")

        output_path = render_output_path(job.transform.emit_template, source_path)
        payload = {
            "contract_version": CONTRACT_VERSION,
            "source": source_path.name,
            "mode": job.transform.mode,
            "queries": [query.to_declaration() for query in parsed.queries],
        }
        if not write_json_if_changed(output_path, payload):
            return WorkResult(skipped=True)
        return WorkResult(
            skipped=False,
            generated_count=len(parsed.queries),
            output_path=str(output_path),
        )

    def _extract(self, source: str, source_path: Path, rule: TransformRule) -> list[Fragment]:
        if rule.mode == "sql":
            return split_sql_file(source)
        return self._typescript.extract(source, source_path.name)


def render_output_path(emit_template: str, source_path: Path) -> Path:
    """Fill ``{dir}``, ``{name}`` and ``{ext}`` from the source file path."""

    rendered = emit_template.format(
        dir=source_path.parent.as_posix(),
        name=source_path.stem,
        ext=source_path.suffix.lstrip("."),
    )
    return Path(rendered)


def write_json_if_changed(path: Path, payload: dict[str, Any]) -> bool:
    """Persist JSON using deterministic formatting; False when content is unchanged."""

    content = json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
    if path.exists() and path.read_text("utf-8") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, "utf-8")
    return True
