"""Include-pattern matching shared by batch scans and file watchers."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath


class IncludePattern:
    """Glob evaluated relative to a source root with an implicit ``**/`` prefix.

    ``**`` matches zero or more directories, ``*`` and ``?`` never cross a path
    separator and ``[...]`` is a character class. Batch resolution and watch
    events use the same compiled expression, so a file is selected identically in
    both modes.
    """

    __slots__ = ("include", "_regex")

    def __init__(self, include: str) -> None:
        normalized = include.strip().replace("\\", "/")
        if not normalized:
            raise ValueError("Include pattern must be a non-empty glob.")
        if normalized.startswith("/") or PurePosixPath(normalized).is_absolute():
            raise ValueError(f"Include pattern must be relative to srcDir: {include!r}")
        self.include = normalized
        try:
            self._regex = re.compile(_translate(normalized))
        except re.error as error:
            raise ValueError(f"Invalid include pattern {include!r}: {error}") from error

    def __repr__(self) -> str:
        return f"IncludePattern({self.include!r})"

    def matches(self, path: Path, src_dir: Path) -> bool:
        """Return True when ``path`` lies under ``src_dir`` and matches the glob."""

        try:
            relative = path.relative_to(src_dir)
        except ValueError:
            try:
                relative = path.resolve().relative_to(src_dir.resolve())
            except ValueError:
                return False
        return self.matches_relative(relative.as_posix())

    def matches_relative(self, relative_path: str) -> bool:
        return self._regex.fullmatch(relative_path) is not None


def _translate(pattern: str) -> str:
    parts: list[str] = ["(?:.*/)?"]
    components = pattern.split("/")
    for index, component in enumerate(components):
        is_last = index == len(components) - 1
        if component == "**":
            parts.append(".*" if is_last else "(?:.*/)?")
            continue
        if "**" in component:
            raise ValueError(
                f"Invalid include pattern {pattern!r}: '**' must be an entire path component",
            )
        if not component:
            raise ValueError(f"Invalid include pattern {pattern!r}: empty path component")
        parts.append(_translate_component(component, pattern))
        if not is_last:
            parts.append("/")
    return "".join(parts)


def _translate_component(component: str, pattern: str) -> str:
    out: list[str] = []
    index = 0
    while index < len(component):
        char = component[index]
        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = component.find("]", index + 2)
            if end == -1:
                raise ValueError(f"Invalid include pattern {pattern!r}: unterminated '['")
            body = component[index + 1 : end].replace("\\", "\\\\")
            if body.startswith("!"):
                body = "^/" + body[1:]
            out.append(f"[{body}]")
            index = end
        else:
            out.append(re.escape(char))
        index += 1
    return "".join(out)
