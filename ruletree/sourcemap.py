"""Source maps: document paths -> lines of the raw JSON text.

Validation reports problems by document path (``definition.conditions[1].left``).
When the caller still has the text the document was parsed from, each path can
be attributed to the line where its key (or array element) starts, so an
editor can jump to it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

ROOT = "$"
_WHITESPACE = " \t\r\n"


@dataclass
class SourceMap:
    """Line of every key and array element in one JSON document (1-indexed)."""
    lines: dict[str, int] = field(default_factory=dict)

    def line_for(self, path: str | None) -> int | None:
        """Line of ``path``, or of its nearest ancestor present in the text.

        Fields reported missing have no line of their own and resolve to the
        object that should hold them.
        """
        path = path or ROOT
        while True:
            if path in self.lines:
                return self.lines[path]
            if path == ROOT:
                return None
            path = parent_document_path(path)


def parent_document_path(path: str) -> str:
    """``a.b[2]`` -> ``a.b`` -> ``a`` -> ``$``."""
    if path.endswith("]"):
        return path[:path.rindex("[")] or ROOT
    dot = path.rfind(".")
    return path[:dot] if dot > 0 else ROOT


def build_source_map(source: str) -> SourceMap:
    """Scan JSON text that ``json.loads`` already accepted."""
    scanner = _Scanner(source)
    scanner.scan_value(ROOT)
    return SourceMap(scanner.lines)


class _Scanner:
    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.lines: dict[str, int] = {}

    def scan_value(self, path: str) -> None:
        self._skip_whitespace()
        # A key's own line wins over the line its value starts on
        self.lines.setdefault(path, self.line)
        ch = self.source[self.pos]
        if ch == "{":
            self._scan_object(path)
        elif ch == "[":
            self._scan_array(path)
        elif ch == '"':
            self._scan_string()
        else:
            while self.pos < len(self.source) and self.source[self.pos] not in ",]}" + _WHITESPACE:
                self.pos += 1

    def _scan_object(self, path: str) -> None:
        self.pos += 1
        self._skip_whitespace()
        if self.source[self.pos] == "}":
            self.pos += 1
            return
        while True:
            self._skip_whitespace()
            key_line = self.line
            key = self._scan_string()
            child = key if path == ROOT else f"{path}.{key}"
            self.lines.setdefault(child, key_line)
            self._skip_whitespace()
            self.pos += 1  # ':'
            self.scan_value(child)
            self._skip_whitespace()
            closing = self.source[self.pos]
            self.pos += 1
            if closing == "}":
                return

    def _scan_array(self, path: str) -> None:
        self.pos += 1
        self._skip_whitespace()
        if self.source[self.pos] == "]":
            self.pos += 1
            return
        index = 0
        while True:
            self.scan_value(f"{path}[{index}]")
            self._skip_whitespace()
            closing = self.source[self.pos]
            self.pos += 1
            if closing == "]":
                return
            index += 1

    def _scan_string(self) -> str:
        start = self.pos
        self.pos += 1
        while self.source[self.pos] != '"':
            self.pos += 2 if self.source[self.pos] == "\\" else 1
        self.pos += 1
        return json.loads(self.source[start:self.pos])

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in _WHITESPACE:
            if self.source[self.pos] == "\n":
                self.line += 1
            self.pos += 1
