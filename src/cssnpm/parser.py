"""
Stylesheet Parser (Layer 1: Raw Text → StylesheetDocument).

Turns CSS-like text into the arena tree defined in cssnpm.model.

Grammar handled:
    stylesheet  := item*
    item        := comment | at-rule | rule | declaration
    at-rule     := '@' name prelude (';' | '{' item* '}')
    rule        := prelude '{' item* '}'
    declaration := property ':' value ';'?

Syntax Notes:
    - Strings, parentheses and brackets are balanced while scanning a
      prelude, so `url(data:...;...)` or `content: "{"` never end a
      statement early.
    - Comments inside a prelude are dropped; standalone comments become
      COMMENT nodes.
    - Whitespace in selectors and at-rule params is collapsed to single
      spaces.
"""

from __future__ import annotations

import bisect
import re
from typing import List, Optional, Tuple

from cssnpm.errors import CssNpmError
from cssnpm.model import (
    NodeKind,
    NodeRole,
    SourceLocation,
    StylesheetDocument,
    classify_at_rule,
)


_WHITESPACE_RE = re.compile(r"\s+")
_AT_NAME_RE = re.compile(r"-?[A-Za-z_][-\w]*")
_IMPORTANT_RE = re.compile(r"\s*!\s*important\s*$", re.IGNORECASE)

_OPENERS = {"(": ")", "[": "]"}


class StylesheetParseError(CssNpmError):
    """Raised when stylesheet text is malformed."""

    def __init__(self, message: str, line: int, column: int, label: Optional[str] = None):
        self.line = line
        self.column = column
        self.label = label
        where = f"{label}:" if label else ""
        super().__init__(f"{where}{line}:{column}: {message}")


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


class _Scanner:
    """Cursor over the input text with line/column bookkeeping."""

    def __init__(self, text: str, source: SourceLocation):
        self.text = text
        self.pos = 0
        self.source = source
        self._line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self, length: int = 1) -> str:
        return self.text[self.pos:self.pos + length]

    def location(self, pos: Optional[int] = None) -> SourceLocation:
        if pos is None:
            pos = self.pos
        index = bisect.bisect_right(self._line_starts, pos) - 1
        return self.source.at(index + 1, pos - self._line_starts[index] + 1)

    def error(self, message: str, pos: Optional[int] = None) -> StylesheetParseError:
        loc = self.location(pos)
        return StylesheetParseError(message, loc.line, loc.column, self.source.label)

    def skip_whitespace(self) -> None:
        while not self.at_end() and self.text[self.pos].isspace():
            self.pos += 1

    def read_comment(self) -> str:
        """Consume a `/* ... */` comment and return its body."""
        start = self.pos
        end = self.text.find("*/", self.pos + 2)
        if end == -1:
            raise self.error("Unclosed comment", start)
        self.pos = end + 2
        return self.text[start + 2:end]

    def read_string(self) -> str:
        """Consume a quoted string, escapes included, and return it verbatim."""
        start = self.pos
        quote = self.text[self.pos]
        self.pos += 1
        while not self.at_end():
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            if char == quote:
                self.pos += 1
                return self.text[start:self.pos]
            if char == "\n":
                break
            self.pos += 1
        raise self.error("Unclosed string", start)

    def read_prelude(self, stops: str) -> Tuple[str, Optional[str]]:
        """
        Read up to (not including) the first stop character at nesting depth 0.

        Returns:
            (text, stop) where stop is the character found, or None at EOF
        """
        parts: List[str] = []
        closers: List[str] = []
        chunk_start = self.pos
        while not self.at_end():
            char = self.text[self.pos]
            if char in "\"'":
                parts.append(self.text[chunk_start:self.pos])
                parts.append(self.read_string())
                chunk_start = self.pos
                continue
            if self.peek(2) == "/*":
                parts.append(self.text[chunk_start:self.pos])
                self.read_comment()
                parts.append(" ")
                chunk_start = self.pos
                continue
            if char in _OPENERS:
                closers.append(_OPENERS[char])
            elif closers and char == closers[-1]:
                closers.pop()
            elif not closers and char in stops:
                parts.append(self.text[chunk_start:self.pos])
                return "".join(parts), char
            self.pos += 1
        if closers:
            raise self.error(f"Unclosed bracket, expected '{closers[-1]}'")
        parts.append(self.text[chunk_start:self.pos])
        return "".join(parts), None


def _parse_items(scanner: _Scanner, document: StylesheetDocument, parent_id: int, top_level: bool) -> None:
    """Parse items into `parent_id` until the matching '}' (or EOF at top level)."""
    block_start = scanner.pos
    while True:
        scanner.skip_whitespace()
        if scanner.at_end():
            if not top_level:
                raise scanner.error("Unclosed block", block_start - 1)
            return

        start = scanner.pos
        char = scanner.peek()

        if char == "}":
            if top_level:
                raise scanner.error("Unexpected }")
            scanner.pos += 1
            return

        if char == ";":
            scanner.pos += 1
            continue

        if scanner.peek(2) == "/*":
            body = scanner.read_comment()
            document.append(
                parent_id, NodeKind.OTHER, NodeRole.COMMENT,
                text=body.strip(), source=scanner.location(start),
            )
            continue

        if char == "@":
            _parse_at_rule(scanner, document, parent_id, start)
            continue

        prelude, stop = scanner.read_prelude(";{}")
        if stop == "{":
            scanner.pos += 1
            rule = document.append(
                parent_id, NodeKind.OTHER, NodeRole.RULE,
                selector=_collapse(prelude), has_block=True,
                source=scanner.location(start),
            )
            _parse_items(scanner, document, rule.id, top_level=False)
            continue

        if stop == ";":
            scanner.pos += 1
        _add_declaration(scanner, document, parent_id, prelude, start)


def _parse_at_rule(scanner: _Scanner, document: StylesheetDocument, parent_id: int, start: int) -> None:
    scanner.pos += 1
    match = _AT_NAME_RE.match(scanner.text, scanner.pos)
    if not match:
        raise scanner.error("At-rule without name", start)
    name = match.group(0)
    scanner.pos = match.end()

    prelude, stop = scanner.read_prelude(";{}")
    has_block = stop == "{"
    if stop in (";", "{"):
        scanner.pos += 1

    node = document.append(
        parent_id, classify_at_rule(name, has_block), NodeRole.AT_RULE,
        name=name, params=_collapse(prelude), has_block=has_block,
        source=scanner.location(start),
    )
    if has_block:
        _parse_items(scanner, document, node.id, top_level=False)


def _add_declaration(scanner: _Scanner, document: StylesheetDocument, parent_id: int,
                     text: str, start: int) -> None:
    if ":" not in text:
        raise scanner.error(f"Unknown word '{_collapse(text)}'", start)
    prop, value = text.split(":", 1)
    prop = prop.strip()
    if not prop:
        raise scanner.error("Declaration without property", start)
    important = bool(_IMPORTANT_RE.search(value))
    if important:
        value = _IMPORTANT_RE.sub("", value)
    document.append(
        parent_id, NodeKind.OTHER, NodeRole.DECLARATION,
        prop=prop, value=value.strip(), important=important,
        source=scanner.location(start),
    )


def parse_stylesheet(text: str, source: Optional[SourceLocation] = None) -> StylesheetDocument:
    """
    Parse stylesheet text into a StylesheetDocument.

    Args:
        text: Stylesheet source
        source: Where the text came from (path and label); line/column
                are filled in per node

    Returns:
        A new StylesheetDocument

    Raises:
        StylesheetParseError: If the text is malformed
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    source = source or SourceLocation()
    document = StylesheetDocument(source)
    scanner = _Scanner(text, source)
    _parse_items(scanner, document, document.root_id, top_level=True)
    return document
