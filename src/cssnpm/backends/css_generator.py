"""
CSS text generator for StylesheetDocuments.

Prints a document back to text in a fixed layout:
    - top-level nodes separated by a blank line
    - block contents indented by two spaces per level
    - one declaration per line

Optionally records a SourceMap while printing.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from cssnpm.backends.sourcemap import SourceMap
from cssnpm.model import Node, NodeRole, StylesheetDocument


INDENT = "  "
ANONYMOUS_SOURCE = "<input css>"


class _Writer:
    """Accumulates output while tracking the current line and column."""

    def __init__(self, source_map: Optional[SourceMap]):
        self.parts: List[str] = []
        self.line = 0
        self.column = 0
        self.source_map = source_map

    def write(self, text: str) -> None:
        self.parts.append(text)
        newlines = text.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(text) - text.rfind("\n") - 1
        else:
            self.column += len(text)

    def mark(self, node: Node) -> None:
        if self.source_map is None:
            return
        src = node.source
        label = src.label or src.path or ANONYMOUS_SOURCE
        self.source_map.add(self.line, self.column, label, src.line, src.column - 1)

    def getvalue(self) -> str:
        return "".join(self.parts)


def _opening(node: Node) -> str:
    if node.role == NodeRole.RULE:
        return node.selector
    if node.params:
        return f"@{node.name} {node.params}"
    return f"@{node.name}"


def _write_node(writer: _Writer, document: StylesheetDocument, node: Node, depth: int) -> None:
    indent = INDENT * depth
    writer.write(indent)
    writer.mark(node)

    if node.role == NodeRole.DECLARATION:
        important = " !important" if node.important else ""
        writer.write(f"{node.prop}: {node.value}{important};")
        return

    if node.role == NodeRole.COMMENT:
        writer.write(f"/* {node.text} */")
        return

    if node.role == NodeRole.AT_RULE and not node.has_block:
        writer.write(f"{_opening(node)};")
        return

    children = document.children(node.id)
    if not children:
        writer.write(f"{_opening(node)} {{}}")
        return

    writer.write(f"{_opening(node)} {{")
    for child in children:
        writer.write("\n")
        _write_node(writer, document, child, depth + 1)
    writer.write(f"\n{indent}}}")


def _generate(document: StylesheetDocument, source_map: Optional[SourceMap]) -> str:
    writer = _Writer(source_map)
    for index, node in enumerate(document.nodes):
        if index:
            writer.write("\n\n")
        _write_node(writer, document, node, 0)
    return writer.getvalue()


def generate_css(document: StylesheetDocument) -> str:
    """
    Generate stylesheet text for a document.

    Args:
        document: Document to print

    Returns:
        Stylesheet text (no trailing newline)
    """
    return _generate(document, None)


def generate_css_with_map(document: StylesheetDocument, file: Optional[str] = None) -> Tuple[str, SourceMap]:
    """
    Generate stylesheet text together with its source map.

    Args:
        document: Document to print
        file: Name of the generated file, stored in the map's `file` field

    Returns:
        (css, source_map)
    """
    source_map = SourceMap(file=file)
    css = _generate(document, source_map)
    return css, source_map


def save_css_file(document: StylesheetDocument, filename: str, source_map: bool = False) -> None:
    """
    Generate CSS and save it to a file.

    With `source_map`, the map is written next to it as `<filename>.map`
    and referenced from a trailing sourceMappingURL comment.
    """
    if not source_map:
        css = generate_css(document)
        with open(filename, "w", encoding="utf-8") as f:
            f.write(css + "\n")
        return

    css_path = Path(filename)
    map_path = css_path.with_name(css_path.name + ".map")
    css, smap = generate_css_with_map(document, file=css_path.name)
    with open(css_path, "w", encoding="utf-8") as f:
        f.write(css)
        f.write(f"\n/*# sourceMappingURL={map_path.name} */\n")
    with open(map_path, "w", encoding="utf-8") as f:
        f.write(smap.to_json())


__all__ = ["generate_css", "generate_css_with_map", "save_css_file"]
