"""
Source Map v3 generation for generated stylesheets.

Each mapping ties the start of a generated node (0-based line/column in
the output) to the start of the node it was printed from (file label,
1-based line, 0-based column), which is the convention used by
browser devtools.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def encode_vlq(value: int) -> str:
    """Encode one signed integer as a Base64 VLQ segment."""
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & 0b11111
        vlq >>= 5
        if vlq:
            digit |= 0b100000
        encoded += _BASE64[digit]
        if not vlq:
            return encoded


@dataclass(frozen=True)
class Mapping:
    generated_line: int      # 0-based
    generated_column: int    # 0-based
    source: str
    original_line: int       # 1-based
    original_column: int     # 0-based


@dataclass
class SourceMap:
    """An in-memory v3 source map."""

    file: Optional[str] = None
    mappings: List[Mapping] = field(default_factory=list)

    def add(self, generated_line: int, generated_column: int,
            source: str, original_line: int, original_column: int) -> None:
        self.mappings.append(
            Mapping(generated_line, generated_column, source, original_line, original_column)
        )

    @property
    def sources(self) -> List[str]:
        seen: List[str] = []
        for mapping in self.mappings:
            if mapping.source not in seen:
                seen.append(mapping.source)
        return seen

    def encoded_mappings(self) -> str:
        """Serialize mappings into the `mappings` field format."""
        source_index = {source: i for i, source in enumerate(self.sources)}
        ordered = sorted(self.mappings, key=lambda m: (m.generated_line, m.generated_column))

        lines: List[str] = []
        prev_source = prev_orig_line = prev_orig_col = 0
        line_no = 0
        segments: List[str] = []
        prev_gen_col = 0
        for mapping in ordered:
            while line_no < mapping.generated_line:
                lines.append(",".join(segments))
                segments = []
                prev_gen_col = 0
                line_no += 1
            index = source_index[mapping.source]
            original_line = mapping.original_line - 1
            segments.append(
                encode_vlq(mapping.generated_column - prev_gen_col)
                + encode_vlq(index - prev_source)
                + encode_vlq(original_line - prev_orig_line)
                + encode_vlq(mapping.original_column - prev_orig_col)
            )
            prev_gen_col = mapping.generated_column
            prev_source = index
            prev_orig_line = original_line
            prev_orig_col = mapping.original_column
        lines.append(",".join(segments))
        return ";".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "version": 3,
            "sources": self.sources,
            "names": [],
            "mappings": self.encoded_mappings(),
        }
        if self.file:
            result["file"] = self.file
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def original_position_for(self, line: int, column: int) -> Optional[Dict[str, Any]]:
        """
        Look up the original position for a generated position.

        Args:
            line: 1-based generated line
            column: 0-based generated column

        Returns:
            {"source", "line", "column"} of the closest mapping at or before
            `column` on that line, or None if the line has no mapping there
        """
        best: Optional[Mapping] = None
        for mapping in self.mappings:
            if mapping.generated_line != line - 1 or mapping.generated_column > column:
                continue
            if best is None or mapping.generated_column >= best.generated_column:
                best = mapping
        if best is None:
            return None
        return {"source": best.source, "line": best.original_line, "column": best.original_column}


__all__ = ["Mapping", "SourceMap", "encode_vlq"]
