"""
Scope Tracker: which files were already inlined, per nesting context.

A scope key is either GLOBAL_KEY ('0', the top level of the document) or
the condition text of the nearest enclosing conditional group, e.g.
"(min-width: 320px)".

INVARIANTS:
    - A path recorded under GLOBAL_KEY suppresses that path everywhere.
    - A path recorded under key K suppresses repeats under K only.
    - Entries are never removed during a pass.
"""

from __future__ import annotations

from typing import Dict, List

from cssnpm.model import NodeKind, StylesheetDocument


GLOBAL_KEY = "0"


class ResolutionScope:
    """Mutable scope key → imported paths table, one per top-level pass."""

    def __init__(self):
        self._imported: Dict[str, List[str]] = {GLOBAL_KEY: []}

    def is_imported_at(self, key: str, path: str) -> bool:
        return path in self._imported.get(key, ()) or path in self._imported[GLOBAL_KEY]

    def record(self, key: str, path: str) -> None:
        self._imported.setdefault(key, []).append(path)

    def claim(self, key: str, path: str) -> bool:
        """
        Check and record in one step.

        Returns:
            True if the path was not yet imported at `key` (and is now
            recorded), False on a duplicate
        """
        if self.is_imported_at(key, path):
            return False
        self.record(key, path)
        return True

    def paths(self, key: str) -> List[str]:
        return list(self._imported.get(key, ()))

    @property
    def keys(self) -> List[str]:
        return list(self._imported)


def scope_key_for(document: StylesheetDocument, node_id: int, default: str = GLOBAL_KEY) -> str:
    """
    Scope key of a node: params of its nearest CONDITIONAL ancestor.

    `default` is returned when no conditional ancestor exists in this
    document; nested documents pass the key of the directive that
    imported them.
    """
    for ancestor in document.ancestors(node_id):
        if ancestor.kind == NodeKind.CONDITIONAL:
            return ancestor.params
    return default


__all__ = ["GLOBAL_KEY", "ResolutionScope", "scope_key_for"]
