"""
Recursive Inliner: replaces package @import directives with file contents.

One pass over a (scope, document) pair:
    1. collect:  walk every IMPORT node in document order; resolve its
                 target, check-and-record it in the scope, and queue it.
                 URL targets stay, duplicates are removed. No I/O yet,
                 so two identical targets can never both be queued.
    2. read:     read and prefilter every queued file concurrently.
    3. expand:   turn each file into a document (parse + recurse, sharing
                 the same ResolutionScope), in document order.
    4. splice:   once every queued import settled, replace each directive
                 with its expanded nodes, in document order.

Any error (unresolvable target, unreadable file, parse failure) aborts the
pass before step 4; nothing is spliced for a failed pass.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from cssnpm.config import ImportOptions
from cssnpm.errors import UnresolvableImportError
from cssnpm.model import StylesheetDocument
from cssnpm.resolver import NameResolver
from cssnpm.scope import GLOBAL_KEY, ResolutionScope, scope_key_for


logger = logging.getLogger(__name__)


@dataclass
class QueuedImport:
    """An @import that passed resolution and dedup and awaits inlining."""

    node_id: int
    path: str
    label: str
    scope_key: str
    contents: Optional[str] = None


# (queued import, scope) -> fully inlined document for its contents
Expander = Callable[[QueuedImport, ResolutionScope], Awaitable[StylesheetDocument]]


def _read_text(path: str) -> str:
    # utf-8-sig drops a leading byte order mark
    with open(path, encoding="utf-8-sig") as f:
        return f.read()


class Inliner:
    """Drives resolution, dedup, reading and splicing for one pipeline."""

    def __init__(self, options: ImportOptions, expander: Expander,
                 resolver: Optional[NameResolver] = None):
        self.options = options
        self.expander = expander
        self.resolver = resolver or NameResolver(options)

    def label_for(self, path: str) -> str:
        """Root-relative, '/'-separated label used in source maps."""
        try:
            relative = os.path.relpath(path, self.options.root)
        except ValueError:
            return path
        return relative.replace(os.sep, "/")

    def collect(self, scope: ResolutionScope, document: StylesheetDocument,
                base_key: str = GLOBAL_KEY, start_id: Optional[int] = None) -> List[QueuedImport]:
        """
        Enumerate, resolve and dedup the imports below `start_id`.

        Duplicate directives are removed from the document here. Lookups
        run synchronously on the calling thread (they only stat files and
        read package.json), so scope claims are made in document order.

        Raises:
            UnresolvableImportError: On the first target that cannot be found
        """
        queue: List[QueuedImport] = []
        for node in document.imports(start_id):
            path = self.resolver.resolve(node.params, node.source.path)
            if path is None:
                continue

            key = scope_key_for(document, node.id, base_key)
            if not scope.claim(key, path):
                logger.debug("Skipping duplicate @import of %s in scope %r", path, key)
                document.remove(node.id)
                continue

            queue.append(QueuedImport(node.id, path, self.label_for(path), key))
        return queue

    async def read(self, item: QueuedImport) -> QueuedImport:
        try:
            contents = await asyncio.to_thread(_read_text, item.path)
        except (OSError, UnicodeDecodeError) as e:
            raise UnresolvableImportError(item.path, reason=str(e)) from e
        item.contents = self.options.prefilter(contents, item.path)
        return item

    async def inline(self, scope: ResolutionScope, document: StylesheetDocument,
                     base_key: str = GLOBAL_KEY, start_id: Optional[int] = None) -> StylesheetDocument:
        """
        Inline every resolvable @import below `start_id`, recursively.

        Args:
            scope: Shared dedup state for the whole top-level pass
            document: Document to mutate
            base_key: Scope key for imports outside any conditional group
            start_id: Subtree to process (the whole document by default)

        Returns:
            The same document, mutated
        """
        queue = self.collect(scope, document, base_key, start_id)
        if not queue:
            return document

        await asyncio.gather(*(self.read(item) for item in queue))

        expanded = []
        for item in queue:
            expanded.append(await self.expander(item, scope))

        for item, nested in zip(queue, expanded):
            document.insert_before(item.node_id, nested)
            document.remove(item.node_id)
            logger.debug("Inlined %s (%d top-level nodes)", item.label, len(nested.nodes))
        return document


__all__ = ["Expander", "Inliner", "QueuedImport"]
