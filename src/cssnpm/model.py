"""
Core Stylesheet Model Objects

Defines the tree that every other layer reads and mutates:
    - SourceLocation (where a node came from)
    - Node (one statement, rule, declaration or comment)
    - StylesheetDocument (the arena that owns every node)

ARCHITECTURAL RULE:
    Nodes never point at each other.
    A StylesheetDocument owns its nodes in an arena keyed by stable
    integer ids, and keeps parent/children relationships in explicit
    index tables. Splicing one document into another copies nodes and
    allocates fresh ids, so a node id is never shared between documents.

The resolver only cares about four kinds of node (NodeKind). Everything
it does not need to understand is OTHER; the NodeRole tag carries just
enough syntax for the CSS generator to print it back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterator, List, Optional


class NodeKind(Enum):
    """Closed set of node kinds the import resolver dispatches on."""

    DOCUMENT = "document"
    IMPORT = "import"
    CONDITIONAL = "conditional"
    OTHER = "other"


class NodeRole(Enum):
    """Syntactic role of a node, used for serialization."""

    ROOT = "root"
    RULE = "rule"
    DECLARATION = "decl"
    COMMENT = "comment"
    AT_RULE = "atrule"


# At-rules whose block makes their children conditional. Imports nested in
# one of these are deduplicated per condition text.
CONDITIONAL_AT_RULES = frozenset({
    "media",
    "supports",
    "document",
    "-moz-document",
    "container",
    "layer",
    "scope",
    "starting-style",
})


def classify_at_rule(name: str, has_block: bool) -> NodeKind:
    """Pick the NodeKind for an at-rule by name and shape."""
    lowered = name.lower()
    if lowered == "import" and not has_block:
        return NodeKind.IMPORT
    if has_block and lowered in CONDITIONAL_AT_RULES:
        return NodeKind.CONDITIONAL
    return NodeKind.OTHER


@dataclass(frozen=True)
class SourceLocation:
    """
    Origin of a node.

    Properties:
        path: Absolute filesystem path of the file the node was parsed from
              (None for synthetic or anonymous input)
        label: Display name used in source maps, normally relative to root
        line: 1-based line
        column: 1-based column
    """

    path: Optional[str] = None
    label: Optional[str] = None
    line: int = 1
    column: int = 1

    def at(self, line: int, column: int) -> SourceLocation:
        return replace(self, line=line, column=column)


@dataclass
class Node:
    """
    A single node in a StylesheetDocument.

    Which fields are meaningful depends on `role`:
        RULE:         selector, children
        DECLARATION:  prop, value, important
        COMMENT:      text
        AT_RULE:      name, params, has_block (children when it has one)
        ROOT:         nothing; it is the document itself
    """

    id: int
    kind: NodeKind
    role: NodeRole
    name: str = ""
    params: str = ""
    selector: str = ""
    prop: str = ""
    value: str = ""
    important: bool = False
    text: str = ""
    has_block: bool = False
    source: SourceLocation = field(default_factory=SourceLocation)


class StylesheetDocument:
    """
    Mutable, order-preserving stylesheet tree stored as an arena.

    Node ids are allocated from a per-document counter and are never
    reused, so an id stays valid (or raises KeyError once removed) for
    the lifetime of the document.
    """

    def __init__(self, source: Optional[SourceLocation] = None):
        self.source = source or SourceLocation()
        self._nodes: Dict[int, Node] = {}
        self._children: Dict[int, List[int]] = {}
        self._parent: Dict[int, Optional[int]] = {}
        self._next_id = 0
        root = self._allocate(NodeKind.DOCUMENT, NodeRole.ROOT, None, {"source": self.source})
        self.root_id = root.id

    def __len__(self) -> int:
        """Number of live nodes, excluding the root."""
        return len(self._nodes) - 1

    def __contains__(self, node_id: int) -> bool:
        return node_id in self._nodes

    def _allocate(self, kind: NodeKind, role: NodeRole, parent_id: Optional[int], fields: dict) -> Node:
        node = Node(id=self._next_id, kind=kind, role=role, **fields)
        self._next_id += 1
        self._nodes[node.id] = node
        self._children[node.id] = []
        self._parent[node.id] = parent_id
        return node

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def append(self, parent_id: int, kind: NodeKind, role: NodeRole, **fields) -> Node:
        """
        Create a node as the last child of `parent_id`.

        Args:
            parent_id: Id of an existing node
            kind: Core kind of the new node
            role: Syntactic role of the new node
            **fields: Remaining Node attributes (selector, params, ...)

        Returns:
            The newly created Node
        """
        if parent_id not in self._nodes:
            raise KeyError(f"Unknown parent node id: {parent_id}")
        node = self._allocate(kind, role, parent_id, fields)
        self._children[parent_id].append(node.id)
        return node

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> Node:
        return self._nodes[self.root_id]

    def node(self, node_id: int) -> Node:
        return self._nodes[node_id]

    def children(self, node_id: Optional[int] = None) -> List[Node]:
        """Direct children of a node (the root by default), in order."""
        if node_id is None:
            node_id = self.root_id
        return [self._nodes[i] for i in self._children[node_id]]

    @property
    def nodes(self) -> List[Node]:
        """Top-level nodes of the document."""
        return self.children(self.root_id)

    def parent(self, node_id: int) -> Optional[Node]:
        parent_id = self._parent[node_id]
        if parent_id is None:
            return None
        return self._nodes[parent_id]

    def ancestors(self, node_id: int) -> Iterator[Node]:
        """Yield ancestors of a node from nearest to the root (inclusive)."""
        parent = self.parent(node_id)
        while parent is not None:
            yield parent
            parent = self.parent(parent.id)

    def walk(self, start_id: Optional[int] = None) -> Iterator[Node]:
        """
        Depth-first, document-order traversal below `start_id`.

        The start node itself is not yielded. The traversal works on a
        snapshot of each child list, so removing the yielded node is safe.
        """
        if start_id is None:
            start_id = self.root_id
        for child_id in list(self._children[start_id]):
            if child_id not in self._nodes:
                continue
            yield self._nodes[child_id]
            if child_id in self._nodes:
                yield from self.walk(child_id)

    def imports(self, start_id: Optional[int] = None) -> List[Node]:
        """All IMPORT nodes below `start_id`, in document order."""
        return [n for n in self.walk(start_id) if n.kind == NodeKind.IMPORT]

    def index_of(self, node_id: int) -> int:
        parent_id = self._parent[node_id]
        if parent_id is None:
            raise ValueError("The document root has no position")
        return self._children[parent_id].index(node_id)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def remove(self, node_id: int) -> None:
        """Detach a node and drop it, with its whole subtree, from the arena."""
        if node_id == self.root_id:
            raise ValueError("Cannot remove the document root")
        parent_id = self._parent[node_id]
        self._children[parent_id].remove(node_id)
        self._discard(node_id)

    def _discard(self, node_id: int) -> None:
        for child_id in self._children[node_id]:
            self._discard(child_id)
        del self._nodes[node_id]
        del self._children[node_id]
        del self._parent[node_id]

    def insert_before(self, target_id: int, other: StylesheetDocument) -> List[int]:
        """
        Copy the top-level nodes of `other` in front of `target_id`.

        Copied nodes receive fresh ids in this document and keep their
        SourceLocation. `other` is left untouched.

        Returns:
            Ids of the copied top-level nodes, in order
        """
        parent_id = self._parent[target_id]
        if parent_id is None:
            raise ValueError("Cannot insert before the document root")
        position = self.index_of(target_id)
        return self._graft(other, parent_id, position)

    def prepend(self, other: StylesheetDocument) -> List[int]:
        """Copy the top-level nodes of `other` to the start of this document."""
        return self._graft(other, self.root_id, 0)

    def _graft(self, other: StylesheetDocument, parent_id: int, position: int) -> List[int]:
        inserted = []
        for offset, node in enumerate(other.nodes):
            new_id = self._copy_subtree(other, node.id, parent_id)
            # _copy_subtree appends; move the new node into place
            self._children[parent_id].pop()
            self._children[parent_id].insert(position + offset, new_id)
            inserted.append(new_id)
        return inserted

    def _copy_subtree(self, other: StylesheetDocument, other_id: int, parent_id: int) -> int:
        original = other.node(other_id)
        fields = {
            name: getattr(original, name)
            for name in Node.__dataclass_fields__
            if name not in ("id", "kind", "role")
        }
        copy = self.append(parent_id, original.kind, original.role, **fields)
        for child in other.children(other_id):
            self._copy_subtree(other, child.id, copy.id)
        return copy.id
