"""
Depth-first walk over an untyped JSON tree.

Yields every node (objects, arrays and scalars) in pre-order together
with the chain of enclosing objects. Arrays are transparent: they are
yielded as nodes but never appear in an ancestor chain.
"""
from dataclasses import dataclass
from typing import Any, Iterator, Tuple


@dataclass(frozen=True)
class TraversalNode:
    """A node and its object ancestors, root first, parent last."""
    node: Any
    ancestors: Tuple[dict, ...] = ()

    @property
    def is_object(self) -> bool:
        return isinstance(self.node, dict)


def walk(root: Any) -> Iterator[TraversalNode]:
    """
    Lazily walk `root` in pre-order.

    Uses an explicit stack, so depth is bounded by memory rather than
    the recursion limit. Children are pushed only when their parent is
    yielded; stopping early never materializes the rest of the tree.
    Object children follow key order, array children index order.
    """
    stack = [TraversalNode(root, ())]
    while stack:
        current = stack.pop()
        yield current

        value = current.node
        if isinstance(value, dict):
            child_ancestors = current.ancestors + (value,)
            children = [TraversalNode(child, child_ancestors) for child in value.values()]
        elif isinstance(value, list):
            children = [TraversalNode(child, current.ancestors) for child in value]
        else:
            continue

        stack.extend(reversed(children))


def iter_objects(root: Any) -> Iterator[TraversalNode]:
    """Only the object nodes of `walk(root)`."""
    for entry in walk(root):
        if entry.is_object:
            yield entry
