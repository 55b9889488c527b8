"""Post-order rewriting visitor over persistent syntax trees."""

from typing import List, Optional

from .models import Node


class TreeRewriter:
    """Rebuilds a tree bottom-up, dispatching ``visit_<kind>`` hooks.

    A hook receives the node with its children already rewritten and
    returns the replacement (or the node itself). Unchanged subtrees are
    returned as the very same objects, so a rewrite that touches nothing
    yields the input tree.

    While a hook runs, ``ancestors`` holds the path from the root down to
    the node's parent, as it was before rewriting.
    """

    def __init__(self):
        self.ancestors: List[Node] = []

    def rewrite(self, root: Node) -> Node:
        self.ancestors = []
        return self._visit(root)

    @property
    def parent(self) -> Optional[Node]:
        return self.ancestors[-1] if self.ancestors else None

    def nearest(self, *kinds: str) -> Optional[Node]:
        """Closest ancestor of one of the given kinds."""
        for ancestor in reversed(self.ancestors):
            if ancestor.kind in kinds:
                return ancestor
        return None

    def _visit(self, node: Node) -> Node:
        if node.children:
            self.ancestors.append(node)
            new_children = []
            changed = False
            for c in node.children:
                rewritten = self._visit(c)
                if rewritten is not c:
                    changed = True
                new_children.append(rewritten)
            self.ancestors.pop()
            if changed:
                node = node.with_children(new_children)

        hook = getattr(self, "visit_" + node.kind, None)
        if hook is not None:
            result = hook(node)
            if result is not None:
                node = result
        return node
