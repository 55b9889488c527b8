"""Prints syntax trees back to source text."""

from typing import Iterator, List

from .models import Node, SourceUnit


def iter_leaves(node: Node) -> Iterator[Node]:
    """Yield the leaves under ``node`` in source order."""
    stack: List[Node] = [node]
    while stack:
        current = stack.pop()
        if current.children:
            stack.extend(reversed(current.children))
        else:
            yield current


def print_tree(node: Node) -> str:
    """Render a tree, prefixes included."""
    return "".join(leaf.prefix + leaf.text for leaf in iter_leaves(node))


def print_unit(unit: SourceUnit) -> str:
    return print_tree(unit.tree)


def node_source(node: Node) -> str:
    """Render a node without the prefix of its first leaf."""
    return print_tree(node)[len(_leading_prefix(node)):]


def _leading_prefix(node: Node) -> str:
    for leaf in iter_leaves(node):
        return leaf.prefix
    return ""
