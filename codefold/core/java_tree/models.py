"""Data models for the lossless Java syntax tree."""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Node:
    """One node of a persistent Java syntax tree.

    Leaves carry ``text`` and the whitespace/comments preceding it in
    ``prefix``; interior nodes carry ``children``. Printing every leaf as
    ``prefix + text`` in order reproduces the source exactly.

    ``field`` is the tree-sitter field name of this node under its parent.
    ``type_fqn`` is the fully-qualified type a type-naming node resolves to,
    when attribution could determine it.
    """

    kind: str
    children: Tuple["Node", ...] = ()
    text: str = ""
    prefix: str = ""
    field: Optional[str] = None
    type_fqn: Optional[str] = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def with_children(self, children) -> "Node":
        return replace(self, children=tuple(children))

    def with_text(self, text: str) -> "Node":
        return replace(self, text=text)

    def with_prefix(self, prefix: str) -> "Node":
        return replace(self, prefix=prefix)

    def with_type(self, type_fqn: Optional[str]) -> "Node":
        return replace(self, type_fqn=type_fqn)

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"Node({self.kind!r}, text={self.text!r})"
        return f"Node({self.kind!r}, children={len(self.children)})"


def leaf(kind: str, text: str, prefix: str = "", field_name: Optional[str] = None) -> Node:
    """Build a leaf node. Keyword leaves use their text as the kind."""
    return Node(kind=kind, text=text, prefix=prefix, field=field_name)


@dataclass
class ParseError:
    """A parse issue recorded on a unit instead of being raised."""
    file_path: str
    line: int
    message: str
    severity: str = "warning"


@dataclass(frozen=True)
class SourceUnit:
    """One Java compilation unit.

    ``path`` is the origin relative to the project root and decides where
    the unit is written back. ``role`` is filled in once by the classifier
    and carried alongside the tree from then on. ``encoding`` is the codec
    the file was decoded with and is used again when it is written back.
    """
    path: str
    tree: Node
    role: Optional[object] = None
    generated: bool = False
    errors: Tuple[ParseError, ...] = field(default=(), compare=False)
    encoding: str = field(default="utf-8", compare=False)

    @property
    def package(self) -> str:
        from .syntax import package_name
        return package_name(self.tree)

    @property
    def type_declaration(self) -> Optional[Node]:
        from .syntax import primary_type
        return primary_type(self.tree)

    @property
    def type_name(self) -> Optional[str]:
        from .syntax import declared_name
        decl = self.type_declaration
        return declared_name(decl) if decl is not None else None

    @property
    def identity(self) -> Optional[str]:
        """Fully-qualified name of the unit's primary type."""
        name = self.type_name
        if not name:
            return None
        return f"{self.package}.{name}" if self.package else name

    @property
    def imports(self) -> List[str]:
        from .syntax import import_declarations, import_text
        return [import_text(node) for node in import_declarations(self.tree)]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def with_tree(self, tree: Node) -> "SourceUnit":
        return replace(self, tree=tree)

    def with_role(self, role) -> "SourceUnit":
        return replace(self, role=role)

    def __repr__(self) -> str:
        return f"SourceUnit({self.path!r}, identity={self.identity!r}, role={self.role!r})"
