"""Type attribution: stamps fully-qualified types onto type-naming nodes.

Built in two steps. ``TypeIndex.from_units`` collects every type declared
in the project (nested types included). ``attribute_types`` then walks each
unit and resolves type names the way javac would for the common cases:

1. types declared in the same unit (top-level or nested)
2. single-type imports
3. types of the same package
4. on-demand (``.*``) imports
5. ``java.lang``
6. fully-qualified names

Resolved nodes get ``type_fqn`` set; unresolved ones are left alone.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from .models import Node, SourceUnit
from .printer import iter_leaves
from .syntax import (
    TYPE_DECLARATION_KINDS,
    child,
    declared_name,
    import_declarations,
    import_name_node,
    import_path,
    is_static_import,
    is_wildcard_import,
    name_text,
    package_name,
    qualifier,
    replace_child,
    type_name_of,
    walk,
)
from .visitor import TreeRewriter

logger = logging.getLogger(__name__)

JAVA_LANG_TYPES = frozenset({
    "Object", "String", "CharSequence", "StringBuilder", "Class", "Enum", "Record",
    "Integer", "Long", "Short", "Byte", "Double", "Float", "Boolean", "Character",
    "Number", "Math", "System", "Thread", "Runnable", "Iterable", "Comparable", "Void",
    "Throwable", "Exception", "Error", "RuntimeException", "IllegalArgumentException",
    "IllegalStateException", "NullPointerException", "UnsupportedOperationException",
    "Override", "Deprecated", "SuppressWarnings", "FunctionalInterface", "SafeVarargs",
})

# Parents whose ``object`` child is the root of a qualified access
_ACCESS_KINDS = ("field_access", "method_invocation")


class TypeIndex:
    """Project-wide set of declared types.

    Attributes:
        known: Fully-qualified names of every declared type.
    """

    __slots__ = ("known",)

    def __init__(self, known: Set[str]):
        self.known = known

    @classmethod
    def from_units(cls, units: Iterable[SourceUnit]) -> "TypeIndex":
        known: Set[str] = set()
        for unit in units:
            known.update(declared_types(unit.tree, package_name(unit.tree)).values())
        return cls(known=known)

    def __contains__(self, fqn: str) -> bool:
        return fqn in self.known


def declared_types(program: Node, pkg: str) -> Dict[str, str]:
    """Map simple name -> FQN for every type declared in a unit."""
    found: Dict[str, str] = {}

    def collect(container: Node, outer: str):
        for node in container.children:
            if node.kind in TYPE_DECLARATION_KINDS:
                name = declared_name(node)
                fqn = f"{outer}.{name}" if outer else name
                found.setdefault(name, fqn)
                body = child(node, "body")
                if body is not None:
                    collect(body, fqn)
                    # enum bodies nest declarations one level deeper
                    for sub in body.children:
                        if sub.kind == "enum_body_declarations":
                            collect(sub, fqn)

    collect(program, pkg)
    return found


class UnitScope:
    """Name resolution context of one compilation unit."""

    __slots__ = ("index", "package", "local_types", "single_imports", "wildcards", "variables")

    def __init__(self, index: TypeIndex, program: Node):
        self.index = index
        self.package = package_name(program)
        self.local_types = declared_types(program, self.package)
        self.single_imports: Dict[str, str] = {}
        self.wildcards: List[str] = []

        for imp in import_declarations(program):
            path = import_path(imp)
            if not path:
                continue
            if is_wildcard_import(imp):
                if not is_static_import(imp):
                    self.wildcards.append(path)
            elif not is_static_import(imp):
                self.single_imports[path.rsplit(".", 1)[-1]] = path

        self.variables = declared_variables(program)

    def resolve_simple(self, name: str) -> Optional[str]:
        if name in self.local_types:
            return self.local_types[name]
        if name in self.single_imports:
            return self.single_imports[name]
        same_package = f"{self.package}.{name}" if self.package else name
        if same_package in self.index:
            return same_package
        for prefix in self.wildcards:
            candidate = f"{prefix}.{name}"
            if candidate in self.index:
                return candidate
        if name in JAVA_LANG_TYPES:
            return f"java.lang.{name}"
        return None

    def resolve(self, dotted: str) -> Optional[str]:
        """Resolve a (possibly qualified) type name to its FQN."""
        if not dotted:
            return None
        parts = dotted.split(".")
        base = self.resolve_simple(parts[0])
        if base is not None:
            return ".".join([base] + parts[1:])
        if len(parts) > 1 and parts[0][:1].islower():
            # Already qualified; a package never starts with a type name
            return dotted
        return None


def declared_variables(program: Node) -> Set[str]:
    """Names of all fields, parameters and locals declared in a unit."""
    names: Set[str] = set()
    for node in walk(program):
        if node.kind in ("variable_declarator", "formal_parameter", "catch_formal_parameter",
                         "enhanced_for_statement", "resource"):
            name = child(node, "name")
            if name is not None and name.kind == "identifier":
                names.add(name.text)
        elif node.kind == "lambda_expression":
            params = child(node, "parameters")
            if params is not None and params.kind == "identifier":
                names.add(params.text)
        elif node.kind == "inferred_parameters":
            names.update(c.text for c in node.children if c.kind == "identifier")
    return names


class TypeAttributor(TreeRewriter):
    """Sets ``type_fqn`` on the type-naming nodes of one unit."""

    def __init__(self, scope: UnitScope):
        super().__init__()
        self.scope = scope

    # ── Directives ───────────────────────────────────────────────

    def visit_import_declaration(self, node: Node) -> Node:
        name = import_name_node(node)
        if name is None:
            return node
        path = name_text(name)
        if is_static_import(node) and not is_wildcard_import(node):
            fqn = qualifier(path)
        else:
            fqn = path
        return replace_child(node, name, name.with_type(fqn))

    def visit_marker_annotation(self, node: Node) -> Node:
        return self._attribute_annotation(node)

    def visit_annotation(self, node: Node) -> Node:
        return self._attribute_annotation(node)

    def _attribute_annotation(self, node: Node) -> Node:
        name = child(node, "name")
        if name is None:
            return node
        fqn = self.scope.resolve(name_text(name))
        if fqn is None:
            return node
        return replace_child(node, name, name.with_type(fqn))

    # ── Type positions ───────────────────────────────────────────

    def visit_type_identifier(self, node: Node) -> Node:
        parent = self.parent
        if parent is not None and parent.kind == "scoped_type_identifier":
            return node
        fqn = self.scope.resolve(node.text)
        return node.with_type(fqn) if fqn else node

    def visit_scoped_type_identifier(self, node: Node) -> Node:
        parent = self.parent
        if parent is not None and parent.kind == "scoped_type_identifier":
            return node
        fqn = self.scope.resolve(type_name_of(node))
        return node.with_type(fqn) if fqn else node

    # ── Expression roots ─────────────────────────────────────────

    def visit_identifier(self, node: Node) -> Node:
        if not self._is_access_root(node):
            return node
        if node.text in self.scope.variables:
            return node
        fqn = self.scope.resolve_simple(node.text)
        return node.with_type(fqn) if fqn else node

    def visit_field_access(self, node: Node) -> Node:
        if not self._is_access_root(node) or not is_name_chain(node):
            return node
        dotted = type_name_of(node)
        head = dotted.split(".", 1)[0]
        if head in self.scope.variables:
            return node
        fqn = self.scope.resolve(dotted)
        if fqn is not None and fqn in self.scope.index:
            return node.with_type(fqn)
        return node

    def _is_access_root(self, node: Node) -> bool:
        parent = self.parent
        if parent is None:
            return False
        if parent.kind in _ACCESS_KINDS:
            return node.field == "object"
        if parent.kind == "method_reference":
            head = parent.children[0]
            return head.kind == node.kind and name_text(head) == name_text(node)
        return False


def is_name_chain(node: Node) -> bool:
    """True for ``a.b.C`` style accesses made only of identifiers."""
    return all(lf.kind in ("identifier", ".") for lf in iter_leaves(node))


def attribute_unit(unit: SourceUnit, index: TypeIndex) -> SourceUnit:
    scope = UnitScope(index, unit.tree)
    tree = TypeAttributor(scope).rewrite(unit.tree)
    return unit if tree is unit.tree else unit.with_tree(tree)


def attribute_types(units: List[SourceUnit]) -> List[SourceUnit]:
    """Attribute every unit against an index of the whole project."""
    index = TypeIndex.from_units(units)
    logger.debug(f"Type index built: {len(index.known)} declared types")
    return [attribute_unit(unit, index) for unit in units]
