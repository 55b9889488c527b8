"""Accessors and small rewrites over Java syntax trees.

Everything here is a pure function over ``Node`` values. Rewrites return a
new node and rebuild only the path from the node to the changed child.
"""

from typing import Callable, List, Optional, Tuple

from .models import Node, leaf
from .printer import iter_leaves, node_source

# =============================================================================
# Node kinds
# =============================================================================

TYPE_DECLARATION_KINDS = frozenset({
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "record_declaration",
    "annotation_type_declaration",
})

DATA_MEMBER_KINDS = frozenset({"field_declaration", "constant_declaration"})

BEHAVIOR_MEMBER_KINDS = frozenset({
    "method_declaration",
    "constructor_declaration",
    "compact_constructor_declaration",
})

ANNOTATION_KINDS = frozenset({"marker_annotation", "annotation"})

NAME_KINDS = frozenset({"identifier", "scoped_identifier"})

SUPERTYPE_CLAUSE_KINDS = frozenset({"superclass", "super_interfaces", "extends_interfaces"})

ACCESS_KEYWORDS = ("public", "protected", "private")

DATA = "data"
BEHAVIOR = "behavior"
OTHER = "other"


# =============================================================================
# Navigation
# =============================================================================

def child(node: Node, field_name: str) -> Optional[Node]:
    """First child stored under a tree-sitter field."""
    for c in node.children:
        if c.field == field_name:
            return c
    return None


def first_child_by_kind(node: Node, *kinds: str) -> Optional[Node]:
    for c in node.children:
        if c.kind in kinds:
            return c
    return None


def children_by_kind(node: Node, *kinds: str) -> List[Node]:
    return [c for c in node.children if c.kind in kinds]


def walk(node: Node):
    """Pre-order iteration over every node."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def first_leaf(node: Node) -> Optional[Node]:
    for lf in iter_leaves(node):
        return lf
    return None


def leading_prefix(node: Optional[Node]) -> str:
    if node is None:
        return ""
    lf = first_leaf(node)
    return lf.prefix if lf is not None else ""


def name_text(node: Optional[Node]) -> str:
    """Token text of a node without any whitespace or comments."""
    if node is None:
        return ""
    return "".join(lf.text for lf in iter_leaves(node))


def simple_name(dotted: str) -> str:
    return dotted.rsplit(".", 1)[-1]


def qualifier(dotted: str) -> str:
    return dotted.rsplit(".", 1)[0] if "." in dotted else ""


# =============================================================================
# Rewrites
# =============================================================================

def replace_child(node: Node, old: Node, new: Optional[Node]) -> Node:
    """Swap one child (matched by identity); ``None`` removes it."""
    children = []
    for c in node.children:
        if c is old:
            if new is not None:
                children.append(new)
        else:
            children.append(c)
    return node.with_children(children)


def with_leading_prefix(node: Node, prefix: str) -> Node:
    """Replace the prefix of the first leaf under ``node``."""
    if not node.children:
        return node.with_prefix(prefix)
    first = node.children[0]
    return node.with_children((with_leading_prefix(first, prefix),) + node.children[1:])


def rename(decl: Node, new_name: str) -> Node:
    """Rename a declaration's ``name`` identifier."""
    name = child(decl, "name")
    if name is None or name.text == new_name:
        return decl
    return replace_child(decl, name, name.with_text(new_name))


def build_dotted(kind: str, dotted: str, prefix: str = "", field_name: Optional[str] = None,
                 type_fqn: Optional[str] = None) -> Node:
    """Build a qualified name node from a dotted path.

    ``kind`` is the kind of a single-segment name (``identifier`` or
    ``type_identifier``) or of the qualified form (``scoped_identifier``,
    ``scoped_type_identifier``, ``field_access``).
    """
    if kind in ("type_identifier", "scoped_type_identifier"):
        segment_kind, scoped_kind = "type_identifier", "scoped_type_identifier"
        scope_field, name_field = None, None
    elif kind == "field_access":
        segment_kind, scoped_kind = "identifier", "field_access"
        scope_field, name_field = "object", "field"
    else:
        segment_kind, scoped_kind = "identifier", "scoped_identifier"
        scope_field, name_field = "scope", "name"

    parts = dotted.split(".")
    if len(parts) == 1:
        return Node(kind=segment_kind, text=parts[0], prefix=prefix, field=field_name, type_fqn=type_fqn)

    current = Node(kind=segment_kind, text=parts[0], prefix=prefix, field=scope_field)
    for index, part in enumerate(parts[1:], start=1):
        last = index == len(parts) - 1
        current = Node(
            kind=scoped_kind,
            children=(current, leaf(".", "."), Node(kind=segment_kind, text=part, field=name_field)),
            field=field_name if last else scope_field,
            type_fqn=type_fqn if last else None,
        )
    return current


# =============================================================================
# Compilation unit
# =============================================================================

def package_name(program: Node) -> str:
    decl = first_child_by_kind(program, "package_declaration")
    if decl is None:
        return ""
    return name_text(first_child_by_kind(decl, *NAME_KINDS))


def import_declarations(program: Node) -> List[Node]:
    return children_by_kind(program, "import_declaration")


def import_name_node(import_decl: Node) -> Optional[Node]:
    return first_child_by_kind(import_decl, *NAME_KINDS)


def import_path(import_decl: Node) -> str:
    """Dotted path of an import, without ``static`` or the ``.*`` suffix."""
    return name_text(import_name_node(import_decl))


def is_static_import(import_decl: Node) -> bool:
    return any(c.kind == "static" for c in import_decl.children)


def is_wildcard_import(import_decl: Node) -> bool:
    return any(c.kind == "asterisk" for c in import_decl.children)


def import_text(import_decl: Node) -> str:
    return node_source(import_decl)


def imported_type(import_decl: Node) -> str:
    """Type identity an import refers to.

    ``import a.B;`` and ``import static a.B.*;`` name ``a.B``;
    ``import static a.B.m;`` names the type ``a.B``.
    """
    name = import_name_node(import_decl)
    if name is not None and name.type_fqn:
        return name.type_fqn
    path = import_path(import_decl)
    if is_static_import(import_decl) and not is_wildcard_import(import_decl):
        return qualifier(path)
    return path


def primary_type(program: Node) -> Optional[Node]:
    return first_child_by_kind(program, *TYPE_DECLARATION_KINDS)


# =============================================================================
# Declarations
# =============================================================================

def declared_name(decl: Node) -> str:
    name = child(decl, "name")
    return name.text if name is not None else ""


def modifiers_node(decl: Node) -> Optional[Node]:
    return first_child_by_kind(decl, "modifiers")


def annotations(decl: Node) -> List[Node]:
    mods = modifiers_node(decl)
    if mods is None:
        return []
    return children_by_kind(mods, *ANNOTATION_KINDS)


def keywords(decl: Node) -> List[str]:
    """Keyword modifiers (``public``, ``static``, ``default``...) in order."""
    mods = modifiers_node(decl)
    if mods is None:
        return []
    return [c.text for c in mods.children if c.kind not in ANNOTATION_KINDS]


def access_keyword(decl: Node) -> Optional[str]:
    for kw in keywords(decl):
        if kw in ACCESS_KEYWORDS:
            return kw
    return None


def is_static(decl: Node) -> bool:
    return "static" in keywords(decl)


def annotation_name(annotation: Node) -> str:
    return name_text(child(annotation, "name"))


def annotation_type(annotation: Node) -> Optional[str]:
    """Attributed FQN of an annotation, if resolution found one."""
    name = child(annotation, "name")
    return name.type_fqn if name is not None else None


def annotation_string_values(annotation: Node) -> List[str]:
    """String literal values passed to an annotation, in order."""
    args = child(annotation, "arguments")
    if args is None:
        return []
    values = []
    for lf in iter_leaves(args):
        if lf.kind in ("string_literal", "text_block"):
            values.append(lf.text.strip('"'))
    return values


def body(decl: Node) -> Optional[Node]:
    return child(decl, "body")


def has_body(member: Node) -> bool:
    return child(member, "body") is not None


def members(decl: Node) -> List[Node]:
    """Members of a type declaration's body, braces excluded."""
    b = body(decl)
    if b is None:
        return []
    return [c for c in b.children if c.kind not in ("{", "}")]


def with_members(decl: Node, new_members: List[Node]) -> Node:
    b = body(decl)
    opening = [c for c in b.children if c.kind == "{"]
    closing = [c for c in b.children if c.kind == "}"]
    return replace_child(decl, b, b.with_children(opening + list(new_members) + closing))


def member_kind(member: Node) -> str:
    if member.kind in DATA_MEMBER_KINDS:
        return DATA
    if member.kind in BEHAVIOR_MEMBER_KINDS:
        return BEHAVIOR
    return OTHER


def supertype_nodes(decl: Node) -> List[Node]:
    """Type nodes named in ``extends``/``implements`` clauses."""
    found = []
    for clause in decl.children:
        if clause.kind not in SUPERTYPE_CLAUSE_KINDS:
            continue
        for sub in clause.children:
            if sub.kind == "type_list":
                found.extend(t for t in sub.children if t.kind != ",")
            elif sub.kind not in ("extends", "implements"):
                found.append(sub)
    return found


def type_name_of(type_node: Node) -> str:
    """Dotted name of a type node with type arguments and dimensions removed."""
    if type_node.kind in ("type_identifier", "identifier"):
        return type_node.text
    if type_node.kind == "generic_type":
        return type_name_of(type_node.children[0])
    if type_node.kind == "array_type":
        element = child(type_node, "element")
        return type_name_of(element if element is not None else type_node.children[0])
    if type_node.kind in ("scoped_type_identifier", "scoped_identifier", "field_access"):
        parts = []
        for c in type_node.children:
            if c.kind in ("type_identifier", "identifier"):
                parts.append(c.text)
            elif c.kind in ("scoped_type_identifier", "scoped_identifier", "field_access", "generic_type"):
                parts.append(type_name_of(c))
        return ".".join(parts)
    return name_text(type_node)


# =============================================================================
# Modifier rewrites
# =============================================================================

def remove_annotations(decl: Node, predicate: Callable[[Node], bool]) -> Tuple[Node, List[Node]]:
    """Drop the annotations matching ``predicate`` from a declaration.

    When a removed annotation was the first token of the declaration, its
    leading whitespace moves onto whatever token comes first afterwards.

    Returns:
        (new declaration, removed annotation nodes)
    """
    mods = modifiers_node(decl)
    if mods is None:
        return decl, []

    kept: List[Node] = []
    removed: List[Node] = []
    leading_removed = False
    for item in mods.children:
        if item.kind in ANNOTATION_KINDS and predicate(item):
            removed.append(item)
            if not kept:
                leading_removed = True
        else:
            kept.append(item)

    if not removed:
        return decl, []

    leading = leading_prefix(decl)
    result = replace_child(decl, mods, mods.with_children(kept) if kept else None)
    if leading_removed:
        result = with_leading_prefix(result, leading)
    return result, removed


def set_keywords(decl: Node, new_keywords: List[str]) -> Node:
    """Replace a declaration's keyword modifiers, keeping its annotations.

    Annotations stay first with their own layout; keywords follow separated
    by single spaces, and the token after the modifiers gets a single space.
    """
    if keywords(decl) == list(new_keywords):
        return decl

    leading = leading_prefix(decl)
    mods = modifiers_node(decl)
    annots = children_by_kind(mods, *ANNOTATION_KINDS) if mods is not None else []
    old_keywords = [c for c in mods.children if c.kind not in ANNOTATION_KINDS] if mods is not None else []
    rest = [c for c in decl.children if c is not mods]

    separator = " "
    if annots:
        follower = old_keywords[0] if old_keywords else (rest[0] if rest else None)
        if follower is not None:
            separator = leading_prefix(follower)

    items: List[Node] = list(annots)
    for index, kw in enumerate(new_keywords):
        prefix = separator if (index == 0 and annots) else " "
        items.append(leaf(kw, kw, prefix))

    if rest:
        if new_keywords:
            rest[0] = with_leading_prefix(rest[0], " ")
        elif annots:
            rest[0] = with_leading_prefix(rest[0], separator)
        else:
            rest[0] = with_leading_prefix(rest[0], leading)

    if not items:
        return decl.with_children(rest)

    items[0] = with_leading_prefix(items[0], leading)
    new_mods = mods.with_children(items) if mods is not None else Node(kind="modifiers", children=tuple(items))
    return decl.with_children([new_mods] + rest)
