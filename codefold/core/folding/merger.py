"""Structural merge: fold a generated realization into its contract.

The merged unit keeps the realization's executable members and the
contract's name, package, directives and provided-body members:

1. Imports: realization imports then contract imports, minus the marker
   and provenance annotations and (optionally) the whole marker namespace.
2. Realization members: constructors renamed, ``@Override`` stripped.
3. Contract members: provided-body methods made callable, abstract ones
   dropped, interface constants made explicitly ``public static final``.
4. Stable member ordering (see ``ordering``).
5. Contract name and annotations, no supertypes.
"""

import logging
from typing import Callable, List, Optional, Set

from ...config import FoldConfig
from ..java_tree.models import Node, SourceUnit, leaf
from ..java_tree.syntax import (
    ACCESS_KEYWORDS,
    ANNOTATION_KINDS,
    BEHAVIOR,
    DATA,
    SUPERTYPE_CLAUSE_KINDS,
    TYPE_DECLARATION_KINDS,
    access_keyword,
    annotation_name,
    annotation_type,
    annotations,
    body,
    child,
    declared_name,
    first_child_by_kind,
    has_body,
    import_declarations,
    import_path,
    import_text,
    imported_type,
    is_static,
    keywords,
    leading_prefix,
    member_kind,
    members,
    remove_annotations,
    rename,
    replace_child,
    set_keywords,
    simple_name,
    with_leading_prefix,
    with_members,
)
from .classifier import annotation_matches
from .models import MergePreconditionError
from .ordering import order_members

logger = logging.getLogger(__name__)


class StructuralMerger:
    """Merges one (contract, realization) pair into a single unit."""

    def __init__(self, config: Optional[FoldConfig] = None):
        self.config = config or FoldConfig()

    def merge(self, contract: SourceUnit, realization: SourceUnit) -> SourceUnit:
        """Produce the merged unit, placed at the contract's path.

        Raises:
            MergePreconditionError: If either side lacks a type body
        """
        identity = contract.identity or contract.path
        contract_decl = contract.type_declaration
        realization_decl = realization.type_declaration

        if contract_decl is None or body(contract_decl) is None:
            raise MergePreconditionError(identity, "contract has no type body")
        if realization_decl is None:
            raise MergePreconditionError(identity, f"realization {realization.path} declares no type")
        if body(realization_decl) is None:
            raise MergePreconditionError(
                identity, f"realization {realization.identity} has no type body"
            )

        if realization.package != contract.package:
            logger.warning(
                f"Realization {realization.identity} lives in package '{realization.package}', "
                f"not '{contract.package}'; same-package types it uses are not imported"
            )

        contract_name = declared_name(contract_decl)
        realization_name = declared_name(realization_decl)
        tool_names = self._marker_namespace_names(contract)

        imports = self.merge_imports(contract, realization)

        realization_members = [
            self._transform_realization_member(m, realization_name, contract_name)
            for m in members(realization_decl)
        ]
        contract_members = self.harvest_contract_members(contract_decl, tool_names)
        ordered = order_members(realization_members + contract_members)

        decl = self._finalize_declaration(contract_decl, realization_decl, contract_name, tool_names)
        decl = with_members(decl, ordered)

        tree = self._assemble(contract, realization, imports, decl)
        logger.debug(
            f"Merged {realization.identity} into {identity}: "
            f"{len(realization_members)} realization + {len(contract_members)} contract members"
        )
        return SourceUnit(path=contract.path, tree=tree, generated=contract.generated,
                          encoding=contract.encoding)

    # =========================================================================
    # Imports
    # =========================================================================

    def merge_imports(self, contract: SourceUnit, realization: SourceUnit) -> List[Node]:
        dropped = set(self.config.contract_markers) | set(self.config.provenance_markers)
        dropped.update(i for i in (contract.identity, realization.identity) if i)

        merged: List[Node] = []
        seen: Set[str] = set()
        for imp in import_declarations(realization.tree) + import_declarations(contract.tree):
            path = import_path(imp)
            if path in dropped or imported_type(imp) in dropped:
                continue
            if self.config.remove_marker_namespace and self.config.in_marker_namespace(path):
                continue
            if self.config.dedupe_imports:
                key = " ".join(import_text(imp).split())
                if key in seen:
                    continue
                seen.add(key)
            merged.append(imp)

        return [
            with_leading_prefix(imp, "\n\n" if index == 0 else "\n")
            if not leading_prefix(imp).strip() else imp
            for index, imp in enumerate(merged)
        ]

    # =========================================================================
    # Members
    # =========================================================================

    def _transform_realization_member(self, member: Node, realization_name: str, contract_name: str) -> Node:
        if member_kind(member) != BEHAVIOR:
            return member
        if declared_name(member) == realization_name:
            member = rename(member, contract_name)
        member, _ = remove_annotations(
            member, lambda ann: annotation_matches(ann, self.config.override_markers)
        )
        return member

    def harvest_contract_members(self, contract_decl: Node, tool_names: Optional[Set[str]] = None) -> List[Node]:
        """Members of the contract that survive into the merged type."""
        is_interface = contract_decl.kind == "interface_declaration"
        is_tool = self._tool_annotation_predicate(tool_names or set())
        harvested = []

        for member in members(contract_decl):
            kind = member_kind(member)
            if kind == BEHAVIOR:
                if not has_body(member):
                    # Implemented by the realization
                    if is_static(member):
                        harvested.append(member)
                    continue
                member = self._make_callable(member, is_interface)
                if self.config.remove_marker_namespace:
                    member = strip_annotations_deep(member, is_tool)
            elif kind == DATA:
                if is_interface:
                    member = normalize_constant(member)
            elif member.kind == ";":
                continue
            elif is_interface and member.kind in TYPE_DECLARATION_KINDS:
                member = _make_nested_type_static(member)

            harvested.append(with_leading_prefix(member, normalize_member_prefix(leading_prefix(member))))

        return harvested

    def _make_callable(self, member: Node, is_interface: bool) -> Node:
        kws = keywords(member)
        if "default" in kws:
            if any(k in ACCESS_KEYWORDS for k in kws):
                return set_keywords(member, [k for k in kws if k != "default"])
            return set_keywords(member, ["public" if k == "default" else k for k in kws])
        if is_interface and access_keyword(member) is None:
            # Interface members are implicitly public; a class member is not
            return set_keywords(member, ["public"] + kws)
        return member

    # =========================================================================
    # Declaration
    # =========================================================================

    def _finalize_declaration(
        self, contract_decl: Node, realization_decl: Node, contract_name: str, tool_names: Set[str]
    ) -> Node:
        is_tool = self._tool_annotation_predicate(tool_names)
        kept_annotations = [
            a for a in annotations(contract_decl)
            if not annotation_matches(a, self.config.contract_markers) and not is_tool(a)
        ] + [
            a for a in annotations(realization_decl)
            if not annotation_matches(a, self.config.provenance_markers)
        ]

        items: List[Node] = []
        for ann in kept_annotations:
            items.append(with_leading_prefix(ann, "\n" if items else ""))
        for kw in keywords(realization_decl):
            if not items:
                prefix = ""
            elif items[-1].kind in ANNOTATION_KINDS:
                prefix = "\n"
            else:
                prefix = " "
            items.append(leaf(kw, kw, prefix))

        rest = []
        for c in realization_decl.children:
            if c.kind == "modifiers" or c.kind in SUPERTYPE_CLAUSE_KINDS or c.kind == "permits":
                continue
            if c.field == "name":
                c = c.with_text(contract_name)
            rest.append(c)

        if items:
            separator = "\n" if items[-1].kind in ANNOTATION_KINDS else " "
            rest[0] = with_leading_prefix(rest[0], separator)
            children = [Node(kind="modifiers", children=tuple(items))] + rest
        else:
            rest[0] = with_leading_prefix(rest[0], "")
            children = rest

        return Node(kind=realization_decl.kind, children=tuple(children))

    def _assemble(self, contract: SourceUnit, realization: SourceUnit, imports: List[Node], decl: Node) -> Node:
        children: List[Node] = []
        package = first_child_by_kind(contract.tree, "package_declaration")
        if package is not None:
            children.append(package)
        elif imports and not leading_prefix(imports[0]).strip():
            imports[0] = with_leading_prefix(imports[0], "")
        children.extend(imports)

        leading = leading_prefix(contract.type_declaration)
        if not leading.strip():
            leading = "\n\n" if children else ""
        children.append(with_leading_prefix(decl, leading))

        # Secondary top-level types of the contract file stay with it
        primary = contract.type_declaration
        for c in contract.tree.children:
            if c.kind in TYPE_DECLARATION_KINDS and c is not primary:
                children.append(c)

        last = realization.tree.children[-1] if realization.tree.children else None
        if last is not None and last.kind == "eof":
            children.append(last)
        else:
            children.append(leaf("eof", "", "\n"))

        return contract.tree.with_children(children)

    # =========================================================================
    # Tool annotations
    # =========================================================================

    def _marker_namespace_names(self, unit: SourceUnit) -> Set[str]:
        """Simple names imported from the marker namespace by a unit."""
        names = set()
        for imp in import_declarations(unit.tree):
            path = import_path(imp)
            if self.config.in_marker_namespace(path):
                names.add(simple_name(path))
        return names

    def _tool_annotation_predicate(self, tool_names: Set[str]) -> Callable[[Node], bool]:
        def is_tool(ann: Node) -> bool:
            if not self.config.remove_marker_namespace:
                return False
            written = annotation_name(ann)
            fqn = annotation_type(ann) or (written if "." in written else None)
            if fqn is not None and self.config.in_marker_namespace(fqn):
                return True
            return written in tool_names
        return is_tool


def strip_annotations_deep(member: Node, predicate: Callable[[Node], bool]) -> Node:
    """Remove matching annotations from a method and from its parameters."""
    member, _ = remove_annotations(member, predicate)
    params = child(member, "parameters")
    if params is None:
        return member

    new_params = []
    changed = False
    for param in params.children:
        if param.kind in ("formal_parameter", "spread_parameter"):
            stripped, removed = remove_annotations(param, predicate)
            if removed:
                changed = True
                param = stripped
        new_params.append(param)
    if not changed:
        return member
    return replace_child(member, params, params.with_children(new_params))


def normalize_constant(member: Node) -> Node:
    """Rewrite an interface constant's modifiers to ``<access> static final ...``.

    The access modifier is kept when present and synthesized as ``public``
    otherwise; other keyword modifiers follow in their original order.
    """
    kws = keywords(member)
    access = access_keyword(member) or "public"
    others = [k for k in kws if k not in ACCESS_KEYWORDS and k not in ("static", "final")]
    return set_keywords(member, [access, "static", "final"] + others)


def _make_nested_type_static(member: Node) -> Node:
    kws = keywords(member)
    access = access_keyword(member) or "public"
    others = [k for k in kws if k not in ACCESS_KEYWORDS and k != "static"]
    return set_keywords(member, [access, "static"] + others)


def normalize_member_prefix(prefix: str) -> str:
    """Exactly one blank line before a member; comments are kept."""
    lines = prefix.split("\n")
    head, indent = lines[:-1], lines[-1]
    while head and not head[0].strip():
        head.pop(0)
    return "\n\n" + "\n".join(head + [indent])
