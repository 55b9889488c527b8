"""Reference propagation: point every reference to a consumed realization
at its contract.

Sites are identified by the type attributed to them. Only when a site has
no attributed type is its dotted text used as the identity, so resolved
types always win over the textual fallback. A site already naming the
contract is left alone, which makes the rewrite idempotent.
"""

import logging
from collections import Counter
from typing import Optional, Tuple

from ...config import FoldConfig
from ..java_tree.attribution import is_name_chain
from ..java_tree.models import Node, SourceUnit
from ..java_tree.syntax import (
    build_dotted,
    import_name_node,
    import_path,
    is_static_import,
    is_wildcard_import,
    leading_prefix,
    name_text,
    qualifier,
    replace_child,
    simple_name,
    type_name_of,
    walk,
)
from ..java_tree.visitor import TreeRewriter
from .linkage import LinkageTable
from .models import SiteKind

logger = logging.getLogger(__name__)

# Nearest enclosing construct -> kind of type site
_SITE_BY_ANCESTOR = {
    "type_arguments": SiteKind.TYPE_ARGUMENT,
    "object_creation_expression": SiteKind.INSTANTIATION,
    "instanceof_expression": SiteKind.TYPE_TEST,
    "cast_expression": SiteKind.CAST,
    "class_literal": SiteKind.CLASS_LITERAL,
    "superclass": SiteKind.SUPERTYPE,
    "super_interfaces": SiteKind.SUPERTYPE,
    "extends_interfaces": SiteKind.SUPERTYPE,
    "field_declaration": SiteKind.DECLARATION,
    "constant_declaration": SiteKind.DECLARATION,
    "local_variable_declaration": SiteKind.DECLARATION,
    "formal_parameter": SiteKind.DECLARATION,
    "spread_parameter": SiteKind.DECLARATION,
    "catch_formal_parameter": SiteKind.DECLARATION,
    "throws": SiteKind.OTHER_TYPE,
    "method_declaration": SiteKind.RETURN_TYPE,
}

# Wrappers that do not change what a type site is used for
_TRANSPARENT_KINDS = frozenset({
    "generic_type", "array_type", "scoped_type_identifier", "annotated_type", "dimensions",
    "type_list", "wildcard",
})


class ReferencePropagator:
    """Rewrites realization references in units, consulting a frozen table."""

    def __init__(self, table: LinkageTable, config: Optional[FoldConfig] = None):
        self.table = table
        self.config = config or FoldConfig()

    def propagate(self, unit: SourceUnit) -> Tuple[SourceUnit, Counter]:
        """Rewrite one unit.

        Returns:
            (rewritten unit, number of rewritten sites per ``SiteKind``)
        """
        if not len(self.table) or not self._may_reference(unit):
            return unit, Counter()

        rewriter = _ReferenceRewriter(self)
        tree = rewriter.rewrite(unit.tree)
        if tree is unit.tree:
            return unit, rewriter.sites
        logger.debug(f"Rewrote {sum(rewriter.sites.values())} reference sites in {unit.path}")
        return unit.with_tree(tree), rewriter.sites

    def _may_reference(self, unit: SourceUnit) -> bool:
        """Cheap pre-check: does any token or attribution mention a realization?"""
        names = {simple_name(r) for r in self.table.realizations()}
        identities = set(self.table.realizations())
        for node in walk(unit.tree):
            if node.type_fqn in identities or (not node.children and node.text in names):
                return True
        return False

    def contract_for(self, identity: Optional[str]) -> Optional[str]:
        if not identity:
            return None
        return self.table.contract_for(identity)

    def already_rewritten(self, current_name: str, contract: str) -> bool:
        """Idempotence check on a site's terminal short name."""
        return (
            current_name == simple_name(contract)
            and not current_name.endswith(self.config.realization_suffix)
        )


class _ReferenceRewriter(TreeRewriter):
    """Per-unit rewriter. Not shared between threads."""

    def __init__(self, propagator: ReferencePropagator):
        super().__init__()
        self.propagator = propagator
        self.sites: Counter = Counter()

    # ── Imports ──────────────────────────────────────────────────

    def visit_import_declaration(self, node: Node) -> Node:
        name = import_name_node(node)
        if name is None:
            return node

        path = import_path(node)
        member_import = is_static_import(node) and not is_wildcard_import(node)
        identity = name.type_fqn or (qualifier(path) if member_import else path)
        contract = self.propagator.contract_for(identity)
        if contract is None:
            return node

        type_path = qualifier(path) if member_import else path
        if self.propagator.already_rewritten(simple_name(type_path), contract):
            return node

        new_path = contract + (path[len(type_path):] if member_import else "")
        new_name = build_dotted(
            "scoped_identifier", new_path,
            prefix=leading_prefix(name), field_name=name.field, type_fqn=contract,
        )
        self.sites[SiteKind.IMPORT] += 1
        return replace_child(node, name, new_name)

    # ── Type positions ───────────────────────────────────────────

    def visit_type_identifier(self, node: Node) -> Node:
        parent = self.parent
        if parent is not None and parent.kind == "scoped_type_identifier":
            return node
        identity = node.type_fqn
        contract = self.propagator.contract_for(identity)
        if contract is None or self.propagator.already_rewritten(node.text, contract):
            return node
        self.sites[self._type_site_kind(node)] += 1
        return Node(kind=node.kind, text=simple_name(contract), prefix=node.prefix,
                    field=node.field, type_fqn=contract)

    def visit_scoped_type_identifier(self, node: Node) -> Node:
        parent = self.parent
        if parent is not None and parent.kind == "scoped_type_identifier":
            return node
        written = type_name_of(node)
        identity = node.type_fqn or written
        contract = self.propagator.contract_for(identity)
        if contract is None:
            return self._retarget_qualifier(node, identity, self._type_site_kind(node))
        if self.propagator.already_rewritten(simple_name(written), contract):
            return node
        self.sites[self._type_site_kind(node)] += 1
        return self._retarget_qualified(node, written, identity, contract)

    # ── Qualified access roots ───────────────────────────────────

    def visit_identifier(self, node: Node) -> Node:
        if node.type_fqn is None or not self._is_access_root(node):
            return node
        contract = self.propagator.contract_for(node.type_fqn)
        if contract is None or self.propagator.already_rewritten(node.text, contract):
            return node
        self.sites[SiteKind.QUALIFIED_ACCESS] += 1
        return Node(kind=node.kind, text=simple_name(contract), prefix=node.prefix,
                    field=node.field, type_fqn=contract)

    def visit_field_access(self, node: Node) -> Node:
        if not self._is_access_root(node) or not is_name_chain(node):
            return node
        written = type_name_of(node)
        identity = node.type_fqn or written
        contract = self.propagator.contract_for(identity)
        if contract is None:
            return self._retarget_qualifier(node, identity, SiteKind.QUALIFIED_ACCESS)
        if self.propagator.already_rewritten(simple_name(written), contract):
            return node
        self.sites[SiteKind.QUALIFIED_ACCESS] += 1
        return self._retarget_qualified(node, written, identity, contract)

    # ── Helpers ──────────────────────────────────────────────────

    def _retarget_qualifier(self, node: Node, identity: str, site: SiteKind) -> Node:
        """Rewrite a realization used as the qualifier of a longer name.

        ``UserMapperImpl.Helper`` becomes ``UserMapper.Helper``: nested
        members of the realization move into the merged contract.
        """
        found = self._realization_prefix(identity)
        if found is None:
            return node
        depth, prefix_identity, contract = found

        # Qualifier chain from the whole name down to the realization segment
        chain = [node]
        for _ in range(depth):
            current = chain[-1]
            if not current.children or current.kind not in ("scoped_type_identifier", "field_access"):
                return node
            chain.append(current.children[0])

        target = chain[-1]
        if target.kind not in ("type_identifier", "identifier", "scoped_type_identifier", "field_access"):
            return node
        remainder = identity[len(prefix_identity):]
        written = type_name_of(target)
        if self.propagator.already_rewritten(simple_name(written), contract):
            # Qualifier already rewritten as an access root of its own
            retyped = contract + remainder
            return node.with_type(retyped) if node.type_fqn not in (None, retyped) else node

        if target.children:
            replacement = self._retarget_qualified(target, written, prefix_identity, contract)
        else:
            replacement = Node(kind=target.kind, text=simple_name(contract), prefix=target.prefix,
                               field=target.field, type_fqn=contract)
        for index in range(depth - 1, -1, -1):
            replacement = replace_child(chain[index], chain[index + 1], replacement)

        self.sites[site] += 1
        return replacement.with_type(contract + remainder)

    def _realization_prefix(self, identity: str) -> Optional[Tuple[int, str, str]]:
        """Longest proper dotted prefix of ``identity`` that is a realization.

        Returns:
            (segments after the prefix, prefix identity, contract) or None
        """
        parts = identity.split(".")
        for end in range(len(parts) - 1, 0, -1):
            prefix_identity = ".".join(parts[:end])
            contract = self.propagator.contract_for(prefix_identity)
            if contract is not None:
                return len(parts) - end, prefix_identity, contract
        return None

    def _retarget_qualified(self, node: Node, written: str, identity: str, contract: str) -> Node:
        """Rewrite a qualified name; a fully-qualified one gets the contract's FQN."""
        if written == identity and "<" not in name_text(node):
            return build_dotted(node.kind, contract, prefix=leading_prefix(node),
                                field_name=node.field, type_fqn=contract)

        terminal = node.children[-1]
        renamed = terminal.with_text(simple_name(contract))
        return replace_child(node, terminal, renamed).with_type(contract)

    def _is_access_root(self, node: Node) -> bool:
        parent = self.parent
        if parent is None:
            return False
        if parent.kind in ("field_access", "method_invocation"):
            return node.field == "object"
        if parent.kind == "method_reference":
            head = parent.children[0]
            return head.kind == node.kind and name_text(head) == name_text(node)
        return False

    def _type_site_kind(self, node: Node) -> SiteKind:
        path = self.ancestors + [node]
        for index in range(len(path) - 2, -1, -1):
            ancestor = path[index]
            if ancestor.kind in _TRANSPARENT_KINDS:
                continue
            kind = _SITE_BY_ANCESTOR.get(ancestor.kind)
            if kind is None:
                return SiteKind.OTHER_TYPE
            if kind == SiteKind.RETURN_TYPE and path[index + 1].field != "type":
                return SiteKind.OTHER_TYPE
            return kind
        return SiteKind.OTHER_TYPE
