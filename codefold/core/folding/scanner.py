"""Linkage scanner: links every realization to the types it implements.

Workers read realizations in parallel; the calling thread is the only
writer to the table and drains results in input order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from ...config import FoldConfig
from ..java_tree.models import Node, SourceUnit
from ..java_tree.syntax import supertype_nodes, type_name_of
from .linkage import LinkageTable
from .models import Diagnostic, UnitRole

logger = logging.getLogger(__name__)


class LinkagePrecedence(str, Enum):
    """Which signal links a realization to its contract."""

    RESOLVED = "resolved"
    """Only supertypes resolved to a fully-qualified identity."""

    RESOLVED_THEN_SUFFIX = "resolved_then_suffix"
    """Resolved supertypes; the name minus the suffix when none resolve."""

    SUFFIX = "suffix"
    """Only the realization's name minus the suffix, in its own package."""


@dataclass
class ScanFinding:
    realization: SourceUnit
    targets: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)


class LinkageScanner:
    """Populates a ``LinkageTable`` from classified units."""

    def __init__(self, config: Optional[FoldConfig] = None, max_workers: Optional[int] = None):
        self.config = config or FoldConfig()
        self.precedence = LinkagePrecedence(self.config.linkage_precedence)
        self.max_workers = max_workers or self.config.workers

    def scan(self, units: Iterable[SourceUnit], table: Optional[LinkageTable] = None) -> LinkageTable:
        """Link every realization unit into ``table``.

        Malformed realizations are skipped and reported in
        ``table.diagnostics``.

        Args:
            units: Classified units (``role`` already set)
            table: Table to fill; a new one when omitted

        Returns:
            The (still open) table
        """
        table = table if table is not None else LinkageTable()
        realizations = [u for u in units if u.role == UnitRole.REALIZATION]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            findings = list(pool.map(self.find_targets, realizations))

        for finding in findings:
            identity = finding.realization.identity
            for name in finding.unresolved:
                logger.debug(f"Unresolved supertype {name} on {identity}")

            if not finding.targets:
                message = f"Realization {identity} has no resolvable supertype; skipped"
                logger.warning(message)
                table.diagnostics.append(Diagnostic(phase="scan", message=message, unit=identity))
                continue

            for target in finding.targets:
                table.link(target, finding.realization)

        logger.info(f"Scanned {len(realizations)} realizations, {len(table)} linked targets")
        return table

    def find_targets(self, unit: SourceUnit) -> ScanFinding:
        """Resolve the link targets of one realization."""
        finding = ScanFinding(realization=unit)
        decl = unit.type_declaration
        if decl is None:
            return finding

        resolved = []
        for node in supertype_nodes(decl):
            fqn = attributed_type(node)
            if fqn:
                if fqn not in resolved:
                    resolved.append(fqn)
            else:
                finding.unresolved.append(type_name_of(node))

        if self.precedence == LinkagePrecedence.RESOLVED:
            finding.targets = resolved
        elif self.precedence == LinkagePrecedence.RESOLVED_THEN_SUFFIX:
            finding.targets = resolved or self._suffix_target(unit)
        else:
            finding.targets = self._suffix_target(unit)
        return finding

    def _suffix_target(self, unit: SourceUnit) -> List[str]:
        name = unit.type_name or ""
        suffix = self.config.realization_suffix
        if not name.endswith(suffix) or name == suffix:
            return []
        base = name[: -len(suffix)]
        return [f"{unit.package}.{base}" if unit.package else base]


def attributed_type(type_node: Node) -> Optional[str]:
    """FQN stamped on a type node, looking through type arguments."""
    if type_node.type_fqn:
        return type_node.type_fqn
    if type_node.kind == "generic_type" and type_node.children:
        return type_node.children[0].type_fqn
    return None
