"""Unit classification: contract, realization or plain.

Classification is pure and total. Anything that does not clearly match
falls back to ``PLAIN``; deciding whether a pair actually links is left to
the scanner and the pipeline.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ...config import FoldConfig
from ..java_tree.models import Node, SourceUnit
from ..java_tree.syntax import (
    annotation_name,
    annotation_string_values,
    annotation_type,
    annotations,
    declared_name,
    simple_name,
    supertype_nodes,
)
from .models import UnitRole

logger = logging.getLogger(__name__)


class UnitClassifier(ABC):
    """Decides the role of a unit.

    Subclasses implement the two predicates; ``classify`` checks the
    contract predicate first, so a unit matching both is a contract.
    """

    @abstractmethod
    def is_contract(self, unit: SourceUnit) -> bool:
        """True iff the unit's type carries the entry-point marker."""
        ...

    @abstractmethod
    def is_realization(self, unit: SourceUnit) -> bool:
        """True iff the unit is a generated realization of some contract."""
        ...

    def classify(self, unit: SourceUnit) -> UnitRole:
        if self.is_contract(unit):
            return UnitRole.CONTRACT
        if self.is_realization(unit):
            return UnitRole.REALIZATION
        return UnitRole.PLAIN

    def classify_units(self, units: Iterable[SourceUnit]) -> List[SourceUnit]:
        """Stamp each unit with its role. Already classified units are kept."""
        result = []
        for unit in units:
            if unit.role is None:
                unit = unit.with_role(self.classify(unit))
            result.append(unit)
        return result


class AnnotationClassifier(UnitClassifier):
    """Classifies by annotations, supertypes and the realization name suffix.

    An annotation matches a marker by its resolved FQN. When resolution did
    not produce one, a qualified annotation name is compared as written and
    a simple name is compared against the markers' simple names.
    """

    def __init__(self, config: Optional[FoldConfig] = None):
        self.config = config or FoldConfig()

    def is_contract(self, unit: SourceUnit) -> bool:
        decl = unit.type_declaration
        if decl is None:
            return False
        return any(
            annotation_matches(ann, self.config.contract_markers)
            for ann in annotations(decl)
        )

    def is_realization(self, unit: SourceUnit) -> bool:
        decl = unit.type_declaration
        if decl is None:
            return False

        suffix = self.config.realization_suffix
        name = declared_name(decl)
        if not name.endswith(suffix) or name == suffix:
            return False

        if not supertype_nodes(decl):
            return False

        return any(self._is_provenance_marker(ann) for ann in annotations(decl))

    def _is_provenance_marker(self, annotation: Node) -> bool:
        if not annotation_matches(annotation, self.config.provenance_markers):
            return False
        prefix = self.config.generator_prefix
        return any(value.startswith(prefix) for value in annotation_string_values(annotation))


def annotation_matches(annotation: Node, markers: List[str]) -> bool:
    """Check an annotation against marker FQNs."""
    written = annotation_name(annotation)
    fqn = annotation_type(annotation)
    if fqn is None and "." in written:
        fqn = written
    if fqn is not None:
        return fqn in markers
    return written in {simple_name(m) for m in markers}
