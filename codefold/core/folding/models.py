"""Data models for contract/realization folding.

Roles are computed once per unit and carried on ``SourceUnit.role``; the
report types collect what a run did to each contract.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..java_tree.models import SourceUnit


class UnitRole(str, Enum):
    """What a unit is to the folding pipeline."""
    CONTRACT = "contract"
    REALIZATION = "realization"
    PLAIN = "plain"


class ContractOutcome(str, Enum):
    """Per-contract result reported to the host."""
    MERGED = "merged"
    SKIPPED_AMBIGUOUS = "skipped-ambiguous"
    SKIPPED_MALFORMED = "skipped-malformed"


class PipelineState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    TRANSFORMING = "transforming"
    DONE = "done"


class SiteKind(str, Enum):
    """Shapes of reference sites the propagator rewrites."""
    IMPORT = "import"
    INSTANTIATION = "instantiation"
    DECLARATION = "declaration"
    RETURN_TYPE = "return_type"
    TYPE_TEST = "type_test"
    CAST = "cast"
    CLASS_LITERAL = "class_literal"
    TYPE_ARGUMENT = "type_argument"
    SUPERTYPE = "supertype"
    QUALIFIED_ACCESS = "qualified_access"
    OTHER_TYPE = "other_type"


class MergePreconditionError(Exception):
    """A matched pair cannot be merged; fatal for that contract only."""

    def __init__(self, contract_identity: str, reason: str):
        self.contract_identity = contract_identity
        self.reason = reason
        super().__init__(f"Cannot merge {contract_identity}: {reason}")


@dataclass
class Diagnostic:
    """A non-fatal finding reported to the host."""
    phase: str  # "scan" | "plan" | "merge" | "propagate"
    message: str
    unit: Optional[str] = None
    severity: str = "warning"
    recoverable: bool = True


@dataclass
class ContractReport:
    contract: str
    outcome: ContractOutcome
    realization: Optional[str] = None
    candidates: int = 0
    error: Optional[str] = None


@dataclass
class FoldReport:
    """Everything a run decided, in input order."""
    contracts: List[ContractReport] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    rewritten_sites: Counter = field(default_factory=Counter)
    suppressed: List[str] = field(default_factory=list)
    failures: List[MergePreconditionError] = field(default_factory=list)

    def outcome_of(self, contract: str) -> Optional[ContractOutcome]:
        for report in self.contracts:
            if report.contract == contract:
                return report.outcome
        return None

    def count(self, outcome: ContractOutcome) -> int:
        return sum(1 for r in self.contracts if r.outcome == outcome)

    @property
    def has_skips(self) -> bool:
        return any(r.outcome != ContractOutcome.MERGED for r in self.contracts)

    def summary(self) -> Dict[str, int]:
        return {outcome.value: self.count(outcome) for outcome in ContractOutcome}


@dataclass
class FoldResult:
    units: List[SourceUnit]
    report: FoldReport

    def unit_at(self, path: str) -> Optional[SourceUnit]:
        for unit in self.units:
            if unit.path == path:
                return unit
        return None

    def unit_named(self, identity: str) -> Optional[SourceUnit]:
        for unit in self.units:
            if unit.identity == identity:
                return unit
        return None
