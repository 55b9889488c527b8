"""Two-phase folding pipeline: scan, then merge and propagate.

``scan`` classifies every unit and builds the linkage table, which is
frozen before it is returned. ``transform`` only accepts a frozen table:
no unit is rewritten before linkage over the whole project is known.
"""

import logging
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple

from ...config import FoldConfig
from ..java_tree.models import SourceUnit
from .classifier import AnnotationClassifier, UnitClassifier
from .linkage import LinkageTable
from .merger import StructuralMerger
from .models import (
    ContractOutcome,
    ContractReport,
    Diagnostic,
    FoldReport,
    FoldResult,
    MergePreconditionError,
    PipelineState,
    UnitRole,
)
from .propagator import ReferencePropagator
from .scanner import LinkageScanner

logger = logging.getLogger(__name__)


class FoldPipeline:
    """Orchestrates classification, linkage, merging and propagation.

    Args:
        config: Conventions and worker count
        classifier: Role predicate; ``AnnotationClassifier`` by default
        max_workers: Thread pool size for scanning and transforming
    """

    def __init__(
        self,
        config: Optional[FoldConfig] = None,
        classifier: Optional[UnitClassifier] = None,
        max_workers: Optional[int] = None,
    ):
        self.config = config or FoldConfig()
        self.classifier = classifier or AnnotationClassifier(self.config)
        self.max_workers = max_workers or self.config.workers
        self.scanner = LinkageScanner(self.config, self.max_workers)
        self.merger = StructuralMerger(self.config)
        self.state = PipelineState.IDLE

    # =========================================================================
    # Phase 1: Scanning
    # =========================================================================

    def scan(self, units: Iterable[SourceUnit]) -> LinkageTable:
        """Build and freeze the linkage table for a whole project."""
        self.state = PipelineState.SCANNING
        classified = self.classifier.classify_units(units)
        table = self.scanner.scan(classified)
        return table.freeze()

    # =========================================================================
    # Phase 2: Transforming
    # =========================================================================

    def transform(self, units: Iterable[SourceUnit], table: LinkageTable) -> FoldResult:
        """Merge linked contracts, suppress consumed realizations, rewrite references.

        Raises:
            ValueError: If ``table`` has not been frozen by ``scan``
        """
        if not table.frozen:
            raise ValueError("Linkage table must be frozen before transform; run scan() first")

        self.state = PipelineState.TRANSFORMING
        units = self.classifier.classify_units(units)
        report = FoldReport(diagnostics=list(table.diagnostics))

        merged = self._merge_contracts(units, table, report)
        narrowed = table.narrowed_to(
            (contract, realization) for contract, (realization, _) in merged.items()
        )
        consumed = {realization.identity for realization, _ in merged.values()}
        propagator = ReferencePropagator(narrowed, self.config)

        def process(unit: SourceUnit) -> Optional[Tuple[SourceUnit, Counter]]:
            if unit.role == UnitRole.CONTRACT and unit.identity in merged:
                _, merged_unit = merged[unit.identity]
                result, sites = propagator.propagate(merged_unit)
                return result.with_role(UnitRole.PLAIN), sites
            if unit.role == UnitRole.REALIZATION and unit.identity in consumed:
                return None
            return propagator.propagate(unit)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = list(pool.map(process, units))

        output: List[SourceUnit] = []
        for unit, result in zip(units, results):
            if result is None:
                report.suppressed.append(unit.identity)
                continue
            new_unit, sites = result
            report.rewritten_sites.update(sites)
            output.append(new_unit)

        self.state = PipelineState.DONE
        logger.info(
            f"Fold complete: {report.summary()}, {len(report.suppressed)} realizations suppressed, "
            f"{sum(report.rewritten_sites.values())} reference sites rewritten"
        )
        return FoldResult(units=output, report=report)

    def run(self, units: Iterable[SourceUnit]) -> FoldResult:
        units = list(units)
        table = self.scan(units)
        return self.transform(units, table)

    # ── Planning ─────────────────────────────────────────────────

    def _merge_contracts(
        self, units: List[SourceUnit], table: LinkageTable, report: FoldReport
    ) -> Dict[str, Tuple[SourceUnit, SourceUnit]]:
        """Merge every contract with a unique realization.

        Returns:
            contract identity -> (consumed realization, merged unit)
        """
        contracts = [u for u in units if u.role == UnitRole.CONTRACT]
        realizations_by_identity = {u.identity: u for u in units if u.role == UnitRole.REALIZATION}

        outcomes: Dict[str, ContractReport] = {}
        candidates: Dict[str, SourceUnit] = {}
        claims: Dict[str, List[str]] = defaultdict(list)

        for contract in contracts:
            linked = table.realizations_for(contract.identity)
            if len(linked) != 1:
                self._skip_ambiguous(
                    outcomes, report, contract.identity, len(linked),
                    f"Contract {contract.identity} has {len(linked)} linked realizations; "
                    f"expected exactly one",
                )
                continue
            realization = realizations_by_identity.get(linked[0].identity, linked[0])
            candidates[contract.identity] = realization
            claims[realization.identity].append(contract.identity)

        for realization_identity, claimants in claims.items():
            if len(claimants) > 1:
                for identity in claimants:
                    del candidates[identity]
                    self._skip_ambiguous(
                        outcomes, report, identity, 1,
                        f"Realization {realization_identity} is linked to {len(claimants)} "
                        f"contracts; {identity} left unmerged",
                    )

        pairs = [(c, candidates[c.identity]) for c in contracts if c.identity in candidates]

        def attempt(pair: Tuple[SourceUnit, SourceUnit]):
            contract, realization = pair
            try:
                return self.merger.merge(contract, realization), None
            except MergePreconditionError as e:
                return None, e

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            attempts = list(pool.map(attempt, pairs))

        merged: Dict[str, Tuple[SourceUnit, SourceUnit]] = {}
        for (contract, realization), (merged_unit, error) in zip(pairs, attempts):
            if error is not None:
                logger.error(str(error))
                report.failures.append(error)
                report.diagnostics.append(Diagnostic(
                    phase="merge", message=str(error), unit=contract.identity,
                    severity="error", recoverable=False,
                ))
                outcomes[contract.identity] = ContractReport(
                    contract=contract.identity,
                    outcome=ContractOutcome.SKIPPED_MALFORMED,
                    realization=realization.identity,
                    candidates=1,
                    error=error.reason,
                )
                continue
            merged[contract.identity] = (realization, merged_unit)
            outcomes[contract.identity] = ContractReport(
                contract=contract.identity,
                outcome=ContractOutcome.MERGED,
                realization=realization.identity,
                candidates=1,
            )

        report.contracts.extend(outcomes[c.identity] for c in contracts if c.identity in outcomes)
        return merged

    @staticmethod
    def _skip_ambiguous(outcomes, report: FoldReport, identity: str, candidates: int, message: str) -> None:
        logger.warning(message)
        report.diagnostics.append(Diagnostic(phase="plan", message=message, unit=identity))
        outcomes[identity] = ContractReport(
            contract=identity,
            outcome=ContractOutcome.SKIPPED_AMBIGUOUS,
            candidates=candidates,
        )


# =============================================================================
# Host entry points
# =============================================================================

def scan(
    units: Iterable[SourceUnit],
    classifier: Optional[UnitClassifier] = None,
    config: Optional[FoldConfig] = None,
) -> LinkageTable:
    """Classify units and return the frozen linkage table."""
    return FoldPipeline(config=config, classifier=classifier).scan(units)


def transform(
    units: Iterable[SourceUnit],
    table: LinkageTable,
    classifier: Optional[UnitClassifier] = None,
    config: Optional[FoldConfig] = None,
) -> FoldResult:
    """Merge, suppress and propagate against a frozen table."""
    return FoldPipeline(config=config, classifier=classifier).transform(units, table)


def run(
    units: Iterable[SourceUnit],
    classifier: Optional[UnitClassifier] = None,
    config: Optional[FoldConfig] = None,
) -> FoldResult:
    return FoldPipeline(config=config, classifier=classifier).run(units)
