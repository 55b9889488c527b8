"""Contract/realization folding.

Public API:
    scan(units) → LinkageTable (frozen)
    transform(units, table) → FoldResult
    run(units) → FoldResult
"""

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
    SiteKind,
    UnitRole,
)
from .pipeline import FoldPipeline, run, scan, transform
from .propagator import ReferencePropagator
from .scanner import LinkagePrecedence, LinkageScanner

__all__ = [
    "scan",
    "transform",
    "run",
    "FoldPipeline",
    "UnitClassifier",
    "AnnotationClassifier",
    "LinkageTable",
    "LinkageScanner",
    "LinkagePrecedence",
    "StructuralMerger",
    "ReferencePropagator",
    "ContractOutcome",
    "ContractReport",
    "Diagnostic",
    "FoldReport",
    "FoldResult",
    "MergePreconditionError",
    "PipelineState",
    "SiteKind",
    "UnitRole",
]
