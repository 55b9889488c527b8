"""Project loading and write-back.

Loads every Java file of a project plus the configured generated-sources
directories, parses and attributes them, and writes a fold result back:
changed units are rewritten in place and consumed realizations that live
in the source tree are deleted. Generated files are never touched.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ...config import FoldConfig
from ..folding.classifier import AnnotationClassifier, UnitClassifier
from ..folding.models import FoldResult
from ..java_tree import attribute_types, parse_file, print_unit
from ..java_tree.models import SourceUnit
from ..java_tree.utils import is_java_file, should_skip_directory

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Units of one project, with the text each file had on disk."""

    root: str
    units: List[SourceUnit] = field(default_factory=list)
    originals: Dict[str, str] = field(default_factory=dict)
    files_processed: int = 0
    generated_files: int = 0
    errors: List[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0


@dataclass
class WriteSummary:
    changed: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    # Rewritten text not representable in the file's original encoding
    unwritable: List[str] = field(default_factory=list)


class ProjectLoader:
    """Walks a project directory and produces classified, attributed units."""

    def __init__(
        self,
        config: Optional[FoldConfig] = None,
        classifier: Optional[UnitClassifier] = None,
        max_workers: Optional[int] = None,
    ):
        self.config = config or FoldConfig()
        self.classifier = classifier or AnnotationClassifier(self.config)
        self.max_workers = max_workers or self.config.workers

    def load(self, root: str, generated_dirs: Optional[List[str]] = None) -> LoadResult:
        """Load a project.

        Args:
            root: Project root directory
            generated_dirs: Generated-sources directories, absolute or
                relative to ``root``. Defaults to ``config.generated_dirs``;
                missing directories are ignored.

        Returns:
            LoadResult with units in a stable (sorted path) order

        Raises:
            ValueError: If ``root`` is not a directory
        """
        start = time.time()
        if not os.path.isdir(root):
            raise ValueError(f"Project root is not a directory: {root}")
        root = os.path.abspath(root)
        result = LoadResult(root=root)

        generated_roots = self._generated_roots(root, generated_dirs)
        files: List[Tuple[str, bool]] = [
            (path, False) for path in collect_java_files(root, exclude=set(generated_roots))
        ]
        for gen_root in generated_roots:
            files.extend((path, True) for path in collect_java_files(gen_root))

        def parse(item: Tuple[str, bool]) -> Optional[SourceUnit]:
            path, generated = item
            try:
                return parse_file(path, root, generated=generated)
            except OSError as e:
                logger.error(f"Error reading {path}: {e}")
                result.errors.append(f"{path}: {e}")
                return None

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            parsed = [u for u in pool.map(parse, files) if u is not None]

        seen: Set[str] = set()
        units = []
        for unit in parsed:
            if unit.path in seen:
                continue
            seen.add(unit.path)
            result.originals[unit.path] = print_unit(unit)
            for error in unit.errors:
                result.errors.append(f"{error.file_path}:{error.line}: {error.message}")
            units.append(unit)

        units = attribute_types(units)
        result.units = self.classifier.classify_units(units)
        result.files_processed = len(units)
        result.generated_files = sum(1 for u in units if u.generated)
        result.elapsed_seconds = time.time() - start

        logger.info(
            f"Loaded {result.files_processed} Java files from {root} "
            f"({result.generated_files} generated) in {result.elapsed_seconds:.2f}s"
        )
        return result

    def _generated_roots(self, root: str, generated_dirs: Optional[List[str]]) -> List[str]:
        dirs = generated_dirs if generated_dirs is not None else self.config.generated_dirs
        roots = []
        for d in dirs:
            path = d if os.path.isabs(d) else os.path.join(root, d)
            path = os.path.abspath(path)
            if os.path.isdir(path):
                roots.append(path)
            else:
                logger.debug(f"Generated sources directory not found: {path}")
        return roots


def collect_java_files(root_dir: str, exclude: Optional[Set[str]] = None) -> List[str]:
    """Walk a directory tree and collect Java files, sorted by path."""
    exclude = exclude or set()
    files = []
    for dirpath, dirnames, filenames in os.walk(root_dir):
        dirnames[:] = [
            d for d in dirnames
            if not should_skip_directory(d) and os.path.join(dirpath, d) not in exclude
        ]
        for fname in filenames:
            if is_java_file(fname):
                files.append(os.path.join(dirpath, fname))
    return sorted(files)


def write_result(fold: FoldResult, loaded: LoadResult, dry_run: bool = False) -> WriteSummary:
    """Write changed units and delete consumed realizations.

    Args:
        fold: Output of the folding pipeline
        loaded: The load the pipeline ran on
        dry_run: Report what would change without touching the disk

    Returns:
        WriteSummary listing changed, deleted and unwritable paths (relative
        to root). Units are written in the encoding they were read with.
    """
    summary = WriteSummary()

    for unit in fold.units:
        if unit.generated:
            continue
        text = print_unit(unit)
        if loaded.originals.get(unit.path) == text:
            continue
        try:
            data = text.encode(unit.encoding)
        except UnicodeEncodeError as e:
            logger.error(f"Cannot write {unit.path} as {unit.encoding}: {e}")
            summary.unwritable.append(unit.path)
            continue
        summary.changed.append(unit.path)
        if not dry_run:
            path = os.path.join(loaded.root, unit.path)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)

    suppressed = set(fold.report.suppressed)
    # A realization whose merged contract could not be written stays on disk
    kept = set()
    for entry in fold.report.contracts:
        merged = fold.unit_named(entry.contract)
        if entry.realization and merged is not None and merged.path in summary.unwritable:
            kept.add(entry.realization)
    for unit in loaded.units:
        if unit.identity not in suppressed or unit.generated or unit.identity in kept:
            continue
        summary.deleted.append(unit.path)
        if not dry_run:
            os.remove(os.path.join(loaded.root, unit.path))

    action = "Would write" if dry_run else "Wrote"
    logger.info(f"{action} {len(summary.changed)} files, removed {len(summary.deleted)} realizations")
    return summary
