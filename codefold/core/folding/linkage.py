"""Linkage table: contract identity <-> generated realizations.

Filled by a single writer during scanning, then frozen. Once frozen the
table is read-only; the transform phase refuses an unfrozen table.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..java_tree.models import SourceUnit
from .models import Diagnostic


class LinkageTable:
    """Bidirectional map between contract identities and realizations.

    Forward: target identity -> realization units, in insertion order.
    Inverse: realization identity -> target identities.
    """

    def __init__(self):
        self._realizations: Dict[str, List[SourceUnit]] = {}
        self._targets: Dict[str, List[str]] = {}
        self._frozen = False
        # Findings recorded while the table was built
        self.diagnostics: List[Diagnostic] = []

    # ── Building ─────────────────────────────────────────────────

    def link(self, target: str, realization: SourceUnit) -> None:
        """Record that ``realization`` implements or extends ``target``."""
        if self._frozen:
            raise RuntimeError("LinkageTable is frozen")
        identity = realization.identity
        units = self._realizations.setdefault(target, [])
        if all(u.identity != identity for u in units):
            units.append(realization)
        targets = self._targets.setdefault(identity, [])
        if target not in targets:
            targets.append(target)

    def freeze(self) -> "LinkageTable":
        if not self._frozen:
            self._realizations = MappingProxyType(
                {k: tuple(v) for k, v in self._realizations.items()}
            )
            self._targets = MappingProxyType(
                {k: tuple(v) for k, v in self._targets.items()}
            )
            self.diagnostics = tuple(self.diagnostics)
            self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ── Lookups ──────────────────────────────────────────────────

    def realizations_for(self, contract: str) -> Tuple[SourceUnit, ...]:
        return tuple(self._realizations.get(contract, ()))

    def targets_of(self, realization: str) -> Tuple[str, ...]:
        return tuple(self._targets.get(realization, ()))

    def contract_for(self, realization: str) -> Optional[str]:
        """Contract identity a realization should be redirected to."""
        targets = self._targets.get(realization)
        return targets[0] if targets else None

    def contracts(self) -> List[str]:
        return list(self._realizations)

    def realizations(self) -> List[str]:
        return list(self._targets)

    @property
    def forward(self) -> Mapping[str, Tuple[SourceUnit, ...]]:
        return MappingProxyType({k: tuple(v) for k, v in self._realizations.items()})

    def __contains__(self, realization: str) -> bool:
        return realization in self._targets

    def __len__(self) -> int:
        return len(self._realizations)

    def __iter__(self) -> Iterator[str]:
        return iter(self._realizations)

    # ── Views ────────────────────────────────────────────────────

    def narrowed_to(self, pairs: Iterable[Tuple[str, SourceUnit]]) -> "LinkageTable":
        """Frozen table holding only the given (contract, realization) pairs."""
        narrowed = LinkageTable()
        for contract, realization in pairs:
            narrowed.link(contract, realization)
        return narrowed.freeze()

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"LinkageTable({len(self._realizations)} targets, {len(self._targets)} realizations, {state})"
