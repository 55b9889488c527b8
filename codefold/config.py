"""Run configuration for codefold.

Defaults match a MapStruct project built with Gradle. Values are read from
``config/codefold.yaml`` (or an explicit file), then overridden from the
environment (``.env`` is honoured).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "codefold.yaml"

LINKAGE_PRECEDENCES = ("resolved", "resolved_then_suffix", "suffix")


@dataclass
class FoldConfig:
    """Conventions used to find and fold contract/realization pairs."""

    # Entry-point marker on the contract type
    contract_markers: List[str] = field(default_factory=lambda: ["org.mapstruct.Mapper"])
    # Provenance marker on the generated realization
    provenance_markers: List[str] = field(default_factory=lambda: [
        "javax.annotation.processing.Generated",
        "jakarta.annotation.Generated",
    ])
    generator_prefix: str = "org.mapstruct"
    override_markers: List[str] = field(default_factory=lambda: ["java.lang.Override"])
    realization_suffix: str = "Impl"
    marker_namespace: str = "org.mapstruct"
    remove_marker_namespace: bool = True
    dedupe_imports: bool = False
    linkage_precedence: str = "resolved"
    generated_dirs: List[str] = field(default_factory=lambda: [
        "build/generated/sources/annotationProcessor/java/main",
    ])
    workers: int = 4

    def __post_init__(self):
        if self.linkage_precedence not in LINKAGE_PRECEDENCES:
            raise ValueError(
                f"Unknown linkage_precedence: {self.linkage_precedence}. "
                f"Supported: {list(LINKAGE_PRECEDENCES)}"
            )
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if not self.realization_suffix:
            raise ValueError("realization_suffix must not be empty")

    def in_marker_namespace(self, fqn: Optional[str]) -> bool:
        if not fqn or not self.marker_namespace:
            return False
        return fqn == self.marker_namespace or fqn.startswith(self.marker_namespace + ".")


def load_config(config_path: Optional[str] = None) -> FoldConfig:
    """Load configuration from YAML plus environment overrides.

    Args:
        config_path: YAML file to read. Defaults to ``config/codefold.yaml``;
            a missing file falls back to built-in defaults.

    Returns:
        FoldConfig instance

    Raises:
        ValueError: If a value is invalid
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    values = {}

    if path.exists():
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(raw).__name__}")

        known = {f.name for f in fields(FoldConfig)}
        for key, value in raw.items():
            if key in known:
                values[key] = value
            else:
                logger.warning(f"Ignoring unknown config key '{key}' in {path}")
        logger.debug(f"Loaded config from {path}: {sorted(values)}")
    else:
        if config_path:
            logger.warning(f"Config file not found at {path}, using defaults")

    workers = os.getenv("CODEFOLD_WORKERS")
    if workers:
        values["workers"] = int(workers)
    precedence = os.getenv("CODEFOLD_LINKAGE_PRECEDENCE")
    if precedence:
        values["linkage_precedence"] = precedence
    generated = os.getenv("CODEFOLD_GENERATED_DIRS")
    if generated:
        values["generated_dirs"] = [d for d in generated.split(os.pathsep) if d]

    return FoldConfig(**values)
