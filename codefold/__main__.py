import argparse
import dataclasses
import logging
import sys

from .config import LINKAGE_PRECEDENCES, load_config
from .core.folding import ContractOutcome, FoldPipeline
from .core.project import ProjectLoader, write_result


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_SKIPPED = 1
EXIT_BAD_ROOT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="codefold - merge MapStruct mappers into their generated implementations"
    )
    parser.add_argument(
        "project_root",
        help="Root directory of the Java project"
    )
    parser.add_argument(
        "--generated-dir",
        action="append",
        dest="generated_dirs",
        metavar="DIR",
        help="Generated sources directory, relative to the project root (repeatable)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file (default: config/codefold.yaml)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker threads for parsing, scanning and transforming"
    )
    parser.add_argument(
        "--linkage-precedence",
        type=str,
        default=None,
        choices=list(LINKAGE_PRECEDENCES),
        help="How realizations are linked to their mapper"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing files"
    )
    parser.add_argument(
        "--fail-on-skip",
        action="store_true",
        help="Exit with status 1 when any mapper was left unmerged"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point for codefold."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    config = load_config(args.config)
    overrides = {}
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.linkage_precedence:
        overrides["linkage_precedence"] = args.linkage_precedence
    if args.generated_dirs:
        overrides["generated_dirs"] = args.generated_dirs
    if overrides:
        config = dataclasses.replace(config, **overrides)

    loader = ProjectLoader(config)
    try:
        loaded = loader.load(args.project_root)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_BAD_ROOT

    fold = FoldPipeline(config).run(loaded.units)
    written = write_result(fold, loaded, dry_run=args.dry_run)

    report = fold.report
    print()
    for entry in report.contracts:
        line = f"  {entry.outcome.value:<18} {entry.contract}"
        if entry.outcome == ContractOutcome.MERGED:
            line += f" <- {entry.realization}"
        elif entry.error:
            line += f" ({entry.error})"
        elif entry.outcome == ContractOutcome.SKIPPED_AMBIGUOUS:
            line += f" ({entry.candidates} realizations)"
        print(line)

    counts = report.summary()
    verb = "would change" if args.dry_run else "changed"
    print(
        f"\n  {counts[ContractOutcome.MERGED.value]} merged, "
        f"{counts[ContractOutcome.SKIPPED_AMBIGUOUS.value]} ambiguous, "
        f"{counts[ContractOutcome.SKIPPED_MALFORMED.value]} malformed; "
        f"{len(written.changed)} files {verb}, {len(written.deleted)} removed\n"
    )
    for path in written.unwritable:
        print(f"  not written (encoding): {path}")

    if args.fail_on_skip and report.has_skips:
        return EXIT_SKIPPED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
