"""File-walking helpers for Java source trees."""

import os

JAVA_EXTENSION = ".java"

# Directories to skip during file walking. Generated sources under build/
# are loaded separately, from the configured generated directories.
SKIP_DIRECTORIES = frozenset({
    "__pycache__",
    ".git",
    ".gradle",
    ".idea",
    ".mvn",
    "node_modules",
    "build",
    "target",
    "out",
    "bin",
})


def is_java_file(file_path: str) -> bool:
    """Check if a file is a Java compilation unit.

    Args:
        file_path: Path to the file

    Returns:
        True for ``.java`` files (``package-info``/``module-info`` excluded)
    """
    base = os.path.basename(file_path)
    if base in ("package-info.java", "module-info.java"):
        return False
    return os.path.splitext(base)[1].lower() == JAVA_EXTENSION


def should_skip_directory(dir_name: str) -> bool:
    """Check if a directory should be skipped during file walking.

    Args:
        dir_name: Directory name (not full path)

    Returns:
        True if directory should be skipped
    """
    return dir_name in SKIP_DIRECTORIES or dir_name.startswith(".")
