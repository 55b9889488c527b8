"""
Project loading for codefold

Exports:
- ProjectLoader: walks a project and its generated sources into units
- write_result: writes a fold result back to disk
"""

from .loader import LoadResult, ProjectLoader, WriteSummary, collect_java_files, write_result

__all__ = [
    "ProjectLoader",
    "LoadResult",
    "WriteSummary",
    "collect_java_files",
    "write_result",
]
