"""Java syntax trees: lossless tree-sitter parsing, printing and attribution.

Public API:
    parse_source(source, file_path) → SourceUnit
    parse_file(path, project_root) → SourceUnit
    print_tree(node) → str
    attribute_types(units) → List[SourceUnit]
"""

from .attribution import TypeIndex, attribute_types, attribute_unit
from .models import Node, ParseError, SourceUnit
from .parser import JavaTreeParser, get_parser, parse_source
from .printer import print_tree, print_unit
from .utils import is_java_file, should_skip_directory
from .visitor import TreeRewriter

__all__ = [
    "parse_file",
    "parse_source",
    "print_tree",
    "print_unit",
    "attribute_types",
    "attribute_unit",
    "is_java_file",
    "should_skip_directory",
    "JavaTreeParser",
    "Node",
    "ParseError",
    "SourceUnit",
    "TreeRewriter",
    "TypeIndex",
]


def parse_file(file_path: str, project_root: str = "", generated: bool = False) -> SourceUnit:
    """Parse a Java file into a unit.

    Args:
        file_path: Absolute path to the source file
        project_root: Project root for computing relative paths
        generated: Whether the file comes from a generated-sources directory

    Returns:
        SourceUnit holding the lossless tree
    """
    return get_parser().parse_file(file_path, project_root, generated=generated)
