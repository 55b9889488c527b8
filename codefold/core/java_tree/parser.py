"""Lossless Java parser built on tree-sitter.

tree-sitter gives a concrete syntax tree addressed by byte offsets. This
module converts it into immutable ``Node`` values where every leaf owns the
text that precedes it (whitespace and comments), so a unit can be printed
back byte for byte after any number of rewrites.
"""

import logging
import os
import threading
from dataclasses import replace
from typing import List, Tuple

import tree_sitter
import tree_sitter_java

from .models import Node, ParseError, SourceUnit

logger = logging.getLogger(__name__)

_JAVA_LANGUAGE = tree_sitter.Language(tree_sitter_java.language())

# Kept as a single leaf; their inner structure never needs rewriting.
ATOMIC_KINDS = frozenset({
    "string_literal",
    "character_literal",
    "text_block",
})

COMMENT_KINDS = frozenset({"line_comment", "block_comment", "comment"})

EOF_KIND = "eof"

# Tried in order. latin-1 maps every byte, so the last entry always decodes
# and encoding back with it restores the original bytes.
SOURCE_ENCODINGS = ("utf-8", "latin-1")


class JavaTreeParser:
    """Parses Java source into ``SourceUnit`` values.

    One instance per thread: the underlying tree-sitter parser is not
    shared.
    """

    def __init__(self):
        self._parser = tree_sitter.Parser(_JAVA_LANGUAGE)

    def parse_source(self, source_text: str, file_path: str, generated: bool = False) -> SourceUnit:
        """Parse source text into a unit.

        Args:
            source_text: Java source code
            file_path: Path recorded on the unit (relative to the project root)
            generated: Whether the unit came from a generated-sources directory

        Returns:
            SourceUnit whose tree prints back to ``source_text``
        """
        source = source_text.encode("utf-8")
        tree = self._parser.parse(source)

        errors: List[ParseError] = []
        if tree.root_node.has_error:
            errors.append(ParseError(
                file_path=file_path,
                line=_first_error_line(tree.root_node),
                message="Source contains syntax errors (partial parse)",
                severity="warning",
            ))

        builder = _NodeBuilder(source)
        root = builder.build(tree.root_node)
        trailing = source[builder.position:].decode("utf-8", errors="replace")
        root = root.with_children(root.children + (Node(kind=EOF_KIND, prefix=trailing),))

        return SourceUnit(path=file_path, tree=root, generated=generated, errors=tuple(errors))

    def parse_file(self, file_path: str, project_root: str = "", generated: bool = False) -> SourceUnit:
        """Read and parse a Java file.

        Args:
            file_path: Absolute path to the source file
            project_root: Root used to compute the unit's relative path
            generated: Whether the file lives in a generated-sources directory

        Returns:
            Parsed SourceUnit
        """
        rel_path = os.path.relpath(file_path, project_root) if project_root else file_path

        with open(file_path, "rb") as f:
            raw = f.read()
        source_text, encoding = decode_source(raw)
        if encoding != SOURCE_ENCODINGS[0]:
            logger.info(f"{rel_path} is not valid UTF-8; read as {encoding}")

        unit = self.parse_source(source_text, rel_path, generated=generated)
        if encoding != unit.encoding:
            unit = replace(unit, encoding=encoding)
        if unit.errors:
            logger.warning(f"Parse errors in {rel_path}: {unit.errors[0].message}")
        return unit


class _NodeBuilder:
    """Walks a tree-sitter tree, assigning inter-token text to the next leaf."""

    def __init__(self, source: bytes):
        self._source = source
        self.position = 0

    def build(self, ts_node: tree_sitter.Node, field_name: str | None = None) -> Node:
        if ts_node.child_count == 0 or ts_node.type in ATOMIC_KINDS:
            return self._leaf(ts_node, field_name)

        children = []
        cursor = ts_node.walk()
        if cursor.goto_first_child():
            while True:
                child = cursor.node
                # Comments stay in the source gap and end up in the next prefix
                if child.type not in COMMENT_KINDS:
                    children.append(self.build(child, cursor.field_name))
                if not cursor.goto_next_sibling():
                    break

        return Node(kind=ts_node.type, children=tuple(children), field=field_name)

    def _leaf(self, ts_node: tree_sitter.Node, field_name: str | None) -> Node:
        start, end = ts_node.start_byte, ts_node.end_byte
        if start < self.position:
            # Zero-width or overlapping node (error recovery)
            start = self.position
            end = max(end, start)
        prefix = self._source[self.position:start].decode("utf-8", errors="replace")
        text = self._source[start:end].decode("utf-8", errors="replace")
        self.position = end
        return Node(kind=ts_node.type, text=text, prefix=prefix, field=field_name)


def _first_error_line(root: tree_sitter.Node) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point.row + 1
        stack.extend(reversed(node.children))
    return 0


_local = threading.local()


def get_parser() -> JavaTreeParser:
    """Return the parser owned by the calling thread."""
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = JavaTreeParser()
        _local.parser = parser
    return parser


def parse_source(source_text: str, file_path: str = "<memory>", generated: bool = False) -> SourceUnit:
    """Parse Java source into a unit."""
    return get_parser().parse_source(source_text, file_path, generated=generated)


def decode_source(raw: bytes) -> Tuple[str, str]:
    """Decode file bytes without losing any of them.

    Returns:
        (text, encoding) where ``text.encode(encoding) == raw``
    """
    for encoding in SOURCE_ENCODINGS[:-1]:
        try:
            return raw.decode(encoding), encoding
        except UnicodeDecodeError:
            continue
    encoding = SOURCE_ENCODINGS[-1]
    return raw.decode(encoding), encoding
