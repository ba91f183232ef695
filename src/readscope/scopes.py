"""
Scope tree over a parsed source file.

A ScopeTree mirrors the full syntax tree handed over by the parser, with
every node annotated with its line range and scope classification. It
answers two questions: which scope most tightly surrounds a line range,
and which descendants are of a given kind.

The tree is rebuilt from scratch for every parse and never mutated.
"""

import logging
from bisect import bisect_right
from typing import Iterator

from .models import SCOPE_NODE_KINDS, NodeKind, ScopeKind, SyntaxNode
from .parse import parse_file, parse_source

log = logging.getLogger(__name__)

_LABELS: dict[NodeKind, str] = {
    NodeKind.METHOD: "method",
    NodeKind.CLASS: "class",
    NodeKind.FOR: "for statement",
    NodeKind.WHILE: "while statement",
    NodeKind.DO_WHILE: "dowhile statement",
    NodeKind.IF: "if statement",
    NodeKind.SWITCH: "switch statement",
    NodeKind.TRY: "try statement",
    NodeKind.CATCH: "catch section",
    NodeKind.FOR_EACH: "foreach statement",
    NodeKind.FILE: "java file",
    NodeKind.CODE_BLOCK: "code block",
    NodeKind.DOC_COMMENT: "doc comment",
}

# Grammar suffixes that carry no meaning for a human reader.
_STRUCTURAL_SUFFIXES = ("_declaration", "_expression", "_clause")


class LineIndex:
    """Sorted table of line start offsets for one text."""

    def __init__(self, text: str):
        self._length = len(text)
        self._starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._starts.append(i + 1)

    def __len__(self) -> int:
        return len(self._starts)

    def line_of(self, offset: int) -> int:
        """Zero-indexed line containing a character offset (0 <= offset <= len(text))."""
        if offset < 0 or offset > self._length:
            raise ValueError(f"offset {offset} outside text of length {self._length}")
        return bisect_right(self._starts, offset) - 1

    def line_start(self, line: int) -> int:
        return self._starts[line]


def _generate_name(node: SyntaxNode, method_body: bool) -> str:
    if method_body:
        return "method body"
    label = _LABELS.get(node.kind)
    if label is None:
        label = node.type_name.lower()
        for suffix in _STRUCTURAL_SUFFIXES:
            if label.endswith(suffix):
                label = label[: -len(suffix)]
        label = label.replace("_", " ").strip() or "node"
    if node.kind in (NodeKind.METHOD, NodeKind.CLASS) and node.name:
        label = f"{label} {node.name}"
    return label


class ScopeNode:
    """Immutable wrapper around one SyntaxNode with line range and classification."""

    __slots__ = ("syntax", "parent", "children", "start_line", "end_line", "name", "file_path")

    def __init__(self, syntax: SyntaxNode, line_index: LineIndex,
                 parent: "ScopeNode | None" = None, file_path: str = ""):
        self._attach(syntax, line_index, parent, file_path)
        # Explicit stack; expression chains can nest deeper than the recursion limit.
        stack = [self]
        while stack:
            node = stack.pop()
            children = []
            for child_syntax in node.syntax.children:
                child = ScopeNode.__new__(ScopeNode)
                child._attach(child_syntax, line_index, node, file_path)
                children.append(child)
            node.children = tuple(children)
            stack.extend(children)

    def _attach(self, syntax: SyntaxNode, line_index: LineIndex,
                parent: "ScopeNode | None", file_path: str) -> None:
        self.syntax = syntax
        self.parent = parent
        self.file_path = file_path
        self.start_line = line_index.line_of(syntax.start_offset)
        self.end_line = line_index.line_of(syntax.end_offset)
        self.name = _generate_name(syntax, self.is_method_body())
        self.children: tuple[ScopeNode, ...] = ()

    def __repr__(self) -> str:
        return f"ScopeNode({self.name!r}, lines {self.start_line}-{self.end_line})"

    # ── attributes ──────────────────────────────────────────────────────────

    @property
    def kind(self) -> NodeKind:
        return self.syntax.kind

    @property
    def code(self) -> str:
        return self.syntax.text

    @property
    def start_offset(self) -> int:
        return self.syntax.start_offset

    @property
    def end_offset(self) -> int:
        return self.syntax.end_offset

    @property
    def scope_kind(self) -> ScopeKind | None:
        """Scope classification, or None if the node does not open a scope."""
        if self.is_method_body():
            return ScopeKind.METHOD_BODY
        return SCOPE_NODE_KINDS.get(self.syntax.kind)

    @property
    def line_span(self) -> int:
        return self.end_line - self.start_line

    # ── classification ──────────────────────────────────────────────────────

    def is_root(self) -> bool:
        return self.parent is None

    def is_leaf(self) -> bool:
        return not self.children

    def is_code_block(self) -> bool:
        return self.syntax.kind is NodeKind.CODE_BLOCK

    def is_method_body(self) -> bool:
        if self.parent is None:
            return False
        return self.is_code_block() and self.parent.kind is NodeKind.METHOD

    def is_doc_comment(self) -> bool:
        return self.syntax.kind is NodeKind.DOC_COMMENT

    def is_scope(self) -> bool:
        return self.syntax.kind in SCOPE_NODE_KINDS or self.is_method_body()

    def contains_lines(self, start_line: int, end_line: int) -> bool:
        return self.start_line <= start_line and end_line <= self.end_line

    # ── queries ─────────────────────────────────────────────────────────────

    def get_surrounding_scope(self, start_line: int, end_line: int) -> "ScopeNode | None":
        """
        Smallest scope in this subtree whose lines contain [start_line, end_line].

        Returns None when this node is not a scope or does not contain the
        range. Descends into the containing child scope at each level; when
        several children contain the range the last one wins.
        """
        if not (self.is_scope() and self.contains_lines(start_line, end_line)):
            return None
        surrounding = self
        while True:
            for child in reversed(surrounding.children):
                if child.is_scope() and child.contains_lines(start_line, end_line):
                    surrounding = child
                    break
            else:
                return surrounding

    def search(self, *kinds: NodeKind | ScopeKind) -> list["ScopeNode"]:
        """Pre-order list of descendants (not self) matching any of the given kinds."""
        node_kinds = {k for k in kinds if isinstance(k, NodeKind)}
        scope_kinds = {k for k in kinds if isinstance(k, ScopeKind)}
        result: list[ScopeNode] = []
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            if node.syntax.kind in node_kinds or (scope_kinds and node.scope_kind in scope_kinds):
                result.append(node)
            stack.extend(reversed(node.children))
        return result

    def walk(self) -> Iterator["ScopeNode"]:
        """Depth-first generator over this node and all descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def has_doc_comment(self) -> bool:
        return bool(self.search(NodeKind.DOC_COMMENT))


class ScopeTree:
    """Navigable scope hierarchy for one file."""

    def __init__(self, root: SyntaxNode, text: str, file_path: str = ""):
        self.text = text
        self.file_path = file_path
        self.line_index = LineIndex(text)
        self.root = ScopeNode(root, self.line_index, None, file_path)

    @classmethod
    def from_source(cls, text: str, file_path: str = "", language: str = "java") -> "ScopeTree":
        return cls(parse_source(text, language), text, file_path)

    @classmethod
    def from_file(cls, path: str, language: str = "java") -> "ScopeTree":
        root, text = parse_file(path, language)
        return cls(root, text, path)

    def line_of(self, offset: int) -> int:
        return self.line_index.line_of(offset)

    def get_surrounding_scope(self, start_line: int, end_line: int) -> ScopeNode | None:
        if start_line > end_line:
            raise ValueError(f"start line {start_line} after end line {end_line}")
        return self.root.get_surrounding_scope(start_line, end_line)

    def surrounding_scope_for_offsets(self, start_offset: int, end_offset: int) -> ScopeNode | None:
        """Smallest scope around the text between two character offsets."""
        return self.get_surrounding_scope(self.line_of(start_offset), self.line_of(end_offset))

    def search(self, *kinds: NodeKind | ScopeKind) -> list[ScopeNode]:
        return self.root.search(*kinds)

    def methods(self) -> list[ScopeNode]:
        return self.root.search(NodeKind.METHOD)

    def walk(self) -> Iterator[ScopeNode]:
        return self.root.walk()
