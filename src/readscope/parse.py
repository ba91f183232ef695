"""
Tree-sitter parsing and conversion into readscope's SyntaxNode tree.

Offsets on the resulting nodes are character offsets into the decoded
source, not the byte offsets tree-sitter reports.
"""

import logging
from pathlib import Path

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language

from .errors import ParseUnavailable
from .models import NodeKind, SyntaxNode

log = logging.getLogger(__name__)

_PARSERS: dict[str, Parser] = {}

_KIND_BY_TYPE: dict[str, NodeKind] = {
    "program": NodeKind.FILE,
    "method_declaration": NodeKind.METHOD,
    "constructor_declaration": NodeKind.METHOD,
    "compact_constructor_declaration": NodeKind.METHOD,
    "class_declaration": NodeKind.CLASS,
    "interface_declaration": NodeKind.CLASS,
    "enum_declaration": NodeKind.CLASS,
    "record_declaration": NodeKind.CLASS,
    "annotation_type_declaration": NodeKind.CLASS,
    "for_statement": NodeKind.FOR,
    "enhanced_for_statement": NodeKind.FOR_EACH,
    "while_statement": NodeKind.WHILE,
    "do_statement": NodeKind.DO_WHILE,
    "if_statement": NodeKind.IF,
    "switch_expression": NodeKind.SWITCH,
    "switch_statement": NodeKind.SWITCH,
    "try_statement": NodeKind.TRY,
    "try_with_resources_statement": NodeKind.TRY,
    "catch_clause": NodeKind.CATCH,
    "block": NodeKind.CODE_BLOCK,
    "constructor_body": NodeKind.CODE_BLOCK,
}

# Declarations a preceding doc comment belongs to.
_DOCUMENTABLE = frozenset({
    "method_declaration",
    "constructor_declaration",
    "compact_constructor_declaration",
    "class_declaration",
    "interface_declaration",
    "enum_declaration",
    "record_declaration",
    "annotation_type_declaration",
    "field_declaration",
    "constant_declaration",
})

_NAMED_KINDS = frozenset({NodeKind.METHOD, NodeKind.CLASS})


def _get_parser(language: str) -> Parser:
    if language not in _PARSERS:
        try:
            lang_obj = get_language(language)
        except Exception as e:
            raise ParseUnavailable(f"No grammar for language: {language}") from e
        _PARSERS[language] = Parser(lang_obj)
    return _PARSERS[language]


class _OffsetMap:
    """Translates UTF-8 byte offsets into character offsets."""

    def __init__(self, text: str, source: bytes):
        self._identity = len(text) == len(source)
        self._table: list[int] = []
        if not self._identity:
            table = []
            for i, ch in enumerate(text):
                table.extend([i] * len(ch.encode("utf-8")))
            table.append(len(text))
            self._table = table

    def __call__(self, byte_offset: int) -> int:
        if self._identity:
            return byte_offset
        return self._table[byte_offset]


def _is_doc_comment(node: Node) -> bool:
    return node.type == "block_comment" and node.text is not None and node.text.startswith(b"/**")


def _kind_of(node: Node) -> NodeKind:
    if _is_doc_comment(node):
        return NodeKind.DOC_COMMENT
    return _KIND_BY_TYPE.get(node.type, NodeKind.OTHER)


class _Frame:
    """One node being converted: its children so far and any doc comment awaiting a declaration."""

    __slots__ = ("node", "kind", "start", "end", "children", "pending_doc",
                 "reading_doc", "kids", "index")

    def __init__(self, node: Node, kind: NodeKind, start: int, end: int, doc: SyntaxNode | None):
        self.node = node
        self.kind = kind
        self.start = start
        self.end = end
        self.children: list[SyntaxNode] = []
        if doc is not None:
            self.children.append(doc)
            self.start = doc.start_offset
        self.pending_doc: SyntaxNode | None = None
        self.reading_doc = False
        self.kids = node.children
        self.index = 0

    def receive(self, converted: SyntaxNode) -> None:
        if self.reading_doc:
            self.pending_doc = converted
        else:
            self.children.append(converted)

    def next_child(self) -> tuple[Node, SyntaxNode | None] | None:
        """Next tree-sitter child to convert, with the doc comment it absorbs."""
        while self.index < len(self.kids):
            child = self.kids[self.index]
            self.index += 1
            if self.pending_doc is not None and child.type not in _DOCUMENTABLE:
                self.children.append(self.pending_doc)
                self.pending_doc = None
            self.reading_doc = _is_doc_comment(child)
            if self.reading_doc:
                return child, None
            doc, self.pending_doc = self.pending_doc, None
            return child, doc
        if self.pending_doc is not None:
            self.children.append(self.pending_doc)
            self.pending_doc = None
        return None


class _Converter:
    def __init__(self, text: str, source: bytes):
        self.text = text
        self.to_char = _OffsetMap(text, source)

    def _frame(self, node: Node, doc: SyntaxNode | None = None,
               start: int | None = None, end: int | None = None) -> _Frame:
        if start is None:
            start = self.to_char(node.start_byte)
        if end is None:
            end = self.to_char(node.end_byte)
        return _Frame(node, _kind_of(node), start, end, doc)

    def _finish(self, frame: _Frame) -> SyntaxNode:
        name = None
        if frame.kind in _NAMED_KINDS:
            name_node = frame.node.child_by_field_name("name")
            if name_node is not None:
                name = self.text[self.to_char(name_node.start_byte):self.to_char(name_node.end_byte)]
        return SyntaxNode(
            kind=frame.kind,
            text=self.text[frame.start:frame.end],
            start_offset=frame.start,
            end_offset=frame.end,
            children=tuple(frame.children),
            name=name,
            type_name=frame.node.type,
        )

    def convert(self, node: Node, start: int | None = None, end: int | None = None) -> SyntaxNode:
        # Explicit stack; binary expressions nest one level per operand.
        stack = [self._frame(node, start=start, end=end)]
        done: SyntaxNode | None = None
        while True:
            frame = stack[-1]
            if done is not None:
                frame.receive(done)
                done = None
            nxt = frame.next_child()
            if nxt is not None:
                child, doc = nxt
                stack.append(self._frame(child, doc))
                continue
            done = self._finish(stack.pop())
            if not stack:
                return done


def parse_source(text: str, language: str = "java") -> SyntaxNode:
    """
    Parse source text and return the root SyntaxNode.

    The root always spans the whole text, including leading and trailing
    whitespace tree-sitter leaves outside its root node.
    """
    parser = _get_parser(language)
    source = text.encode("utf-8")
    try:
        tree = parser.parse(source)
    except Exception as e:
        raise ParseUnavailable(f"Parse error: {e}") from e
    converter = _Converter(text, source)
    root = converter.convert(tree.root_node, start=0, end=len(text))
    log.debug("Parsed %d chars (%s) into %d top-level nodes", len(text), language, len(root.children))
    return root


def read_source(path: str) -> str:
    """Read a source file as text, or raise ParseUnavailable."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        log.warning("Cannot read %s: %s", path, e)
        raise ParseUnavailable(f"Cannot read {path}: {e}") from e


def parse_file(path: str, language: str = "java") -> tuple[SyntaxNode, str]:
    """Parse a file from disk. Returns (root, text)."""
    text = read_source(path)
    return parse_source(text, language), text


def walk_tree(node: SyntaxNode):
    """Depth-first generator over all nodes in a tree."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))
