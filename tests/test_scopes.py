"""Tests for the scope tree: line mapping, surrounding scopes, search, names."""

import pytest

from readscope.models import NodeKind, ScopeKind, SyntaxNode
from readscope.scopes import LineIndex, ScopeTree

from conftest import SAMPLE


@pytest.fixture
def tree():
    return ScopeTree.from_source(SAMPLE, "Calc.java")


def _method(tree, name):
    return next(m for m in tree.methods() if m.syntax.name == name)


# ── line index ───────────────────────────────────────────────────────────────

def test_every_offset_maps_to_one_line():
    index = LineIndex(SAMPLE)

    for offset in range(len(SAMPLE) + 1):
        assert index.line_of(offset) == SAMPLE.count("\n", 0, offset)


def test_line_index_rejects_out_of_range():
    index = LineIndex("ab\ncd")

    with pytest.raises(ValueError):
        index.line_of(-1)
    with pytest.raises(ValueError):
        index.line_of(6)
    assert len(index) == 2
    assert index.line_start(1) == 3


# ── structure ────────────────────────────────────────────────────────────────

def test_root_is_file_scope(tree):
    assert tree.root.is_root()
    assert tree.root.scope_kind is ScopeKind.FILE
    assert tree.root.start_line == 0
    assert tree.root.end_line == SAMPLE.count("\n")


def test_children_nest_within_parent(tree):
    for node in tree.walk():
        for child in node.children:
            assert child.parent is node
            assert child.start_line >= node.start_line
            assert child.end_line <= node.end_line


def test_method_lines(tree):
    add = _method(tree, "add")
    total = _method(tree, "total")

    assert (add.start_line, add.end_line) == (7, 12)
    assert (total.start_line, total.end_line) == (14, 23)


def test_method_body_classification(tree):
    total = _method(tree, "total")
    bodies = [c for c in total.children if c.is_code_block()]

    assert len(bodies) == 1
    assert bodies[0].is_method_body()
    assert bodies[0].is_scope()
    assert bodies[0].scope_kind is ScopeKind.METHOD_BODY
    assert bodies[0].name == "method body"


def test_loop_block_is_not_a_scope(tree):
    loop = tree.search(NodeKind.FOR)[0]
    block = next(c for c in loop.children if c.is_code_block())

    assert not block.is_method_body()
    assert not block.is_scope()
    assert block.scope_kind is None


# ── surrounding scope ────────────────────────────────────────────────────────

def test_if_condition_inside_loop_resolves_to_if(tree):
    scope = tree.get_surrounding_scope(17, 18)

    assert scope.kind is NodeKind.IF
    assert scope.name == "if statement"
    assert (scope.start_line, scope.end_line) == (17, 20)


def test_loop_header_resolves_to_loop(tree):
    scope = tree.get_surrounding_scope(16, 16)

    assert scope.kind is NodeKind.FOR
    assert scope.name == "for statement"


def test_statement_in_method_resolves_to_method_body(tree):
    assert tree.get_surrounding_scope(15, 15).name == "method body"
    assert tree.get_surrounding_scope(11, 11).name == "method body"


def test_range_across_methods_resolves_to_class(tree):
    scope = tree.get_surrounding_scope(12, 14)

    assert scope.kind is NodeKind.CLASS
    assert scope.name == "class Calc"


def test_package_line_resolves_to_file(tree):
    assert tree.get_surrounding_scope(0, 0) is tree.root


def test_root_never_returns_none(tree):
    last = tree.root.end_line
    for start in range(last + 1):
        for end in range(start, last + 1):
            assert tree.get_surrounding_scope(start, end) is not None


def test_surrounding_scope_has_minimal_span(tree):
    scopes = [n for n in tree.walk() if n.is_scope()]
    last = tree.root.end_line
    for start in range(last + 1):
        for end in range(start, last + 1):
            found = tree.get_surrounding_scope(start, end)
            containing = [s for s in scopes if s.contains_lines(start, end)]
            assert found in containing
            assert min(s.line_span for s in containing) == found.line_span


def test_non_containing_subtree_returns_none(tree):
    add = _method(tree, "add")

    assert add.get_surrounding_scope(15, 15) is None


def test_non_scope_node_returns_none(tree):
    loop = tree.search(NodeKind.FOR)[0]
    block = next(c for c in loop.children if c.is_code_block())

    assert block.get_surrounding_scope(19, 19) is None


def test_reversed_range_rejected(tree):
    with pytest.raises(ValueError):
        tree.get_surrounding_scope(5, 4)


def test_surrounding_scope_for_offsets(tree):
    start = SAMPLE.index("values[i] > 0")
    end = SAMPLE.index("< 100")

    assert tree.surrounding_scope_for_offsets(start, end).kind is NodeKind.IF


# ── search ───────────────────────────────────────────────────────────────────

def test_search_matches_full_scan(tree):
    for kinds in ([NodeKind.METHOD], [NodeKind.IF, NodeKind.FOR], [NodeKind.CODE_BLOCK]):
        expected = [n for n in tree.walk() if n is not tree.root and n.kind in kinds]
        assert tree.search(*kinds) == expected


def test_search_excludes_self(tree):
    add = _method(tree, "add")

    assert add not in add.search(NodeKind.METHOD)
    assert tree.search(NodeKind.FILE) == []


def test_search_by_scope_kind(tree):
    bodies = tree.search(ScopeKind.METHOD_BODY)

    assert [b.parent.syntax.name for b in bodies] == ["add", "total"]


def test_methods_in_preorder(tree):
    assert [m.name for m in tree.methods()] == ["method add", "method total"]


def test_doc_comment_detection(tree):
    assert _method(tree, "add").has_doc_comment()
    assert not _method(tree, "total").has_doc_comment()


# ── hand-built syntax trees ──────────────────────────────────────────────────

def test_tree_from_handbuilt_nodes():
    text = "m\n{\n  x\n}\n"
    body = SyntaxNode(NodeKind.CODE_BLOCK, "{\n  x\n}", 2, 9, type_name="block")
    method = SyntaxNode(NodeKind.METHOD, text[:9], 0, 9, (body,), name="m", type_name="method_declaration")
    root = SyntaxNode(NodeKind.FILE, text, 0, len(text), (method,), type_name="program")
    tree = ScopeTree(root, text, "M.java")

    assert tree.get_surrounding_scope(1, 1).name == "method body"
    assert tree.get_surrounding_scope(0, 2).name == "method m"
    assert tree.root.children[0].file_path == "M.java"


def test_other_node_names_strip_grammar_suffixes():
    text = "x"
    node = SyntaxNode(NodeKind.OTHER, "x", 0, 1, type_name="lambda_expression")
    root = SyntaxNode(NodeKind.FILE, text, 0, 1, (node,), type_name="program")

    assert ScopeTree(root, text).root.children[0].name == "lambda"


def test_deeply_nested_tree():
    depth = 5000
    text = "m\n" + "x" * depth + "\n"
    node = SyntaxNode(NodeKind.OTHER, "x", 2, 3, type_name="identifier")
    for i in range(depth - 1):
        node = SyntaxNode(NodeKind.OTHER, text[2:3 + i + 1], 2, 3 + i + 1, (node,),
                          type_name="binary_expression")
    method = SyntaxNode(NodeKind.METHOD, text, 0, len(text), (node,), name="m",
                        type_name="method_declaration")
    root = SyntaxNode(NodeKind.FILE, text, 0, len(text), (method,), type_name="program")

    tree = ScopeTree(root, text, "G.java")

    assert tree.get_surrounding_scope(1, 1).name == "method m"
    assert sum(1 for _ in tree.walk()) == depth + 2
    assert len(tree.root.search(NodeKind.OTHER)) == depth
    assert not tree.methods()[0].has_doc_comment()
