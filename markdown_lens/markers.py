"""Cursor-aware marker reveal decorations."""

from __future__ import annotations

from .constants import DEFAULT_MARKER_POLICY
from .models import Decoration, DecorationKind, DecorationSet, MarkerPolicy
from .syntax import SyntaxNodeLike, SyntaxTree

CODE_INFO_CLASS = "ml-code-info"


def compute_marker_decorations(
    tree: SyntaxTree, cursor: int, policy: MarkerPolicy = DEFAULT_MARKER_POLICY
) -> DecorationSet:
    """Hide syntax markers that sit outside the construct holding the cursor.

    Walks the tree depth-first, carrying each node's immediate parent. A marker
    node stays visible while `cursor` lies within its parent's inclusive range
    and is otherwise covered by a ``replace`` decoration. Fence markers inside
    a fenced code construct are only hidden when the policy says so. Markers in
    the spaced set also hide the single space that follows them.

    Args:
        tree: Syntax tree of the current text.
        cursor: Cursor offset; clamped into the text.
        policy: Which node names count as markers.

    Returns:
        DecorationSet: Hidden ranges plus the code-info styling marks.

    Examples:
        tree = build_syntax_tree("# Title\\n\\nParagraph")
        compute_marker_decorations(tree, 18).ranges()  # [(0, 2)]
        compute_marker_decorations(tree, 3).ranges()  # []
    """
    cursor = min(max(cursor, 0), len(tree.text))
    entries: list[Decoration] = []

    child = tree.top.first_child()
    while child is not None:
        _visit(child, tree.top, tree.text, cursor, policy, entries)
        child = child.next_sibling()

    return DecorationSet.build(entries)


def _visit(
    node: SyntaxNodeLike,
    parent: SyntaxNodeLike,
    text: str,
    cursor: int,
    policy: MarkerPolicy,
    entries: list[Decoration],
) -> None:
    decoration = _decorate(node, parent, text, cursor, policy)
    if decoration is not None:
        entries.append(decoration)

    child = node.first_child()
    while child is not None:
        _visit(child, node, text, cursor, policy, entries)
        child = child.next_sibling()


def _decorate(
    node: SyntaxNodeLike,
    parent: SyntaxNodeLike,
    text: str,
    cursor: int,
    policy: MarkerPolicy,
) -> Decoration | None:
    start = max(node.start, 0)
    end = min(node.end, len(text))
    if end <= start:
        return None

    in_fence = parent.name == policy.fenced_code_name

    if node.name == policy.code_info_name and in_fence:
        return Decoration(start, end, DecorationKind.MARK, CODE_INFO_CLASS)

    if node.name not in policy.marker_node_names:
        return None

    if node.name == policy.fence_mark_name and in_fence and not policy.hide_fence_code_marks:
        return None

    if parent.start <= cursor <= parent.end:
        return None

    if node.name in policy.spaced_marker_names and text[end : end + 1] == " ":
        end += 1
    return Decoration(start, end, DecorationKind.REPLACE)
