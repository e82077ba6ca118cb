from __future__ import annotations

from markdown_lens.markers import CODE_INFO_CLASS, compute_marker_decorations
from markdown_lens.models import DecorationKind, MarkerPolicy
from markdown_lens.syntax import SyntaxTree, build_syntax_tree


def _hidden(markdown: str, cursor: int, policy: MarkerPolicy | None = None):
    tree = build_syntax_tree(markdown)
    if policy is None:
        result = compute_marker_decorations(tree, cursor)
    else:
        result = compute_marker_decorations(tree, cursor, policy)
    return result.ranges(DecorationKind.REPLACE)


def test_heading_marker_hidden_with_trailing_space():
    assert _hidden("# Title\n\nParagraph", 18) == [(0, 2)]


def test_heading_marker_revealed_inside_heading():
    assert _hidden("# Title\n\nParagraph", 3) == []


def test_parent_range_is_inclusive():
    assert _hidden("# Title\n\nParagraph", 0) == []
    assert _hidden("# Title\n\nParagraph", 7) == []
    assert _hidden("# Title\n\nParagraph", 8) == [(0, 2)]


def test_list_marks_follow_their_own_item():
    assert _hidden("- a\n- b", 7) == [(0, 2)]
    assert _hidden("- a\n- b", 1) == [(4, 6)]


def test_quote_mark_hidden_outside_quote():
    assert _hidden("> a\n\nb", 6) == [(0, 2)]


def test_spaced_marker_without_space():
    assert _hidden("#\n\nx", 4) == [(0, 1)]


def test_emphasis_marks_follow_immediate_parent():
    # Cursor is inside the heading but outside the emphasis
    assert _hidden("# *a* b", 6) == [(2, 3), (4, 5)]
    assert _hidden("# *a* b", 3) == []


def test_emphasis_marks_are_not_spaced():
    assert _hidden("some *em* text", 0) == [(5, 6), (8, 9)]


def test_inline_code_marks_hidden():
    assert _hidden("a `b` c", 0) == [(2, 3), (4, 5)]


def test_link_marks_hidden_but_url_kept():
    assert _hidden("x [a](u)", 0) == [(2, 3), (4, 5), (5, 6), (7, 8)]


def test_fence_marks_visible_by_default():
    markdown = "```py\nx\n```\n\nafter"
    result = compute_marker_decorations(build_syntax_tree(markdown), len(markdown))

    assert result.ranges(DecorationKind.REPLACE) == []
    marks = result.of_kind(DecorationKind.MARK)
    assert [(mark.start, mark.end, mark.css_class) for mark in marks] == [
        (3, 5, CODE_INFO_CLASS)
    ]


def test_fence_marks_hidden_when_enabled():
    markdown = "```py\nx\n```\n\nafter"
    policy = MarkerPolicy(hide_fence_code_marks=True)
    result = compute_marker_decorations(build_syntax_tree(markdown), 18, policy)

    assert result.ranges() == [(0, 3), (3, 5), (8, 11)]
    assert result.ranges(DecorationKind.REPLACE) == [(0, 3), (8, 11)]


def test_code_info_mark_present_under_cursor():
    markdown = "```py\nx\n```"
    policy = MarkerPolicy(hide_fence_code_marks=True)
    result = compute_marker_decorations(build_syntax_tree(markdown), 2, policy)

    assert result.ranges(DecorationKind.REPLACE) == []
    assert result.ranges(DecorationKind.MARK) == [(3, 5)]


def test_cursor_is_clamped():
    assert _hidden("# Title\n\nParagraph", 999) == [(0, 2)]
    assert _hidden("# Title\n\nParagraph", -5) == []


def test_policy_limits_marker_names():
    policy = MarkerPolicy(marker_node_names=frozenset({"HeaderMark"}))

    assert _hidden("# *a*\n\nb", 8, policy) == [(0, 2)]
    assert _hidden("# *a*\n\nb", 8) == [(0, 2), (2, 3), (4, 5)]


def test_empty_text():
    assert len(compute_marker_decorations(build_syntax_tree(""), 0)) == 0


class _HostNode:
    """Tree node from a foreign parser exposing only the walking interface."""

    def __init__(self, name: str, start: int, end: int, children=()):
        self.name = name
        self.start = start
        self.end = end
        self.parent = None
        self._children = list(children)
        self._next = None
        for index, child in enumerate(self._children):
            child.parent = self
            if index + 1 < len(self._children):
                child._next = self._children[index + 1]

    def first_child(self):
        return self._children[0] if self._children else None

    def next_sibling(self):
        return self._next


def test_accepts_any_tree_with_node_interface():
    text = "# T\n\nx"
    top = _HostNode(
        "Document",
        0,
        len(text),
        [
            _HostNode("ATXHeading1", 0, 3, [_HostNode("HeaderMark", 0, 1)]),
            _HostNode("Paragraph", 5, 6, [_HostNode("HeaderMark", 6, 6)]),
        ],
    )

    result = compute_marker_decorations(SyntaxTree(text, top), 6)

    assert result.ranges() == [(0, 2)]
