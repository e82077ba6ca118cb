import pytest

from markdown_lens.syntax import SyntaxNode, build_syntax_tree, iter_syntax_nodes


def _nodes(markdown: str) -> list[tuple[str, int, int]]:
    tree = build_syntax_tree(markdown)
    return [(node.name, node.start, node.end) for node in tree.iter_nodes()]


def test_heading_and_paragraph():
    assert _nodes("# Title\n\nParagraph") == [
        ("Document", 0, 18),
        ("ATXHeading1", 0, 7),
        ("HeaderMark", 0, 1),
        ("Paragraph", 9, 18),
    ]


def test_closing_heading_sequence_is_a_marker():
    assert _nodes("## Title ##") == [
        ("Document", 0, 11),
        ("ATXHeading2", 0, 11),
        ("HeaderMark", 0, 2),
        ("HeaderMark", 9, 11),
    ]


def test_setext_heading():
    assert _nodes("Title\n===") == [
        ("Document", 0, 9),
        ("SetextHeading1", 0, 9),
        ("HeaderMark", 6, 9),
    ]


def test_fenced_code_parts():
    assert _nodes("```py\nx = 1\n```") == [
        ("Document", 0, 15),
        ("FencedCode", 0, 15),
        ("CodeMark", 0, 3),
        ("CodeInfo", 3, 5),
        ("CodeText", 6, 11),
        ("CodeMark", 12, 15),
    ]


def test_unclosed_fence_runs_to_end_of_text():
    assert _nodes("```\ncode") == [
        ("Document", 0, 8),
        ("FencedCode", 0, 8),
        ("CodeMark", 0, 3),
        ("CodeText", 4, 8),
    ]


def test_fence_content_is_not_scanned_for_markdown():
    names = [name for name, _, _ in _nodes("```\n# not a heading\n```")]

    assert "ATXHeading1" not in names


def test_bullet_list_items():
    assert _nodes("- a\n- b") == [
        ("Document", 0, 7),
        ("BulletList", 0, 7),
        ("ListItem", 0, 3),
        ("ListMark", 0, 1),
        ("Paragraph", 2, 3),
        ("ListItem", 4, 7),
        ("ListMark", 4, 5),
        ("Paragraph", 6, 7),
    ]


def test_ordered_list_mark_covers_number_and_delimiter():
    assert _nodes("1. one") == [
        ("Document", 0, 6),
        ("OrderedList", 0, 6),
        ("ListItem", 0, 6),
        ("ListMark", 0, 2),
        ("Paragraph", 3, 6),
    ]


def test_lazy_continuation_stays_in_list_item():
    assert _nodes("- a\nb") == [
        ("Document", 0, 5),
        ("BulletList", 0, 5),
        ("ListItem", 0, 5),
        ("ListMark", 0, 1),
        ("Paragraph", 2, 5),
    ]


def test_blockquote_containing_list():
    assert _nodes("> - a") == [
        ("Document", 0, 5),
        ("Blockquote", 0, 5),
        ("QuoteMark", 0, 1),
        ("BulletList", 2, 5),
        ("ListItem", 2, 5),
        ("ListMark", 2, 3),
        ("Paragraph", 4, 5),
    ]


def test_indented_code_and_rule():
    assert _nodes("    code") == [("Document", 0, 8), ("CodeBlock", 4, 8)]
    assert _nodes("---") == [("Document", 0, 3), ("HorizontalRule", 0, 3)]


def test_inline_emphasis():
    assert _nodes("some *em* text") == [
        ("Document", 0, 14),
        ("Paragraph", 0, 14),
        ("Emphasis", 5, 9),
        ("EmphasisMark", 5, 6),
        ("EmphasisMark", 8, 9),
    ]
    assert _nodes("**strong**")[2:] == [
        ("StrongEmphasis", 0, 10),
        ("EmphasisMark", 0, 2),
        ("EmphasisMark", 8, 10),
    ]


def test_inline_code():
    assert _nodes("`code`")[2:] == [
        ("InlineCode", 0, 6),
        ("CodeMark", 0, 1),
        ("CodeMark", 5, 6),
    ]


def test_link_marks_and_url():
    assert _nodes("x [a](u)")[2:] == [
        ("Link", 2, 8),
        ("LinkMark", 2, 3),
        ("LinkMark", 4, 5),
        ("LinkMark", 5, 6),
        ("URL", 6, 7),
        ("LinkMark", 7, 8),
    ]


def test_autolink():
    assert _nodes("<https://a.io>")[2:] == [
        ("Autolink", 0, 14),
        ("LinkMark", 0, 1),
        ("URL", 1, 13),
        ("LinkMark", 13, 14),
    ]


@pytest.mark.parametrize("markdown", ["snake_case_x", "\\*no\\*", "a * b * c"])
def test_literal_emphasis_characters(markdown: str):
    names = [name for name, _, _ in _nodes(markdown)]

    assert "Emphasis" not in names
    assert "EmphasisMark" not in names


def test_parent_and_sibling_links():
    tree = build_syntax_tree("# Title\n\nParagraph")
    heading = tree.top.first_child()

    assert heading.name == "ATXHeading1"
    assert heading.parent is tree.top
    assert heading.first_child().parent is heading
    assert heading.next_sibling().name == "Paragraph"
    assert heading.next_sibling().next_sibling() is None
    assert tree.top.next_sibling() is None


def test_tree_line_lookup():
    tree = build_syntax_tree("a\nbb\nccc")

    assert tree.line_at(3).number == 2
    assert tree.line(3).start == 5


@pytest.mark.parametrize(
    "markdown",
    [">" * 200 + " a", "- " * 200 + "a", "*" * 100 + "a" + "*" * 100, "[" * 100 + "a"],
)
def test_deep_nesting_is_bounded(markdown: str):
    tree = build_syntax_tree(markdown)

    assert tree.top.end == len(markdown)
    for node in tree.iter_nodes():
        assert 0 <= node.start <= node.end <= len(markdown)


def test_iter_syntax_nodes_on_handmade_tree():
    top = SyntaxNode("Document", 0, 4)
    second = top.add(SyntaxNode("B", 2, 4))
    first = top.add(SyntaxNode("A", 0, 2))
    first.add(SyntaxNode("Inner", 0, 1))
    top.finalize()

    assert [node.name for node in iter_syntax_nodes(top)] == ["Document", "A", "Inner", "B"]
    assert first.next_sibling() is second
