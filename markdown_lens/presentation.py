"""Selection-independent presentation decorations."""

from __future__ import annotations

import re

from .constants import DEFAULT_RENDER_POLICY
from .models import (
    CODE_INFO_NAME,
    FENCED_CODE_NAME,
    Decoration,
    DecorationKind,
    DecorationSet,
    RenderPolicy,
)
from .syntax import SyntaxTree

_HEADING_NAME = re.compile(r"^(?:ATXHeading([1-6])|SetextHeading([12]))$")

HEADING_CLASS = "ml-heading"
FENCED_LINE_CLASS = "ml-fenced-line"
FENCED_OPEN_CLASS = "ml-fenced-open"
FENCED_BODY_CLASS = "ml-fenced-body"
FENCED_CLOSE_CLASS = "ml-fenced-close"
CODE_INFO_CLASS = "ml-code-info"


def heading_level(name: str) -> int | None:
    """Return the heading level encoded in a syntax node name, if any.

    Examples:
        heading_level("ATXHeading3")  # 3
        heading_level("SetextHeading2")  # 2
        heading_level("Paragraph")  # None
    """
    match = _HEADING_NAME.match(name)
    if not match:
        return None
    return int(match.group(1) or match.group(2))


def compute_presentation_decorations(
    tree: SyntaxTree, policy: RenderPolicy = DEFAULT_RENDER_POLICY
) -> DecorationSet:
    """Compute heading, fenced-code and code-info styling for a tree.

    Args:
        tree: Syntax tree of the current text.
        policy: Heading scale and feature switches.

    Returns:
        DecorationSet: Line and mark decorations in position order.

    Examples:
        tree = build_syntax_tree("## Intro\\n\\n```py\\nx = 1\\n```")
        [d.css_class for d in compute_presentation_decorations(tree)]
        # ['ml-heading ml-heading-2', 'ml-fenced-line ml-fenced-open',
        #  'ml-code-info', 'ml-fenced-line ml-fenced-body',
        #  'ml-fenced-line ml-fenced-close']
    """
    entries: list[Decoration] = []
    length = len(tree.text)

    for node in tree.iter_nodes():
        start = max(node.start, 0)
        end = min(node.end, length)
        if end < start:
            continue

        level = heading_level(node.name)
        if level is not None:
            line = tree.line_at(start)
            entries.append(
                Decoration(
                    line.start,
                    line.start,
                    DecorationKind.LINE,
                    f"{HEADING_CLASS} {HEADING_CLASS}-{level}",
                    f"--ml-heading-scale:{policy.scale_for(level)}",
                )
            )
        elif node.name == FENCED_CODE_NAME and policy.code_block_style:
            entries.extend(_fenced_lines(tree, start, end))
        elif node.name == CODE_INFO_NAME and policy.show_code_info_badge and end > start:
            entries.append(Decoration(start, end, DecorationKind.MARK, CODE_INFO_CLASS))

    return DecorationSet.build(entries)


def _fenced_lines(tree: SyntaxTree, start: int, end: int) -> list[Decoration]:
    first = tree.line_at(start).number
    # `end` can sit at the start of an empty line after the block
    last = tree.line_at(max(start, end - 1)).number
    lines = []

    for number in range(first, last + 1):
        if number == first:
            role = FENCED_OPEN_CLASS
        elif number == last:
            role = FENCED_CLOSE_CLASS
        else:
            role = FENCED_BODY_CLASS
        line = tree.line(number)
        lines.append(
            Decoration(line.start, line.start, DecorationKind.LINE, f"{FENCED_LINE_CLASS} {role}")
        )

    return lines
