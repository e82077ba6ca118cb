"""Formatting shortcuts and auto-format behaviours over raw Markdown text.

Every command takes a `TextState` and returns a `Transaction` describing the
edit, or None when there is nothing to do. Commands never raise.
"""

from __future__ import annotations

from enum import Enum

from .constants import (
    CODE_FENCE,
    FENCED_SELECTION_CLOSE_PATTERN,
    FENCED_SELECTION_OPEN_PATTERN,
    HEADING_PREFIX_PATTERN,
    INLINE_CODE_LINE_PATTERN,
    OPENING_FENCE_LINE_PATTERN,
    WORD_CHARACTERS,
)
from .language import fence_language
from .models import Selection, TextChange, TextState, Transaction


class ShortcutCommand(Enum):
    """Formatting commands bound to editor shortcuts."""

    TOGGLE_BOLD = "toggle-bold"
    TOGGLE_ITALIC = "toggle-italic"
    TOGGLE_INLINE_CODE = "toggle-inline-code"
    TOGGLE_HEADING_2 = "toggle-heading-2"
    TOGGLE_BLOCKQUOTE = "toggle-blockquote"
    TOGGLE_BULLET_LIST = "toggle-bullet-list"
    TOGGLE_ORDERED_LIST = "toggle-ordered-list"
    TOGGLE_CODE_FENCE = "toggle-code-fence"


WRAP_MARKERS = {
    ShortcutCommand.TOGGLE_BOLD: ("**", "**"),
    ShortcutCommand.TOGGLE_ITALIC: ("*", "*"),
    ShortcutCommand.TOGGLE_INLINE_CODE: ("`", "`"),
}

LINE_PREFIXES = {
    ShortcutCommand.TOGGLE_HEADING_2: "## ",
    ShortcutCommand.TOGGLE_BLOCKQUOTE: "> ",
    ShortcutCommand.TOGGLE_BULLET_LIST: "- ",
    ShortcutCommand.TOGGLE_ORDERED_LIST: "1. ",
}

HEADING_PREFIX = LINE_PREFIXES[ShortcutCommand.TOGGLE_HEADING_2]


def apply_markdown_shortcut(
    command: ShortcutCommand | str, state: TextState
) -> Transaction | None:
    """Run a formatting command against the current text and selection.

    Args:
        command: Command to run, as a `ShortcutCommand` or its string value.
        state: Text plus selection.

    Returns:
        Transaction | None: The edit to apply, or None for unknown commands.

    Examples:
        apply_markdown_shortcut(ShortcutCommand.TOGGLE_BOLD, TextState("hello world", 6, 11))
        # inserts "**" at 6 and 11, selects "world"
    """
    try:
        command = ShortcutCommand(command)
    except ValueError:
        return None

    if command in WRAP_MARKERS:
        opening, closing = WRAP_MARKERS[command]
        return toggle_wrap(state, opening, closing)
    if command in LINE_PREFIXES:
        return toggle_line_prefix(state, LINE_PREFIXES[command])
    return toggle_code_fence(state)


def apply_enter_behavior(state: TextState) -> Transaction | None:
    """Auto-close a fenced code block when Enter is pressed on its opening line.

    Applies when the selection is empty, the cursor sits at the end of its
    line, and that line is a backtick fence (three backticks plus an optional
    language tag). Lines opening with four or more backticks and lines that
    are a complete inline code span are left alone. When a bare closing fence
    already exists further down, the block is considered closed and nothing
    happens.

    Otherwise the opening line is rewritten with the normalized language tag,
    followed by a blank line and a closing fence; the cursor lands on the
    blank line.

    Examples:
        apply_enter_behavior(TextState("```py", 5)).apply("```py")  # "```python\\n\\n```"
        apply_enter_behavior(TextState("`test`", 6))  # None
    """
    if not state.empty:
        return None

    line = state.line_at(state.head)
    if state.head != line.end:
        return None

    if INLINE_CODE_LINE_PATTERN.match(line.text.strip()):
        return None

    if line.text.startswith(CODE_FENCE + "`"):
        return None

    match = OPENING_FENCE_LINE_PATTERN.match(line.text)
    if not match:
        return None

    if has_closing_fence_below(state, line.number):
        return None

    replacement = CODE_FENCE + fence_language(match.group(1))
    return Transaction(
        changes=(TextChange(line.start, line.end, f"{replacement}\n\n{CODE_FENCE}"),),
        selection=Selection(line.start + len(replacement) + 1),
    )


def has_closing_fence_below(state: TextState, line_number: int) -> bool:
    """Return True if a line after `line_number` is exactly a bare closing fence.

    Blank lines are skipped and surrounding whitespace ignored; fences that
    carry a language tag or extra backticks do not count.

    Examples:
        has_closing_fence_below(TextState("```python\\n```javascript\\nprint(1)\\n```"), 1)  # True
        has_closing_fence_below(TextState("```python\\n````"), 1)  # False
    """
    for number in range(line_number + 1, state.line_count + 1):
        stripped = state.line(number).text.strip()
        if not stripped:
            continue
        if stripped == CODE_FENCE:
            return True
    return False


def word_range_at(state: TextState, position: int) -> tuple[int, int] | None:
    """Return the ``[A-Za-z0-9_]`` word touching `position`, or None.

    Examples:
        word_range_at(TextState("hello world"), 8)  # (6, 11)
        word_range_at(TextState("a  b"), 2)  # None
    """
    line = state.line_at(position)
    offset = min(max(position, line.start), line.end) - line.start

    start = end = offset
    while start > 0 and line.text[start - 1] in WORD_CHARACTERS:
        start -= 1
    while end < len(line.text) and line.text[end] in WORD_CHARACTERS:
        end += 1

    if start == end:
        return None
    return line.start + start, line.start + end


def toggle_wrap(state: TextState, opening: str, closing: str) -> Transaction:
    """Wrap the selection in `opening`/`closing` markers, or unwrap it.

    An empty selection first expands to the word under the cursor. When the
    markers already surround the range they are removed and the selection
    follows the text; otherwise they are inserted, leaving the cursor between
    empty markers or the selection over the wrapped text.

    Examples:
        toggle_wrap(TextState("hello world", 6, 11), "**", "**").apply("hello world")
        # "hello **world**"
    """
    start, end = state.selection_from, state.selection_to
    if state.empty:
        word = word_range_at(state, start)
        if word is not None:
            start, end = word

    text = state.text
    before = start - len(opening)
    after = end + len(closing)
    if before >= 0 and after <= len(text):
        if text[before:start] == opening and text[end:after] == closing:
            return Transaction(
                changes=(TextChange(before, start), TextChange(end, after)),
                selection=Selection(start - len(opening), end - len(opening)),
            )

    if start == end:
        return Transaction(
            changes=(TextChange(start, end, opening + closing),),
            selection=Selection(start + len(opening)),
        )

    return Transaction(
        changes=(TextChange(start, start, opening), TextChange(end, end, closing)),
        selection=Selection(start + len(opening), end + len(opening)),
    )


def toggle_line_prefix(state: TextState, prefix: str) -> Transaction:
    """Add or remove `prefix` at the start of the cursor's line.

    The heading prefix replaces any existing ``#`` to ``######`` prefix
    instead of stacking on top of it.

    Examples:
        toggle_line_prefix(TextState("item", 4), "- ").apply("item")  # "- item"
        toggle_line_prefix(TextState("### Title", 9), "## ").apply("### Title")  # "## Title"
    """
    head = state.head
    line = state.line_at(head)

    if line.text.startswith(prefix):
        return Transaction(
            changes=(TextChange(line.start, line.start + len(prefix)),),
            selection=Selection(max(line.start, head - len(prefix))),
        )

    if prefix == HEADING_PREFIX:
        existing = HEADING_PREFIX_PATTERN.match(line.text)
        removed = existing.end() if existing else 0
        column = max(head - line.start - removed, 0)
        return Transaction(
            changes=(TextChange(line.start, line.end, prefix + line.text[removed:]),),
            selection=Selection(line.start + len(prefix) + column),
        )

    return Transaction(
        changes=(TextChange(line.start, line.start, prefix),),
        selection=Selection(head + len(prefix)),
    )


def toggle_code_fence(state: TextState) -> Transaction:
    """Strip a fully fenced selection, or wrap the selection in a bare fence.

    Examples:
        toggle_code_fence(TextState("x = 1", 0, 5)).apply("x = 1")  # "```\\nx = 1\\n```"
        toggle_code_fence(TextState("```py\\nx\\n```", 0, 11)).apply("```py\\nx\\n```")  # "x"
    """
    start, end = state.selection_from, state.selection_to
    selected = state.selected_text

    fenced = (
        len(selected) >= 2 * len(CODE_FENCE)
        and selected.startswith(CODE_FENCE)
        and selected.endswith(CODE_FENCE)
    )
    if fenced:
        stripped = FENCED_SELECTION_OPEN_PATTERN.sub("", selected, count=1)
        stripped = FENCED_SELECTION_CLOSE_PATTERN.sub("", stripped, count=1)
        return Transaction(
            changes=(TextChange(start, end, stripped),),
            selection=Selection(start, start + len(stripped)),
        )

    body_start = start + len(CODE_FENCE) + 1
    return Transaction(
        changes=(TextChange(start, end, f"{CODE_FENCE}\n{selected}\n{CODE_FENCE}"),),
        selection=Selection(body_start, body_start + len(selected)),
    )
