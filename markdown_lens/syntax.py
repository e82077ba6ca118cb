"""Position-addressed syntax trees over raw Markdown text.

The decoration engines only rely on the small `SyntaxNodeLike` interface, so a
host with its own incremental parser can hand them any tree exposing it.
`build_syntax_tree` is the reference builder for the supported subset; its
node names follow the common Markdown grammar naming (``ATXHeading1``,
``HeaderMark``, ``Emphasis``, ``EmphasisMark``, ``FencedCode``, ``CodeInfo``,
...).
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from functools import cached_property
from typing import NamedTuple, Protocol

from .constants import (
    ATX_HEADING_PATTERN,
    AUTOLINK_PATTERN,
    BULLET_MARK_PATTERN,
    CLOSING_FENCE_MAX_INDENT,
    CODE_FENCE_PATTERN,
    ORDERED_MARK_PATTERN,
    QUOTE_MARK_PATTERN,
    SETEXT_UNDERLINE_PATTERN,
    THEMATIC_BREAK_PATTERN,
)
from .models import Line, ParserContext, ParserState, TextState

_CLOSING_HEADING_SEQUENCE = re.compile(r"(?:^|[ \t]+)(#+)$")
_MAX_BLOCK_DEPTH = 32
_MAX_INLINE_DEPTH = 16


class SyntaxNodeLike(Protocol):
    """Minimal read-only node interface walked by the decoration engines."""

    name: str
    start: int
    end: int

    @property
    def parent(self) -> SyntaxNodeLike | None: ...

    def first_child(self) -> SyntaxNodeLike | None: ...

    def next_sibling(self) -> SyntaxNodeLike | None: ...


@dataclass(eq=False)
class SyntaxNode:
    """Concrete syntax node produced by `build_syntax_tree`.

    Attributes:
        name: Node name, such as ``"HeaderMark"``.
        start: Offset of the first covered character.
        end: Offset just past the last covered character.
        children: Child nodes ordered by position.
    """

    name: str
    start: int
    end: int
    children: list[SyntaxNode] = field(default_factory=list, repr=False)
    _parent: SyntaxNode | None = field(default=None, repr=False)
    _index: int = field(default=0, repr=False)

    @property
    def parent(self) -> SyntaxNode | None:
        return self._parent

    def add(self, child: SyntaxNode) -> SyntaxNode:
        child._parent = self
        self.children.append(child)
        return child

    def first_child(self) -> SyntaxNode | None:
        return self.children[0] if self.children else None

    def next_sibling(self) -> SyntaxNode | None:
        if self._parent is None:
            return None
        siblings = self._parent.children
        following = self._index + 1
        return siblings[following] if following < len(siblings) else None

    def finalize(self) -> None:
        """Order children by position and fix sibling links, recursively."""
        pending = [self]
        while pending:
            node = pending.pop()
            node.children.sort(key=lambda child: (child.start, -child.end))
            for index, child in enumerate(node.children):
                child._index = index
                pending.append(child)


@dataclass(frozen=True)
class SyntaxTree:
    """A syntax tree together with the text revision it describes.

    Attributes:
        text: The source text.
        top: Root node covering the whole text.
    """

    text: str
    top: SyntaxNodeLike

    @cached_property
    def _state(self) -> TextState:
        return TextState(self.text)

    def line_at(self, position: int) -> Line:
        return self._state.line_at(position)

    def line(self, number: int) -> Line:
        return self._state.line(number)

    def iter_nodes(self) -> Iterator[SyntaxNodeLike]:
        return iter_syntax_nodes(self.top)


def iter_syntax_nodes(top: SyntaxNodeLike) -> Iterator[SyntaxNodeLike]:
    """Yield `top` and its descendants in document (pre-)order.

    Examples:
        [node.name for node in iter_syntax_nodes(tree.top)]
    """
    yield top
    node = top.first_child()
    while node is not None:
        yield node
        child = node.first_child()
        if child is not None:
            node = child
            continue
        while node is not None and node is not top:
            sibling = node.next_sibling()
            if sibling is not None:
                node = sibling
                break
            node = node.parent
        if node is top:
            return


class Segment(NamedTuple):
    """A slice of one source line: absolute offset plus its text."""

    start: int
    text: str

    @property
    def end(self) -> int:
        return self.start + len(self.text)

    @property
    def blank(self) -> bool:
        return not self.text.strip()

    def indent(self) -> int:
        return len(self.text) - len(self.text.lstrip(" "))

    def advance(self, count: int) -> Segment:
        count = min(count, len(self.text))
        return Segment(self.start + count, self.text[count:])


def is_escaped(text: str, pos: int) -> bool:
    """Determine whether a character is escaped by preceding backslashes.

    Counts consecutive backslashes immediately before `pos`; an odd count marks
    the character as escaped.

    Examples:
        is_escaped("\\\\*", 2)  # False, two backslashes
        is_escaped("\\*", 1)  # True, one backslash
    """
    backslash_count = 0
    i = pos - 1
    while i >= 0 and text[i] == "\\":
        backslash_count += 1
        i -= 1
    return backslash_count % 2 == 1


def find_inline_code_spans(text: str) -> list[tuple[int, int]]:
    """Locate inline code spans using CommonMark-style backticks.

    Spans start and end with unescaped backtick runs of equal length. An
    unmatched opening run is literal and scanning resumes right after it.

    Returns:
        list[tuple[int, int]]: Start (inclusive) and end (exclusive) positions
            for each inline code span.

    Examples:
        find_inline_code_spans("`code`")  # [(0, 6)]
        find_inline_code_spans("``more`` text")  # [(0, 8)]
        find_inline_code_spans("`` open `x`")  # [(8, 11)]
    """
    spans = []
    i = 0

    while i < len(text):
        if text[i] != "`" or is_escaped(text, i):
            i += 1
            continue

        start = i
        while i < len(text) and text[i] == "`":
            i += 1
        opening_length = i - start

        # Look for a closing run of the same length
        j = i
        closed = False
        while j < len(text):
            if text[j] != "`":
                j += 1
                continue
            run_start = j
            while j < len(text) and text[j] == "`":
                j += 1
            if j - run_start == opening_length:
                spans.append((start, j))
                i = j
                closed = True
                break

        if not closed:
            i = start + opening_length

    return spans


def _leading_whitespace_columns(line: str) -> int:
    """Compute the column width of leading whitespace.

    Tabs advance to the next multiple of four columns.

    Examples:
        _leading_whitespace_columns("    text")  # 4
        _leading_whitespace_columns("\\ttext")  # 4
    """
    columns = 0
    for character in line:
        if character == " ":
            columns += 1
            continue
        if character == "\t":
            columns += 4 - (columns % 4)
            continue
        break
    return columns


def _try_open_fence(ctx: ParserContext, line: str) -> re.Match | None:
    """Detect the start of a fenced code block.

    Returns:
        re.Match | None: The fence match when the line opens a fence and the
            context was updated, otherwise None.

    Examples:
        _try_open_fence(ParserContext(), "```python")
    """
    if ctx.state is not ParserState.NORMAL:
        return None

    fence_match = CODE_FENCE_PATTERN.match(line)
    if not fence_match:
        return None

    fence_sequence = fence_match.group("fence")
    # Backtick fences cannot carry backticks in their info string
    if fence_sequence[0] == "`" and "`" in fence_match.group("info"):
        return None

    indent_columns = _leading_whitespace_columns(fence_match.group("indent"))
    if indent_columns > CLOSING_FENCE_MAX_INDENT:
        return None

    ctx.state = ParserState.IN_FENCED_CODE
    ctx.fence_char = fence_sequence[0]
    ctx.fence_length = len(fence_sequence)
    ctx.fence_indent_columns = indent_columns
    return fence_match


def _try_close_fence(ctx: ParserContext, line: str) -> bool:
    """Attempt to close the active fenced code block.

    Examples:
        ctx = ParserContext(state=ParserState.IN_FENCED_CODE, fence_char="`", fence_length=3)
        _try_close_fence(ctx, "```")  # True
    """
    if ctx.state is not ParserState.IN_FENCED_CODE or ctx.fence_char is None:
        return False

    indent_columns = _leading_whitespace_columns(line)
    stripped_line = line.lstrip(" \t")
    if not stripped_line or stripped_line[0] != ctx.fence_char:
        return False

    fence_run_length = len(stripped_line) - len(stripped_line.lstrip(ctx.fence_char))
    if fence_run_length < ctx.fence_length:
        return False

    if stripped_line[fence_run_length:].strip():
        return False

    if indent_columns > CLOSING_FENCE_MAX_INDENT:
        return False

    ctx.state = ParserState.NORMAL
    ctx.fence_char = None
    ctx.fence_length = 0
    ctx.fence_indent_columns = 0
    return True


def _starts_block(line: str) -> bool:
    return bool(
        CODE_FENCE_PATTERN.match(line)
        or ATX_HEADING_PATTERN.match(line)
        or THEMATIC_BREAK_PATTERN.match(line)
        or QUOTE_MARK_PATTERN.match(line)
        or BULLET_MARK_PATTERN.match(line)
        or ORDERED_MARK_PATTERN.match(line)
    )


def _interrupts_paragraph(line: str) -> bool:
    if (
        CODE_FENCE_PATTERN.match(line)
        or ATX_HEADING_PATTERN.match(line)
        or THEMATIC_BREAK_PATTERN.match(line)
        or QUOTE_MARK_PATTERN.match(line)
    ):
        return True
    bullet = BULLET_MARK_PATTERN.match(line)
    if bullet:
        return bool(line[bullet.end() :].strip())
    ordered = ORDERED_MARK_PATTERN.match(line)
    if ordered:
        return ordered.group("mark")[:-1] == "1" and bool(line[ordered.end() :].strip())
    return False


def build_syntax_tree(text: str) -> SyntaxTree:
    """Build a syntax tree for `text`.

    Never raises: any text yields a tree, with unrecognized syntax left as
    plain paragraph content.

    Args:
        text: Markdown source.

    Returns:
        SyntaxTree: Tree rooted at a ``Document`` node covering the text.

    Examples:
        tree = build_syntax_tree("# Title\\n\\nParagraph")
        [node.name for node in tree.iter_nodes()]
        # ['Document', 'ATXHeading1', 'HeaderMark', 'Paragraph']
    """
    state = TextState(text)
    segments = []
    for number in range(1, state.line_count + 1):
        line = state.line(number)
        segments.append(Segment(line.start, line.text))

    top = SyntaxNode("Document", 0, len(text))
    _BlockScanner().scan(top, segments)
    top.finalize()
    return SyntaxTree(text, top)


class _BlockScanner:
    """Line-oriented block scanner.

    Works on `Segment` lists so that blockquote and list item content can be
    rescanned recursively with their prefixes stripped while keeping absolute
    offsets.
    """

    def scan(self, parent: SyntaxNode, segments: list[Segment], depth: int = 0) -> None:
        i = 0
        while i < len(segments):
            segment = segments[i]
            if segment.blank:
                i += 1
                continue

            # Deeply nested containers are kept as plain paragraphs
            if depth >= _MAX_BLOCK_DEPTH:
                i = self._paragraph(parent, segments, i)
                continue

            ctx = ParserContext()
            fence_match = _try_open_fence(ctx, segment.text)
            if fence_match:
                i = self._fenced_code(parent, segments, i, ctx, fence_match)
            elif ATX_HEADING_PATTERN.match(segment.text):
                self._atx_heading(parent, segment)
                i += 1
            elif THEMATIC_BREAK_PATTERN.match(segment.text):
                offset = segment.indent()
                parent.add(SyntaxNode("HorizontalRule", segment.start + offset, segment.end))
                i += 1
            elif QUOTE_MARK_PATTERN.match(segment.text):
                i = self._blockquote(parent, segments, i, depth)
            elif BULLET_MARK_PATTERN.match(segment.text) or ORDERED_MARK_PATTERN.match(
                segment.text
            ):
                i = self._list(parent, segments, i, depth)
            elif _leading_whitespace_columns(segment.text) >= 4:
                i = self._indented_code(parent, segments, i)
            else:
                i = self._paragraph(parent, segments, i)

    def _fenced_code(
        self,
        parent: SyntaxNode,
        segments: list[Segment],
        index: int,
        ctx: ParserContext,
        fence_match: re.Match,
    ) -> int:
        opening = segments[index]
        fence_start = opening.start + fence_match.end("indent")
        fence_end = opening.start + fence_match.end("fence")
        node = parent.add(SyntaxNode("FencedCode", fence_start, opening.end))
        node.add(SyntaxNode("CodeMark", fence_start, fence_end))

        info = fence_match.group("info")
        words = info.split()
        if words:
            info_start = fence_end + info.index(words[0])
            node.add(SyntaxNode("CodeInfo", info_start, info_start + len(words[0])))

        i = index + 1
        body_start = body_end = None
        while i < len(segments):
            segment = segments[i]
            if _try_close_fence(ctx, segment.text):
                mark_start = segment.start + (len(segment.text) - len(segment.text.lstrip(" \t")))
                mark_end = mark_start + len(segment.text.strip())
                node.add(SyntaxNode("CodeMark", mark_start, mark_end))
                node.end = segment.end
                i += 1
                break
            if body_start is None:
                body_start = segment.start
            body_end = segment.end
            node.end = segment.end
            i += 1

        if body_start is not None and body_end > body_start:
            node.add(SyntaxNode("CodeText", body_start, body_end))
        return i

    def _atx_heading(self, parent: SyntaxNode, segment: Segment) -> None:
        match = ATX_HEADING_PATTERN.match(segment.text)
        level = len(match.group("mark"))
        start = segment.start + match.end("indent")
        node = parent.add(SyntaxNode(f"ATXHeading{level}", start, segment.end))
        node.add(SyntaxNode("HeaderMark", start, start + level))

        rest = segment.text[match.end() :]
        body = rest.strip(" \t")
        if not body:
            return
        body_offset = match.end() + (len(rest) - len(rest.lstrip(" \t")))
        closing = _CLOSING_HEADING_SEQUENCE.search(body)
        if closing:
            node.add(
                SyntaxNode(
                    "HeaderMark",
                    segment.start + body_offset + closing.start(1),
                    segment.start + body_offset + closing.end(1),
                )
            )
            body = body[: closing.start()]
        if body:
            _InlineScanner(node, Segment(segment.start + body_offset, body)).scan()

    def _blockquote(
        self, parent: SyntaxNode, segments: list[Segment], index: int, depth: int
    ) -> int:
        node = parent.add(SyntaxNode("Blockquote", segments[index].start, segments[index].end))
        inner: list[Segment] = []

        i = index
        while i < len(segments):
            segment = segments[i]
            match = QUOTE_MARK_PATTERN.match(segment.text)
            if not match:
                break
            mark_start = segment.start + match.start("mark")
            if i == index:
                node.start = mark_start
            node.add(SyntaxNode("QuoteMark", mark_start, mark_start + 1))
            content = segment.advance(match.end("mark"))
            if content.text[:1] in (" ", "\t"):
                content = content.advance(1)
            inner.append(content)
            node.end = segment.end
            i += 1

        self.scan(node, inner, depth + 1)
        return i

    def _list(self, parent: SyntaxNode, segments: list[Segment], index: int, depth: int) -> int:
        first = segments[index]
        bullet = BULLET_MARK_PATTERN.match(first.text)
        pattern = BULLET_MARK_PATTERN if bullet else ORDERED_MARK_PATTERN
        marker_char = (bullet or pattern.match(first.text)).group("mark")[-1]
        node = parent.add(
            SyntaxNode("BulletList" if bullet else "OrderedList", first.start, first.end)
        )

        i = index
        while i < len(segments):
            segment = segments[i]
            match = pattern.match(segment.text)
            if not match or match.group("mark")[-1] != marker_char:
                break

            mark_start = segment.start + match.start("mark")
            mark_end = segment.start + match.end("mark")
            rest = segment.text[match.end("mark") :]
            spaces = len(rest) - len(rest.lstrip(" "))
            if not rest.strip() or spaces > 4:
                spaces = min(spaces, 1)
            width = match.end("mark") + spaces

            item = node.add(SyntaxNode("ListItem", mark_start, segment.end))
            item.add(SyntaxNode("ListMark", mark_start, mark_end))
            inner = [segment.advance(width)]
            i += 1

            while i < len(segments):
                candidate = segments[i]
                if candidate.blank:
                    inner.append(candidate.advance(width))
                    i += 1
                    continue
                if candidate.indent() >= width:
                    inner.append(candidate.advance(width))
                    i += 1
                    continue
                # Lazy paragraph continuation
                if not segments[i - 1].blank and not _starts_block(candidate.text):
                    inner.append(candidate)
                    i += 1
                    continue
                break

            while len(inner) > 1 and inner[-1].blank:
                inner.pop()
            item.end = max(mark_end, inner[-1].end)
            node.end = item.end
            self.scan(item, inner, depth + 1)

        return i

    def _indented_code(self, parent: SyntaxNode, segments: list[Segment], index: int) -> int:
        first = segments[index]
        start = first.start + min(4, first.indent())
        node = parent.add(SyntaxNode("CodeBlock", start, first.end))

        i = index
        last = index
        while i < len(segments):
            segment = segments[i]
            if segment.blank:
                i += 1
                continue
            if _leading_whitespace_columns(segment.text) < 4:
                break
            last = i
            i += 1

        node.end = segments[last].end
        return last + 1

    def _paragraph(self, parent: SyntaxNode, segments: list[Segment], index: int) -> int:
        lines = [segments[index]]
        i = index + 1
        setext: Segment | None = None

        while i < len(segments):
            segment = segments[i]
            if segment.blank:
                break
            if SETEXT_UNDERLINE_PATTERN.match(segment.text):
                setext = segment
                i += 1
                break
            if _interrupts_paragraph(segment.text):
                break
            lines.append(segment)
            i += 1

        first = lines[0]
        start = first.start + (len(first.text) - len(first.text.lstrip(" \t")))
        if setext is not None:
            level = 1 if setext.text.strip()[0] == "=" else 2
            node = parent.add(SyntaxNode(f"SetextHeading{level}", start, setext.end))
            mark_start = setext.start + setext.indent()
            node.add(SyntaxNode("HeaderMark", mark_start, mark_start + len(setext.text.strip())))
        else:
            node = parent.add(SyntaxNode("Paragraph", start, lines[-1].end))

        for line in lines:
            offset = len(line.text) - len(line.text.lstrip(" \t"))
            content = line.advance(offset)
            if content.text:
                _InlineScanner(node, content).scan()
        return i


@dataclass
class _LinkMatch:
    label_end: int
    url_start: int
    url_end: int
    title: tuple[int, int] | None
    close: int


class _InlineScanner:
    """Scans one line segment for inline code, links, autolinks and emphasis."""

    def __init__(self, parent: SyntaxNode, segment: Segment):
        self.parent = parent
        self.base = segment.start
        self.value = segment.text
        self.code_spans = {start: end for start, end in find_inline_code_spans(segment.text)}

    def scan(self) -> None:
        self._scan(self.parent, 0, len(self.value))

    def _node(self, parent: SyntaxNode, name: str, start: int, end: int) -> SyntaxNode:
        return parent.add(SyntaxNode(name, self.base + start, self.base + end))

    def _scan(self, parent: SyntaxNode, lo: int, hi: int, depth: int = 0) -> None:
        if depth > _MAX_INLINE_DEPTH:
            return
        value = self.value
        i = lo
        while i < hi:
            character = value[i]

            if character == "\\":
                i += 2
                continue

            if character == "`":
                end = self.code_spans.get(i)
                run = self._run_length(i, hi)
                if end is not None and end <= hi:
                    node = self._node(parent, "InlineCode", i, end)
                    self._node(node, "CodeMark", i, i + run)
                    self._node(node, "CodeMark", end - run, end)
                    i = end
                else:
                    i += run
                continue

            if character == "<":
                autolink = AUTOLINK_PATTERN.match(value, i, hi)
                if autolink:
                    end = autolink.end()
                    node = self._node(parent, "Autolink", i, end)
                    self._node(node, "LinkMark", i, i + 1)
                    self._node(node, "URL", i + 1, end - 1)
                    self._node(node, "LinkMark", end - 1, end)
                    i = end
                    continue

            if character == "[":
                found = self._match_link(i, hi)
                if found is not None:
                    image = i > lo and value[i - 1] == "!" and not is_escaped(value, i - 1)
                    start = i - 1 if image else i
                    node = self._node(parent, "Image" if image else "Link", start, found.close + 1)
                    self._node(node, "LinkMark", start, i + 1)
                    self._scan(node, i + 1, found.label_end, depth + 1)
                    self._node(node, "LinkMark", found.label_end, found.label_end + 1)
                    self._node(node, "LinkMark", found.label_end + 1, found.label_end + 2)
                    if found.url_end > found.url_start:
                        self._node(node, "URL", found.url_start, found.url_end)
                    if found.title is not None:
                        self._node(node, "LinkTitle", *found.title)
                    self._node(node, "LinkMark", found.close, found.close + 1)
                    i = found.close + 1
                    continue

            if character in "*_":
                i = self._emphasis(parent, i, lo, hi, depth)
                continue

            i += 1

    def _run_length(self, position: int, hi: int) -> int:
        character = self.value[position]
        end = position
        while end < hi and self.value[end] == character:
            end += 1
        return end - position

    def _emphasis(self, parent: SyntaxNode, i: int, lo: int, hi: int, depth: int) -> int:
        value = self.value
        character = value[i]
        opening = self._run_length(i, hi)
        run_end = i + opening

        if run_end >= hi or value[run_end].isspace():
            return run_end
        if character == "_" and i > lo and value[i - 1].isalnum():
            return run_end

        closing = self._find_closing_run(character, run_end, hi)
        if closing is None:
            return run_end
        close_start, close_end = closing
        closing_length = close_end - close_start
        size = 2 if opening >= 2 and closing_length >= 2 else 1

        if opening == closing_length:
            open_start, close_mark_end = i, close_end
        else:
            open_start, close_mark_end = run_end - size, close_start + size

        name = "StrongEmphasis" if size == 2 else "Emphasis"
        node = self._node(parent, name, open_start, close_mark_end)
        self._node(node, "EmphasisMark", open_start, open_start + size)
        self._scan(node, open_start + size, close_mark_end - size, depth + 1)
        self._node(node, "EmphasisMark", close_mark_end - size, close_mark_end)
        return close_mark_end

    def _find_closing_run(self, character: str, start: int, hi: int) -> tuple[int, int] | None:
        value = self.value
        k = start
        while k < hi:
            current = value[k]
            if current == "\\":
                k += 2
                continue
            if current == "`":
                end = self.code_spans.get(k)
                k = end if end is not None and end <= hi else k + self._run_length(k, hi)
                continue
            if current != character:
                k += 1
                continue

            run_end = k + self._run_length(k, hi)
            right_flanking = not value[k - 1].isspace()
            intraword = character == "_" and run_end < hi and value[run_end].isalnum()
            if right_flanking and not intraword:
                return k, run_end
            k = run_end
        return None

    def _match_link(self, start: int, hi: int) -> _LinkMatch | None:
        value = self.value

        # Find the matching ']', handling nested brackets and escaped characters
        j = start + 1
        depth = 1
        while j < hi and depth > 0:
            if value[j] == "\\" and j + 1 < hi:
                j += 2
                continue
            if value[j] == "[":
                depth += 1
            elif value[j] == "]":
                depth -= 1
            j += 1
        if depth:
            return None

        label_end = j - 1
        if j >= hi or value[j] != "(":
            return None

        k = j + 1
        while k < hi and value[k] in " \t":
            k += 1
        url_start = k

        if k < hi and value[k] == "<":
            # Angle-bracketed URL: skip parenthesis balancing
            k += 1
            while k < hi and value[k] != ">":
                k += 2 if value[k] == "\\" and k + 1 < hi else 1
            if k >= hi:
                return None
            k += 1
        else:
            paren_depth = 0
            while k < hi:
                current = value[k]
                if current == "\\" and k + 1 < hi:
                    k += 2
                    continue
                if current in " \t":
                    break
                if current == "(":
                    paren_depth += 1
                elif current == ")":
                    if paren_depth == 0:
                        break
                    paren_depth -= 1
                k += 1
        url_end = min(k, hi)

        while k < hi and value[k] in " \t":
            k += 1
        title = None
        if k < hi and value[k] in "\"'(" and k > url_end:
            closer = ")" if value[k] == "(" else value[k]
            t = k + 1
            while t < hi and value[t] != closer:
                t += 2 if value[t] == "\\" and t + 1 < hi else 1
            if t >= hi:
                return None
            title = (k, t + 1)
            k = t + 1
            while k < hi and value[k] in " \t":
                k += 1

        if k >= hi or value[k] != ")":
            return None
        return _LinkMatch(label_end, url_start, url_end, title, k)
