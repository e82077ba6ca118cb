"""Markdown codec: parse text into a document tree and serialize it back."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .config import EditorConfig
from .exceptions import DocumentTooLargeError, ParseError
from .models import CODE, Mark, MarkType, Node, NodeType, code_block, doc, link, text

logger = logging.getLogger(__name__)

_MARKDOWN = MarkdownIt("commonmark", {"html": False})

_BLOCK_OPEN_TYPES = {
    "paragraph_open": NodeType.PARAGRAPH,
    "heading_open": NodeType.HEADING,
    "blockquote_open": NodeType.BLOCKQUOTE,
    "bullet_list_open": NodeType.BULLET_LIST,
    "ordered_list_open": NodeType.ORDERED_LIST,
    "list_item_open": NodeType.LIST_ITEM,
}
# Emphasis may contain links; code is always innermost
_MARK_RANK = {MarkType.ITALIC: 0, MarkType.BOLD: 1, MarkType.LINK: 2, MarkType.CODE: 3}
_LIST_TYPES = (NodeType.BULLET_LIST, NodeType.ORDERED_LIST)
_TRAILING_CLOSING_HASHES = re.compile(r"(^|[ \t])(#+)$")

_BACKTICK_RUN = re.compile(r"`+")
_URL_SCHEME = re.compile(r"^\w+:")
_INLINE_ESCAPE = re.compile(r"[`*\\\[\]_]|<(?=[A-Za-z/!?])|&(?=#?[A-Za-z0-9]+;)")
_LINE_START_ESCAPES = (
    (re.compile(r"^([ \t]*)([-=>]|\+(?=[ \t]|$)|~(?=~~))"), r"\1\\\2"),
    (re.compile(r"^([ \t]*)(#{1,6})(?=[ \t]|$)"), r"\1\\\2"),
    (re.compile(r"^([ \t]*\d{1,9})([.)])(?=[ \t]|$)"), r"\1\\\2"),
)


def parse_markdown(markdown: str | None, config: EditorConfig | None = None) -> Node:
    """Parse Markdown text into a document tree.

    Recoverable input is normalized rather than rejected: constructs outside
    the supported subset are kept as literal text and soft line breaks become
    ``"\\n"`` inside text nodes.

    Args:
        markdown: Markdown source. None is treated as an empty document.
        config: Configuration providing the document size limit. Defaults to a
            new `EditorConfig` when omitted.

    Returns:
        Node: Document node whose children are the top-level blocks.

    Raises:
        DocumentTooLargeError: If the text exceeds `config.max_document_size`.
        ParseError: If the input is not text or cannot be tokenized.

    Examples:
        parse_markdown("# Title\\n\\n- a\\n- b")
    """
    config = config or EditorConfig()
    if markdown is None:
        markdown = ""
    if not isinstance(markdown, str):
        raise ParseError(f"Expected Markdown text, got {type(markdown).__name__}")
    if len(markdown) > config.max_document_size:
        raise DocumentTooLargeError(len(markdown), config.max_document_size)

    try:
        tokens = _MARKDOWN.parse(markdown)
    except RecursionError as error:
        raise ParseError("Markdown is nested too deeply to tokenize") from error

    document = _build_document(tokens)
    logger.debug(
        "Parsed %d characters into %d top-level blocks", len(markdown), document.child_count
    )
    return document


def serialize_markdown(tree: Node) -> str:
    """Serialize a document tree to Markdown text.

    Never fails. Trailing whitespace is trimmed from the result.

    Args:
        tree: Document node, or any block node to serialize on its own.

    Returns:
        str: Markdown text.

    Examples:
        serialize_markdown(doc(heading(1, text("Title"))))  # "# Title"
    """
    state = _SerializerState()
    if tree.type is NodeType.DOC:
        state.render_content(tree)
    else:
        state.render_content(doc(tree))
    markdown = state.out.rstrip()
    logger.debug(
        "Serialized %d top-level blocks into %d characters", tree.child_count, len(markdown)
    )
    return markdown


def parse_top_level_blocks(
    markdown: str | None, config: EditorConfig | None = None
) -> tuple[Node, ...]:
    """Parse Markdown and return its top-level blocks.

    Raises:
        ParseError: Under the same conditions as `parse_markdown`.

    Examples:
        parse_top_level_blocks("# A\\n\\nB")  # (heading, paragraph)
    """
    return parse_markdown(markdown, config).content


def serialize_top_level_blocks(nodes: Iterable[Node]) -> str:
    """Serialize a run of top-level blocks as a standalone document."""
    return serialize_markdown(doc(*nodes))


class MarkdownCodec:
    """Codec bound to one editor configuration.

    Examples:
        codec = MarkdownCodec(EditorConfig(max_document_size=1_000_000))
        codec.serialize(codec.parse("*hi*"))  # "*hi*"
    """

    def __init__(self, config: EditorConfig | None = None):
        self.config = config or EditorConfig()

    def parse(self, markdown: str | None) -> Node:
        return parse_markdown(markdown, self.config)

    def serialize(self, tree: Node) -> str:
        return serialize_markdown(tree)

    def parse_top_level_blocks(self, markdown: str | None) -> tuple[Node, ...]:
        return parse_top_level_blocks(markdown, self.config)

    def serialize_top_level_blocks(self, nodes: Iterable[Node]) -> str:
        return serialize_top_level_blocks(nodes)


@dataclass
class _Frame:
    type: NodeType
    attrs: dict[str, object] = field(default_factory=dict)
    content: list[Node] = field(default_factory=list)

    def finish(self) -> Node:
        return Node(self.type, content=tuple(self.content), attrs=self.attrs)


def _build_document(tokens: list[Token]) -> Node:
    stack = [_Frame(NodeType.DOC)]

    for token in tokens:
        node_type = _BLOCK_OPEN_TYPES.get(token.type)
        if node_type is not None:
            stack.append(_Frame(node_type, _block_attrs(token, node_type)))
            # Tight lists mark their item paragraphs hidden
            if (
                node_type is NodeType.PARAGRAPH
                and not token.hidden
                and len(stack) >= 4
                and stack[-2].type is NodeType.LIST_ITEM
            ):
                stack[-3].attrs["tight"] = False
            continue

        opening_type = token.type.replace("_close", "_open")
        if token.type.endswith("_close") and opening_type in _BLOCK_OPEN_TYPES:
            frame = stack.pop()
            stack[-1].content.append(frame.finish())
            continue

        if token.type == "inline":
            in_heading = stack[-1].type is NodeType.HEADING
            stack[-1].content.extend(_build_inline(token.children or [], in_heading))
        elif token.type == "fence":
            info = token.info.strip()
            language = info.split()[0] if info else None
            code = _without_trailing_newline(token.content)
            stack[-1].content.append(code_block(code, language))
        elif token.type == "code_block":
            stack[-1].content.append(code_block(_without_trailing_newline(token.content)))
        elif token.type == "hr":
            stack[-1].content.append(Node(NodeType.HORIZONTAL_RULE))
        else:
            logger.debug("Skipping unsupported block token %s", token.type)

    # Unbalanced token streams still produce a tree
    while len(stack) > 1:
        frame = stack.pop()
        stack[-1].content.append(frame.finish())

    return stack[0].finish()


def _block_attrs(token: Token, node_type: NodeType) -> dict[str, object]:
    if node_type is NodeType.HEADING:
        return {"level": int(token.tag[1:])}
    if node_type is NodeType.ORDERED_LIST:
        start = token.attrGet("start")
        return {"order": int(start) if start is not None else 1, "tight": True}
    if node_type is NodeType.BULLET_LIST:
        return {"tight": True}
    return {}


def _build_inline(children: list[Token], in_heading: bool = False) -> list[Node]:
    content: list[Node] = []
    active: list[Mark] = []

    def marks() -> tuple[Mark, ...]:
        # Nested emphasis of one kind collapses into a single mark
        return tuple(_sorted_marks(dict.fromkeys(active)))

    for token in children:
        kind = token.type
        if kind in ("text", "text_special"):
            _append_inline(content, text(token.content, *marks()))
        elif in_heading and kind in ("softbreak", "hardbreak"):
            # Headings are written on one line
            _append_inline(content, text(" ", *marks()))
        elif kind == "softbreak":
            _append_inline(content, text("\n", *marks()))
        elif kind == "hardbreak":
            content.append(Node(NodeType.HARD_BREAK, marks=marks()))
        elif kind == "code_inline":
            _append_inline(content, text(token.content, *marks(), CODE))
        elif kind == "em_open":
            active.append(Mark(MarkType.ITALIC))
        elif kind == "strong_open":
            active.append(Mark(MarkType.BOLD))
        elif kind == "link_open":
            active.append(link(str(token.attrGet("href") or ""), token.attrGet("title") or None))
        elif kind in ("em_close", "strong_close", "link_close"):
            if active:
                active.pop()
        elif kind == "image":
            literal = Node(
                NodeType.TEXT, text=_image_source(token), marks=marks(), attrs={"literal": True}
            )
            _append_inline(content, literal)
        else:
            _append_inline(content, text(token.content, *marks()))

    return content


def _append_inline(content: list[Node], node: Node) -> None:
    if node.is_text and not node.text:
        return
    if (
        content
        and node.is_text
        and content[-1].is_text
        and content[-1].marks == node.marks
        and content[-1].attrs == node.attrs
    ):
        content[-1] = content[-1].with_text(content[-1].text + node.text)
    else:
        content.append(node)


def _image_source(token: Token) -> str:
    title = token.attrGet("title")
    suffix = f' "{title}"' if title else ""
    return f"![{token.content}]({token.attrGet('src') or ''}{suffix})"


def _without_trailing_newline(value: str) -> str:
    return value[:-1] if value.endswith("\n") else value


def _longest_backtick_run(value: str) -> int:
    return max((len(run) for run in _BACKTICK_RUN.findall(value)), default=0)


def _escape_inline(value: str) -> str:
    def replace(match: re.Match) -> str:
        character = match.group(0)
        position = match.start()
        if (
            character == "_"
            and 0 < position < len(value) - 1
            and value[position - 1].isalnum()
            and value[position + 1].isalnum()
        ):
            return character
        return "\\" + character

    return _INLINE_ESCAPE.sub(replace, value)


def _escape_line_start(value: str) -> str:
    for pattern, replacement in _LINE_START_ESCAPES:
        value = pattern.sub(replacement, value, count=1)
    return value


@dataclass(frozen=True)
class _MarkSpec:
    expel_whitespace: bool = False
    escape: bool = True


_MARK_SPECS = {
    MarkType.ITALIC: _MarkSpec(expel_whitespace=True),
    MarkType.BOLD: _MarkSpec(expel_whitespace=True),
    MarkType.LINK: _MarkSpec(),
    MarkType.CODE: _MarkSpec(escape=False),
}


class _SerializerState:
    """Accumulates Markdown output while walking a document tree.

    `delim` is the prefix written at the start of every line of the block being
    rendered (``"> "`` inside quotes, indentation inside list items); `closed`
    holds the last finished block so the separator before the next one can be
    chosen lazily.
    """

    def __init__(self):
        self.out = ""
        self.delim = ""
        self.closed: Node | None = None
        self.in_tight_list = False
        self.in_autolink = False
        self.at_block_start = False

    def _at_blank(self) -> bool:
        return not self.out or self.out.endswith("\n")

    def flush_close(self, size: int = 2) -> None:
        if self.closed is None:
            return
        if not self._at_blank():
            self.out += "\n"
        if size > 1:
            delim_min = self.delim.rstrip()
            self.out += (delim_min + "\n") * (size - 1)
        self.closed = None

    def write(self, content: str = "") -> None:
        self.flush_close()
        if self.delim and self._at_blank():
            self.out += self.delim
        if content:
            self.out += content

    def close_block(self, node: Node) -> None:
        self.closed = node

    def wrap_block(
        self, delim: str, first_delim: str | None, node: Node, render: Callable[[], None]
    ) -> None:
        old = self.delim
        self.write(first_delim if first_delim is not None else delim)
        self.delim += delim
        render()
        self.delim = old
        self.close_block(node)

    def text(self, value: str, escape: bool = True) -> None:
        lines = value.split("\n")
        for index, line in enumerate(lines):
            line_start = self.at_block_start or index > 0 or self._at_blank()
            self.write()
            if escape and not self.in_autolink:
                line = _escape_inline(line)
                if line_start:
                    line = _escape_line_start(line)
            self.out += line
            if index != len(lines) - 1:
                self.out += "\n"

    def render(self, node: Node, parent: Node, index: int) -> None:
        renderer = _NODE_RENDERERS.get(node.type)
        if renderer is not None:
            renderer(self, node, parent, index)

    def render_content(self, parent: Node) -> None:
        for index, child in enumerate(parent.content):
            self.render(child, parent, index)

    def render_list(self, node: Node, delim: str, first_delim: Callable[[int], str]) -> None:
        if self.closed is not None and self.closed.type is node.type:
            self.flush_close(3)
        elif self.in_tight_list:
            self.flush_close(1)

        is_tight = bool(node.attr("tight", False))
        previous_tight = self.in_tight_list
        self.in_tight_list = is_tight
        for index, child in enumerate(node.content):
            if index and is_tight:
                self.flush_close(1)
            self.wrap_block(
                delim,
                first_delim(index),
                node,
                lambda child=child, index=index: self.render(child, node, index),
            )
        self.in_tight_list = previous_tight

    def render_inline(self, parent: Node, from_block_start: bool = True) -> None:
        self.at_block_start = from_block_start
        active: list[Mark] = []
        trailing = ""

        def progress(node: Node | None, index: int) -> None:
            nonlocal trailing
            marks = _sorted_marks(node.marks) if node is not None else []

            # A break only keeps the marks that continue after it
            if node is not None and node.type is NodeType.HARD_BREAK:
                following = parent.content[index + 1] if index + 1 < parent.child_count else None
                marks = [
                    mark
                    for mark in marks
                    if following is not None
                    and mark in following.marks
                    and (not following.is_text or following.text.strip())
                ]

            leading = trailing
            trailing = ""

            if (
                node is not None
                and node.is_text
                and any(
                    _MARK_SPECS[mark.type].expel_whitespace and mark not in active
                    for mark in marks
                )
            ):
                stripped = node.text.lstrip()
                lead = node.text[: len(node.text) - len(stripped)]
                if lead:
                    leading += lead
                    node = node.with_text(stripped) if stripped else None
                    if node is None:
                        marks = list(active)

            if (
                node is not None
                and node.is_text
                and any(
                    _MARK_SPECS[mark.type].expel_whitespace
                    and (
                        index == parent.child_count - 1
                        or mark not in parent.content[index + 1].marks
                    )
                    for mark in marks
                )
            ):
                stripped = node.text.rstrip()
                trail = node.text[len(stripped) :]
                if trail:
                    trailing = trail
                    node = node.with_text(stripped) if stripped else None
                    if node is None:
                        marks = list(active)

            inner = marks[-1] if marks else None
            no_escape = inner is not None and not _MARK_SPECS[inner.type].escape
            wanted = marks[: len(marks) - (1 if no_escape else 0)]

            keep = 0
            while keep < len(active) and active[keep] in wanted:
                keep += 1

            while keep < len(active):
                self.text(self.mark_string(active.pop(), False, parent, index), False)

            if leading:
                self.text(leading)

            if node is not None:
                # Marks that run further open first so they close last
                opening = sorted(
                    (mark for mark in wanted if mark not in active),
                    key=lambda mark: (-_mark_run_end(parent, index, mark), _MARK_RANK[mark.type]),
                )
                for added in opening:
                    active.append(added)
                    self.text(self.mark_string(added, True, parent, index), False)
                    self.at_block_start = False

                if no_escape and node.is_text:
                    self.text(
                        self.mark_string(inner, True, parent, index)
                        + node.text
                        + self.mark_string(inner, False, parent, index + 1),
                        False,
                    )
                else:
                    self.render(node, parent, index)
                self.at_block_start = False

        for index, child in enumerate(parent.content):
            progress(child, index)
        progress(None, parent.child_count)
        self.at_block_start = False

    def mark_string(self, mark: Mark, opening: bool, parent: Node, index: int) -> str:
        if mark.type is MarkType.BOLD:
            return "**"
        if mark.type is MarkType.ITALIC:
            return "*"
        if mark.type is MarkType.CODE:
            node = parent.content[index] if opening else parent.content[index - 1]
            return _inline_ticks(node, opening)

        if opening:
            following = parent.content[index + 1] if index + 1 < parent.child_count else None
            if _is_plain_link(mark, parent.content[index]) and (
                following is None or mark not in following.marks
            ):
                self.in_autolink = True
                return "<"
            return "["

        if self.in_autolink:
            self.in_autolink = False
            return ">"
        href = re.sub(r'[()"]', r"\\\g<0>", mark.href or "")
        title = ""
        if mark.title:
            escaped_title = mark.title.replace('"', '\\"')
            title = f' "{escaped_title}"'
        return f"]({href}{title})"


def _sorted_marks(marks: Iterable[Mark]) -> list[Mark]:
    return sorted(marks, key=lambda mark: _MARK_RANK[mark.type])


def _mark_run_end(parent: Node, index: int, mark: Mark) -> int:
    end = index
    while end + 1 < parent.child_count and mark in parent.content[end + 1].marks:
        end += 1
    return end


def _inline_ticks(node: Node, opening: bool) -> str:
    if not node.is_text:
        return "`"
    longest = _longest_backtick_run(node.text)
    ticks = "`" * (longest + 1)
    if longest == 0:
        return ticks
    return f"{ticks} " if opening else f" {ticks}"


def _is_plain_link(mark: Mark, node: Node) -> bool:
    href = mark.href or ""
    if mark.title or not _URL_SCHEME.match(href) or re.search(r"[\s<>]", href):
        return False
    return node.is_text and len(node.marks) == 1 and node.text == href


def _render_blockquote(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    state.wrap_block("> ", None, node, lambda: state.render_content(node))


def _render_code_block(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    fence = "`" * max(3, _longest_backtick_run(node.text) + 1)
    language = str(node.attr("language") or "").strip()
    if language == "plaintext":
        language = ""
    state.write(f"{fence}{language}\n")
    state.text(node.text, False)
    state.write("\n")
    state.write(fence)
    state.close_block(node)


def _render_heading(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    level = min(max(int(node.attr("level", 1)), 1), 6)
    state.write("#" * level + " ")
    content_start = len(state.out)
    state.render_inline(_single_line_heading(node), False)

    # A trailing run of hashes would be read as a closing sequence
    content = state.out[content_start:]
    state.out = state.out[:content_start] + _TRAILING_CLOSING_HASHES.sub(r"\1\\\2", content)
    state.close_block(node)


def _single_line_heading(node: Node) -> Node:
    inlines = []
    for child in node.content:
        if child.type is NodeType.HARD_BREAK:
            inlines.append(text(" ", *child.marks))
        elif child.is_text and "\n" in child.text:
            inlines.append(child.with_text(child.text.replace("\n", " ")))
        else:
            inlines.append(child)
    return node.with_content(inlines)


def _render_horizontal_rule(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    state.write("---")
    state.close_block(node)


def _render_bullet_list(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    state.render_list(node, "  ", lambda item_index: "- ")


def _render_ordered_list(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    order = node.attr("order")
    start = int(order) if order is not None else 1
    max_width = len(str(start + node.child_count - 1))
    spacer = " " * (max_width + 2)

    def number(item_index: int) -> str:
        value = str(start + item_index)
        return " " * (max_width - len(value)) + value + ". "

    state.render_list(node, spacer, number)


def _render_list_item(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    # "- - -" and "- ---" read as thematic breaks, so these start on the next line
    first = node.content[0] if node.content else None
    if first is not None and (
        first.type in _LIST_TYPES or first.type is NodeType.HORIZONTAL_RULE
    ):
        state.out = state.out.rstrip(" ") + "\n"
    state.render_content(node)


def _render_paragraph(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    state.render_inline(node)
    state.close_block(node)


def _render_hard_break(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    if any(sibling.type is not NodeType.HARD_BREAK for sibling in parent.content[index + 1 :]):
        state.write("\\\n")


def _render_text(state: _SerializerState, node: Node, parent: Node, index: int) -> None:
    state.text(node.text, escape=not node.attr("literal", False))


_NODE_RENDERERS: dict[NodeType, Callable[[_SerializerState, Node, Node, int], None]] = {
    NodeType.DOC: lambda state, node, parent, index: state.render_content(node),
    NodeType.BLOCKQUOTE: _render_blockquote,
    NodeType.CODE_BLOCK: _render_code_block,
    NodeType.HEADING: _render_heading,
    NodeType.HORIZONTAL_RULE: _render_horizontal_rule,
    NodeType.BULLET_LIST: _render_bullet_list,
    NodeType.ORDERED_LIST: _render_ordered_list,
    NodeType.LIST_ITEM: _render_list_item,
    NodeType.PARAGRAPH: _render_paragraph,
    NodeType.HARD_BREAK: _render_hard_break,
    NodeType.TEXT: _render_text,
}
