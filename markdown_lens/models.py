"""Data models for markdown-lens."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from functools import cached_property

# Syntax-tree node names produced by ``syntax.build_syntax_tree``.
MARKER_NODE_NAMES = (
    "HeaderMark",
    "EmphasisMark",
    "CodeMark",
    "LinkMark",
    "QuoteMark",
    "ListMark",
)
SPACED_MARKER_NAMES = ("HeaderMark", "ListMark", "QuoteMark")
CODE_INFO_NAME = "CodeInfo"
FENCED_CODE_NAME = "FencedCode"
FENCE_MARK_NAME = "CodeMark"
HEADING_SCALE = (1.6, 1.4, 1.25, 1.1, 1.0, 0.95)


class NodeType(Enum):
    """Block and inline node types of the document tree."""

    DOC = "doc"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    BULLET_LIST = "bullet_list"
    ORDERED_LIST = "ordered_list"
    LIST_ITEM = "list_item"
    CODE_BLOCK = "code_block"
    HORIZONTAL_RULE = "horizontal_rule"
    HARD_BREAK = "hard_break"
    TEXT = "text"


class MarkType(Enum):
    """Inline marks that can be applied to text nodes."""

    LINK = "link"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"


@dataclass(frozen=True)
class Mark:
    """Inline mark carried by a text node.

    Attributes:
        type: Kind of mark.
        href: Link target, for link marks.
        title: Optional link title, for link marks.
    """

    type: MarkType
    href: str | None = None
    title: str | None = None


BOLD = Mark(MarkType.BOLD)
ITALIC = Mark(MarkType.ITALIC)
CODE = Mark(MarkType.CODE)


def link(href: str, title: str | None = None) -> Mark:
    return Mark(MarkType.LINK, href=href, title=title or None)


@dataclass(frozen=True)
class Node:
    """Immutable document tree node.

    Attributes:
        type: Node type.
        content: Child nodes, in document order.
        text: Literal text for text nodes and code blocks.
        marks: Inline marks for text nodes.
        attrs: Type-specific attributes (``level``, ``order``, ``tight``,
            ``language``).
    """

    type: NodeType
    content: tuple[Node, ...] = ()
    text: str = ""
    marks: tuple[Mark, ...] = ()
    attrs: Mapping[str, object] = field(default_factory=dict)

    @property
    def is_text(self) -> bool:
        return self.type is NodeType.TEXT

    @property
    def child_count(self) -> int:
        return len(self.content)

    @property
    def text_content(self) -> str:
        if self.type in (NodeType.TEXT, NodeType.CODE_BLOCK):
            return self.text
        return "".join(child.text_content for child in self.content)

    def attr(self, name: str, default: object = None) -> object:
        return self.attrs.get(name, default)

    def with_text(self, value: str) -> Node:
        return replace(self, text=value)

    def with_content(self, content: Iterable[Node]) -> Node:
        return replace(self, content=tuple(content))


def doc(*blocks: Node) -> Node:
    return Node(NodeType.DOC, content=blocks)


def paragraph(*inlines: Node) -> Node:
    return Node(NodeType.PARAGRAPH, content=inlines)


def heading(level: int, *inlines: Node) -> Node:
    return Node(NodeType.HEADING, content=inlines, attrs={"level": level})


def blockquote(*blocks: Node) -> Node:
    return Node(NodeType.BLOCKQUOTE, content=blocks)


def bullet_list(*items: Node, tight: bool = True) -> Node:
    return Node(NodeType.BULLET_LIST, content=items, attrs={"tight": tight})


def ordered_list(*items: Node, order: int = 1, tight: bool = True) -> Node:
    return Node(NodeType.ORDERED_LIST, content=items, attrs={"order": order, "tight": tight})


def list_item(*blocks: Node) -> Node:
    return Node(NodeType.LIST_ITEM, content=blocks)


def code_block(code: str, language: str | None = None) -> Node:
    return Node(NodeType.CODE_BLOCK, text=code, attrs={"language": language})


def horizontal_rule() -> Node:
    return Node(NodeType.HORIZONTAL_RULE)


def hard_break() -> Node:
    return Node(NodeType.HARD_BREAK)


def text(value: str, *marks: Mark) -> Node:
    return Node(NodeType.TEXT, text=value, marks=marks)


class EditorMode(Enum):
    """The two interchangeable views over one document."""

    WRITER = "writer"
    SOURCE = "source"


class Origin(Enum):
    """Who produced a change: the user, or a programmatic view sync."""

    USER = "user"
    SYNC = "sync"


class ParserState(Enum):
    """Line scanner states used while building a syntax tree.

    Attributes:
        NORMAL: Default state for regular text.
        IN_FENCED_CODE: Inside a fenced code block.
    """

    NORMAL = auto()
    IN_FENCED_CODE = auto()


@dataclass
class ParserContext:
    """Encapsulate scanner state while walking Markdown lines.

    Attributes:
        state: Current scanner state.
        fence_char: Fence character that opened a fenced code block, if any.
        fence_length: Number of fence characters that opened the block.
        fence_indent_columns: Indentation width preceding the opening fence.
    """

    state: ParserState = ParserState.NORMAL
    fence_char: str | None = None
    fence_length: int = 0
    fence_indent_columns: int = 0


@dataclass(frozen=True)
class MarkerPolicy:
    """Which syntax nodes count as hideable markers.

    Attributes:
        marker_node_names: Node names hidden outside their parent construct.
        spaced_marker_names: Marker names whose single trailing space is
            hidden along with the marker.
        code_info_name: Node name of a fenced block's language tag.
        fenced_code_name: Node name of a fenced code construct.
        fence_mark_name: Node name of fence markers inside that construct.
        hide_fence_code_marks: Whether fence markers are hidden at all.
    """

    marker_node_names: frozenset[str] = frozenset(MARKER_NODE_NAMES)
    spaced_marker_names: frozenset[str] = frozenset(SPACED_MARKER_NAMES)
    code_info_name: str = CODE_INFO_NAME
    fenced_code_name: str = FENCED_CODE_NAME
    fence_mark_name: str = FENCE_MARK_NAME
    hide_fence_code_marks: bool = False


@dataclass(frozen=True)
class RenderPolicy:
    """Selection-independent presentation settings.

    Attributes:
        heading_scale: Scale factor for heading levels 1 to 6.
        code_block_style: Whether fenced code lines are tagged by role.
        show_code_info_badge: Whether fence language tags get a badge mark.
    """

    heading_scale: tuple[float, ...] = HEADING_SCALE
    code_block_style: bool = True
    show_code_info_badge: bool = True

    def scale_for(self, level: int) -> float:
        index = min(max(level, 1), len(self.heading_scale)) - 1
        return self.heading_scale[index]


class DecorationKind(Enum):
    """Visual effect of a decoration.

    Attributes:
        REPLACE: The range is hidden from rendering.
        MARK: The range is styled inline.
        LINE: The line starting at the position is styled.
    """

    REPLACE = "replace"
    MARK = "mark"
    LINE = "line"


@dataclass(frozen=True)
class Decoration:
    start: int
    end: int
    kind: DecorationKind
    css_class: str = ""
    style: str = ""


@dataclass(frozen=True)
class DecorationSet:
    """Position-ordered, immutable collection of decorations.

    Use `DecorationSet.build` to create one from unordered entries; entries of
    the same kind and class that overlap an earlier kept entry are dropped.
    """

    decorations: tuple[Decoration, ...] = ()

    @classmethod
    def build(cls, entries: Iterable[Decoration]) -> DecorationSet:
        ordered = sorted(entries, key=lambda entry: (entry.start, entry.end))
        kept: list[Decoration] = []
        previous: dict[tuple[DecorationKind, str], Decoration] = {}

        for entry in ordered:
            key = (entry.kind, entry.css_class)
            last = previous.get(key)
            if last is not None and (
                entry.start < last.end or (entry.start, entry.end) == (last.start, last.end)
            ):
                continue
            previous[key] = entry
            kept.append(entry)

        return cls(tuple(kept))

    def __iter__(self) -> Iterator[Decoration]:
        return iter(self.decorations)

    def __len__(self) -> int:
        return len(self.decorations)

    def between(self, start: int, end: int) -> list[Decoration]:
        return [entry for entry in self.decorations if entry.start <= end and entry.end >= start]

    def of_kind(self, kind: DecorationKind) -> list[Decoration]:
        return [entry for entry in self.decorations if entry.kind is kind]

    def ranges(self, kind: DecorationKind | None = None) -> list[tuple[int, int]]:
        return [
            (entry.start, entry.end)
            for entry in self.decorations
            if kind is None or entry.kind is kind
        ]


@dataclass(frozen=True)
class Line:
    """One line of text.

    Attributes:
        number: One-based line number.
        start: Offset of the first character.
        end: Offset just past the last character, excluding the newline.
        text: Line content without the newline.
    """

    number: int
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class TextState:
    """Document text plus the current selection.

    Selection bounds are clamped into the text and ordered, so
    ``selection_from <= selection_to`` always holds. The cursor (head) is
    ``selection_to``.

    Examples:
        TextState("hello world", 6, 11)
        TextState("# Title", 3)  # empty selection
    """

    text: str
    selection_from: int = 0
    selection_to: int | None = None

    def __post_init__(self):
        length = len(self.text)
        start = min(max(self.selection_from, 0), length)
        end = start if self.selection_to is None else min(max(self.selection_to, 0), length)
        if start > end:
            start, end = end, start
        object.__setattr__(self, "selection_from", start)
        object.__setattr__(self, "selection_to", end)

    @property
    def head(self) -> int:
        return self.selection_to

    @property
    def empty(self) -> bool:
        return self.selection_from == self.selection_to

    @property
    def selected_text(self) -> str:
        return self.text[self.selection_from : self.selection_to]

    @cached_property
    def line_starts(self) -> tuple[int, ...]:
        starts = [0]
        index = self.text.find("\n")
        while index != -1:
            starts.append(index + 1)
            index = self.text.find("\n", index + 1)
        return tuple(starts)

    @property
    def line_count(self) -> int:
        return len(self.line_starts)

    def line(self, number: int) -> Line:
        starts = self.line_starts
        start = starts[number - 1]
        end = starts[number] - 1 if number < len(starts) else len(self.text)
        return Line(number, start, end, self.text[start:end])

    def line_at(self, position: int) -> Line:
        position = min(max(position, 0), len(self.text))
        return self.line(bisect_right(self.line_starts, position))


@dataclass(frozen=True)
class TextChange:
    """Replace ``text[start:end]`` with `insert` (original coordinates)."""

    start: int
    end: int
    insert: str = ""


@dataclass(frozen=True)
class Selection:
    anchor: int
    head: int | None = None

    def __post_init__(self):
        if self.head is None:
            object.__setattr__(self, "head", self.anchor)


@dataclass(frozen=True)
class Transaction:
    """Atomic edit produced by a command.

    Attributes:
        changes: Non-overlapping replacements in original-text coordinates.
        selection: Selection in the resulting text.
        origin: Who produced the edit.
    """

    changes: tuple[TextChange, ...]
    selection: Selection
    origin: Origin = Origin.USER

    def apply(self, value: str) -> str:
        """Apply the changes to `value` and return the new text.

        Examples:
            Transaction((TextChange(0, 0, "# "),), Selection(2)).apply("Title")  # "# Title"
        """
        parts: list[str] = []
        offset = 0
        for change in sorted(self.changes, key=lambda item: (item.start, item.end)):
            parts.append(value[offset : change.start])
            parts.append(change.insert)
            offset = max(offset, change.end)
        parts.append(value[offset:])
        return "".join(parts)
