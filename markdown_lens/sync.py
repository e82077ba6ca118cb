"""Writer/source mode synchronization and the single-block syntax lens."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .codec import MarkdownCodec, serialize_top_level_blocks
from .exceptions import BlockCountError, ParseError
from .models import EditorMode, Node, Origin, Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModeTransition:
    """Outcome of a mode toggle.

    Attributes:
        accepted: Whether the toggle happened.
        mode: Mode after the toggle; the prior mode when rejected.
        content: Content for `mode`: a document tree in writer mode, Markdown
            text in source mode.
        error: Why the toggle was rejected, if it was.
    """

    accepted: bool
    mode: EditorMode
    content: Node | str
    error: str | None = None


@dataclass(frozen=True)
class ContentPush:
    """Content handed programmatically to one editor surface."""

    mode: EditorMode
    content: Node | str
    origin: Origin = Origin.SYNC


@dataclass(frozen=True)
class SyntaxLens:
    """Raw Markdown of one top-level block opened for editing."""

    index: int
    markdown: str


def toggle_mode(
    mode: EditorMode, content: Node | str, codec: MarkdownCodec | None = None
) -> ModeTransition:
    """Switch between writer and source mode.

    Writer content (a document tree) is serialized for the source view; source
    content (Markdown text) is parsed for the writer view. A failed parse
    rejects the toggle and keeps the prior mode and content.

    Args:
        mode: Current mode.
        content: Current content for `mode`.
        codec: Codec used for the conversion.

    Returns:
        ModeTransition: The new mode and content, or the rejection.

    Examples:
        toggle_mode(EditorMode.SOURCE, "# Title").mode  # EditorMode.WRITER
    """
    codec = codec or MarkdownCodec()
    mode = EditorMode(mode)

    if mode is EditorMode.WRITER:
        return ModeTransition(True, EditorMode.SOURCE, codec.serialize(content))

    try:
        tree = codec.parse(content)
    except ParseError as error:
        logger.warning("Rejected switch to writer mode: %s", error)
        return ModeTransition(False, EditorMode.SOURCE, content, str(error))
    return ModeTransition(True, EditorMode.WRITER, tree)


def open_lens(document: Node, index: int) -> SyntaxLens:
    """Serialize the top-level block at `index` for raw editing.

    Raises:
        IndexError: If `index` does not name a top-level block.
    """
    if not 0 <= index < document.child_count:
        raise IndexError(f"Block index {index} out of range")
    return SyntaxLens(index, serialize_top_level_blocks((document.content[index],)))


def apply_lens_edit(
    document: Node, lens: SyntaxLens, markdown: str, codec: MarkdownCodec | None = None
) -> Node:
    """Replace the lens's block with the block parsed from `markdown`.

    Args:
        document: Current document tree.
        lens: The lens being committed.
        markdown: Edited Markdown for the block.
        codec: Codec used to parse the edit.

    Returns:
        Node: A new document tree; `document` itself is left untouched.

    Raises:
        BlockCountError: If `markdown` does not yield exactly one block.
        ParseError: If `markdown` cannot be parsed.
        IndexError: If the lens no longer points at a block.

    Examples:
        lens = open_lens(tree, 0)
        apply_lens_edit(tree, lens, "## Renamed")
    """
    codec = codec or MarkdownCodec()
    if not 0 <= lens.index < document.child_count:
        raise IndexError(f"Block index {lens.index} out of range")

    blocks = codec.parse_top_level_blocks(markdown)
    if len(blocks) != 1:
        raise BlockCountError(len(blocks))

    content = list(document.content)
    content[lens.index] = blocks[0]
    logger.debug("Replaced block %d with %s", lens.index, blocks[0].type.value)
    return document.with_content(content)


class ModeSynchronizer:
    """Keeps the writer tree and the source text of one document in step.

    Only the surface of the active mode accepts user changes. Content pushed to
    a surface by the synchronizer is tagged `Origin.SYNC`; when the surface
    echoes it back as a change event, it is ignored.

    Args:
        markdown: Initial document text.
        mode: Initial mode.
        codec: Codec shared by all conversions.
        on_push: Callback receiving each `ContentPush`.

    Raises:
        ParseError: If the initial text cannot be parsed.

    Examples:
        sync = ModeSynchronizer("# Title", on_push=surface.receive)
        sync.toggle()
        sync.apply_source_change("# Title\\n\\nMore")
        sync.toggle()
    """

    def __init__(
        self,
        markdown: str = "",
        mode: EditorMode = EditorMode.WRITER,
        codec: MarkdownCodec | None = None,
        on_push: Callable[[ContentPush], None] | None = None,
    ):
        self._codec = codec or MarkdownCodec()
        self._on_push = on_push
        self._mode = EditorMode(mode)
        self._document = self._codec.parse(markdown)
        # The source surface shows the text exactly as given
        if self._mode is EditorMode.SOURCE:
            self._source = markdown or ""
        else:
            self._source = self._codec.serialize(self._document)
        self.last_error: str | None = None

    @property
    def mode(self) -> EditorMode:
        return self._mode

    @property
    def document(self) -> Node:
        """The document tree as of the last writer-side update."""
        return self._document

    @property
    def source(self) -> str:
        """The source text as of the last source-side update."""
        return self._source

    @property
    def markdown(self) -> str:
        if self._mode is EditorMode.WRITER:
            return self._codec.serialize(self._document)
        return self._source

    def toggle(self) -> ModeTransition:
        target = EditorMode.SOURCE if self._mode is EditorMode.WRITER else EditorMode.WRITER
        return self.switch_to(target)

    def switch_to(self, mode: EditorMode) -> ModeTransition:
        """Move to `mode`, converting and pushing content to its surface.

        On rejection the mode and both contents are unchanged and
        `last_error` holds the reason.
        """
        mode = EditorMode(mode)
        if mode is self._mode:
            return ModeTransition(True, mode, self._current_content())

        transition = toggle_mode(self._mode, self._current_content(), self._codec)
        if not transition.accepted:
            self.last_error = transition.error
            return transition

        if transition.mode is EditorMode.SOURCE:
            self._source = transition.content
        else:
            self._document = transition.content
        self._mode = transition.mode
        self.last_error = None
        logger.debug("Switched to %s mode", self._mode.value)
        self._push(ContentPush(transition.mode, transition.content))
        return transition

    def apply_writer_change(self, document: Node, origin: Origin = Origin.USER) -> bool:
        """Record a change made on the writer surface.

        Returns:
            bool: Whether the change was taken; sync echoes and changes made
                while in source mode are ignored.
        """
        if origin is Origin.SYNC or self._mode is not EditorMode.WRITER:
            return False
        self._document = document
        return True

    def apply_source_change(self, markdown: str, origin: Origin = Origin.USER) -> bool:
        """Record a change made on the source surface; see `apply_writer_change`."""
        if origin is Origin.SYNC or self._mode is not EditorMode.SOURCE:
            return False
        self._source = markdown
        return True

    def apply_source_transaction(self, transaction: Transaction) -> bool:
        """Apply a command transaction to the source text."""
        return self.apply_source_change(transaction.apply(self._source), transaction.origin)

    def edit_block(self, index: int, markdown: str) -> bool:
        """Commit a syntax lens edit of the block at `index`.

        Returns:
            bool: True when the block was replaced. On failure the document is
                kept and `last_error` holds the reason.
        """
        if self._mode is not EditorMode.WRITER:
            self.last_error = "Block editing requires writer mode"
            return False

        try:
            lens = open_lens(self._document, index)
            document = apply_lens_edit(self._document, lens, markdown, self._codec)
        except (ParseError, IndexError) as error:
            logger.warning("Rejected edit of block %d: %s", index, error)
            self.last_error = str(error)
            return False

        self._document = document
        self.last_error = None
        self._push(ContentPush(EditorMode.WRITER, document))
        return True

    def _current_content(self) -> Node | str:
        return self._document if self._mode is EditorMode.WRITER else self._source

    def _push(self, push: ContentPush) -> None:
        if self._on_push is not None:
            self._on_push(push)
