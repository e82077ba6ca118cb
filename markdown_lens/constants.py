"""Constants used across the markdown-lens package."""

from __future__ import annotations

import re

from .config import EditorConfig

DEFAULT_CONFIG = EditorConfig()
DEFAULT_MARKER_POLICY = DEFAULT_CONFIG.marker_policy()
DEFAULT_RENDER_POLICY = DEFAULT_CONFIG.render_policy()
DEFAULT_MAX_DOCUMENT_SIZE = DEFAULT_CONFIG.max_document_size
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

MARKDOWN_EXTENSIONS = (".md", ".markdown", ".mdown", ".mkd", ".mkdn", ".mdwn")

# Block patterns used by the syntax tree builder
CODE_FENCE_PATTERN = re.compile(r"^(?P<indent>[ \t]{0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
CLOSING_FENCE_MAX_INDENT = 3
ATX_HEADING_PATTERN = re.compile(r"^(?P<indent> {0,3})(?P<mark>#{1,6})(?=[ \t]|$)")
SETEXT_UNDERLINE_PATTERN = re.compile(r"^ {0,3}(?P<mark>=+|-+)[ \t]*$")
THEMATIC_BREAK_PATTERN = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
QUOTE_MARK_PATTERN = re.compile(r"^(?P<indent> {0,3})(?P<mark>>)")
BULLET_MARK_PATTERN = re.compile(r"^(?P<indent> {0,3})(?P<mark>[-+*])(?=[ \t]|$)")
ORDERED_MARK_PATTERN = re.compile(r"^(?P<indent> {0,3})(?P<mark>\d{1,9}[.)])(?=[ \t]|$)")
AUTOLINK_PATTERN = re.compile(r"<[A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*>")

# Shortcut patterns
OPENING_FENCE_LINE_PATTERN = re.compile(r"^```([a-z0-9_+.#-]+)?$", re.IGNORECASE)
INLINE_CODE_LINE_PATTERN = re.compile(r"^`[^`\n]+`$")
HEADING_PREFIX_PATTERN = re.compile(r"^#{1,6}[ \t]+")
FENCED_SELECTION_OPEN_PATTERN = re.compile(r"^```[a-z0-9_+.#-]*\n?", re.IGNORECASE)
FENCED_SELECTION_CLOSE_PATTERN = re.compile(r"\n?```$")
WORD_CHARACTERS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")

CODE_FENCE = "```"
