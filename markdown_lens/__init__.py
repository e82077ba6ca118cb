"""
markdown-lens: the editing core of a two-view Markdown editor.

One Markdown document is shown through a writer view, which hides syntax
markers outside the construct holding the cursor, and a source view showing
the literal text.

CLI Usage:
    markdown-lens format notes.md --check
    markdown-lens decorations notes.md --cursor 3

Library Usage:
    from markdown_lens import (
        build_syntax_tree,
        compute_marker_decorations,
        parse_markdown,
        serialize_markdown,
    )

    tree = parse_markdown("# Title\\n\\n- a\\n- b")
    text = serialize_markdown(tree)
    hidden = compute_marker_decorations(build_syntax_tree(text), cursor=len(text))
"""

__version__ = "0.1.0"

from .codec import (
    MarkdownCodec,
    parse_markdown,
    parse_top_level_blocks,
    serialize_markdown,
    serialize_top_level_blocks,
)
from .config import ConfigError, EditorConfig, build_config, load_config
from .exceptions import BlockCountError, DocumentTooLargeError, ParseError
from .language import CODE_LANGUAGE_PRESETS, LANGUAGE_ALIASES, normalize_code_language
from .markers import compute_marker_decorations
from .models import (
    Decoration,
    DecorationKind,
    DecorationSet,
    EditorMode,
    MarkerPolicy,
    Node,
    NodeType,
    Origin,
    RenderPolicy,
    TextState,
    Transaction,
)
from .presentation import compute_presentation_decorations
from .shortcuts import ShortcutCommand, apply_enter_behavior, apply_markdown_shortcut
from .sync import ModeSynchronizer, ModeTransition, apply_lens_edit, open_lens, toggle_mode
from .syntax import SyntaxTree, build_syntax_tree

__all__ = [
    # Codec
    "MarkdownCodec",
    "parse_markdown",
    "serialize_markdown",
    "parse_top_level_blocks",
    "serialize_top_level_blocks",
    # Language normalization
    "normalize_code_language",
    "CODE_LANGUAGE_PRESETS",
    "LANGUAGE_ALIASES",
    # Decorations
    "build_syntax_tree",
    "compute_marker_decorations",
    "compute_presentation_decorations",
    # Shortcuts
    "ShortcutCommand",
    "apply_markdown_shortcut",
    "apply_enter_behavior",
    # Mode synchronization
    "ModeSynchronizer",
    "ModeTransition",
    "toggle_mode",
    "open_lens",
    "apply_lens_edit",
    # Data models
    "Decoration",
    "DecorationKind",
    "DecorationSet",
    "EditorMode",
    "MarkerPolicy",
    "Node",
    "NodeType",
    "Origin",
    "RenderPolicy",
    "SyntaxTree",
    "TextState",
    "Transaction",
    # Configuration
    "EditorConfig",
    "build_config",
    "load_config",
    # Exceptions
    "BlockCountError",
    "ConfigError",
    "DocumentTooLargeError",
    "ParseError",
    # Version
    "__version__",
]
