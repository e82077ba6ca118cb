"""
Command-line access to the markdown-lens editing core.
Formats Markdown files canonically, lists decorations, and runs shortcut commands.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .codec import MarkdownCodec
from .config import ConfigError, EditorConfig, build_config
from .exceptions import ParseError
from .filesystem import get_max_file_size, read_markdown, resolve_document_path, write_markdown
from .markers import compute_marker_decorations
from .models import Decoration, TextState
from .presentation import compute_presentation_decorations
from .shortcuts import ShortcutCommand, apply_enter_behavior, apply_markdown_shortcut
from .syntax import build_syntax_tree

__all__ = ["cli"]

logger = logging.getLogger(__name__)

ENTER_COMMAND = "enter"


@click.group()
@click.version_option(version=__version__, prog_name="markdown-lens")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool = False):
    """
    Markdown editing core: canonical formatting, decorations and shortcuts.

    Examples:
        markdown-lens format notes.md --check
        markdown-lens decorations notes.md --cursor 12
        markdown-lens shortcut toggle-bold notes.md --from 6 --to 11
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load_file(filepath: str, **overrides: object) -> tuple[Path, str, EditorConfig]:
    try:
        path = resolve_document_path(filepath)
    except ValueError as error:
        raise click.BadParameter(str(error)) from error

    try:
        config = build_config(path.parent, **overrides)
    except ConfigError as error:
        raise click.BadParameter(str(error)) from error

    try:
        max_file_size = get_max_file_size()
    except ValueError as error:
        raise click.ClickException(str(error)) from error

    try:
        content = read_markdown(path, max_file_size)
    except IOError as error:
        raise click.ClickException(str(error)) from error

    return path, content, config


def _format_decoration(decoration: Decoration) -> str:
    parts = [f"{decoration.start}-{decoration.end}", decoration.kind.value]
    if decoration.css_class:
        parts.append(decoration.css_class)
    if decoration.style:
        parts.append(decoration.style)
    return " ".join(parts)


@cli.command("format")
@click.option("--check", is_flag=True, help="Exit with status 1 if the file is not canonical")
@click.option("--write", is_flag=True, help="Rewrite the file in place")
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def format_command(ctx: click.Context, filepath: str, check: bool = False, write: bool = False):
    """
    Print the canonical serialization of a Markdown file.

    Raises:
        click.UsageError: If `--check` and `--write` are combined.
        click.BadParameter: If the path or configuration is invalid.
        click.ClickException: If the file cannot be read, parsed or written.

    Examples:
        markdown-lens format notes.md
        markdown-lens format notes.md --write
    """
    if check and write:
        raise click.UsageError("--check and --write are mutually exclusive")

    path, content, config = _load_file(filepath)
    codec = MarkdownCodec(config)
    try:
        formatted = codec.serialize(codec.parse(content))
    except ParseError as error:
        raise click.ClickException(str(error)) from error

    canonical = f"{formatted}\n" if formatted else ""
    if check:
        if content != canonical:
            click.echo(f"{path} is not canonically formatted", err=True)
            ctx.exit(1)
        return

    if write:
        if content == canonical:
            logger.debug("%s already canonical", path)
            return
        try:
            write_markdown(path, canonical)
        except IOError as error:
            raise click.ClickException(str(error)) from error
        return

    click.echo(canonical, nl=False)


@cli.command()
@click.option("--cursor", type=int, help="Cursor offset (defaults to the end of the file)")
@click.option("--presentation", is_flag=True, help="List presentation decorations instead")
@click.option(
    "--hide-fence-marks/--show-fence-marks",
    default=None,
    help="Hide fence markers outside the cursor's block",
)
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
def decorations(
    filepath: str,
    cursor: int | None = None,
    presentation: bool = False,
    hide_fence_marks: bool | None = None,
):
    """
    List the decorations computed for a Markdown file, one per line.

    Each line reads ``START-END KIND [CLASS] [STYLE]``.

    Examples:
        markdown-lens decorations notes.md --cursor 3
        markdown-lens decorations notes.md --presentation
    """
    _, content, config = _load_file(filepath, hide_fence_code_marks=hide_fence_marks)
    tree = build_syntax_tree(content)

    if presentation:
        result = compute_presentation_decorations(tree, config.render_policy())
    else:
        position = len(content) if cursor is None else cursor
        result = compute_marker_decorations(tree, position, config.marker_policy())

    for decoration in result:
        click.echo(_format_decoration(decoration))


@cli.command()
@click.argument(
    "command",
    type=click.Choice([command.value for command in ShortcutCommand] + [ENTER_COMMAND]),
)
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("--from", "selection_from", type=int, help="Selection start (defaults to the end)")
@click.option("--to", "selection_to", type=int, help="Selection end (defaults to --from)")
def shortcut(
    command: str,
    filepath: str,
    selection_from: int | None = None,
    selection_to: int | None = None,
):
    """
    Print a Markdown file after applying a shortcut command.

    Prints nothing when the command does not apply.

    Examples:
        markdown-lens shortcut toggle-bold notes.md --from 6 --to 11
        markdown-lens shortcut enter notes.md --from 5
    """
    _, content, _ = _load_file(filepath)
    start = len(content) if selection_from is None else selection_from
    end = start if selection_to is None else selection_to
    state = TextState(content, start, end)

    if command == ENTER_COMMAND:
        transaction = apply_enter_behavior(state)
    else:
        transaction = apply_markdown_shortcut(command, state)

    if transaction is None:
        logger.debug("%s did not apply", command)
        return

    click.echo(transaction.apply(content), nl=False)


if __name__ == "__main__":
    cli()
