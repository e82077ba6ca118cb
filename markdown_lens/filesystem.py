"""Loading and saving Markdown documents for the command line."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path

from .constants import DEFAULT_MAX_FILE_SIZE, MARKDOWN_EXTENSIONS

MAX_FILE_SIZE_ENV_VAR = "MARKDOWN_LENS_MAX_FILE_SIZE"


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Return the byte limit for documents loaded from disk.

    `MARKDOWN_LENS_MAX_FILE_SIZE` overrides `default` when set.

    Raises:
        ValueError: If the environment value is not a positive integer.

    Examples:
        os.environ["MARKDOWN_LENS_MAX_FILE_SIZE"] = "204800"
        get_max_file_size()  # 204800
    """
    raw_value = os.environ.get(MAX_FILE_SIZE_ENV_VAR)
    if raw_value is None:
        return default

    try:
        limit = int(raw_value)
    except ValueError:
        limit = 0
    if limit <= 0:
        raise ValueError(f"{MAX_FILE_SIZE_ENV_VAR} must be a positive integer, got {raw_value!r}")
    return limit


def resolve_document_path(raw_path: str) -> Path:
    """Resolve a user-supplied path to an existing Markdown document.

    Raises:
        ValueError: If nothing can be opened at the path, or it is not a
            regular file with a Markdown extension.

    Examples:
        resolve_document_path("notes/today.md")
        resolve_document_path("~/journal.markdown")
    """
    path = Path(raw_path).expanduser()
    try:
        resolved = path.resolve(strict=True)
        mode = resolved.stat().st_mode
    except OSError as error:
        raise ValueError(f"Cannot open {path}: {error}") from error

    if not stat.S_ISREG(mode):
        raise ValueError(f"{resolved} is not a regular file.")

    if resolved.suffix.lower() not in MARKDOWN_EXTENSIONS:
        extensions = ", ".join(MARKDOWN_EXTENSIONS)
        raise ValueError(f"{resolved} is not a Markdown document ({extensions}).")

    return resolved


def read_markdown(path: Path, max_size: int) -> str:
    """Load a document, refusing files larger than `max_size` bytes.

    Line endings are kept as stored so that canonical checks see the file as
    it is on disk.

    Raises:
        IOError: If the file cannot be read, is too large, or is not UTF-8.
    """
    try:
        size = path.stat().st_size
        data = path.read_bytes() if size <= max_size else None
    except OSError as error:
        raise IOError(f"Cannot read {path}: {error}") from error

    if data is None:
        raise IOError(f"{path} is {size} bytes, over the {max_size} byte limit.")

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as error:
        raise IOError(f"{path} is not valid UTF-8: {error}") from error


def write_markdown(path: Path, content: str) -> None:
    """Save a document by swapping in a fully written sibling file.

    Readers of `path` see either the old or the new document, never a partial
    one. The file's permission bits are carried over.

    Raises:
        IOError: If the document cannot be saved; `path` is left untouched.

    Examples:
        write_markdown(Path("notes.md"), serialize_markdown(tree) + "\\n")
    """
    try:
        permissions = stat.S_IMODE(path.stat().st_mode)
        handle, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    except OSError as error:
        raise IOError(f"Cannot save {path}: {error}") from error

    try:
        with os.fdopen(handle, "w", encoding="utf-8", newline="") as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        os.chmod(temp_name, permissions)
        os.replace(temp_name, path)
    except OSError as error:
        Path(temp_name).unlink(missing_ok=True)
        raise IOError(f"Cannot save {path}: {error}") from error
