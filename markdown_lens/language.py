"""Code-fence language normalization."""

from __future__ import annotations

from types import MappingProxyType

PLAINTEXT = "plaintext"

CODE_LANGUAGE_PRESETS = (
    "plaintext",
    "python",
    "c",
    "cpp",
    "rust",
    "typescript",
    "javascript",
    "bash",
    "json",
    "go",
    "java",
)

LANGUAGE_ALIASES = MappingProxyType(
    {
        "py": "python",
        "python3": "python",
        "js": "javascript",
        "ts": "typescript",
        "c++": "cpp",
        "cxx": "cpp",
        "shell": "bash",
        "sh": "bash",
        "plain": "plaintext",
        "text": "plaintext",
    }
)


def normalize_code_language(value: str | None) -> str:
    """Map a code-fence info string to its canonical language identifier.

    Case-insensitive and whitespace-trimmed. Empty or missing values map to
    ``"plaintext"``; known aliases map to their canonical name; anything else
    is returned lower-cased, as already canonical.

    Args:
        value: Info string or language name, possibly None.

    Returns:
        str: Canonical language identifier.

    Examples:
        normalize_code_language("py")  # "python"
        normalize_code_language("  C++ ")  # "cpp"
        normalize_code_language(None)  # "plaintext"
        normalize_code_language("rust")  # "rust"
    """
    normalized = (value or "").strip().lower()
    if not normalized:
        return PLAINTEXT
    return LANGUAGE_ALIASES.get(normalized, normalized)


def fence_language(value: str | None) -> str:
    """Return the tag to write after an opening fence.

    Examples:
        fence_language("py")  # "python"
        fence_language("text")  # ""
    """
    normalized = normalize_code_language(value)
    return "" if normalized == PLAINTEXT else normalized
