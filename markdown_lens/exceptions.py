"""Package-specific exception types."""

from __future__ import annotations


class ParseError(ValueError):
    """Base class for parsing-related errors.

    Represents Markdown text that cannot be turned into a document tree.
    """


class DocumentTooLargeError(ParseError):
    """Raised when a document exceeds the configured maximum size.

    Args:
        size: Length of the rejected document in characters.
        max_document_size: Maximum allowed length in characters.
    """

    def __init__(self, size: int, max_document_size: int):
        self.size = size
        self.max_document_size = max_document_size
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        return (
            f"Document of {self.size} characters exceeds maximum allowed size "
            f"of {self.max_document_size} characters"
        )


class BlockCountError(ParseError):
    """Raised when a single-block edit resolves to zero or several blocks.

    Args:
        count: Number of top-level blocks the edited text produced.
    """

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Expected exactly one block, got {self.count}")
