"""Utility functions for notesync."""
from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards so a search query matches them literally.

    Args:
        value: Raw search text that may contain '%', '_' or '\\'

    Returns:
        The text with every wildcard and the escape character itself escaped,
        for use with ``ESCAPE '\\'``.

    Example:
        >>> escape_like_pattern("50% off_sale")
        '50\\% off\\_sale'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # must come first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split a sequence into consecutive lists of at most ``size`` items.

    Used to keep batched network writes under the remote store's ceiling.

    Raises:
        ValueError: If size is not positive
    """
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
