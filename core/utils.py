"""Shared helpers for the core modules."""

from typing import List


def read_list_file(filepath: str) -> List[str]:
    """Read a one-entry-per-line text file.

    Surrounding whitespace is stripped and blank lines are skipped.

    Args:
        filepath: Path to the list file.

    Returns:
        The non-empty entries in file order.

    Raises:
        OSError: If the file cannot be opened.
    """
    with open(filepath, "r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip()]


def short_address(address: str) -> str:
    """Abbreviate an address for log prefixes (``0x1234…abcd``)."""
    if not address or len(address) <= 12:
        return address or "unknown"
    return f"{address[:6]}…{address[-4:]}"
