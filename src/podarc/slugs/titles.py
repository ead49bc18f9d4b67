"""Title helpers for episode slug generation."""

from typing import NamedTuple

import regex

LEADING_NUMBER = regex.compile(r"^\s*\d+[.)\-:]*\s*")
PART_SUFFIX = regex.compile(r"\s*\(?(?:part|episode)\s+(\d+)\)?\s*$", regex.IGNORECASE)
TRAILING_PUNCTUATION = regex.compile(r"[\s:\-\u2013\u2014]+$")


class PartExtraction(NamedTuple):
    """Title with its trailing part marker removed."""

    title: str
    part_number: int | None


def strip_leading_number(title: str) -> str:
    """Remove a leading numeric identifier such as ``"613. "`` or ``"42) "``."""
    if not title:
        return ""
    return LEADING_NUMBER.sub("", title, count=1)


def extract_part_number(title: str) -> PartExtraction:
    """Split a trailing ``(Part N)`` / ``Episode N`` marker off a title.

    Args:
        title: Title, usually already stripped of its leading number

    Returns:
        The remaining title (trailing separators removed) and the part
        number, or None when no marker is present
    """
    if not title:
        return PartExtraction("", None)

    match = PART_SUFFIX.search(title)
    if not match:
        return PartExtraction(TRAILING_PUNCTUATION.sub("", title.strip()), None)

    remainder = TRAILING_PUNCTUATION.sub("", title[: match.start()].strip())
    return PartExtraction(remainder, int(match.group(1)))


def derive_subtitle_source(title: str) -> str:
    """Return the text after the first colon, or the whole title."""
    if not title:
        return ""
    head, sep, tail = title.partition(":")
    if not sep:
        return title.strip()
    return tail.strip()
