"""Series key and part number extraction from episode titles."""

from typing import NamedTuple

import regex

from podarc.slugs.slugify import slugify

NUMBER_PREFIX = regex.compile(r"^\s*\d+\s*[:.)–—-]?\s*")
PART_SUFFIX = regex.compile(
    r"\s*[-–—:,]?\s*"
    r"(?:\((?:part|pt\.?|episode)\s*[ivxlcdm\d]+\)|(?:part|pt\.?|episode)\s*[ivxlcdm\d]+)\s*$",
    regex.IGNORECASE,
)
# Digits may run into a suffix ("Part 2a"); numerals must end the word
PART_MARKER = regex.compile(r"\b(?:part|pt\.?|episode)\s*(\d+|[ivxlcdm]+\b)", regex.IGNORECASE)
WHITESPACE = regex.compile(r"\s+")

KEY_DELIMITERS = (":", " - ", " – ", " — ")
MIN_LEFT_SEGMENT_LENGTH = 3

ROMAN_NUMERALS: dict[str, int] = {
    "i": 1, "ii": 2, "iii": 3, "iv": 4, "v": 5,
    "vi": 6, "vii": 7, "viii": 8, "ix": 9, "x": 10,
    "xi": 11, "xii": 12, "xiii": 13, "xiv": 14, "xv": 15,
    "xvi": 16, "xvii": 17, "xviii": 18, "xix": 19, "xx": 20,
    "xxi": 21, "xxii": 22, "xxiii": 23, "xxiv": 24, "xxv": 25,
    "xxvi": 26, "xxvii": 27, "xxviii": 28, "xxix": 29, "xxx": 30,
    "xxxi": 31, "xxxii": 32, "xxxiii": 33, "xxxiv": 34, "xxxv": 35,
    "xxxvi": 36, "xxxvii": 37, "xxxviii": 38, "xxxix": 39, "xl": 40,
    "xli": 41, "xlii": 42, "xliii": 43, "xliv": 44, "xlv": 45,
    "xlvi": 46, "xlvii": 47, "xlviii": 48, "xlix": 49, "l": 50,
}  # fmt: skip


class SeriesKey(NamedTuple):
    """Grouping key derived from a title."""

    raw: str
    normalised: str
    slug: str


def _collapse_whitespace(value: str) -> str:
    return WHITESPACE.sub(" ", value).strip()


def _split_on_delimiters(value: str) -> str:
    for delimiter in KEY_DELIMITERS:
        left, sep, right = value.partition(delimiter)
        if not sep:
            continue
        left = left.strip()
        if len(left) >= MIN_LEFT_SEGMENT_LENGTH:
            return left
        right = right.strip()
        if right:
            return right
    return value


def parse_series_key(title: str) -> SeriesKey | None:
    """Extract the series key from an episode title.

    ``"613. Nelson: Trafalgar (Part 2)"`` yields raw ``"Nelson"``,
    normalised ``"nelson"`` and slug ``"nelson"``.

    Returns:
        The key, or None when nothing usable survives stripping
    """
    without_number = NUMBER_PREFIX.sub("", title or "", count=1).strip()
    without_part = PART_SUFFIX.sub("", without_number, count=1).strip()
    collapsed = _collapse_whitespace(without_part)
    if not collapsed:
        return None

    raw = _collapse_whitespace(_split_on_delimiters(collapsed))
    if not raw:
        return None

    slug = slugify(raw)
    if not slug:
        return None

    return SeriesKey(raw=raw, normalised=raw.lower(), slug=slug)


def parse_part_number(title: str) -> int | None:
    """Return the part number announced by ``part``/``pt.``/``episode``.

    Arabic numbers and roman numerals up to fifty are understood.
    """
    match = PART_MARKER.search(title or "")
    if not match:
        return None

    value = match.group(1)
    if value.isdigit():
        return int(value)
    return ROMAN_NUMERALS.get(value.lower())
