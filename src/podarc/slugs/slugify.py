"""Text to slug conversion."""

import unicodedata

import regex

from podarc.slugs.constants import STOP_WORDS

COMBINING_MARKS = regex.compile(r"\p{Mn}+")
POSSESSIVE = regex.compile(r"([a-z0-9]{2,})['\u2019]s\b")
TYPOGRAPHIC_DASHES = regex.compile(r"[\u2012-\u2015]")
TYPOGRAPHIC_QUOTES = regex.compile(r"[\u2018-\u201f]")
APOSTROPHES = regex.compile(r"['\u2019]")
DISALLOWED = regex.compile(r"[^a-z0-9\s-]")
REPEATED_HYPHENS = regex.compile(r"-+")


def slugify(text: str) -> str:
    """Convert arbitrary text into a lowercase hyphenated slug.

    Diacritics are stripped, possessives collapse to the base word, stop
    words are removed and intra-word hyphens survive. Token budgeting is
    left to callers.

    Example:
        >>> slugify("The Battle of the Nile")
        'battle-nile'
        >>> slugify("The And Of")
        ''
    """
    if not text:
        return ""

    normalised = COMBINING_MARKS.sub("", unicodedata.normalize("NFKD", text))
    lowered = normalised.lower()
    lowered = POSSESSIVE.sub(r"\1", lowered)
    lowered = TYPOGRAPHIC_DASHES.sub(" ", lowered)
    lowered = TYPOGRAPHIC_QUOTES.sub("", lowered)
    lowered = APOSTROPHES.sub("", lowered)
    cleaned = DISALLOWED.sub(" ", lowered)

    tokens = [token for token in cleaned.split() if token not in STOP_WORDS]
    if not tokens:
        return ""

    return REPEATED_HYPHENS.sub("-", "-".join(tokens)).strip("-")


def split_tokens(slug: str) -> list[str]:
    """Split a slug on hyphens, dropping empty fragments."""
    return [token for token in slug.split("-") if token]
