"""Word lists used by slug generation."""

# Dropped from every slug
STOP_WORDS: frozenset[str] = frozenset(
    {
        "a",
        "an",
        "and",
        "are",
        "as",
        "at",
        "be",
        "but",
        "by",
        "for",
        "from",
        "in",
        "into",
        "is",
        "it",
        "its",
        "of",
        "on",
        "or",
        "that",
        "the",
        "this",
        "to",
        "vs",
        "was",
        "were",
        "with",
    }
)

# Generic period/subject words that make poor series handles
DOMAIN_TOPICS: frozenset[str] = frozenset(
    {
        "ancient",
        "america",
        "american",
        "battle",
        "british",
        "century",
        "civil",
        "empire",
        "english",
        "europe",
        "french",
        "great",
        "history",
        "i",
        "ii",
        "iii",
        "iv",
        "king",
        "medieval",
        "queen",
        "revolution",
        "roman",
        "rome",
        "war",
        "wars",
        "world",
    }
)
