"""Name normalization for sorting and fuzzy matching.

Hey future me - two jobs live here:

1. build_sort_name(): the sort key stored on every Artist row.
   "The Beatles" -> "Beatles, The". ONLY the leading "The " moves - "A Tribe Called Quest"
   stays as is. Library listings sort on this column.

2. normalize_for_matching(): the canonical form both sides of a catalog comparison go
   through before Levenshtein. Strips diacritics ("Björk" -> "bjork"), lowercases,
   removes punctuation, collapses whitespace. Two names that normalize equal are a
   100% match no matter what the raw strings looked like.

Examples:
    >>> build_sort_name("The Beatles")
    'Beatles, The'
    >>> normalize_for_matching("  Björk -- Homogenic ")
    'bjork homogenic'
"""

import re
import unicodedata

SORT_ARTICLE = "the "

# Combining diacritical marks block (U+0300 - U+036F), left over after NFD decomposition
_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def build_sort_name(name: str) -> str:
    """Derive the sort name for an artist.

    Args:
        name: Artist name as it appears in tags

    Returns:
        Name with a leading "The " moved to the end, otherwise the name unchanged

    Examples:
        >>> build_sort_name("The Rolling Stones")
        'Rolling Stones, The'
        >>> build_sort_name("Theatre of Tragedy")
        'Theatre of Tragedy'
    """
    if not name:
        return ""

    if name.lower().startswith(SORT_ARTICLE):
        rest = name[len(SORT_ARTICLE) :]
        article = name[: len(SORT_ARTICLE) - 1]
        return f"{rest}, {article}"

    return name


def normalize_for_matching(text: str | None) -> str:
    """Normalize text for similarity comparison.

    Args:
        text: Title or artist name (None is treated as empty)

    Returns:
        Lowercase ASCII-folded text without punctuation, single-spaced and trimmed
    """
    if not text:
        return ""

    # Hey future me - NFD splits "é" into "e" + U+0301, then we drop the combining mark.
    # Characters that don't decompose (ø, ß, æ) survive; \w keeps them as letters.
    decomposed = unicodedata.normalize("NFD", text)
    stripped = _COMBINING_MARKS.sub("", decomposed)
    lowered = stripped.lower()
    no_punct = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", no_punct).strip()


__all__ = [
    "SORT_ARTICLE",
    "build_sort_name",
    "normalize_for_matching",
]
