"""Czech primary-strength collation for sorting names."""

from __future__ import annotations

import unicodedata

# Letters with a háček are separate letters of the Czech alphabet; other
# diacritics (á, é, ů, ď ...) only differ at secondary strength.
_ALPHABET = [
    "a", "b", "c", "č", "d", "e", "f", "g", "h", "ch", "i", "j", "k", "l", "m",
    "n", "o", "p", "q", "r", "ř", "s", "š", "t", "u", "v", "w", "x", "y", "z", "ž",
]
_LETTER_RANK = {letter: 1000 + index for index, letter in enumerate(_ALPHABET)}
_PRIMARY_LETTERS = {"č", "ř", "š", "ž"}


def _fold(char: str) -> str:
    """Lowercase and drop secondary diacritics, keeping Czech háček letters."""
    char = char.lower()
    if char in _PRIMARY_LETTERS:
        return char
    decomposed = unicodedata.normalize("NFD", char)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def czech_sort_key(text: str | None) -> tuple[int, ...]:
    """Return a sort key comparing strings like Czech ``localeCompare`` at base sensitivity.

    Whitespace sorts first, then punctuation, then digits, then letters in
    Czech alphabet order (``ch`` follows ``h``). Case and non-háček accents are
    ignored, so "Ábel" sorts before "Zebra" and "čaj" after "cukr".
    """
    if not text:
        return ()
    folded = "".join(_fold(c) for c in text)
    key: list[int] = []
    index = 0
    while index < len(folded):
        char = folded[index]
        if folded.startswith("ch", index):
            key.append(_LETTER_RANK["ch"])
            index += 2
            continue
        if char in _LETTER_RANK:
            key.append(_LETTER_RANK[char])
        elif char.isspace():
            key.append(0)
        elif char.isdigit():
            key.append(500 + int(unicodedata.digit(char, 0)))
        elif char.isalpha():
            # Letters outside the Czech alphabet sort after it, by code point.
            key.append(2000 + ord(char))
        else:
            key.append(1 + ord(char) % 400)
        index += 1
    return tuple(key)
