"""
Search text normalization.

Canonicalizes strings so that search is insensitive to case, Latin
diacritics, Arabic letter variants, harakat and Arabic-Indic digits.
"""

import unicodedata
from typing import Any

# Letter variants collapse to one representative, marks map to ''.
_CHAR_MAP = {
    # Alif
    'آ': 'ا', 'أ': 'ا', 'إ': 'ا', 'ٱ': 'ا',
    # Yaa
    'ي': 'ى', 'ئ': 'ى',
    # Waw
    'ؤ': 'و',
    # Taa marbouta
    'ة': 'ه',
}

# Harakat (U+064B..U+0655), superscript alif, tatweel
for _code in list(range(0x064B, 0x0656)) + [0x0670, 0x0640]:
    _CHAR_MAP[chr(_code)] = ''

for _offset in range(10):
    _CHAR_MAP[chr(0x0660 + _offset)] = str(_offset)  # Arabic-Indic
    _CHAR_MAP[chr(0x06F0 + _offset)] = str(_offset)  # Extended (Persian)

_TRANSLATION = str.maketrans(_CHAR_MAP)


def _strip_latin_marks(text: str) -> str:
    # The Arabic block is left to the translation table; presentation
    # forms outside it decompose to their base letters here.
    if text.isascii():
        return text
    out = []
    for char in text:
        if '\u0600' <= char <= '\u06ff':
            out.append(char)
            continue
        decomposed = unicodedata.normalize('NFKD', char)
        out.append(''.join(c for c in decomposed if not unicodedata.combining(c)))
    return ''.join(out)


def normalize(text: Any) -> str:
    """Return the canonical search form of a value.

    Never raises. None becomes an empty string and other non-string values
    are converted with str() first.

    Args:
        text: Value to normalize

    Returns:
        Trimmed, case-folded text with variants collapsed
    """
    if text is None:
        return ''
    if not isinstance(text, str):
        text = str(text)
    text = _strip_latin_marks(text).translate(_TRANSLATION)
    return text.strip().casefold()


def matches(term: Any, *values: Any) -> bool:
    """True when the normalized term occurs in any normalized value.

    An empty term matches everything.
    """
    needle = normalize(term)
    if not needle:
        return True
    return any(needle in normalize(value) for value in values)
