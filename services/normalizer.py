import re
import unicodedata

# Unicode dashes and arrows seen in Archive.org setlists
DASH_TRANSLATION = str.maketrans({
    "—": "-",  # em dash
    "–": "-",  # en dash
    "→": ">",  # right arrow
    "−": "-",  # minus sign
    "‐": "-",  # hyphen
    "‑": "-",  # non-breaking hyphen
    "‒": "-",  # figure dash
    "―": "-",  # horizontal bar
})

COMBINING_MARKS = re.compile("[\u0300-\u036f]")
WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """
    Normalize a track title for matching.

    Accents are stripped via NFD decomposition, unicode dashes become ASCII,
    whitespace runs collapse to one space and the result is lower-cased.
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", text)
    text = COMBINING_MARKS.sub("", decomposed)
    text = text.translate(DASH_TRANSLATION)
    text = WHITESPACE.sub(" ", text.strip())
    return text.lower()
