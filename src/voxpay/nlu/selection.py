import re
from typing import Optional, Sequence

ORDINAL_WORDS = {
    "first": 0,
    "one": 0,
    "second": 1,
    "two": 1,
    "third": 2,
    "three": 2,
    "fourth": 3,
    "four": 3,
    "fifth": 4,
    "five": 4,
    "last": -1,
}
_WORD_RE = re.compile(r"[a-z]+")
_NUMBER_RE = re.compile(r"\d+")


def match_selection(reply: str, endings: Sequence[str]) -> Optional[int]:
    """
    Map a free-text reply to a position in ``endings`` (last-4 digits).

    A reply containing one of the endings wins; otherwise an ordinal word
    ("second") or a short number ("2") selects by position. Longer digit runs
    that match no ending are rejected rather than read as positions.
    """
    text = (reply or "").strip().lower()
    if not text or not endings:
        return None

    for index, ending in enumerate(endings):
        if ending and ending in text:
            return index

    numbers = _NUMBER_RE.findall(text)
    for number in numbers:
        if len(number) > 2:
            return None
        index = int(number) - 1
        return index if 0 <= index < len(endings) else None

    for word in _WORD_RE.findall(text):
        if word in ORDINAL_WORDS:
            index = ORDINAL_WORDS[word]
            if index == -1:
                return len(endings) - 1
            return index if index < len(endings) else None
    return None
