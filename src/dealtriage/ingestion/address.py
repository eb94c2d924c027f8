"""Address normalization used to detect duplicate leads."""

import re

STREET_SUFFIXES = {
    "street": "st",
    "avenue": "ave",
    "av": "ave",
    "boulevard": "blvd",
    "road": "rd",
    "drive": "dr",
    "lane": "ln",
    "court": "ct",
    "place": "pl",
    "terrace": "ter",
    "circle": "cir",
    "highway": "hwy",
    "parkway": "pkwy",
    "square": "sq",
    "trail": "trl",
}

DIRECTIONS = {
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
}

UNIT_DESIGNATORS = {
    "apartment": "apt",
    "suite": "ste",
    "unit": "unit",
    "number": "unit",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_address(address: str) -> str:
    """Canonical form of an address for duplicate matching.

    Case, whitespace and punctuation are ignored, and common street
    suffixes, directions and unit designators are abbreviated, so
    "123 Main Street, Apt. 4" and "123  main st apt 4" compare equal.
    """
    lowered = address.lower().replace("#", " unit ")
    tokens = _NON_ALNUM.sub(" ", lowered).split()
    normalized = []
    for token in tokens:
        token = STREET_SUFFIXES.get(token, token)
        token = DIRECTIONS.get(token, token)
        token = UNIT_DESIGNATORS.get(token, token)
        normalized.append(token)
    return " ".join(normalized)
