"""
Utility functions for battle tag and toon handle comparison.
"""
import re

# letter, 2-20 alphanumerics, '#', 3-6 digits
BATTLE_TAG_PATTERN = r"[A-Za-z][A-Za-z0-9]{2,20}#[0-9]{3,6}"
BATTLE_TAG_REGEX = re.compile(BATTLE_TAG_PATTERN)


def normalize_tag(value):
    """
    Canonical form used for every tag comparison and as the cache lookup key.
    '_' is treated as '#' (file names and some configs use it) and case is folded.
    normalize_tag(normalize_tag(x)) == normalize_tag(x)
    """
    if not value:
        return ""
    return value.strip().replace('_', '#').casefold()


def tag_name_part(value):
    """Display-name portion of a tag ('Alpha#123' -> 'alpha'), normalized"""
    normalized = normalize_tag(value)
    return normalized.split('#', 1)[0]


def identity_keys(value):
    """
    Keys a tag can be stored under in the cache.
    Replay files only carry display names, so a full battle tag also matches
    records keyed by its name portion.
    """
    normalized = normalize_tag(value)
    if not normalized:
        return ()
    name = tag_name_part(normalized)
    if name and name != normalized:
        return (normalized, name)
    return (normalized,)


def tags_equal(left, right):
    return bool(left) and normalize_tag(left) == normalize_tag(right)


def is_battle_tag(value):
    return bool(value) and BATTLE_TAG_REGEX.fullmatch(value.strip().replace('_', '#')) is not None


def normalize_toon(handle):
    """
    Strip the leading region digit of a toon handle so both spellings compare equal:
    '1-S2-1-11050989' -> 'S2-1-11050989'. Anything else is returned trimmed.
    """
    if not handle:
        return ""
    handle = handle.strip()
    parts = handle.split('-')
    if len(parts) >= 4 and len(parts[0]) == 1 and parts[0].isdigit() and parts[1].upper() == "S2":
        return '-'.join(parts[1:])
    return handle
