"""
Identity token scanner for raw lobby snapshots.

The lobby file is an undocumented binary blob; player names and battle tags are
embedded as ASCII-range text between structural bytes. Bytes are mapped one to
one onto characters (latin-1) so offsets are preserved and nothing is translated.
"""
import logging
from typing import List, Optional

from utils.tag_utils import BATTLE_TAG_REGEX

logger = logging.getLogger(__name__)


def scan_identity_tokens(buffer: Optional[bytes]) -> List[str]:
    """
    Return every substring shaped like a battle tag, in order, without dedup.
    Empty, truncated or non-matching buffers yield [] - validation happens later.
    """
    if not buffer:
        return []

    text = bytes(buffer).decode('latin-1')
    tokens = [match.group(0) for match in BATTLE_TAG_REGEX.finditer(text)]
    logger.debug(f"Scanned {len(buffer)} bytes, found {len(tokens)} identity tokens: {tokens}")
    return tokens
