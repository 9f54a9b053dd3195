"""
Typed failures raised by the lobby parse path and the replay cache.

Callers are expected to handle these explicitly:
- FormatError: not a lobby we can read yet, retry on the next poll tick
- IdentityNotFoundError: configuration or unexpected lobby, show a warning
- CacheStoreError: store unreachable/corrupt, the current cache operation is aborted
- PerFileParseError: one replay file is unusable, counted and skipped during a sync
"""
from typing import Iterable, Optional


class BarcodeRevealError(Exception):
    """Base class for every error that crosses a core boundary"""


class FormatError(BarcodeRevealError):
    """Lobby snapshot does not have the supported 1v1 token layout"""

    def __init__(self, token_count: int, detected_queue: Optional[str] = None):
        self.token_count = token_count
        self.detected_queue = detected_queue
        message = f"Unsupported lobby snapshot: found {token_count} identity tokens, expected 6 (1v1)"
        if detected_queue:
            message += f"; layout looks like {detected_queue}, which is not supported"
        super().__init__(message)


class IdentityNotFoundError(BarcodeRevealError):
    """Configured battle tag is not present in either team"""

    def __init__(self, configured_tag: str, seen_tags: Iterable[str] = ()):
        self.configured_tag = configured_tag
        self.seen_tags = list(seen_tags)
        seen = ", ".join(self.seen_tags) if self.seen_tags else "none"
        super().__init__(
            f"Configured battle tag '{configured_tag}' was not found in the current lobby (players: {seen})"
        )


class CacheStoreError(BarcodeRevealError):
    """Persistent store is unreachable, corrupt or did not answer in time"""


class PerFileParseError(BarcodeRevealError):
    """A single replay file could not be turned into a match record"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not parse replay '{path}': {reason}")
