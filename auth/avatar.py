"""
auth/avatar.py -- Gravatar URL derivation.

The URL is a pure function of the email: no network call is made here. If
Gravatar has no image for the hash, the d=mm parameter makes it serve the
"mystery person" silhouette, so the URL is always usable.
"""

from __future__ import annotations

import hashlib
from urllib.parse import urlencode

_GRAVATAR_BASE = "https://www.gravatar.com/avatar/"


class GravatarResolver:
    """Derive a stable avatar URL from an email address."""

    def __init__(self, size: int = 200, rating: str = "pg", default: str = "mm") -> None:
        self._query = urlencode({"s": str(size), "r": rating, "d": default})

    def url_for(self, email: str) -> str:
        # Gravatar hashes the trimmed, lowercased address.
        digest = hashlib.md5(email.strip().lower().encode("utf-8"), usedforsecurity=False).hexdigest()
        return f"{_GRAVATAR_BASE}{digest}?{self._query}"
