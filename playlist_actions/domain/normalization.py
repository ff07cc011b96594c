from __future__ import annotations

import re
import unicodedata


M3U_EXTENSION = ".m3u"

# Characters that are reserved on at least one common filesystem.
_UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_MULTISPACE_PATTERN = re.compile(r"\s+")
_LEADING_ARTICLES = ("the ", "a ", "an ")


def _strip_diacritics(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def sort_key(name: str) -> str:
    """Case and accent insensitive key used to order playlists by name."""
    value = _strip_diacritics(name or "").casefold()
    value = _MULTISPACE_PATTERN.sub(" ", value).strip()
    for article in _LEADING_ARTICLES:
        if value.startswith(article):
            return value[len(article):]
    return value


def playlist_filename(name: str, extension: str = M3U_EXTENSION) -> str:
    """Suggested download filename for a playlist export.

    Keeps the playlist name as typed, only replacing characters that cannot
    appear in a filename.
    """
    value = unicodedata.normalize("NFC", name or "")
    value = _UNSAFE_FILENAME_PATTERN.sub("_", value)
    value = _MULTISPACE_PATTERN.sub(" ", value).strip().strip(".")
    if not value:
        value = "playlist"
    return f"{value}{extension}"
