from __future__ import annotations

from pathlib import Path
from typing import List, Protocol

from .entities import Playlist, PlaylistTrack, QueueCommand

# Notification keys understood by every Notifier.
SYNC_SUCCESS = 'sync-success'
SYNC_ERROR = 'sync-error'
LIST_FETCH_ERROR = 'list-fetch-error'

M3U_MIME_TYPE = "audio/x-mpegurl"


class TrackSource(Protocol):
    """Port for the library server's REST resources used by playlist actions.

    Implementations are blocking; the application layer moves calls off the
    event loop.
    """

    def list_playlist_tracks(self, playlist_id: str) -> List[PlaylistTrack]:
        """Return every track of the playlist, ordered by membership id ascending."""

    def sync_external_playlist(self, playlist_id: str) -> None:
        """Ask the server to resynchronize an external playlist."""

    def export_playlist(self, playlist_id: str) -> bytes:
        """Return the playlist's track list as an M3U document."""

    def list_playlists(self) -> List[Playlist]:
        """Return all playlists visible to the current user."""


class PlaybackQueue(Protocol):
    """Port for the shared playback queue store."""

    def play_tracks(self, command: QueueCommand) -> None:
        """Replace the queue with the command's tracks and start at position 0."""

    def shuffle_tracks(self, command: QueueCommand) -> None:
        """Replace the queue with the command's tracks in random order."""

    def play_next(self, command: QueueCommand) -> None:
        """Insert the command's tracks right after the current track."""

    def add_tracks(self, command: QueueCommand) -> None:
        """Append the command's tracks to the end of the queue."""


class Notifier(Protocol):
    """Port for user-visible notifications."""

    def notify(self, message: str, level: str = "info", **params: str) -> None:
        """Show a message keyed by the notification vocabulary."""


class Refresher(Protocol):
    """Port signalling resource views to reload cached data."""

    def refresh(self) -> None:
        """Invalidate cached playlist and track data."""


class FileSaver(Protocol):
    """Port for client-side file saves."""

    def save(self, filename: str, content: bytes, media_type: str) -> Path:
        """Persist content under the suggested filename and return its location."""
