import asyncio
import logging
from pathlib import Path

from playlist_actions.domain.entities import Playlist
from playlist_actions.domain.errors import ExportFailure
from playlist_actions.domain.normalization import playlist_filename
from playlist_actions.domain.ports import M3U_MIME_TYPE, FileSaver, TrackSource


logger = logging.getLogger(__name__)


class ExportRequester:
    """Downloads a playlist's track list as M3U and saves it client-side."""

    def __init__(self, source: TrackSource, saver: FileSaver):
        self._source = source
        self._saver = saver

    async def request_export(self, playlist: Playlist) -> Path:
        """Export ``playlist`` and return where the file was saved.

        Raises:
            ExportFailure: if the download or the save failed
        """
        filename = playlist_filename(playlist.name)
        try:
            body = await asyncio.to_thread(self._source.export_playlist, playlist.id)
        except Exception as e:
            raise ExportFailure(f"Failed to export playlist {playlist.id}: {e}") from e

        if isinstance(body, str):
            body = body.encode('utf-8')

        try:
            path = self._saver.save(filename, body, M3U_MIME_TYPE)
        except Exception as e:
            raise ExportFailure(f"Failed to save {filename}: {e}") from e

        logger.info(f"Exported playlist {playlist.id} to {path}")
        return path
