import asyncio
import logging
from typing import Mapping, Sequence

from playlist_actions.domain.entities import Playlist, PlaylistTrack, ResolvedTrackSet
from playlist_actions.domain.errors import ResolutionFailure
from playlist_actions.domain.ports import TrackSource


logger = logging.getLogger(__name__)


class TrackSetResolver:
    """Produces the complete track set of a playlist.

    The view showing a playlist usually holds a single page of its tracks. When
    that page already covers the whole playlist it is used as is, otherwise the
    full membership is fetched in one unpaginated request.
    """

    def __init__(self, source: TrackSource):
        self._source = source

    async def resolve(self,
                      playlist: Playlist,
                      loaded_ids: Sequence[str],
                      loaded_data: Mapping[str, PlaylistTrack]) -> ResolvedTrackSet:
        """Resolve the authoritative track set for ``playlist``.

        Args:
            playlist: Playlist record; its ``song_count`` is authoritative
            loaded_ids: Membership ids currently loaded in the view
            loaded_data: Loaded tracks keyed by membership id

        Returns:
            ResolvedTrackSet ordered by membership id

        Raises:
            ResolutionFailure: if the full membership could not be fetched
        """
        if loaded_ids is not None and len(loaded_ids) == playlist.song_count:
            logger.debug(f"Using {len(loaded_ids)} loaded tracks for playlist {playlist.id}")
            return ResolvedTrackSet.from_loaded(loaded_ids, loaded_data)

        loaded = len(loaded_ids) if loaded_ids is not None else 0
        logger.info(f"Fetching all tracks of playlist {playlist.id} "
                    f"({loaded}/{playlist.song_count} loaded)")
        try:
            tracks = await asyncio.to_thread(self._source.list_playlist_tracks, playlist.id)
        except Exception as e:
            logger.warning(f"Failed to fetch tracks for playlist {playlist.id}: {e}")
            raise ResolutionFailure(f"Failed to fetch tracks for playlist {playlist.id}: {e}") from e

        resolved = ResolvedTrackSet.from_tracks(tracks)
        if len(resolved) != playlist.song_count:
            logger.warning(f"Playlist {playlist.id} declares {playlist.song_count} tracks "
                           f"but the server returned {len(resolved)}")
        return resolved
