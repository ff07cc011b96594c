import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Mapping, Optional, Sequence, Set

from playlist_actions.application.dispatcher import QueueActionDispatcher
from playlist_actions.application.export import ExportRequester
from playlist_actions.application.resolver import TrackSetResolver
from playlist_actions.application.sync import ExternalSyncCoordinator
from playlist_actions.crosscutting.logging import CorrelationContext
from playlist_actions.domain.entities import (
    Playlist, PlaylistTrack, QueueAction, QueueCommand, Session
)
from playlist_actions.domain.errors import ExportFailure, ResolutionFailure
from playlist_actions.domain.ports import (
    LIST_FETCH_ERROR, FileSaver, Notifier, PlaybackQueue, Refresher, TrackSource
)


logger = logging.getLogger(__name__)


class PlaylistActionBar:
    """Actions available on a playlist's page.

    Binds one playlist view (the playlist record plus the page of tracks it has
    loaded) to track resolution, queue dispatch, external sync and export.
    Failures never escape an action: they are reported through the notifier.
    """

    def __init__(self,
                 playlist: Playlist,
                 loaded_ids: Optional[Sequence[str]] = None,
                 loaded_data: Optional[Mapping[str, PlaylistTrack]] = None,
                 *,
                 source: TrackSource,
                 queue: PlaybackQueue,
                 notifier: Notifier,
                 refresher: Refresher,
                 saver: FileSaver,
                 session: Optional[Session] = None):
        self.playlist = playlist
        self.loaded_ids = list(loaded_ids or [])
        self.loaded_data = dict(loaded_data or {})
        self.session = session
        self._notifier = notifier
        self._resolver = TrackSetResolver(source)
        self._dispatcher = QueueActionDispatcher(queue)
        self._exporter = ExportRequester(source, saver)
        self.sync: Optional[ExternalSyncCoordinator] = None
        if playlist.is_external:
            self.sync = ExternalSyncCoordinator(playlist, source, notifier, refresher)
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def view_original_url(self) -> Optional[str]:
        return self.playlist.external_url

    @property
    def is_owned(self) -> bool:
        return bool(self.session and self.session.owns(self.playlist))

    def update_loaded(self, loaded_ids: Sequence[str], loaded_data: Mapping[str, PlaylistTrack]) -> None:
        """Replace the page of tracks the view currently holds."""
        self.loaded_ids = list(loaded_ids)
        self.loaded_data = dict(loaded_data)

    async def _resolve_and_dispatch(self, action: QueueAction) -> Optional[QueueCommand]:
        with CorrelationContext(playlist_id=self.playlist.id, stage=action.value):
            try:
                resolved = await self._resolver.resolve(self.playlist, self.loaded_ids, self.loaded_data)
            except ResolutionFailure as e:
                logger.warning(f"Abandoning {action.value} for playlist {self.playlist.id}: {e}")
                self._notifier.notify(LIST_FETCH_ERROR, 'warning')
                return None
            return self._dispatcher.dispatch(action, resolved)

    async def play(self) -> Optional[QueueCommand]:
        return await self._resolve_and_dispatch(QueueAction.PLAY)

    async def shuffle(self) -> Optional[QueueCommand]:
        return await self._resolve_and_dispatch(QueueAction.SHUFFLE)

    async def play_next(self) -> Optional[QueueCommand]:
        return await self._resolve_and_dispatch(QueueAction.PLAY_NEXT)

    async def enqueue(self) -> Optional[QueueCommand]:
        return await self._resolve_and_dispatch(QueueAction.ENQUEUE)

    async def export(self) -> Optional[Path]:
        with CorrelationContext(playlist_id=self.playlist.id, stage='export'):
            try:
                return await self._exporter.request_export(self.playlist)
            except ExportFailure as e:
                logger.warning(str(e))
                self._notifier.notify(LIST_FETCH_ERROR, 'warning')
                return None

    def spawn(self, action: Awaitable) -> asyncio.Task:
        """Run an action in the background, owned by this action bar."""
        if self._closed:
            if asyncio.iscoroutine(action):
                action.close()
            raise RuntimeError(f"Action bar for playlist {self.playlist.id} is closed")
        task = asyncio.ensure_future(action)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Cancel every action still in flight."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"Cancelled {len(tasks)} pending actions for playlist {self.playlist.id}")
