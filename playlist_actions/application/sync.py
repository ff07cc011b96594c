import asyncio
import logging
from typing import Optional

from playlist_actions.crosscutting.logging import CorrelationContext, log_error, log_with_fields
from playlist_actions.domain.entities import Playlist, SyncPhase, SyncSession
from playlist_actions.domain.errors import PermanentFailure, SyncFailure
from playlist_actions.domain.ports import SYNC_ERROR, SYNC_SUCCESS, Notifier, Refresher, TrackSource


logger = logging.getLogger(__name__)


class ExternalSyncCoordinator:
    """Confirmation and at-most-one-in-flight resync of an external playlist.

    Phases: IDLE -> CONFIRMING (user asked to sync) -> SYNCING (user confirmed)
    -> IDLE. Only entering SYNCING issues the remote request. SYNCING lasts
    until that request has finished, even when the waiting task is cancelled.
    """

    def __init__(self,
                 playlist: Playlist,
                 source: TrackSource,
                 notifier: Notifier,
                 refresher: Refresher):
        if not playlist.is_external:
            raise PermanentFailure(f"Playlist {playlist.id} is not an external playlist")
        self.playlist = playlist
        self.session = SyncSession(playlist_id=playlist.id)
        self._source = source
        self._notifier = notifier
        self._refresher = refresher
        self.last_error: Optional[SyncFailure] = None

    @property
    def phase(self) -> SyncPhase:
        return self.session.phase

    @property
    def sync_disabled(self) -> bool:
        """Whether the sync control must be disabled."""
        return self.session.phase is not SyncPhase.IDLE

    @property
    def confirming(self) -> bool:
        return self.session.phase is SyncPhase.CONFIRMING

    @property
    def syncing(self) -> bool:
        return self.session.phase is SyncPhase.SYNCING

    def request_sync(self) -> bool:
        """Ask the user for confirmation. Returns False when not idle."""
        if self.session.phase is not SyncPhase.IDLE:
            logger.debug(f"Ignoring sync request for playlist {self.playlist.id} "
                         f"in phase {self.session.phase.value}")
            return False
        self.session.phase = SyncPhase.CONFIRMING
        return True

    def cancel(self) -> None:
        """Close the confirmation without syncing."""
        if self.session.phase is SyncPhase.CONFIRMING:
            self.session.phase = SyncPhase.IDLE

    async def confirm(self) -> bool:
        """Confirm the sync and run it.

        Returns:
            True if the remote sync succeeded, False if it failed or the call
            was ignored because a sync is already in flight

        Raises:
            asyncio.CancelledError: if the caller is cancelled; the phase
                stays SYNCING until the pending request completes
        """
        if self.session.phase is SyncPhase.SYNCING:
            logger.info(f"Sync already in progress for playlist {self.playlist.id}, ignoring confirm")
            return False
        # Check and set with no await in between.
        self.session.phase = SyncPhase.SYNCING
        release_now = True

        with CorrelationContext(playlist_id=self.playlist.id, stage='sync'):
            try:
                log_with_fields(logger, 'INFO', 'External playlist sync started', {
                    'playlist_name': self.playlist.name,
                    'external_agent': self.playlist.external_agent,
                })
                worker = asyncio.ensure_future(
                    asyncio.to_thread(self._source.sync_external_playlist, self.playlist.id))
                try:
                    # The request thread cannot be interrupted, so cancelling
                    # only stops waiting for it.
                    await asyncio.shield(worker)
                except asyncio.CancelledError:
                    logger.info(f"Sync of playlist {self.playlist.id} cancelled, "
                                f"guard held until the request finishes")
                    release_now = False
                    worker.add_done_callback(self._release_after_cancel)
                    raise
                except Exception as e:
                    self.last_error = SyncFailure(str(e))
                    self.last_error.__cause__ = e
                    log_error(logger, 'External playlist sync failed', e)
                    self._notifier.notify(SYNC_ERROR, 'warning', error=str(e))
                    return False

                self.last_error = None
                log_with_fields(logger, 'INFO', 'External playlist sync completed')
                self._notifier.notify(SYNC_SUCCESS, 'success')
                self._refresher.refresh()
                return True
            finally:
                if release_now:
                    self.session.phase = SyncPhase.IDLE

    def _release_after_cancel(self, worker: asyncio.Future) -> None:
        """Return to IDLE once the request of a cancelled sync has finished."""
        if not worker.cancelled() and worker.exception() is not None:
            logger.warning(f"Cancelled sync of playlist {self.playlist.id} "
                           f"failed: {worker.exception()}")
        else:
            logger.debug(f"Request of cancelled sync of playlist {self.playlist.id} finished")
        self.session.phase = SyncPhase.IDLE
