import asyncio
import threading
from unittest.mock import Mock

import pytest

from playlist_actions.application.sync import ExternalSyncCoordinator
from playlist_actions.domain.entities import Playlist, SyncPhase
from playlist_actions.domain.errors import PermanentFailure, SyncFailure, TemporaryFailure
from playlist_actions.infrastructure.notifications import LoggingNotifier, RefreshSignal


class TestExternalSyncCoordinator:
    """Tests for the confirm / sync state machine."""

    def setup_method(self):
        self.source = Mock()
        self.notifier = LoggingNotifier()
        self.refresher = RefreshSignal()

    def _coordinator(self, playlist):
        return ExternalSyncCoordinator(playlist, self.source, self.notifier, self.refresher)

    def test_only_external_playlists_are_eligible(self, playlist):
        with pytest.raises(PermanentFailure, match="not an external playlist"):
            self._coordinator(playlist)

    def test_starts_idle_and_enabled(self, external_playlist):
        coordinator = self._coordinator(external_playlist)

        assert coordinator.phase is SyncPhase.IDLE
        assert coordinator.sync_disabled is False

    def test_request_enters_confirming_without_remote_call(self, external_playlist):
        coordinator = self._coordinator(external_playlist)

        assert coordinator.request_sync() is True

        assert coordinator.phase is SyncPhase.CONFIRMING
        assert coordinator.sync_disabled is True
        self.source.sync_external_playlist.assert_not_called()

    def test_second_request_while_confirming_is_ignored(self, external_playlist):
        coordinator = self._coordinator(external_playlist)
        coordinator.request_sync()

        assert coordinator.request_sync() is False
        assert coordinator.phase is SyncPhase.CONFIRMING

    def test_cancel_returns_to_idle(self, external_playlist):
        coordinator = self._coordinator(external_playlist)
        coordinator.request_sync()

        coordinator.cancel()

        assert coordinator.phase is SyncPhase.IDLE
        self.source.sync_external_playlist.assert_not_called()

    def test_successful_sync_notifies_refreshes_and_returns_idle(self, external_playlist):
        coordinator = self._coordinator(external_playlist)
        coordinator.request_sync()

        result = asyncio.run(coordinator.confirm())

        assert result is True
        self.source.sync_external_playlist.assert_called_once_with("ext1")
        assert coordinator.phase is SyncPhase.IDLE
        assert self.notifier.count('sync-success') == 1
        assert self.notifier.history[-1].level == 'success'
        assert self.refresher.refresh_count == 1

    def test_failed_sync_warns_with_remote_message_and_returns_idle(self, external_playlist):
        self.source.sync_external_playlist.side_effect = TemporaryFailure("Spotify agent unavailable")
        coordinator = self._coordinator(external_playlist)
        coordinator.request_sync()

        result = asyncio.run(coordinator.confirm())

        assert result is False
        assert coordinator.phase is SyncPhase.IDLE
        assert self.notifier.count('sync-error') == 1
        notification = self.notifier.history[-1]
        assert notification.level == 'warning'
        assert notification.params == {'error': "Spotify agent unavailable"}
        assert "Spotify agent unavailable" in notification.text
        assert self.refresher.refresh_count == 0
        assert isinstance(coordinator.last_error, SyncFailure)

    def test_guard_is_released_after_failure(self, external_playlist):
        self.source.sync_external_playlist.side_effect = [TemporaryFailure("boom"), None]
        coordinator = self._coordinator(external_playlist)

        coordinator.request_sync()
        assert asyncio.run(coordinator.confirm()) is False
        coordinator.request_sync()
        assert asyncio.run(coordinator.confirm()) is True

        assert self.source.sync_external_playlist.call_count == 2
        assert coordinator.last_error is None

    def test_double_confirm_issues_single_request(self, external_playlist):
        started = threading.Event()
        release = threading.Event()

        def slow_sync(playlist_id):
            started.set()
            release.wait(5)

        self.source.sync_external_playlist.side_effect = slow_sync
        coordinator = self._coordinator(external_playlist)

        async def scenario():
            coordinator.request_sync()
            first = asyncio.ensure_future(coordinator.confirm())
            await asyncio.to_thread(started.wait, 5)

            assert coordinator.phase is SyncPhase.SYNCING
            assert coordinator.sync_disabled is True
            assert coordinator.request_sync() is False
            second = await coordinator.confirm()

            release.set()
            return await first, second

        first_result, second_result = asyncio.run(scenario())

        assert first_result is True
        assert second_result is False
        assert self.source.sync_external_playlist.call_count == 1
        assert self.notifier.count('sync-success') == 1
        assert coordinator.phase is SyncPhase.IDLE

    def test_cancelled_sync_holds_guard_until_request_finishes(self, external_playlist):
        started = threading.Event()
        release = threading.Event()
        lock = threading.Lock()
        in_flight = []
        concurrent = []

        def slow_sync(playlist_id):
            with lock:
                in_flight.append(playlist_id)
                concurrent.append(len(in_flight))
            started.set()
            release.wait(5)
            with lock:
                in_flight.remove(playlist_id)

        self.source.sync_external_playlist.side_effect = slow_sync
        coordinator = self._coordinator(external_playlist)

        async def wait_for_idle():
            for _ in range(500):
                if coordinator.phase is SyncPhase.IDLE:
                    return
                await asyncio.sleep(0.01)

        async def scenario():
            coordinator.request_sync()
            task = asyncio.ensure_future(coordinator.confirm())
            await asyncio.to_thread(started.wait, 5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            assert coordinator.phase is SyncPhase.SYNCING
            assert coordinator.sync_disabled is True
            assert coordinator.request_sync() is False
            assert await coordinator.confirm() is False

            release.set()
            await wait_for_idle()
            assert coordinator.phase is SyncPhase.IDLE
            assert self.notifier.history == []

            coordinator.request_sync()
            return await coordinator.confirm()

        assert asyncio.run(scenario()) is True
        assert self.source.sync_external_playlist.call_count == 2
        assert max(concurrent) == 1
        assert self.notifier.count('sync-success') == 1
        assert self.refresher.refresh_count == 1
