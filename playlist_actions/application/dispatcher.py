import logging

from playlist_actions.domain.entities import QueueAction, QueueCommand, ResolvedTrackSet
from playlist_actions.domain.ports import PlaybackQueue


logger = logging.getLogger(__name__)


def build_command(action: QueueAction, resolved: ResolvedTrackSet) -> QueueCommand:
    """Map a user intent and a resolved track set to a queue command."""
    action = QueueAction(action)
    return QueueCommand(action=action, ids=tuple(resolved.ids), tracks=resolved.tracks)


class QueueActionDispatcher:
    """Emits exactly one command to the playback queue per dispatch."""

    def __init__(self, queue: PlaybackQueue):
        self._queue = queue
        self._handlers = {
            QueueAction.PLAY: queue.play_tracks,
            QueueAction.SHUFFLE: queue.shuffle_tracks,
            QueueAction.PLAY_NEXT: queue.play_next,
            QueueAction.ENQUEUE: queue.add_tracks,
        }

    def dispatch(self, action: QueueAction, resolved: ResolvedTrackSet) -> QueueCommand:
        try:
            action = QueueAction(action)
        except ValueError:
            raise ValueError(f"Unsupported queue action: {action}")

        command = build_command(action, resolved)
        logger.debug(f"Dispatching {action.value} with {len(command)} tracks")
        self._handlers[action](command)
        return command
