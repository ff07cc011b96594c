import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional
import uuid

from playlist_actions.domain.entities import PlaylistTrack, QueueCommand
from playlist_actions.domain.ports import PlaybackQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueItem:
    """One entry of the play queue. The same track may be queued several times."""

    track: PlaylistTrack
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))


class InMemoryPlaybackQueue(PlaybackQueue):
    """Process-local playback queue store.

    Reference implementation of the PlaybackQueue port, used by the CLI and
    tests. It only tracks queue contents and the current position.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.items: List[QueueItem] = []
        self.current_index: Optional[int] = None
        self.commands_received = 0

    @property
    def current(self) -> Optional[PlaylistTrack]:
        if self.current_index is None or not self.items:
            return None
        return self.items[self.current_index].track

    def tracks(self) -> List[PlaylistTrack]:
        return [item.track for item in self.items]

    def _replace(self, tracks: List[PlaylistTrack]) -> None:
        self.items = [QueueItem(track) for track in tracks]
        self.current_index = 0 if self.items else None

    def play_tracks(self, command: QueueCommand) -> None:
        self.commands_received += 1
        self._replace(command.ordered_tracks())
        logger.debug(f"Queue replaced with {len(self.items)} tracks")

    def shuffle_tracks(self, command: QueueCommand) -> None:
        self.commands_received += 1
        tracks = command.ordered_tracks()
        self._rng.shuffle(tracks)
        self._replace(tracks)
        logger.debug(f"Queue replaced with {len(self.items)} shuffled tracks")

    def play_next(self, command: QueueCommand) -> None:
        self.commands_received += 1
        new_items = [QueueItem(track) for track in command.ordered_tracks()]
        if not new_items:
            return
        if self.current_index is None:
            self.items.extend(new_items)
            self.current_index = 0
            return
        insert_at = self.current_index + 1
        self.items[insert_at:insert_at] = new_items
        logger.debug(f"Inserted {len(new_items)} tracks at position {insert_at}")

    def add_tracks(self, command: QueueCommand) -> None:
        self.commands_received += 1
        new_items = [QueueItem(track) for track in command.ordered_tracks()]
        if not new_items:
            return
        self.items.extend(new_items)
        if self.current_index is None:
            self.current_index = 0
        logger.debug(f"Appended {len(new_items)} tracks to the queue")
