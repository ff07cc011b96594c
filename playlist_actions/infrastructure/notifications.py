import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from playlist_actions.domain.ports import LIST_FETCH_ERROR, SYNC_ERROR, SYNC_SUCCESS, Notifier, Refresher

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: Dict[str, str] = {
    SYNC_SUCCESS: "Playlist synced",
    SYNC_ERROR: "Error syncing playlist: %{error}",
    LIST_FETCH_ERROR: "Could not fetch the playlist tracks",
}

_LEVELS = {
    'info': logging.INFO,
    'success': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}

_PLACEHOLDER_PATTERN = re.compile(r"%\{(\w+)\}")


@dataclass(frozen=True)
class Notification:
    """A message shown to the user."""

    key: str
    level: str
    text: str
    params: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


def render_message(template: str, params: Dict[str, str]) -> str:
    """Interpolate ``%{name}`` placeholders, leaving unknown ones untouched."""
    return _PLACEHOLDER_PATTERN.sub(
        lambda m: str(params[m.group(1)]) if m.group(1) in params else m.group(0),
        template,
    )


class LoggingNotifier(Notifier):
    """Notifier that renders messages, logs them and keeps a history."""

    def __init__(self, messages: Optional[Dict[str, str]] = None,
                 sink: Optional[Callable[[Notification], None]] = None):
        self.messages = dict(DEFAULT_MESSAGES)
        if messages:
            self.messages.update(messages)
        self._sink = sink
        self.history: List[Notification] = []

    def notify(self, message: str, level: str = 'info', **params: str) -> None:
        template = self.messages.get(message, message)
        notification = Notification(
            key=message,
            level=level,
            text=render_message(template, params),
            params=dict(params),
        )
        self.history.append(notification)
        logger.log(_LEVELS.get(level, logging.INFO), notification.text)
        if self._sink:
            self._sink(notification)

    def count(self, key: str) -> int:
        return sum(1 for n in self.history if n.key == key)


class RefreshSignal(Refresher):
    """Broadcasts cache invalidation to subscribed resource views."""

    def __init__(self):
        self._listeners: List[Callable[[], None]] = []
        self.refresh_count = 0

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def refresh(self) -> None:
        self.refresh_count += 1
        logger.debug(f"Refreshing {len(self._listeners)} resource views")
        for listener in list(self._listeners):
            listener()
