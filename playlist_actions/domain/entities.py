from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Playlist:
    """Domain entity representing a playlist as exposed by the library server."""

    id: str
    name: str
    owner_id: str = ""
    owner_name: str = ""
    song_count: int = 0
    size: int = 0
    duration: float = 0.0
    public: bool = False
    comment: str = ""
    external_url: Optional[str] = None
    external_agent: Optional[str] = None
    external_syncable: bool = False

    @property
    def is_external(self) -> bool:
        """External playlists live in a remote system and can be resynchronized."""
        return bool(self.external_url)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Playlist":
        """Deserialize a playlist record from the REST API."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            owner_id=str(data.get("ownerId", "") or ""),
            owner_name=data.get("ownerName", "") or "",
            song_count=int(data.get("songCount", 0) or 0),
            size=int(data.get("size", 0) or 0),
            duration=float(data.get("duration", 0) or 0),
            public=bool(data.get("public", False)),
            comment=data.get("comment", "") or "",
            external_url=data.get("externalUrl") or None,
            external_agent=data.get("external_agent") or None,
            external_syncable=bool(data.get("externalSyncable", False)),
        )


@dataclass(frozen=True)
class PlaylistTrack:
    """A track's membership in a playlist.

    ``id`` is the membership identity (its position key inside the playlist),
    ``media_file_id`` the identity of the underlying song.
    """

    id: str
    media_file_id: str = ""
    playlist_id: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    duration: float = 0.0
    path: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PlaylistTrack":
        return cls(
            id=str(data["id"]),
            media_file_id=str(data.get("mediaFileId", "") or ""),
            playlist_id=str(data.get("playlistId", "") or ""),
            title=data.get("title", "") or "",
            artist=data.get("artist", "") or "",
            album=data.get("album", "") or "",
            duration=float(data.get("duration", 0) or 0),
            path=data.get("path", "") or "",
            raw=dict(data),
        )


@dataclass(frozen=True)
class ResolvedTrackSet:
    """Ordered membership ids plus the id -> track mapping for one playlist."""

    ids: Tuple[str, ...]
    tracks: Mapping[str, PlaylistTrack]

    @classmethod
    def from_tracks(cls, tracks: Sequence[PlaylistTrack]) -> "ResolvedTrackSet":
        mapping: Dict[str, PlaylistTrack] = {}
        for track in tracks:
            mapping[track.id] = track
        return cls(ids=tuple(mapping.keys()), tracks=mapping)

    @classmethod
    def from_loaded(cls, ids: Sequence[str], data: Mapping[str, PlaylistTrack]) -> "ResolvedTrackSet":
        return cls(ids=tuple(ids), tracks=data)

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[PlaylistTrack]:
        for track_id in self.ids:
            yield self.tracks[track_id]

    def ordered(self) -> List[PlaylistTrack]:
        return list(self)


class QueueAction(str, Enum):
    """User intents that mutate the playback queue."""

    PLAY = "play"
    SHUFFLE = "shuffle"
    PLAY_NEXT = "play_next"
    ENQUEUE = "enqueue"


@dataclass(frozen=True)
class QueueCommand:
    """Instruction for the playback queue store. Consumed exactly once."""

    action: QueueAction
    ids: Tuple[str, ...]
    tracks: Mapping[str, PlaylistTrack]

    def ordered_tracks(self) -> List[PlaylistTrack]:
        return [self.tracks[track_id] for track_id in self.ids]

    def __len__(self) -> int:
        return len(self.ids)


class SyncPhase(str, Enum):
    """Phases of an external playlist sync session."""

    IDLE = "idle"
    CONFIRMING = "confirming"
    SYNCING = "syncing"


@dataclass
class SyncSession:
    """Ephemeral sync state attached to one playlist action bar."""

    playlist_id: str
    phase: SyncPhase = SyncPhase.IDLE


@dataclass(frozen=True)
class Session:
    """Signed-in identity used to talk to the library server."""

    username: str
    user_id: str = ""
    token: Optional[str] = None

    def owns(self, playlist: Playlist) -> bool:
        if self.user_id and playlist.owner_id:
            return self.user_id == playlist.owner_id
        return self.username == playlist.owner_name
