from typing import Iterable, List, Tuple

from playlist_actions.domain.entities import Playlist, Session
from playlist_actions.domain.normalization import sort_key


def partition_playlists(playlists: Iterable[Playlist],
                        session: Session) -> Tuple[List[Playlist], List[Playlist]]:
    """Split playlists into the user's own and the ones shared with them.

    Both lists are sorted by name.
    """
    mine: List[Playlist] = []
    shared: List[Playlist] = []
    for playlist in playlists:
        if session.owns(playlist):
            mine.append(playlist)
        else:
            shared.append(playlist)

    mine.sort(key=lambda p: sort_key(p.name))
    shared.sort(key=lambda p: sort_key(p.name))
    return mine, shared
