import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from playlist_actions.domain.entities import Playlist, PlaylistTrack  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_server_env():
    """Keep PA_* server settings from the developer's shell out of the tests."""
    keys = ['PA_BASE_URL', 'PA_USERNAME', 'PA_USER_ID', 'PA_TOKEN', 'PA_TIMEOUT', 'PA_DOWNLOAD_DIR']
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


@pytest.fixture
def make_tracks():
    """Build tracks with membership ids 1..count, as the server numbers them."""
    def _make(count, playlist_id="pls1"):
        return [
            PlaylistTrack(
                id=str(i),
                media_file_id=f"mf{i}",
                playlist_id=playlist_id,
                title=f"Song {i}",
                artist="Artist",
                duration=180.0,
            )
            for i in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def playlist():
    return Playlist(id="pls1", name="Road Trip", owner_id="u1", owner_name="alice", song_count=50)


@pytest.fixture
def external_playlist():
    return Playlist(
        id="ext1",
        name="Discover Weekly",
        owner_id="u1",
        owner_name="alice",
        song_count=30,
        external_url="https://open.spotify.com/playlist/abc",
        external_agent="spotify",
    )
