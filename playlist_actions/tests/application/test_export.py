import asyncio
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest

from playlist_actions.application.export import ExportRequester
from playlist_actions.domain.entities import Playlist
from playlist_actions.domain.errors import ExportFailure, TemporaryFailure
from playlist_actions.infrastructure.files import DirectoryFileSaver


M3U_BODY = b"#EXTM3U\n#PLAYLIST:Road Trip\n#EXTINF:180,Artist - Song 1\n/music/song1.mp3\n"


class TestExportRequester:

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.source = Mock()
        self.saver = DirectoryFileSaver(self.temp_dir)
        self.requester = ExportRequester(self.source, self.saver)

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_export_saves_m3u_named_after_playlist(self):
        self.source.export_playlist.return_value = M3U_BODY
        playlist = Playlist(id="pls1", name="Road Trip", song_count=1)

        path = asyncio.run(self.requester.request_export(playlist))

        self.source.export_playlist.assert_called_once_with("pls1")
        assert path == Path(self.temp_dir) / "Road Trip.m3u"
        assert path.read_bytes() == M3U_BODY

    def test_text_body_is_encoded(self):
        self.source.export_playlist.return_value = "#EXTM3U\n"
        playlist = Playlist(id="pls1", name="Text", song_count=0)

        path = asyncio.run(self.requester.request_export(playlist))

        assert path.read_text(encoding="utf-8") == "#EXTM3U\n"

    def test_unsafe_name_is_sanitized(self):
        self.source.export_playlist.return_value = M3U_BODY
        playlist = Playlist(id="pls1", name="AC/DC: Best?", song_count=1)

        path = asyncio.run(self.requester.request_export(playlist))

        assert path.name == "AC_DC_ Best_.m3u"

    def test_fetch_failure_raises_export_failure(self):
        self.source.export_playlist.side_effect = TemporaryFailure("timeout")
        playlist = Playlist(id="pls1", name="Road Trip", song_count=1)

        with pytest.raises(ExportFailure, match="timeout"):
            asyncio.run(self.requester.request_export(playlist))

        assert list(Path(self.temp_dir).iterdir()) == []

    def test_save_failure_raises_export_failure(self):
        self.source.export_playlist.return_value = M3U_BODY
        saver = Mock()
        saver.save.side_effect = PermissionError("read-only")
        requester = ExportRequester(self.source, saver)

        with pytest.raises(ExportFailure, match="read-only"):
            asyncio.run(requester.request_export(Playlist(id="pls1", name="Road Trip")))

    def test_any_saver_error_raises_export_failure(self):
        self.source.export_playlist.return_value = M3U_BODY
        saver = Mock()
        saver.save.side_effect = ValueError("unsupported media type")
        requester = ExportRequester(self.source, saver)

        with pytest.raises(ExportFailure, match="unsupported media type"):
            asyncio.run(requester.request_export(Playlist(id="pls1", name="Road Trip")))
