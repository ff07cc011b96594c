from playlist_actions.domain.entities import (
    Playlist, PlaylistTrack, QueueAction, QueueCommand, ResolvedTrackSet, Session
)


def test_playlist_from_json_maps_server_fields():
    playlist = Playlist.from_json({
        "id": "p1",
        "name": "Discover",
        "ownerId": "u1",
        "ownerName": "alice",
        "songCount": 30,
        "size": 1048576,
        "duration": 1800.5,
        "public": True,
        "externalUrl": "https://example.com/p1",
        "external_agent": "spotify",
        "externalSyncable": True,
    })

    assert playlist.song_count == 30
    assert playlist.size == 1048576
    assert playlist.is_external is True
    assert playlist.external_agent == "spotify"


def test_playlist_without_external_url_is_not_external():
    assert Playlist.from_json({"id": 5, "name": "Local", "externalUrl": ""}).is_external is False
    assert Playlist(id="p", name="x").id == "p"


def test_playlist_track_from_json_keeps_raw_record():
    record = {"id": 3, "mediaFileId": "mf", "playlistId": "p1", "title": "T", "bitRate": 320}

    track = PlaylistTrack.from_json(record)

    assert track.id == "3"
    assert track.raw["bitRate"] == 320


def test_resolved_track_set_iterates_in_id_order(make_tracks):
    tracks = make_tracks(3)
    resolved = ResolvedTrackSet.from_loaded(["2", "3", "1"], {t.id: t for t in tracks})

    assert [t.id for t in resolved] == ["2", "3", "1"]
    assert len(resolved) == 3


def test_resolved_track_set_from_tracks_drops_duplicate_ids(make_tracks):
    tracks = make_tracks(2) + make_tracks(1)

    resolved = ResolvedTrackSet.from_tracks(tracks)

    assert resolved.ids == ("1", "2")


def test_queue_command_ordered_tracks(make_tracks):
    tracks = make_tracks(2)
    command = QueueCommand(QueueAction.PLAY, ("2", "1"), {t.id: t for t in tracks})

    assert [t.id for t in command.ordered_tracks()] == ["2", "1"]


def test_session_ownership():
    playlist = Playlist(id="p", name="x", owner_id="u1", owner_name="alice")

    assert Session(username="alice").owns(playlist)
    assert Session(username="alice", user_id="u2").owns(playlist) is False
    assert Session(username="bob", user_id="u1").owns(playlist)
