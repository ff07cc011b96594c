import inspect

from playlist_actions.application import actions, dispatcher, export, library, resolver, sync
from playlist_actions.domain import ports
from playlist_actions.infrastructure import notifications
from playlist_actions.infrastructure.providers import library as library_client


def test_shared_constants_live_in_domain():
    assert ports.SYNC_SUCCESS == 'sync-success'
    assert ports.SYNC_ERROR == 'sync-error'
    assert ports.LIST_FETCH_ERROR == 'list-fetch-error'
    assert ports.M3U_MIME_TYPE == 'audio/x-mpegurl'
    assert notifications.SYNC_ERROR is ports.SYNC_ERROR
    assert library_client.M3U_MIME_TYPE is ports.M3U_MIME_TYPE


def test_application_layer_does_not_import_infrastructure():
    for module in (actions, dispatcher, export, library, resolver, sync):
        assert 'playlist_actions.infrastructure' not in inspect.getsource(module), module.__name__
