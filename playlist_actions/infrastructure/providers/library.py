import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

import requests

from playlist_actions.domain.entities import Playlist, PlaylistTrack
from playlist_actions.domain.errors import NotFound, PermanentFailure, RateLimited, TemporaryFailure
from playlist_actions.domain.ports import M3U_MIME_TYPE, TrackSource

logger = logging.getLogger(__name__)

AUTH_HEADER = "x-nd-authorization"
CLIENT_ID_HEADER = "x-nd-client-unique-id"


class LibraryClient(TrackSource):
    """REST adapter for the music library server implementing the TrackSource port."""

    def __init__(self,
                 base_url: str,
                 token: Optional[str] = None,
                 timeout: float = 15.0,
                 client_id: Optional[str] = None,
                 on_token_refresh: Optional[Callable[[str], None]] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the library client.

        Args:
            base_url: Server root URL, e.g. ``http://localhost:4533``
            token: Bearer token of the signed-in user
            timeout: Request timeout in seconds
            client_id: Unique id reported to the server for this client
            on_token_refresh: Called with the new token when the server rotates it
            session: Preconfigured requests session (mainly for tests)
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.client_id = client_id or str(uuid.uuid4())
        self._on_token_refresh = on_token_refresh
        self._session = session or requests.Session()

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}/api"

    def _headers(self, accept: str = 'application/json') -> Dict[str, str]:
        headers = {
            'Accept': accept,
            CLIENT_ID_HEADER: self.client_id,
        }
        if self.token:
            headers[AUTH_HEADER] = f"Bearer {self.token}"
        return headers

    def _update_token(self, response: requests.Response) -> None:
        """Adopt a rotated token sent back by the server."""
        value = response.headers.get(AUTH_HEADER)
        if not value:
            return
        token = value[len('Bearer '):] if value.startswith('Bearer ') else value
        if token and token != self.token:
            self.token = token
            logger.debug("Server rotated the session token")
            if self._on_token_refresh:
                try:
                    self._on_token_refresh(token)
                except Exception as e:
                    logger.warning(f"Failed to persist refreshed token: {e}")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extract the server's error text, falling back to the HTTP reason."""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        text = (response.text or '').strip()
        if text:
            return text
        return response.reason or f"HTTP {response.status_code}"

    def _raise_for_status(self, response: requests.Response, operation: str) -> None:
        status = response.status_code
        if status < 400:
            return
        message = self._error_message(response)
        if status == 429:
            retry_after = response.headers.get('Retry-After', '1')
            try:
                retry_after_ms = int(float(retry_after) * 1000)
            except ValueError:
                retry_after_ms = 1000
            raise RateLimited(retry_after_ms=retry_after_ms, message=message)
        if status == 404:
            raise NotFound(message)
        if status in (400, 401, 403):
            raise PermanentFailure(message)
        raise TemporaryFailure(message)

    def _request(self, method: str, path: str, operation: str,
                 params: Optional[Dict[str, Any]] = None,
                 accept: str = 'application/json') -> requests.Response:
        url = f"{self.rest_url}{path}"
        logger.debug(f"{method} {url} ({operation})")
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                headers=self._headers(accept),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise TemporaryFailure(f"Timed out during {operation}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TemporaryFailure(f"Request failed during {operation}: {e}") from e

        self._update_token(response)
        self._raise_for_status(response, operation)
        return response

    def list_playlist_tracks(self, playlist_id: str) -> List[PlaylistTrack]:
        """Fetch the complete membership of a playlist in a single unpaginated request.

        Args:
            playlist_id: Playlist identifier

        Returns:
            Tracks ordered by membership id ascending
        """
        params = {
            '_start': 0,
            '_end': 0,
            '_sort': 'id',
            '_order': 'ASC',
            'playlist_id': playlist_id,
        }
        response = self._request('GET', f"/playlist/{playlist_id}/tracks",
                                 'list playlist tracks', params=params)
        records = response.json() or []
        return [PlaylistTrack.from_json(record) for record in records]

    def sync_external_playlist(self, playlist_id: str) -> None:
        """Trigger the server-side resync of an external playlist."""
        self._request('PUT', f"/externalPlaylist/sync/{playlist_id}", 'sync external playlist')

    def export_playlist(self, playlist_id: str) -> bytes:
        """Download the playlist as M3U using content negotiation."""
        response = self._request('GET', f"/playlist/{playlist_id}/tracks",
                                 'export playlist', accept=M3U_MIME_TYPE)
        return response.content

    def get_playlist(self, playlist_id: str) -> Playlist:
        response = self._request('GET', f"/playlist/{playlist_id}", 'get playlist')
        return Playlist.from_json(response.json())

    def list_playlists(self) -> List[Playlist]:
        params = {'_start': 0, '_end': 0, '_sort': 'name', '_order': 'ASC'}
        response = self._request('GET', "/playlist", 'list playlists', params=params)
        return [Playlist.from_json(record) for record in response.json() or []]
