"""
Helix stream status client for the Emote Bot.

This module queries Twitch's streams endpoint to find out whether a channel is
currently broadcasting. The synchronous requests call runs in a worker thread
so the event loop is never blocked.
"""

import asyncio
import logging
from typing import Any, Dict, Optional
import requests


logger = logging.getLogger(__name__)

HELIX_STREAMS_URL = "https://api.twitch.tv/helix/streams"


class StreamStatusError(Exception):
    """Base exception for stream status query errors."""
    pass


class StreamStatusConnectionError(StreamStatusError):
    """Raised when the status endpoint cannot be reached."""
    pass


class StreamStatusTimeoutError(StreamStatusError):
    """Raised when the status query times out."""
    pass


def is_valid_status_body(body: Any) -> bool:
    """Check that a decoded response has the shape the poller relies on."""
    return isinstance(body, dict) and 'data' in body


def is_live(body: Dict[str, Any]) -> bool:
    """
    Derive the live flag from a streams response.

    The endpoint returns an empty list when the channel is offline, so the
    first entry (if any) decides.
    """
    data = body.get('data')
    first = data[0] if isinstance(data, list) and data else None
    if not isinstance(first, dict):
        return False
    return str(first.get('type') or '').lower() == 'live'


class StreamStatusClient:
    """Issues authenticated GET requests against the Helix streams endpoint."""

    def __init__(self, token: str, client_id: Optional[str] = None, timeout: float = 10.0,
                 base_url: str = HELIX_STREAMS_URL):
        """
        Initialize the status client.

        Args:
            token: Chat OAuth token; an 'oauth:' prefix is stripped
            client_id: Application client id sent as Client-Id, if configured
            timeout: Request timeout in seconds
            base_url: Streams endpoint URL
        """
        self.token = token[len('oauth:'):] if token.startswith('oauth:') else token
        self.client_id = client_id
        self.timeout = timeout
        self.base_url = base_url
        self._session = requests.Session()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP session."""
        if self._session:
            self._session.close()

    def _headers(self) -> Dict[str, str]:
        headers = {'Authorization': f'Bearer {self.token}'}
        if self.client_id:
            headers['Client-Id'] = self.client_id
        return headers

    async def fetch_stream_status(self, channel: str) -> Any:
        """
        Query the live status of a channel.

        Args:
            channel: Channel login, with or without a leading '#'

        Returns:
            The decoded JSON body, or None if the body is not JSON

        Raises:
            StreamStatusConnectionError: If the request fails
            StreamStatusTimeoutError: If the request times out
        """
        login = channel.lstrip('#')

        try:
            response = await asyncio.to_thread(
                self._session.get,
                self.base_url,
                params={'user_login': login},
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise StreamStatusTimeoutError(f"Status query for {login} timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            raise StreamStatusConnectionError(f"Status query for {login} failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        logger.debug(f"Retrieved channel info for {login}: HTTP {response.status_code}")
        return body
