#!/usr/bin/env python3
"""
Unit tests for the Helix stream status client with mocked HTTP responses.
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from stream_status_client import (
    StreamStatusClient, StreamStatusConnectionError, StreamStatusTimeoutError,
    HELIX_STREAMS_URL
)


def mock_response(status_code=200, body=None, invalid_json=False):
    response = MagicMock()
    response.status_code = status_code
    if invalid_json:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = body
    return response


class TestStreamStatusClient:
    """Test status queries against the streams endpoint."""

    def test_initialization(self):
        client = StreamStatusClient('oauth:abc123', client_id='cid', timeout=5)

        assert client.token == 'abc123'
        assert client.timeout == 5
        assert client._headers() == {'Authorization': 'Bearer abc123', 'Client-Id': 'cid'}

    def test_headers_without_client_id(self):
        client = StreamStatusClient('abc123')
        assert client._headers() == {'Authorization': 'Bearer abc123'}

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        client = StreamStatusClient('oauth:abc123', timeout=5)
        body = {'data': [{'type': 'live'}]}

        with patch.object(client, '_session') as mock_session:
            mock_session.get.return_value = mock_response(body=body)

            result = await client.fetch_stream_status('#SomeChannel')

        assert result == body
        mock_session.get.assert_called_once_with(
            HELIX_STREAMS_URL,
            params={'user_login': 'SomeChannel'},
            headers={'Authorization': 'Bearer abc123'},
            timeout=5
        )

    @pytest.mark.asyncio
    async def test_error_status_returns_body(self):
        """Test that error bodies are passed through for the caller to reject."""
        client = StreamStatusClient('abc123')
        body = {'error': 'Unauthorized', 'status': 401}

        with patch.object(client, '_session') as mock_session:
            mock_session.get.return_value = mock_response(status_code=401, body=body)

            assert await client.fetch_stream_status('somechannel') == body

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = StreamStatusClient('abc123')

        with patch.object(client, '_session') as mock_session:
            mock_session.get.return_value = mock_response(status_code=502, invalid_json=True)

            assert await client.fetch_stream_status('somechannel') is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = StreamStatusClient('abc123')

        with patch.object(client, '_session') as mock_session:
            mock_session.get.side_effect = requests.exceptions.Timeout("Request timed out")

            with pytest.raises(StreamStatusTimeoutError):
                await client.fetch_stream_status('somechannel')

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = StreamStatusClient('abc123')

        with patch.object(client, '_session') as mock_session:
            mock_session.get.side_effect = requests.exceptions.ConnectionError("Connection failed")

            with pytest.raises(StreamStatusConnectionError):
                await client.fetch_stream_status('somechannel')

    @pytest.mark.asyncio
    async def test_close(self):
        client = StreamStatusClient('abc123')

        with patch.object(client, '_session') as mock_session:
            async with client:
                pass

        mock_session.close.assert_called_once()
