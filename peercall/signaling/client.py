"""
HTTP client for the signaling coordinator.
"""
import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from ..core.exceptions import (
    RoomNotFoundError,
    PeerNotFoundError,
    ValidationError,
    SignalingError,
)
from ..core.logging import LoggerMixin


_ERRORS_BY_CODE = {
    RoomNotFoundError.code: RoomNotFoundError,
    PeerNotFoundError.code: PeerNotFoundError,
    ValidationError.code: ValidationError,
}


class SignalingClient(LoggerMixin):
    """Thin wrappers around the coordinator's request/response calls."""

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None):
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _request(self, method: str, path: str, *, json: Any = None,
                       params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        session = await self._get_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, json=json, params=params) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = {'error': await response.text()}

                if response.status >= 400:
                    raise self._error_from(response.status, body)
                return body
        except aiohttp.ClientError as e:
            raise SignalingError(f"Request to {path} failed: {e}", {
                "method": method,
                "url": url,
                "error_type": type(e).__name__
            }) from e
        except asyncio.TimeoutError as e:
            raise SignalingError(f"Request to {path} timed out", {
                "method": method,
                "url": url,
                "timeout": self.timeout.total
            }) from e

    @staticmethod
    def _error_from(status: int, body: Any):
        if not isinstance(body, dict):
            body = {'error': str(body)}
        message = body.get('error') or f"HTTP {status}"
        details = body.get('details') or {}
        error_cls = _ERRORS_BY_CODE.get(body.get('code'))
        if error_cls is not None:
            return error_cls(message, details)
        return SignalingError(message, details, status=status)

    # Room registry

    async def create_room(self) -> str:
        body = await self._request('POST', '/api/rooms')
        return body['roomId']

    async def join_room(self, room_id: str, peer_id: str) -> List[str]:
        body = await self._request('POST', f'/api/rooms/{room_id}/join', json={'peerId': peer_id})
        return body['peers']

    async def list_peers(self, room_id: str, peer_id: Optional[str] = None) -> List[str]:
        params = {'peerId': peer_id} if peer_id else None
        body = await self._request('GET', f'/api/rooms/{room_id}/peers', params=params)
        return body['peers']

    # Mailbox exchange

    async def send_offer(self, room_id: str, from_peer_id: str, to_peer_id: str, offer: str) -> Dict[str, Any]:
        return await self._request('POST', f'/api/rooms/{room_id}/offers', json={
            'fromPeerId': from_peer_id, 'toPeerId': to_peer_id, 'offer': offer
        })

    async def send_answer(self, room_id: str, from_peer_id: str, to_peer_id: str, answer: str) -> Dict[str, Any]:
        return await self._request('POST', f'/api/rooms/{room_id}/answers', json={
            'fromPeerId': from_peer_id, 'toPeerId': to_peer_id, 'answer': answer
        })

    async def send_ice_candidate(self, room_id: str, from_peer_id: str, to_peer_id: str, candidate: str) -> Dict[str, Any]:
        return await self._request('POST', f'/api/rooms/{room_id}/ice-candidates', json={
            'fromPeerId': from_peer_id, 'toPeerId': to_peer_id, 'candidate': candidate
        })

    async def get_offers(self, room_id: str, peer_id: str) -> List[Dict[str, str]]:
        body = await self._request('GET', f'/api/rooms/{room_id}/offers', params={'peerId': peer_id})
        return body['offers']

    async def get_answers(self, room_id: str, peer_id: str) -> List[Dict[str, str]]:
        body = await self._request('GET', f'/api/rooms/{room_id}/answers', params={'peerId': peer_id})
        return body['answers']

    async def get_ice_candidates(self, room_id: str, peer_id: str) -> List[Dict[str, Any]]:
        body = await self._request('GET', f'/api/rooms/{room_id}/ice-candidates', params={'peerId': peer_id})
        return body['iceCandidates']

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
