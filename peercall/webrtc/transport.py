"""
Peer-to-peer transport capability used by the client session.

The session only sees ``PeerTransport``. ``AiortcTransport`` implements it
with one aiortc RTCPeerConnection per remote peer and the same JSON
encodings browsers use, so Python and browser clients can share a room.
"""
import asyncio
import datetime
import json
from typing import Callable, Dict, Optional

from aiortc import RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from ..core.config import ServerConfig
from ..core.exceptions import NegotiationError
from ..core.logging import LoggerMixin, debug_log
from .media import LocalMedia


class PeerTransport:
    """Interface the session drives for each remote peer.

    Callbacks are assigned by the session:
        on_local_candidate(peer_id, candidate)
        on_remote_media(peer_id, track)
        on_connection_state(peer_id, state)
    """

    def __init__(self):
        super().__init__()
        self.on_local_candidate: Optional[Callable[[str, str], None]] = None
        self.on_remote_media: Optional[Callable[[str, object], None]] = None
        self.on_connection_state: Optional[Callable[[str, str], None]] = None

    def add_local_media(self, media: LocalMedia):
        raise NotImplementedError

    async def create_local_offer(self, peer_id: str) -> str:
        raise NotImplementedError

    async def accept_remote_offer(self, peer_id: str, offer: str) -> str:
        raise NotImplementedError

    async def accept_remote_answer(self, peer_id: str, answer: str):
        raise NotImplementedError

    async def apply_remote_candidate(self, peer_id: str, candidate: str):
        raise NotImplementedError

    async def close_peer(self, peer_id: str):
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError

    def _emit(self, callback_name: str, *args):
        callback = getattr(self, callback_name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            debug_log(f"❌ [Transport] Error in {callback_name} callback", {
                "error": str(e),
                "error_type": type(e).__name__
            }, "ERROR")


def parse_description(payload: str, expected_type: str) -> RTCSessionDescription:
    """Decode a browser-style ``{"type", "sdp"}`` JSON description."""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise NegotiationError(f"Malformed {expected_type}: {e}")

    if not isinstance(data, dict) or data.get('type') != expected_type or not data.get('sdp'):
        raise NegotiationError(f"Malformed {expected_type}: expected type and sdp", {
            "received_type": data.get('type') if isinstance(data, dict) else None
        })
    return RTCSessionDescription(sdp=data['sdp'], type=data['type'])


def serialize_description(description: RTCSessionDescription) -> str:
    return json.dumps({'type': description.type, 'sdp': description.sdp})


def parse_candidate(payload: str):
    """Decode a browser-style RTCIceCandidate JSON. Returns None for end-of-candidates."""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise NegotiationError(f"Malformed ICE candidate: {e}")
    if not isinstance(data, dict):
        raise NegotiationError("Malformed ICE candidate: expected an object")

    line = data.get('candidate') or ''
    if not line:
        return None
    if line.startswith('candidate:'):
        line = line.split(':', 1)[1]

    try:
        candidate = candidate_from_sdp(line)
    except (AssertionError, ValueError, IndexError) as e:
        raise NegotiationError(f"Malformed ICE candidate line: {e}", {"candidate": line})
    candidate.sdpMid = data.get('sdpMid')
    candidate.sdpMLineIndex = data.get('sdpMLineIndex')
    return candidate


def serialize_candidate(candidate) -> str:
    return json.dumps({
        'candidate': f"candidate:{candidate_to_sdp(candidate)}",
        'sdpMid': candidate.sdpMid,
        'sdpMLineIndex': candidate.sdpMLineIndex
    })


class AiortcTransport(PeerTransport, LoggerMixin):
    """PeerTransport backed by aiortc peer connections."""

    def __init__(self, config: ServerConfig):
        super().__init__()
        self.config = config
        self.local_media: Optional[LocalMedia] = None
        self.peer_connections: Dict[str, RTCPeerConnection] = {}

    def add_local_media(self, media: LocalMedia):
        self.local_media = media

    def _get_or_create(self, peer_id: str) -> RTCPeerConnection:
        pc = self.peer_connections.get(peer_id)
        if pc is not None:
            return pc

        pc = RTCPeerConnection(configuration=self.config.rtc_config)
        if self.local_media is not None:
            for track in self.local_media.tracks:
                pc.addTrack(track)

        self._setup_peer_connection_handlers(pc, peer_id)
        self.peer_connections[peer_id] = pc

        debug_log(f"🔗 [Transport] Peer connection created", {
            "peer_id": peer_id,
            "local_tracks": len(self.local_media.tracks) if self.local_media else 0,
            "total_connections": len(self.peer_connections)
        })
        return pc

    def _require(self, peer_id: str) -> RTCPeerConnection:
        pc = self.peer_connections.get(peer_id)
        if pc is None:
            raise NegotiationError(f"No peer connection for {peer_id}", {"peer_id": peer_id})
        return pc

    def _setup_peer_connection_handlers(self, pc: RTCPeerConnection, peer_id: str):
        """Set up event handlers for a peer connection."""

        @pc.on("icecandidate")
        def on_ice_candidate(candidate):
            if candidate is None:
                return
            self._emit('on_local_candidate', peer_id, serialize_candidate(candidate))

        @pc.on("track")
        def on_track(track):
            debug_log(f"🎥 [Transport] Remote track received", {
                "peer_id": peer_id,
                "kind": track.kind
            })
            self._emit('on_remote_media', peer_id, track)

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            debug_log(f"🔗 [Transport] Connection state changed", {
                "peer_id": peer_id,
                "connection_state": pc.connectionState,
                "timestamp": datetime.datetime.now().isoformat()
            })
            self._emit('on_connection_state', peer_id, pc.connectionState)
            if pc.connectionState == "failed":
                await self.close_peer(peer_id)

    async def create_local_offer(self, peer_id: str) -> str:
        pc = self._get_or_create(peer_id)
        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        return serialize_description(pc.localDescription)

    async def accept_remote_offer(self, peer_id: str, offer: str) -> str:
        description = parse_description(offer, 'offer')
        pc = self._get_or_create(peer_id)
        await pc.setRemoteDescription(description)
        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)
        return serialize_description(pc.localDescription)

    async def accept_remote_answer(self, peer_id: str, answer: str):
        description = parse_description(answer, 'answer')
        await self._require(peer_id).setRemoteDescription(description)

    async def apply_remote_candidate(self, peer_id: str, candidate: str):
        pc = self._require(peer_id)
        parsed = parse_candidate(candidate)
        if parsed is not None:
            await pc.addIceCandidate(parsed)

    async def close_peer(self, peer_id: str):
        pc = self.peer_connections.pop(peer_id, None)
        if pc is not None:
            await pc.close()

    async def close(self):
        """Close all peer connections."""
        connections = list(self.peer_connections.values())
        self.peer_connections.clear()
        await asyncio.gather(*(pc.close() for pc in connections), return_exceptions=True)
        debug_log(f"🧹 [Transport] All peer connections closed", {"count": len(connections)})
