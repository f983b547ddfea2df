"""
Client-side peer session lifecycle.

A PeerSession joins one room, offers to every peer already there, then
polls the coordinator for offers, answers and ICE candidates until closed.
Failures while handling one remote peer are logged and never stop the
polling loop or affect other peers.
"""
import asyncio
import uuid
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set

from ..core.config import ServerConfig
from ..core.exceptions import MediaAccessDeniedError
from ..core.logging import LoggerMixin, debug_log
from .media import LocalMedia
from .transport import PeerTransport


class SessionState(str, Enum):
    IDLE = "idle"
    JOINING = "joining"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    CLOSED = "closed"


class PeerState(str, Enum):
    NEW = "new"
    OFFERING = "offering"
    ANSWERING = "answering"
    CONNECTED = "connected"
    FAILED = "failed"
    CLOSED = "closed"


_NEGOTIATING = (PeerState.NEW, PeerState.OFFERING, PeerState.ANSWERING)


class PeerSession(LoggerMixin):
    """Drives join, polling, negotiation and teardown for one room.

    ``signaling`` needs the coroutine methods of SignalingClient.
    ``media_opener`` is awaited once before anything is sent.
    """

    def __init__(self, room_id: str, signaling, transport: PeerTransport,
                 media_opener: Callable[[], Awaitable[LocalMedia]],
                 config: Optional[ServerConfig] = None,
                 peer_id: Optional[str] = None,
                 on_remote_media: Optional[Callable[[str, object], None]] = None):
        super().__init__()
        self.room_id = room_id
        self.peer_id = peer_id or str(uuid.uuid4())
        self.signaling = signaling
        self.transport = transport
        self.media_opener = media_opener
        self.config = config or ServerConfig()
        self.poll_interval = self.config.poll_interval
        self.on_remote_media = on_remote_media

        self.state = SessionState.IDLE
        self.local_media: Optional[LocalMedia] = None
        self.roster: List[str] = []
        self.peer_states: Dict[str, PeerState] = {}

        self._offered: Set[str] = set()
        self._answered_offers: Dict[str, str] = {}
        self._applied_answers: Dict[str, str] = {}
        self._remote_described: Set[str] = set()
        self._pending_candidates: Dict[str, List[str]] = {}

        self._poll_task: Optional[asyncio.Task] = None
        self._send_tasks: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    # Lifecycle

    async def start(self):
        """Acquire media, join the room, offer to the roster and start polling."""
        if self.state != SessionState.IDLE:
            raise RuntimeError(f"Session already started (state={self.state.value})")

        self.state = SessionState.JOINING
        debug_log(f"🚪 [Session] Joining room", {"room_id": self.room_id, "peer_id": self.peer_id})

        try:
            self.local_media = await self.media_opener()
        except MediaAccessDeniedError as e:
            self.state = SessionState.CLOSED
            self.log_error(f"🎥 [Session] Media access denied", {"error": str(e)})
            raise
        except Exception as e:
            self.state = SessionState.CLOSED
            self.log_error(f"🎥 [Session] Media access denied", {"error": str(e)})
            raise MediaAccessDeniedError(str(e), {"error_type": type(e).__name__}) from e

        self.transport.add_local_media(self.local_media)
        self.transport.on_local_candidate = self._on_local_candidate
        self.transport.on_remote_media = self._on_remote_media
        self.transport.on_connection_state = self._on_connection_state

        try:
            peers = await self.signaling.join_room(self.room_id, self.peer_id)
        except Exception:
            await self.close()
            raise

        self.roster = list(peers)
        self.state = SessionState.NEGOTIATING
        debug_log(f"✅ [Session] Joined room", {
            "room_id": self.room_id,
            "peer_id": self.peer_id,
            "peers": self.roster
        })

        for remote_peer_id in self.roster:
            await self._offer_to(remote_peer_id)

        self._poll_task = asyncio.create_task(self._poll_loop())

    async def close(self):
        """Stop polling and release every connection and local track."""
        if self.closed:
            return
        self.state = SessionState.CLOSED

        tasks = list(self._send_tasks)
        if self._poll_task is not None and self._poll_task is not asyncio.current_task():
            tasks.append(self._poll_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None
        self._send_tasks.clear()

        try:
            await self.transport.close()
        except Exception as e:
            self.log_error(f"❌ [Session] Transport close failed", {"error": str(e)})

        if self.local_media is not None:
            self.local_media.release()
            self.local_media = None

        for remote_peer_id in self.peer_states:
            self.peer_states[remote_peer_id] = PeerState.CLOSED
        self._pending_candidates.clear()

        debug_log(f"👋 [Session] Left room", {"room_id": self.room_id, "peer_id": self.peer_id})

    # Polling

    async def _poll_loop(self):
        while not self.closed:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    async def poll_once(self):
        """Run one polling round: roster, offers, answers, then candidates."""
        for name, step in (
            ('roster', self._poll_roster),
            ('offers', self._poll_offers),
            ('answers', self._poll_answers),
            ('candidates', self._poll_candidates),
        ):
            if self.closed:
                return
            try:
                await step()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.log_error(f"❌ [Session] Polling {name} failed", {
                    "room_id": self.room_id,
                    "error": str(e),
                    "error_type": type(e).__name__
                })

    async def _poll_roster(self):
        peers = await self.signaling.list_peers(self.room_id, self.peer_id)
        if self.closed:
            return
        joined = [p for p in peers if p not in self.roster]
        if joined:
            self.log_info(f"👥 [Session] Roster changed", {"joined": joined})
        self.roster = list(peers)

    async def _poll_offers(self):
        offers = await self.signaling.get_offers(self.room_id, self.peer_id)
        for item in offers:
            if self.closed:
                return
            from_peer_id, offer = item['fromPeerId'], item['offer']
            if self._answered_offers.get(from_peer_id) == offer:
                continue
            await self._handle_offer(from_peer_id, offer)

    async def _poll_answers(self):
        answers = await self.signaling.get_answers(self.room_id, self.peer_id)
        for item in answers:
            if self.closed:
                return
            from_peer_id, answer = item['fromPeerId'], item['answer']
            if from_peer_id not in self._offered or self._applied_answers.get(from_peer_id) == answer:
                continue
            await self._handle_answer(from_peer_id, answer)

    async def _poll_candidates(self):
        batches = await self.signaling.get_ice_candidates(self.room_id, self.peer_id)
        for batch in batches:
            for candidate in batch['candidates']:
                if self.closed:
                    return
                await self._handle_candidate(batch['fromPeerId'], candidate)

    # Per-peer negotiation

    async def _offer_to(self, remote_peer_id: str):
        self._set_peer_state(remote_peer_id, PeerState.OFFERING)
        try:
            offer = await self.transport.create_local_offer(remote_peer_id)
            if self.closed:
                return
            self._offered.add(remote_peer_id)
            await self.signaling.send_offer(self.room_id, self.peer_id, remote_peer_id, offer)
            self.log_info(f"📤 [Session] Offer sent", {"to_peer_id": remote_peer_id})
        except Exception as e:
            self._peer_failed(remote_peer_id, "offer", e)

    async def _handle_offer(self, remote_peer_id: str, offer: str):
        # A failed offer is not retried; a newer offer from the peer is.
        self._answered_offers[remote_peer_id] = offer
        self._set_peer_state(remote_peer_id, PeerState.ANSWERING)
        try:
            answer = await self.transport.accept_remote_offer(remote_peer_id, offer)
            if self.closed:
                return
            self._remote_described.add(remote_peer_id)
            await self._flush_candidates(remote_peer_id)
            await self.signaling.send_answer(self.room_id, self.peer_id, remote_peer_id, answer)
            self.log_info(f"📤 [Session] Answer sent", {"to_peer_id": remote_peer_id})
        except Exception as e:
            self._peer_failed(remote_peer_id, "offer", e)

    async def _handle_answer(self, remote_peer_id: str, answer: str):
        self._applied_answers[remote_peer_id] = answer
        try:
            await self.transport.accept_remote_answer(remote_peer_id, answer)
            if self.closed:
                return
            self._remote_described.add(remote_peer_id)
            await self._flush_candidates(remote_peer_id)
            self.log_info(f"📥 [Session] Answer applied", {"from_peer_id": remote_peer_id})
        except Exception as e:
            self._peer_failed(remote_peer_id, "answer", e)

    async def _handle_candidate(self, remote_peer_id: str, candidate: str):
        if self.peer_states.get(remote_peer_id) == PeerState.FAILED:
            self.log_debug(f"🧊 [Session] Dropped ICE candidate from failed peer", {"from_peer_id": remote_peer_id})
            return
        if remote_peer_id not in self._remote_described:
            self._pending_candidates.setdefault(remote_peer_id, []).append(candidate)
            self.log_debug(f"🧊 [Session] Buffered ICE candidate", {"from_peer_id": remote_peer_id})
            return
        try:
            await self.transport.apply_remote_candidate(remote_peer_id, candidate)
        except Exception as e:
            self.log_error(f"❌ [Session] Error handling ICE candidate", {
                "from_peer_id": remote_peer_id,
                "error": str(e),
                "error_type": type(e).__name__
            })

    async def _flush_candidates(self, remote_peer_id: str):
        for candidate in self._pending_candidates.pop(remote_peer_id, []):
            await self._handle_candidate(remote_peer_id, candidate)

    def _peer_failed(self, remote_peer_id: str, stage: str, error: Exception):
        if self.closed:
            return
        self._set_peer_state(remote_peer_id, PeerState.FAILED)
        self._pending_candidates.pop(remote_peer_id, None)
        self.log_error(f"❌ [Session] Error handling {stage}", {
            "peer_id": remote_peer_id,
            "error": str(error),
            "error_type": type(error).__name__
        })

    def _set_peer_state(self, remote_peer_id: str, state: PeerState):
        if self.closed:
            return
        self.peer_states[remote_peer_id] = state
        self._update_state()

    def _update_state(self):
        states = self.peer_states.values()
        if any(state in _NEGOTIATING for state in states):
            self.state = SessionState.NEGOTIATING
        elif any(state == PeerState.CONNECTED for state in states):
            self.state = SessionState.CONNECTED
        else:
            self.state = SessionState.NEGOTIATING

    # Transport events

    def _on_local_candidate(self, remote_peer_id: str, candidate: str):
        if self.closed:
            return
        task = asyncio.ensure_future(self._send_candidate(remote_peer_id, candidate))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send_candidate(self, remote_peer_id: str, candidate: str):
        try:
            await self.signaling.send_ice_candidate(self.room_id, self.peer_id, remote_peer_id, candidate)
        except Exception as e:
            self.log_error(f"❌ [Session] Failed to send ICE candidate", {
                "to_peer_id": remote_peer_id,
                "error": str(e),
                "error_type": type(e).__name__
            })

    def _on_remote_media(self, remote_peer_id: str, track):
        if self.closed or self.on_remote_media is None:
            return
        self.on_remote_media(remote_peer_id, track)

    def _on_connection_state(self, remote_peer_id: str, connection_state: str):
        if connection_state == "connected":
            self._set_peer_state(remote_peer_id, PeerState.CONNECTED)
            self.log_info(f"✅ [Session] Peer connected", {"peer_id": remote_peer_id})
        elif connection_state == "failed":
            self._set_peer_state(remote_peer_id, PeerState.FAILED)
        elif connection_state == "closed" and remote_peer_id in self.peer_states:
            self._set_peer_state(remote_peer_id, PeerState.CLOSED)

    def get_status(self) -> dict:
        return {
            'room_id': self.room_id,
            'peer_id': self.peer_id,
            'state': self.state.value,
            'roster': list(self.roster),
            'peers': {peer_id: state.value for peer_id, state in self.peer_states.items()},
            'pending_candidates': sum(len(c) for c in self._pending_candidates.values())
        }
