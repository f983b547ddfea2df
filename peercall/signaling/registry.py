"""
Room and mailbox registry for the signaling coordinator.

The registry owns every room and, within each room, one mailbox per peer.
A peer's mailbox holds the payloads that peer has addressed to others;
readers scan the other peers' mailboxes for entries addressed to them.
"""
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..core.exceptions import RoomNotFoundError, PeerNotFoundError
from ..core.logging import LoggerMixin, debug_log


@dataclass
class ParticipantMailbox:
    """Pending payloads written by one peer, keyed by target peer id."""

    offers: Dict[str, str] = field(default_factory=dict)
    answers: Dict[str, str] = field(default_factory=dict)
    ice_candidates: Dict[str, List[str]] = field(default_factory=dict)
    joined_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)

    def touch(self, now: Optional[float] = None):
        self.last_activity = time.monotonic() if now is None else now

    def pending_count(self) -> int:
        return (
            len(self.offers)
            + len(self.answers)
            + sum(len(queue) for queue in self.ice_candidates.values())
        )


@dataclass
class Room:
    """A signaling session scoping a set of peers."""

    id: str
    participants: Dict[str, ParticipantMailbox] = field(default_factory=dict)
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def touch(self, now: Optional[float] = None):
        self.last_activity = time.monotonic() if now is None else now

    def mailbox(self, peer_id: str) -> ParticipantMailbox:
        """Return the mailbox of a joined peer. Caller holds ``lock``."""
        mailbox = self.participants.get(peer_id)
        if mailbox is None:
            raise PeerNotFoundError(
                f"Peer {peer_id} not found in room {self.id}",
                {"room_id": self.id, "peer_id": peer_id}
            )
        return mailbox

    def other_peers(self, peer_id: Optional[str]) -> List[str]:
        """Roster excluding ``peer_id``. Caller holds ``lock``."""
        return [other for other in self.participants if other != peer_id]


class SessionRegistry(LoggerMixin):
    """Owns the set of active rooms and their participant mailboxes.

    ``_rooms_lock`` guards the room map; each room's own lock serializes
    every read and write of its mailboxes.
    """

    def __init__(self, room_idle_timeout: float = 0, peer_idle_timeout: float = 0):
        super().__init__()
        self.room_idle_timeout = room_idle_timeout
        self.peer_idle_timeout = peer_idle_timeout
        self._rooms: Dict[str, Room] = {}
        self._rooms_lock = threading.Lock()

        self.stats = {
            'rooms_created': 0,
            'rooms_evicted': 0,
            'mailboxes_evicted': 0
        }

        debug_log(f"🏠 [Registry] Session registry initialized", {
            "room_idle_timeout": room_idle_timeout,
            "peer_idle_timeout": peer_idle_timeout
        })

    def create_room(self) -> str:
        """Register an empty room under a fresh id and return the id."""
        room_id = str(uuid.uuid4())
        with self._rooms_lock:
            self._rooms[room_id] = Room(id=room_id)
            self.stats['rooms_created'] += 1

        self.log_info(f"🏠 [Registry] Room created", {"room_id": room_id})
        return room_id

    def get_room(self, room_id: str) -> Room:
        """Look up a room or raise RoomNotFoundError."""
        with self._rooms_lock:
            room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found", {"room_id": room_id})
        return room

    def has_room(self, room_id: str) -> bool:
        with self._rooms_lock:
            return room_id in self._rooms

    def join_room(self, room_id: str, peer_id: str) -> List[str]:
        """Add ``peer_id`` to the room if absent and return the other peers.

        Joining twice leaves the existing mailbox untouched.
        """
        room = self.get_room(room_id)
        with room.lock:
            now = time.monotonic()
            mailbox = room.participants.get(peer_id)
            is_new = mailbox is None
            if is_new:
                mailbox = ParticipantMailbox(joined_at=now, last_activity=now)
                room.participants[peer_id] = mailbox
            else:
                mailbox.touch(now)
            room.touch(now)
            peers = room.other_peers(peer_id)

        self.log_info(f"👋 [Registry] Peer {'joined' if is_new else 'rejoined'} room", {
            "room_id": room_id,
            "peer_id": peer_id,
            "other_peers": len(peers)
        })
        return peers

    def list_peers(self, room_id: str, peer_id: Optional[str] = None) -> List[str]:
        """Point-in-time roster of the room, excluding ``peer_id`` when given."""
        room = self.get_room(room_id)
        with room.lock:
            now = time.monotonic()
            room.touch(now)
            if peer_id in room.participants:
                room.participants[peer_id].touch(now)
            return room.other_peers(peer_id)

    def sweep_idle(self, now: Optional[float] = None) -> Tuple[int, int]:
        """Evict rooms and mailboxes idle past their timeouts.

        Returns ``(rooms_evicted, mailboxes_evicted)``. A timeout of 0 turns
        that kind of eviction off.
        """
        now = time.monotonic() if now is None else now
        rooms_evicted = 0
        mailboxes_evicted = 0

        with self._rooms_lock:
            rooms = list(self._rooms.values())

        for room in rooms:
            with room.lock:
                if self.room_idle_timeout and now - room.last_activity > self.room_idle_timeout:
                    with self._rooms_lock:
                        if self._rooms.get(room.id) is room:
                            del self._rooms[room.id]
                            rooms_evicted += 1
                    continue

                if self.peer_idle_timeout:
                    idle = [
                        peer_id for peer_id, mailbox in room.participants.items()
                        if now - mailbox.last_activity > self.peer_idle_timeout
                    ]
                    for peer_id in idle:
                        del room.participants[peer_id]
                    mailboxes_evicted += len(idle)

        self.stats['rooms_evicted'] += rooms_evicted
        self.stats['mailboxes_evicted'] += mailboxes_evicted

        if rooms_evicted or mailboxes_evicted:
            self.log_info(f"🧹 [Registry] Evicted idle state", {
                "rooms_evicted": rooms_evicted,
                "mailboxes_evicted": mailboxes_evicted
            })
        return rooms_evicted, mailboxes_evicted

    def get_status(self) -> dict:
        """Get registry statistics."""
        with self._rooms_lock:
            rooms = list(self._rooms.values())

        peer_count = 0
        pending = 0
        for room in rooms:
            with room.lock:
                peer_count += len(room.participants)
                pending += sum(m.pending_count() for m in room.participants.values())

        return {
            'rooms': len(rooms),
            'peers': peer_count,
            'pending_payloads': pending,
            **self.stats
        }
