"""
Mailbox exchange protocol: depositing and draining offers, answers and
ICE candidates for (room, peer) pairs.
"""
import time
from contextlib import contextmanager
from typing import Any, Dict, List

from ..core.logging import LoggerMixin
from .registry import SessionRegistry, Room


class MailboxExchange(LoggerMixin):
    """Deposit and drain operations over a SessionRegistry.

    Offers and answers are last-write-wins per directed pair and survive
    reads. Candidates are appended per directed pair and cleared by the read
    that returns them.
    """

    def __init__(self, registry: SessionRegistry):
        super().__init__()
        self.registry = registry
        self.stats = {
            'offers_sent': 0,
            'answers_sent': 0,
            'candidates_sent': 0,
            'candidates_drained': 0
        }

    # Writes

    def send_offer(self, room_id: str, from_peer_id: str, to_peer_id: str, offer: str) -> Dict[str, Any]:
        """Store ``offer`` from one peer to another, replacing any unread one."""
        with self._sender(room_id, from_peer_id) as mailbox:
            mailbox.offers[to_peer_id] = offer
        self.stats['offers_sent'] += 1

        self.log_info(f"📨 [Exchange] Offer stored", {
            "room_id": room_id,
            "from_peer_id": from_peer_id,
            "to_peer_id": to_peer_id,
            "size": len(offer)
        })
        return {'success': True}

    def send_answer(self, room_id: str, from_peer_id: str, to_peer_id: str, answer: str) -> Dict[str, Any]:
        """Store ``answer`` from one peer to another, replacing any unread one."""
        with self._sender(room_id, from_peer_id) as mailbox:
            mailbox.answers[to_peer_id] = answer
        self.stats['answers_sent'] += 1

        self.log_info(f"📨 [Exchange] Answer stored", {
            "room_id": room_id,
            "from_peer_id": from_peer_id,
            "to_peer_id": to_peer_id,
            "size": len(answer)
        })
        return {'success': True}

    def send_ice_candidate(self, room_id: str, from_peer_id: str, to_peer_id: str, candidate: str) -> Dict[str, Any]:
        """Append ``candidate`` to the queue for the directed pair."""
        with self._sender(room_id, from_peer_id) as mailbox:
            mailbox.ice_candidates.setdefault(to_peer_id, []).append(candidate)
            queued = len(mailbox.ice_candidates[to_peer_id])
        self.stats['candidates_sent'] += 1

        self.log_debug(f"🧊 [Exchange] ICE candidate queued", {
            "room_id": room_id,
            "from_peer_id": from_peer_id,
            "to_peer_id": to_peer_id,
            "queued": queued
        })
        return {'success': True}

    # Reads

    def get_offers(self, room_id: str, peer_id: str) -> Dict[str, List[Dict[str, str]]]:
        """All offers addressed to ``peer_id``. Not cleared."""
        room = self.registry.get_room(room_id)
        with room.lock:
            self._touch_reader(room, peer_id)
            offers = [
                {'fromPeerId': from_peer_id, 'offer': mailbox.offers[peer_id]}
                for from_peer_id, mailbox in room.participants.items()
                if from_peer_id != peer_id and mailbox.offers.get(peer_id)
            ]
        return {'offers': offers}

    def get_answers(self, room_id: str, peer_id: str) -> Dict[str, List[Dict[str, str]]]:
        """All answers addressed to ``peer_id``. Not cleared."""
        room = self.registry.get_room(room_id)
        with room.lock:
            self._touch_reader(room, peer_id)
            answers = [
                {'fromPeerId': from_peer_id, 'answer': mailbox.answers[peer_id]}
                for from_peer_id, mailbox in room.participants.items()
                if from_peer_id != peer_id and mailbox.answers.get(peer_id)
            ]
        return {'answers': answers}

    def get_ice_candidates(self, room_id: str, peer_id: str) -> Dict[str, List[Dict[str, Any]]]:
        """Drain every candidate queue addressed to ``peer_id``.

        Read and clear happen under the room lock, so an append racing with
        the drain lands either in this batch or in the next one.
        """
        room = self.registry.get_room(room_id)
        batches = []
        with room.lock:
            self._touch_reader(room, peer_id)
            for from_peer_id, mailbox in room.participants.items():
                if from_peer_id == peer_id:
                    continue
                queue = mailbox.ice_candidates.pop(peer_id, None)
                if queue:
                    batches.append({'fromPeerId': from_peer_id, 'candidates': queue})

        drained = sum(len(batch['candidates']) for batch in batches)
        if drained:
            self.stats['candidates_drained'] += drained
            self.log_debug(f"🧊 [Exchange] ICE candidates drained", {
                "room_id": room_id,
                "peer_id": peer_id,
                "count": drained
            })
        return {'iceCandidates': batches}

    def get_status(self) -> dict:
        return dict(self.stats)

    # Helpers

    @contextmanager
    def _sender(self, room_id: str, from_peer_id: str):
        """Yield the sender's mailbox under the room lock.

        Lookups raise before anything is written, so a failed send leaves
        the room unchanged.
        """
        room = self.registry.get_room(room_id)
        with room.lock:
            mailbox = room.mailbox(from_peer_id)
            now = time.monotonic()
            mailbox.touch(now)
            room.touch(now)
            yield mailbox

    @staticmethod
    def _touch_reader(room: Room, peer_id: str):
        now = time.monotonic()
        room.touch(now)
        mailbox = room.participants.get(peer_id)
        if mailbox is not None:
            mailbox.touch(now)

