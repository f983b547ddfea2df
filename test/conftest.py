import pytest

from peercall.core.config import ServerConfig
from peercall.core.exceptions import NegotiationError
from peercall.signaling.exchange import MailboxExchange
from peercall.signaling.registry import SessionRegistry
from peercall.webrtc.transport import PeerTransport


@pytest.fixture
def config():
    return ServerConfig(poll_interval=0.01, sweep_interval=0)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def exchange(registry):
    return MailboxExchange(registry)


class InProcessSignaling:
    """SignalingClient stand-in that calls the registry and exchange directly."""

    def __init__(self, registry, exchange):
        self.registry = registry
        self.exchange = exchange
        self.calls = []

    async def create_room(self):
        return self.registry.create_room()

    async def join_room(self, room_id, peer_id):
        self.calls.append(('join_room', peer_id))
        return self.registry.join_room(room_id, peer_id)

    async def list_peers(self, room_id, peer_id=None):
        return self.registry.list_peers(room_id, peer_id)

    async def send_offer(self, room_id, from_peer_id, to_peer_id, offer):
        self.calls.append(('send_offer', from_peer_id, to_peer_id))
        return self.exchange.send_offer(room_id, from_peer_id, to_peer_id, offer)

    async def send_answer(self, room_id, from_peer_id, to_peer_id, answer):
        self.calls.append(('send_answer', from_peer_id, to_peer_id))
        return self.exchange.send_answer(room_id, from_peer_id, to_peer_id, answer)

    async def send_ice_candidate(self, room_id, from_peer_id, to_peer_id, candidate):
        self.calls.append(('send_ice_candidate', from_peer_id, to_peer_id))
        return self.exchange.send_ice_candidate(room_id, from_peer_id, to_peer_id, candidate)

    async def get_offers(self, room_id, peer_id):
        return self.exchange.get_offers(room_id, peer_id)['offers']

    async def get_answers(self, room_id, peer_id):
        return self.exchange.get_answers(room_id, peer_id)['answers']

    async def get_ice_candidates(self, room_id, peer_id):
        return self.exchange.get_ice_candidates(room_id, peer_id)['iceCandidates']


class FakeTransport(PeerTransport):
    """Records negotiation calls and refuses candidates before a remote description."""

    def __init__(self, name, fail_peers=()):
        super().__init__()
        self.name = name
        self.fail_peers = set(fail_peers)
        self.media = None
        self.offers_accepted = []
        self.answers_accepted = []
        self.candidates = []
        self.described = set()
        self.closed = False

    def add_local_media(self, media):
        self.media = media

    def _check(self, peer_id):
        if peer_id in self.fail_peers:
            raise NegotiationError(f"transport rejected {peer_id}")

    async def create_local_offer(self, peer_id):
        self._check(peer_id)
        return f"offer:{self.name}->{peer_id}"

    async def accept_remote_offer(self, peer_id, offer):
        self._check(peer_id)
        self.offers_accepted.append((peer_id, offer))
        self.described.add(peer_id)
        return f"answer:{self.name}->{peer_id}"

    async def accept_remote_answer(self, peer_id, answer):
        self._check(peer_id)
        self.answers_accepted.append((peer_id, answer))
        self.described.add(peer_id)

    async def apply_remote_candidate(self, peer_id, candidate):
        if peer_id not in self.described:
            raise NegotiationError(f"no remote description for {peer_id}")
        self.candidates.append((peer_id, candidate))

    async def close_peer(self, peer_id):
        self.described.discard(peer_id)

    async def close(self):
        self.closed = True


class FakeMedia:
    def __init__(self):
        self.tracks = []
        self.released = False

    def release(self):
        self.released = True


@pytest.fixture
def signaling(registry, exchange):
    return InProcessSignaling(registry, exchange)


@pytest.fixture
def make_media():
    created = []

    async def opener():
        media = FakeMedia()
        created.append(media)
        return media

    opener.created = created
    return opener
