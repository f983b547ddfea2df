import pytest

from peercall.core.exceptions import RoomNotFoundError
from peercall.signaling.registry import SessionRegistry


def test_create_room_returns_unique_ids(registry):
    ids = {registry.create_room() for _ in range(20)}
    assert len(ids) == 20
    assert all(registry.has_room(room_id) for room_id in ids)


def test_join_returns_roster_without_requester(registry):
    room_id = registry.create_room()
    assert registry.join_room(room_id, "alice") == []
    assert registry.join_room(room_id, "bob") == ["alice"]
    assert sorted(registry.join_room(room_id, "carol")) == ["alice", "bob"]


def test_join_unknown_room_raises_not_found(registry):
    with pytest.raises(RoomNotFoundError) as info:
        registry.join_room("missing", "alice")
    assert info.value.code == "NOT_FOUND"
    assert info.value.details == {"room_id": "missing"}


def test_rejoin_keeps_mailbox_contents(registry, exchange):
    room_id = registry.create_room()
    registry.join_room(room_id, "alice")
    exchange.send_offer(room_id, "alice", "bob", "o1")
    exchange.send_ice_candidate(room_id, "alice", "bob", "c1")

    assert registry.join_room(room_id, "alice") == []
    room = registry.get_room(room_id)
    assert list(room.participants) == ["alice"]
    assert room.participants["alice"].offers == {"bob": "o1"}
    assert room.participants["alice"].ice_candidates == {"bob": ["c1"]}


def test_list_peers_sees_late_joiners(registry):
    room_id = registry.create_room()
    registry.join_room(room_id, "alice")
    registry.join_room(room_id, "bob")

    assert registry.list_peers(room_id, "alice") == ["bob"]
    assert sorted(registry.list_peers(room_id)) == ["alice", "bob"]

    with pytest.raises(RoomNotFoundError):
        registry.list_peers("missing", "alice")


def test_rooms_are_isolated(registry, exchange):
    first = registry.create_room()
    second = registry.create_room()
    registry.join_room(first, "alice")
    registry.join_room(second, "bob")
    exchange.send_offer(first, "alice", "bob", "o1")

    assert registry.list_peers(second) == ["bob"]
    assert exchange.get_offers(second, "bob") == {"offers": []}
    assert registry.get_room(second).participants["bob"].offers == {}


def test_sweep_evicts_idle_rooms():
    registry = SessionRegistry(room_idle_timeout=10)
    stale = registry.create_room()
    fresh = registry.create_room()
    registry.get_room(stale).last_activity -= 60

    rooms, mailboxes = registry.sweep_idle()

    assert (rooms, mailboxes) == (1, 0)
    assert not registry.has_room(stale)
    assert registry.has_room(fresh)
    assert registry.get_status()["rooms_evicted"] == 1


def test_sweep_evicts_idle_mailboxes_only():
    registry = SessionRegistry(room_idle_timeout=100, peer_idle_timeout=10)
    room_id = registry.create_room()
    registry.join_room(room_id, "alice")
    registry.join_room(room_id, "bob")
    registry.get_room(room_id).participants["alice"].last_activity -= 60

    assert registry.sweep_idle() == (0, 1)
    assert registry.list_peers(room_id) == ["bob"]


def test_sweep_disabled_with_zero_timeouts(registry):
    room_id = registry.create_room()
    registry.join_room(room_id, "alice")
    room = registry.get_room(room_id)
    room.last_activity -= 10 ** 6
    room.participants["alice"].last_activity -= 10 ** 6

    assert registry.sweep_idle() == (0, 0)
    assert registry.has_room(room_id)


def test_status_counts(registry, exchange):
    room_id = registry.create_room()
    registry.join_room(room_id, "alice")
    registry.join_room(room_id, "bob")
    exchange.send_offer(room_id, "alice", "bob", "o1")
    exchange.send_ice_candidate(room_id, "alice", "bob", "c1")
    exchange.send_ice_candidate(room_id, "alice", "bob", "c2")

    status = registry.get_status()
    assert status["rooms"] == 1
    assert status["peers"] == 2
    assert status["pending_payloads"] == 3
    assert status["rooms_created"] == 1
