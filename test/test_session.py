import asyncio

import pytest

from conftest import FakeTransport
from peercall.core.exceptions import MediaAccessDeniedError, RoomNotFoundError
from peercall.webrtc.session import PeerSession, SessionState, PeerState


def _session(room_id, name, signaling, config, make_media, **kwargs):
    transport = kwargs.pop("transport", None) or FakeTransport(name)
    return PeerSession(room_id, signaling, transport, make_media,
                       config=config, peer_id=name, **kwargs)


async def _started(room_id, name, signaling, config, make_media, **kwargs):
    session = _session(room_id, name, signaling, config, make_media, **kwargs)
    await session.start()
    # Drive polling by hand
    session._poll_task.cancel()
    await asyncio.gather(session._poll_task, return_exceptions=True)
    return session


async def test_media_failure_closes_session(registry, signaling, config):
    room_id = registry.create_room()

    async def denied():
        raise OSError("camera busy")

    session = PeerSession(room_id, signaling, FakeTransport("A"), denied, config=config, peer_id="A")
    with pytest.raises(MediaAccessDeniedError):
        await session.start()

    assert session.state == SessionState.CLOSED
    assert signaling.calls == []
    assert registry.list_peers(room_id) == []


async def test_join_unknown_room_releases_media(signaling, config, make_media):
    session = _session("missing", "A", signaling, config, make_media)
    with pytest.raises(RoomNotFoundError):
        await session.start()

    assert session.state == SessionState.CLOSED
    assert make_media.created[0].released
    assert session.transport.closed


async def test_late_joiner_offers_to_roster(registry, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    bob = await _started(room_id, "B", signaling, config, make_media)

    assert alice.state == SessionState.NEGOTIATING
    assert alice.peer_states == {}
    assert bob.roster == ["A"]
    assert bob.peer_states == {"A": PeerState.OFFERING}
    assert ("send_offer", "B", "A") in signaling.calls

    await alice.close()
    await bob.close()


async def test_full_negotiation_between_two_sessions(registry, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    bob = await _started(room_id, "B", signaling, config, make_media)

    await alice.poll_once()
    assert alice.transport.offers_accepted == [("B", "offer:B->A")]
    assert alice.roster == ["B"]
    assert alice.peer_states["B"] == PeerState.ANSWERING

    await bob.poll_once()
    assert bob.transport.answers_accepted == [("A", "answer:A->B")]

    # Offer and answer stay in the mailbox but are handled only once
    await alice.poll_once()
    await bob.poll_once()
    assert len(alice.transport.offers_accepted) == 1
    assert len(bob.transport.answers_accepted) == 1
    assert signaling.calls.count(("send_answer", "A", "B")) == 1

    bob.transport.on_local_candidate("A", "cand-b1")
    await asyncio.sleep(0)
    await asyncio.gather(*bob._send_tasks)
    await alice.poll_once()
    assert alice.transport.candidates == [("B", "cand-b1")]

    alice.transport.on_connection_state("B", "connected")
    bob.transport.on_connection_state("A", "connected")
    assert alice.state == SessionState.CONNECTED
    assert bob.state == SessionState.CONNECTED

    # A third peer joining mid-call puts A back into negotiation without touching B
    carol = await _started(room_id, "C", signaling, config, make_media)
    assert carol.peer_states == {"A": PeerState.OFFERING, "B": PeerState.OFFERING}

    await alice.poll_once()
    assert alice.state == SessionState.NEGOTIATING
    assert alice.peer_states["B"] == PeerState.CONNECTED
    assert alice.peer_states["C"] == PeerState.ANSWERING
    assert alice.transport.offers_accepted[-1] == ("C", "offer:C->A")

    alice.transport.on_connection_state("C", "connected")
    assert alice.state == SessionState.CONNECTED

    await alice.close()
    await bob.close()
    await carol.close()


async def test_candidates_before_remote_description_are_buffered(registry, exchange, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    registry.join_room(room_id, "B")
    exchange.send_ice_candidate(room_id, "B", "A", "early")

    await alice.poll_once()
    assert alice.transport.candidates == []
    assert alice.get_status()["pending_candidates"] == 1

    exchange.send_offer(room_id, "B", "A", "offer-from-b")
    await alice.poll_once()
    assert alice.transport.candidates == [("B", "early")]
    assert alice.get_status()["pending_candidates"] == 0

    await alice.close()


async def test_newer_offer_is_answered_again(registry, exchange, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    registry.join_room(room_id, "B")

    exchange.send_offer(room_id, "B", "A", "first")
    await alice.poll_once()
    exchange.send_offer(room_id, "B", "A", "second")
    await alice.poll_once()

    assert alice.transport.offers_accepted == [("B", "first"), ("B", "second")]
    await alice.close()


async def test_answer_from_peer_never_offered_is_ignored(registry, exchange, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    registry.join_room(room_id, "B")
    exchange.send_answer(room_id, "B", "A", "unsolicited")

    await alice.poll_once()
    assert alice.transport.answers_accepted == []
    await alice.close()


async def test_one_failing_peer_does_not_affect_others(registry, exchange, signaling, config, make_media):
    room_id = registry.create_room()
    transport = FakeTransport("A", fail_peers={"bad"})
    alice = await _started(room_id, "A", signaling, config, make_media, transport=transport)
    for peer_id in ("bad", "good"):
        registry.join_room(room_id, peer_id)
        exchange.send_offer(room_id, peer_id, "A", f"offer-from-{peer_id}")

    await alice.poll_once()

    assert alice.peer_states["bad"] == PeerState.FAILED
    assert alice.peer_states["good"] == PeerState.ANSWERING
    assert transport.offers_accepted == [("good", "offer-from-good")]
    assert exchange.get_answers(room_id, "good")["answers"] == [{"fromPeerId": "A", "answer": "answer:A->good"}]

    # The failed offer is not retried
    await alice.poll_once()
    assert transport.offers_accepted == [("good", "offer-from-good")]
    await alice.close()


async def test_failed_peer_candidates_are_dropped(registry, exchange, signaling, config, make_media):
    room_id = registry.create_room()
    transport = FakeTransport("A", fail_peers={"bad"})
    alice = await _started(room_id, "A", signaling, config, make_media, transport=transport)
    registry.join_room(room_id, "bad")

    exchange.send_ice_candidate(room_id, "bad", "A", "early")
    await alice.poll_once()
    assert alice.get_status()["pending_candidates"] == 1

    exchange.send_offer(room_id, "bad", "A", "offer-from-bad")
    await alice.poll_once()
    assert alice.peer_states["bad"] == PeerState.FAILED
    assert alice.get_status()["pending_candidates"] == 0

    exchange.send_ice_candidate(room_id, "bad", "A", "late")
    await alice.poll_once()
    assert alice.get_status()["pending_candidates"] == 0
    assert transport.candidates == []
    await alice.close()


async def test_polling_survives_room_errors(registry, signaling, config, make_media):
    room_id = registry.create_room()
    alice = _session(room_id, "A", signaling, config, make_media)
    await alice.start()

    registry.room_idle_timeout = 1
    registry.get_room(room_id).last_activity -= 60
    registry.sweep_idle()

    await asyncio.sleep(config.poll_interval * 5)
    assert not alice._poll_task.done()
    assert alice.state == SessionState.NEGOTIATING

    await alice.close()


async def test_close_stops_polling_and_releases(registry, signaling, config, make_media):
    room_id = registry.create_room()
    alice = _session(room_id, "A", signaling, config, make_media)
    await alice.start()
    poll_task = alice._poll_task

    await alice.close()

    assert poll_task.done()
    assert alice.state == SessionState.CLOSED
    assert alice.transport.closed
    assert make_media.created[0].released

    alice.transport.on_local_candidate("B", "late")
    assert not alice._send_tasks
    await alice.close()


async def test_remote_media_is_forwarded(registry, signaling, config, make_media):
    received = []
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media,
                           on_remote_media=lambda peer_id, track: received.append((peer_id, track)))

    alice.transport.on_remote_media("B", "track-1")
    assert received == [("B", "track-1")]
    await alice.close()


async def test_start_twice_is_rejected(registry, signaling, config, make_media):
    room_id = registry.create_room()
    alice = await _started(room_id, "A", signaling, config, make_media)
    with pytest.raises(RuntimeError):
        await alice.start()
    await alice.close()
