import asyncio

from peercall.services.room_sweeper import RoomSweeper
from peercall.signaling.registry import SessionRegistry


async def test_sweeper_evicts_in_background():
    registry = SessionRegistry(room_idle_timeout=5)
    room_id = registry.create_room()
    registry.get_room(room_id).last_activity -= 60

    sweeper = RoomSweeper(registry, interval=0.01)
    await sweeper.start()
    try:
        for _ in range(100):
            if not registry.has_room(room_id):
                break
            await asyncio.sleep(0.01)
        assert not registry.has_room(room_id)
        assert sweeper.get_status()["sweeps"] >= 1
    finally:
        await sweeper.cleanup()

    assert sweeper.get_status()["running"] is False


async def test_sweeper_disabled_without_timeouts():
    sweeper = RoomSweeper(SessionRegistry(), interval=0.01)
    await sweeper.start()

    assert sweeper.get_status() == {
        'enabled': False,
        'running': False,
        'interval': 0.01,
        'sweeps': 0,
        'last_sweep': None
    }
    await sweeper.cleanup()
