"""
Command-line video call client.
Joins a room with the local camera and consumes every remote track.
"""
import asyncio
import signal
from typing import Optional

from aiortc.contrib.media import MediaBlackhole

from .core.config import ServerConfig
from .core.logging import debug_log
from .signaling.client import SignalingClient
from .webrtc.media import open_local_media
from .webrtc.session import PeerSession
from .webrtc.transport import AiortcTransport


async def create_room(config: Optional[ServerConfig] = None) -> str:
    """Ask the coordinator for a new room id."""
    config = config or ServerConfig()
    signaling = SignalingClient(config.signaling_url, timeout=config.request_timeout)
    try:
        return await signaling.create_room()
    finally:
        await signaling.close()


async def join_room(room_id: str, config: Optional[ServerConfig] = None):
    """Join ``room_id`` and stay in the call until interrupted."""
    config = config or ServerConfig()
    signaling = SignalingClient(config.signaling_url, timeout=config.request_timeout)
    sink = MediaBlackhole()

    def on_remote_media(peer_id, track):
        debug_log(f"🎥 [Client] Receiving remote media", {"peer_id": peer_id, "kind": track.kind})
        sink.addTrack(track)
        # start() only begins consuming tracks it has not seen yet
        asyncio.ensure_future(sink.start())

    session = PeerSession(
        room_id,
        signaling,
        AiortcTransport(config),
        lambda: open_local_media(config),
        config=config,
        on_remote_media=on_remote_media
    )

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    try:
        await session.start()
        print(f"Joined room {room_id} as {session.peer_id}")
        await stop.wait()
    finally:
        await session.close()
        await sink.stop()
        await signaling.close()
