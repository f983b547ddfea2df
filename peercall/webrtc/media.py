"""
Local camera and microphone capture.
"""
from typing import List, Optional

from aiortc.contrib.media import MediaPlayer

from ..core.config import ServerConfig
from ..core.exceptions import MediaAccessDeniedError
from ..core.logging import debug_log


class LocalMedia:
    """Holds the local tracks sent to every remote peer."""

    def __init__(self, tracks: List, player: Optional[MediaPlayer] = None):
        self.tracks = [track for track in tracks if track is not None]
        self.player = player

    def release(self):
        """Stop every local track."""
        for track in self.tracks:
            track.stop()
        self.tracks = []
        debug_log(f"🎥 [Media] Local media released")


async def open_local_media(config: ServerConfig) -> LocalMedia:
    """Open the configured capture device.

    Raises MediaAccessDeniedError when the device cannot be opened or yields
    no tracks.
    """
    try:
        player = MediaPlayer(config.media_device, format=config.media_format)
    except Exception as e:
        raise MediaAccessDeniedError(f"Cannot open media device {config.media_device}: {e}", {
            "device": config.media_device,
            "format": config.media_format,
            "error_type": type(e).__name__
        }) from e

    media = LocalMedia([player.audio, player.video], player)
    if not media.tracks:
        raise MediaAccessDeniedError(f"Media device {config.media_device} has no audio or video", {
            "device": config.media_device
        })

    debug_log(f"🎥 [Media] Local media opened", {
        "device": config.media_device,
        "kinds": [track.kind for track in media.tracks]
    })
    return media
