"""
WebRTC module for peercall.
Client session lifecycle, the peer transport capability and local media.
"""

from .media import LocalMedia, open_local_media
from .transport import PeerTransport, AiortcTransport
from .session import PeerSession, SessionState, PeerState

__all__ = [
    'LocalMedia',
    'open_local_media',
    'PeerTransport',
    'AiortcTransport',
    'PeerSession',
    'SessionState',
    'PeerState'
]
