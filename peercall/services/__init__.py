"""
Services module for peercall.
Background services that run alongside the signaling coordinator.
"""

from .room_sweeper import RoomSweeper

__all__ = [
    'RoomSweeper'
]
