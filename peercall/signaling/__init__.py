"""
Signaling module for peercall.
Room registry, mailbox exchange, HTTP routes and the HTTP client for them.
"""

from .registry import SessionRegistry, Room, ParticipantMailbox
from .exchange import MailboxExchange
from .client import SignalingClient

__all__ = [
    'SessionRegistry',
    'Room',
    'ParticipantMailbox',
    'MailboxExchange',
    'SignalingClient'
]
