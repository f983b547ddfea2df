"""
Core module for peercall.
Contains configuration, logging, and common utilities.
"""

from .config import ServerConfig
from .logging import setup_logging, debug_log, LoggerMixin
from .exceptions import (
    PeerCallError,
    RoomNotFoundError,
    PeerNotFoundError,
    ValidationError,
    MediaAccessDeniedError,
    NegotiationError,
    SignalingError,
)
from .validation_utils import ValidationUtils

__all__ = [
    'ServerConfig',
    'setup_logging',
    'debug_log',
    'LoggerMixin',
    'PeerCallError',
    'RoomNotFoundError',
    'PeerNotFoundError',
    'ValidationError',
    'MediaAccessDeniedError',
    'NegotiationError',
    'SignalingError',
    'ValidationUtils'
]
