"""
Configuration management for the peercall coordinator and client.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from aiortc import RTCConfiguration, RTCIceServer


DEFAULT_STUN_URLS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
    "stun:stun2.l.google.com:19302",
]


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.environ.get(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


@dataclass
class ServerConfig:
    """Coordinator and client configuration settings."""

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Client polling
    signaling_url: str = "http://localhost:8080"
    poll_interval: float = 1.0
    request_timeout: float = 10.0

    # Idle eviction (seconds, 0 disables)
    room_idle_timeout: float = 3600
    peer_idle_timeout: float = 600
    sweep_interval: float = 60

    # ICE servers
    stun_urls: List[str] = field(default_factory=lambda: list(DEFAULT_STUN_URLS))
    turn_url: Optional[str] = None
    turn_username: str = "user"
    turn_password: str = "password"

    # Local capture
    media_device: str = "/dev/video0"
    media_format: Optional[str] = "v4l2"

    log_level: str = "INFO"

    # WebRTC configuration
    rtc_config: Optional[RTCConfiguration] = None

    def __post_init__(self):
        """Apply environment overrides on top of the constructor values."""
        self.host = os.environ.get('PEERCALL_HOST', self.host)
        self.port = int(os.environ.get('PEERCALL_PORT', self.port))
        self.cors_origins = _env_list('PEERCALL_CORS_ORIGINS', self.cors_origins)

        self.signaling_url = os.environ.get('PEERCALL_SIGNALING_URL', self.signaling_url).rstrip('/')
        self.poll_interval = float(os.environ.get('PEERCALL_POLL_INTERVAL', self.poll_interval))
        self.request_timeout = float(os.environ.get('PEERCALL_REQUEST_TIMEOUT', self.request_timeout))

        self.room_idle_timeout = float(os.environ.get('PEERCALL_ROOM_IDLE_TIMEOUT', self.room_idle_timeout))
        self.peer_idle_timeout = float(os.environ.get('PEERCALL_PEER_IDLE_TIMEOUT', self.peer_idle_timeout))
        self.sweep_interval = float(os.environ.get('PEERCALL_SWEEP_INTERVAL', self.sweep_interval))

        # TURN server settings
        self.stun_urls = _env_list('PEERCALL_STUN_URLS', self.stun_urls)
        self.turn_url = os.environ.get('TURN_ADDRESS', self.turn_url)
        self.turn_username = os.environ.get('TURN_USERNAME', self.turn_username)
        self.turn_password = os.environ.get('TURN_PASSWORD', self.turn_password)

        self.media_device = os.environ.get('PEERCALL_MEDIA_DEVICE', self.media_device)
        self.media_format = os.environ.get('PEERCALL_MEDIA_FORMAT', self.media_format) or None

        self.log_level = os.environ.get('PEERCALL_LOG_LEVEL', self.log_level)

        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")

        # Build WebRTC configuration
        self._build_rtc_config()

    def _build_rtc_config(self):
        """Build the aiortc ICE server list."""
        ice_servers = []
        if self.stun_urls:
            ice_servers.append(RTCIceServer(urls=self.stun_urls))

        if self.turn_url:
            turn_url = self.turn_url if self.turn_url.startswith(('turn:', 'turns:')) else f"turn:{self.turn_url}"
            ice_servers.append(
                RTCIceServer(
                    urls=turn_url,
                    username=self.turn_username,
                    credential=self.turn_password
                )
            )

        self.rtc_config = RTCConfiguration(iceServers=ice_servers)

    def __str__(self) -> str:
        """String representation of configuration."""
        return (
            f"ServerConfig(host={self.host}, port={self.port}, "
            f"poll_interval={self.poll_interval}, room_idle_timeout={self.room_idle_timeout})"
        )
