"""Connection settings for the Parley client."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ParleyConfig:
    """Configuration for a Parley client.

    Attributes:
        host: Server hostname (default: localhost)
        port: Server port (default: 8080)
        secure: Use https/wss instead of http/ws (default: False)
        websocket_path: Real-time endpoint path
        connect_timeout: Connect-attempt watchdog in seconds (default: 5.0)
        flush_interval: Outbox resend period in seconds (default: 10.0)
        resend_grace: Age in seconds before a pending frame is resent
            (default: 10.0)
        ping_interval: WebSocket keepalive ping interval in seconds
        retry_delay: Pause in seconds between retries of a request that hit a
            connection failure (default: 0.0, retry immediately)
    """

    host: str = "localhost"
    port: int = 8080
    secure: bool = False
    websocket_path: str = "/websocket/connect"
    connect_timeout: float = 5.0
    flush_interval: float = 10.0
    resend_grace: float = 10.0
    ping_interval: int = 20
    retry_delay: float = 0.0

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        if self.resend_grace < 0:
            raise ValueError("resend_grace must not be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")

    @property
    def base_url(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}"

    @property
    def websocket_url(self) -> str:
        scheme = "wss" if self.secure else "ws"
        path = self.websocket_path if self.websocket_path.startswith("/") else (
            f"/{self.websocket_path}"
        )
        return f"{scheme}://{self.host}:{self.port}{path}"
