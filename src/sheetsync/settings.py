"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dispatch settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .transport.types import TransportOptions


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class DispatchSettings:
    """
    Explicit settings used by the transport, auth and dispatch modules.

    Attributes:
        devel: Development mode. Echoes operator messages to the log at INFO
            and tolerates self-signed certificates between instances.
        verify_tls: Certificate validation for https calls outside devel mode.
        timeout_s: Per-request socket timeout.
        client_id: OAuth client id sent with token requests.
        local_port: Admin port of this instance, used for the relay host.
        startup_delay_s: Delay before run-on-start jobs fire.
    """

    devel: bool = True
    verify_tls: bool = True
    timeout_s: float = 30.0
    client_id: str = "node-red-admin"
    local_port: int = 1880
    startup_delay_s: float = 0.1

    @staticmethod
    def from_env() -> "DispatchSettings":
        """Load settings from environment variables."""
        return DispatchSettings(
            devel=_env_flag("SHEETSYNC_DEVEL", True),
            verify_tls=_env_flag("SHEETSYNC_VERIFY_TLS", True),
            timeout_s=float(os.getenv("SHEETSYNC_TIMEOUT_S", "30")),
            client_id=os.getenv("SHEETSYNC_CLIENT_ID", "node-red-admin"),
            local_port=int(os.getenv("SHEETSYNC_LOCAL_PORT", "1880")),
            startup_delay_s=float(os.getenv("SHEETSYNC_STARTUP_DELAY_S", "0.1")),
        )

    def transport_options(self) -> TransportOptions:
        """Per-call transport capability derived from these settings."""
        return TransportOptions(
            verify_tls=self.verify_tls and not self.devel,
            timeout_s=self.timeout_s,
        )
