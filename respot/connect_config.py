"""Configuration for the remote-control device."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import DeviceType


@dataclass
class ConnectConfig:
    name: str = "Librespot"
    device_type: DeviceType = DeviceType.SPEAKER
    initial_volume: Optional[int] = 50
    has_volume_ctrl: bool = True