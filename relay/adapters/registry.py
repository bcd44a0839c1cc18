from __future__ import annotations

from typing import Dict, Optional

from relay.adapters.base import BasePlatformAdapter
from relay.adapters.facebook import FacebookAdapter
from relay.adapters.instagram import InstagramAdapter
from relay.config import get_settings
from relay.schemas.relay import Channel


class AdapterRegistry:
    def __init__(self) -> None:
        self._adapters: Dict[Channel, BasePlatformAdapter] = {}

    def register(self, adapter: BasePlatformAdapter) -> None:
        if adapter.channel in self._adapters:
            raise ValueError(f"Adapter already registered: {adapter.channel.value}")
        self._adapters[adapter.channel] = adapter

    def get(self, channel: Channel | str) -> Optional[BasePlatformAdapter]:
        try:
            return self._adapters.get(Channel(channel))
        except ValueError:
            return None

    def list_channels(self) -> list[Channel]:
        return list(self._adapters.keys())


def build_adapter_registry(graph_api_base: Optional[str] = None) -> AdapterRegistry:
    """Registry with every supported channel, pointed at the configured Graph API."""
    base = graph_api_base or get_settings().graph_api_base
    registry = AdapterRegistry()
    registry.register(FacebookAdapter(base))
    registry.register(InstagramAdapter(base))
    return registry
