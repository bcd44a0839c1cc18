"""Channel adapters and the AI backend client."""

from relay.adapters.base import BasePlatformAdapter, extract_text
from relay.adapters.facebook import FacebookAdapter
from relay.adapters.instagram import InstagramAdapter
from relay.adapters.registry import AdapterRegistry, build_adapter_registry

__all__ = [
    "AdapterRegistry",
    "BasePlatformAdapter",
    "FacebookAdapter",
    "InstagramAdapter",
    "build_adapter_registry",
    "extract_text",
]
