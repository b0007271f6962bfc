"""
Registry for gateway factories.

Maps gateway ids (e.g. "gemini", "openrouter") to callables that build a
gateway from a Config.
"""

from collections.abc import Callable

from imgstudio.core.config import Config
from imgstudio.core.gateways.base import Gateway

GatewayFactory = Callable[[Config], Gateway]


class GatewayRegistry:
    """Registry mapping gateway id to a factory."""

    def __init__(self) -> None:
        self._factories: dict[str, GatewayFactory] = {}

    def register(self, gateway_id: str, factory: GatewayFactory) -> None:
        """Register a gateway factory. Idempotent for the same id."""
        self._factories[gateway_id] = factory

    def get(self, gateway_id: str) -> GatewayFactory | None:
        """Return the registered factory for gateway_id, or None if unknown."""
        return self._factories.get(gateway_id)

    def gateway_ids(self) -> list[str]:
        """Return the list of registered gateway ids."""
        return list(self._factories.keys())


_registry: GatewayRegistry | None = None


def get_registry() -> GatewayRegistry:
    """Return the global gateway registry. Creates it on first call."""
    global _registry
    if _registry is None:
        _registry = GatewayRegistry()
    return _registry
