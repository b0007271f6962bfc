"""
Generation gateways: protocol, registry, and built-in implementations.

Built-in gateways are registered lazily on first get_registry() call so that
importing this package does not import the service SDKs.
"""

from imgstudio.core.config import Config, get_config
from imgstudio.core.gateways.base import Gateway as Gateway
from imgstudio.core.gateways.registry import GatewayRegistry
from imgstudio.core.gateways.registry import get_registry as _get_registry_impl
from imgstudio.utils.exceptions import ConfigurationError

GATEWAY_GEMINI = "gemini"
GATEWAY_OPENROUTER = "openrouter"
KNOWN_GATEWAYS = (GATEWAY_GEMINI, GATEWAY_OPENROUTER)

_builtins_registered = False


def _register_builtins(reg: GatewayRegistry) -> None:
    """Register built-in gateways. Called once when registry is first used."""
    global _builtins_registered
    if _builtins_registered:
        return
    from imgstudio.core.gateways.gemini import GeminiGateway
    from imgstudio.core.gateways.openrouter import OpenRouterGateway

    reg.register(GATEWAY_GEMINI, GeminiGateway)
    reg.register(GATEWAY_OPENROUTER, OpenRouterGateway)
    _builtins_registered = True


def get_registry() -> GatewayRegistry:
    """Return the global gateway registry and ensure built-ins are registered."""
    reg = _get_registry_impl()
    _register_builtins(reg)
    return reg


def create_gateway(config: Config | None = None, gateway_id: str | None = None) -> Gateway:
    """
    Build the gateway selected by gateway_id (default: config.default_gateway).

    Raises:
        ConfigurationError: If the id is unknown.
    """
    config = config or get_config()
    gateway_id = gateway_id or config.default_gateway
    factory = get_registry().get(gateway_id)
    if factory is None:
        raise ConfigurationError(
            f"Unknown gateway: {gateway_id!r}. "
            f"Must be one of: {', '.join(get_registry().gateway_ids())}."
        )
    return factory(config)
