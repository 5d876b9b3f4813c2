"""Delivery providers with configuration-based selection.

Usage:
    from teamspace_api.providers import get_provider

    # Will use smtp, resend or memory based on EMAIL_PROVIDER
    provider = get_provider()
"""

from typing import Optional

from teamspace import config
from teamspace_api.providers.base import (
    BaseDeliveryProvider,
    ProviderResult,
    RenderedMessage,
)
from teamspace_api.providers.memory import InMemoryProvider
from teamspace_api.providers.resend import ResendProvider
from teamspace_api.providers.smtp import SMTPProvider

PROVIDER_REGISTRY: dict[str, type] = {
    "smtp": SMTPProvider,
    "resend": ResendProvider,
    "memory": InMemoryProvider,
}


def get_provider(name: Optional[str] = None) -> BaseDeliveryProvider:
    """Create the delivery provider named by ``name`` or EMAIL_PROVIDER.

    Raises:
        ValueError: If the provider name is unknown
    """
    provider_name = (name or config.EMAIL_PROVIDER).lower()
    provider_class = PROVIDER_REGISTRY.get(provider_name)
    if provider_class is None:
        available = ", ".join(sorted(PROVIDER_REGISTRY))
        raise ValueError(
            f"Unknown email provider: {provider_name}. Available: {available}"
        )
    return provider_class()


__all__ = [
    "BaseDeliveryProvider",
    "ProviderResult",
    "RenderedMessage",
    "InMemoryProvider",
    "ResendProvider",
    "SMTPProvider",
    "PROVIDER_REGISTRY",
    "get_provider",
]
