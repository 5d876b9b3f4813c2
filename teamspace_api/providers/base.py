"""Base delivery provider abstraction.

Providers turn a rendered message into an outbound delivery. They report
failure through ProviderResult; the notification engine also treats any
exception or timeout raised by a provider as a failed delivery.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RenderedMessage:
    """A fully rendered email, ready for a provider."""

    to: list[str]
    subject: str
    text: str
    html: Optional[str] = None
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)


@dataclass
class ProviderResult:
    """Result of a single delivery attempt.

    Attributes:
        success: Whether the provider accepted the message
        provider_message_id: Provider's id for the message (for delivery callbacks)
        error: Failure description when success is False
    """

    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class BaseDeliveryProvider(ABC):
    """Abstract base class for delivery providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider (e.g., 'smtp', 'resend')."""
        ...

    @abstractmethod
    def deliver(self, message: RenderedMessage, timeout: float) -> ProviderResult:
        """Deliver a message, giving up after ``timeout`` seconds.

        Args:
            message: Rendered message to send
            timeout: Upper bound in seconds for the whole provider call

        Returns:
            ProviderResult describing the attempt
        """
        ...
