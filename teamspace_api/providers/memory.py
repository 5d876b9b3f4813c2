"""In-memory delivery provider for local development and tests.

Keeps every delivered message in ``outbox``. Failures can be scripted
with ``fail_next`` (count) or ``always_fail``.
"""

from typing import Optional
from uuid import uuid4

from teamspace_api.providers.base import (
    BaseDeliveryProvider,
    ProviderResult,
    RenderedMessage,
)


class InMemoryProvider(BaseDeliveryProvider):
    """Records messages instead of sending them."""

    def __init__(self, fail_next: int = 0, always_fail: bool = False, error: str = "Simulated failure"):
        self.outbox: list[RenderedMessage] = []
        self.attempts = 0
        self.fail_next = fail_next
        self.always_fail = always_fail
        self.error = error

    @property
    def name(self) -> str:
        return "memory"

    def deliver(self, message: RenderedMessage, timeout: float) -> ProviderResult:
        self.attempts += 1
        if self.always_fail or self.fail_next > 0:
            if self.fail_next > 0:
                self.fail_next -= 1
            return ProviderResult(success=False, error=self.error)
        self.outbox.append(message)
        return ProviderResult(success=True, provider_message_id=f"mem-{uuid4().hex}")

    def last_message(self) -> Optional[RenderedMessage]:
        return self.outbox[-1] if self.outbox else None

    def reset(self) -> None:
        self.outbox.clear()
        self.attempts = 0
        self.fail_next = 0
        self.always_fail = False
