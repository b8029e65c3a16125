"""In-memory delivery gateway for test assertions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..ports import IDeliveryGateway

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of a sent message for test assertions."""

    destination: str
    template_id: int
    parameters: dict[str, str]


class InMemoryDeliveryGateway(IDeliveryGateway):
    """
    Test double (Fake) that stores messages in a list for assertions.

    Set ``status_code`` to a non-2xx value to simulate a gateway failure;
    messages are still recorded so tests can see what was attempted.
    """

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.sent_messages: list[SentMessage] = []

    async def send(
        self,
        destination: str,
        template_id: int,
        parameters: Mapping[str, str],
    ) -> int:
        self.sent_messages.append(
            SentMessage(destination, template_id, dict(parameters))
        )
        logger.debug("Fake delivery to %s -> %s", destination, self.status_code)
        return self.status_code

    @property
    def last(self) -> SentMessage:
        if not self.sent_messages:
            raise AssertionError("No messages were sent.")
        return self.sent_messages[-1]

    def assert_sent(self, destination: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = [m for m in self.sent_messages if m.destination == destination]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {destination}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages."""
        self.sent_messages.clear()


__all__: list[str] = ["InMemoryDeliveryGateway", "SentMessage"]
