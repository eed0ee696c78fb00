from __future__ import annotations

from typing import Protocol

from gatekeeper.domain.entities import OutboundMessage


class NotifierPort(Protocol):
    """
    Fire-and-forget push delivery to realtime connections.

    ``send`` must never block on the network: it hands the message to the
    target connection(s) and returns whether it could be handed over at all.
    Failures are logged by the implementation and never raised.
    """

    def send(self, message: OutboundMessage) -> bool:
        """Queue ``message`` for its address or group."""
