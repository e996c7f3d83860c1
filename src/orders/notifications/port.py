"""Notification sink port.

Fire-and-forget: the orders domain tells a party that something happened
and never waits for, or depends on, delivery.
"""

from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def notify(self, recipient_id: str, kind: str, payload: dict) -> None:
        """Deliver one notification to one party."""
        ...
