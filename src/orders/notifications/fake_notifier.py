"""Recording notifier for development and testing."""

from orders.notifications.port import Notifier


class FakeNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_fail: bool = False

    def configure(self, should_fail: bool) -> None:
        """Make every delivery raise, to exercise fire-and-forget handling."""
        self.should_fail = should_fail

    def notify(self, recipient_id: str, kind: str, payload: dict) -> None:
        if self.should_fail:
            raise ConnectionError("Notification transport unavailable")
        self.sent.append({"recipient_id": recipient_id, "kind": kind, "payload": payload})

    def sent_to(self, recipient_id: str) -> list[dict]:
        return [n for n in self.sent if n["recipient_id"] == recipient_id]

    def reset(self) -> None:
        self.sent.clear()
        self.should_fail = False
