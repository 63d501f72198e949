import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]


class AvailabilityEvents:
    """Explicit availability-changed subscription.

    Whatever transport the host has (an HTTP write, a websocket, a pub/sub
    message) calls ``publish`` with the provider id; subscribers receive it.
    """

    def __init__(self):
        self._listeners: list[Listener] = []

    def on_availability_changed(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def publish(self, provider_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(provider_id)
            except Exception:
                logger.exception('Availability listener failed for provider %s', provider_id)

    def __len__(self) -> int:
        return len(self._listeners)
