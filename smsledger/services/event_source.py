from typing import Callable, List, Optional

from loguru import logger

from smsledger.models.raw_message import RawMessage


MessageCallback = Callable[[RawMessage], None]
ActionCallback = Callable[[Optional[str], str], None]
Unsubscribe = Callable[[], None]


class InProcessEventSource:
    """
    In-process stand-in for the device broadcast bridge: the HTTP adapter
    routes publish into it, subscribers get one callback per event.
    """

    def __init__(self) -> None:
        self._message_listeners: List[MessageCallback] = []
        self._action_listeners: List[ActionCallback] = []

    def subscribe_messages(self, on_message: MessageCallback) -> Unsubscribe:
        self._message_listeners.append(on_message)
        logger.info("SMS listener added total={}", len(self._message_listeners))

        def _unsubscribe() -> None:
            if on_message in self._message_listeners:
                self._message_listeners.remove(on_message)
                logger.info("SMS listener removed remaining={}", len(self._message_listeners))

        return _unsubscribe

    def subscribe_actions(self, on_action: ActionCallback) -> Unsubscribe:
        self._action_listeners.append(on_action)

        def _unsubscribe() -> None:
            if on_action in self._action_listeners:
                self._action_listeners.remove(on_action)

        return _unsubscribe

    def publish_message(self, message: RawMessage) -> int:
        listeners = list(self._message_listeners)
        for cb in listeners:
            try:
                cb(message)
            except Exception:
                logger.exception("SMS listener failed sender={}", message.source_address)
        return len(listeners)

    def publish_action(self, action_id: Optional[str], transaction_id: str) -> int:
        listeners = list(self._action_listeners)
        for cb in listeners:
            try:
                cb(action_id, transaction_id)
            except Exception:
                logger.exception("Action listener failed action={} txn={}", action_id, transaction_id)
        return len(listeners)
