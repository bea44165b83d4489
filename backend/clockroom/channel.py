"""Channel transports: at-least-once, unordered fan-out keyed by topic.

The clock core only needs ``publish(topic, message)`` and
``subscribe(topic, handler) -> unsubscribe``.
"""
import copy
import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Tuple

import socketio

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class Channel(ABC):
    @abstractmethod
    def publish(self, topic: str, message: Dict[str, Any]) -> None:
        """Send ``message`` to every subscriber of ``topic``, at least once."""

    @abstractmethod
    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Call ``handler`` for each message on ``topic``; returns an unsubscribe callable."""

    def close(self) -> None:
        pass


class InMemoryHub:
    """Single-process fan-out for local runs and tests.

    Publishing only queues; ``deliver_next``/``run_until_idle`` hand each
    queued message to every subscriber of its topic as an independent copy.
    Tests can reorder or duplicate ``pending`` entries to simulate the
    network.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self.pending: Deque[Tuple[str, Dict[str, Any]]] = deque()
        self.published: List[Tuple[str, Dict[str, Any]]] = []

    def channel(self) -> 'InMemoryChannel':
        return InMemoryChannel(self)

    def publish(self, topic: str, message: Dict[str, Any]) -> None:
        entry = (topic, copy.deepcopy(message))
        self.pending.append(entry)
        self.published.append(entry)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._subscribers[topic].append(handler)

        def _unsubscribe():
            if handler in self._subscribers.get(topic, []):
                self._subscribers[topic].remove(handler)
        return _unsubscribe

    def deliver_next(self) -> bool:
        if not self.pending:
            return False
        topic, message = self.pending.popleft()
        for handler in list(self._subscribers.get(topic, [])):
            handler(copy.deepcopy(message))
        return True

    def run_until_idle(self, limit: int = 10000) -> int:
        delivered = 0
        while delivered < limit and self.deliver_next():
            delivered += 1
        return delivered

    def drop_pending(self) -> int:
        count = len(self.pending)
        self.pending.clear()
        return count


class InMemoryChannel(Channel):
    def __init__(self, hub: InMemoryHub):
        self.hub = hub
        self._unsubscribers: List[Callable[[], None]] = []

    def publish(self, topic, message):
        self.hub.publish(topic, message)

    def subscribe(self, topic, handler):
        unsubscribe = self.hub.subscribe(topic, handler)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []


class SocketIOChannel(Channel):
    """Client side of the Flask-SocketIO relay (namespace ``/ws``)."""

    def __init__(self, url: str, token: str = None, namespace: str = '/ws', client=None):
        self.url = url
        self.token = token
        self.namespace = namespace
        self.sio = client or socketio.Client(reconnection=True)
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.sio.on('message', self._on_message, namespace=namespace)
        self.sio.on('connect', self._on_connect, namespace=namespace)

    def connect(self, wait_timeout: float = 5) -> None:
        auth = {'token': self.token} if self.token else None
        self.sio.connect(self.url, namespaces=[self.namespace], auth=auth, wait_timeout=wait_timeout)

    def publish(self, topic, message):
        self.sio.emit('publish', {'topic': topic, 'message': message}, namespace=self.namespace)

    def subscribe(self, topic, handler):
        first = not self._handlers[topic]
        self._handlers[topic].append(handler)
        if first and self.sio.connected:
            self.sio.emit('subscribe', {'topic': topic}, namespace=self.namespace)

        def _unsubscribe():
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)
            if not handlers and self.sio.connected:
                self.sio.emit('unsubscribe', {'topic': topic}, namespace=self.namespace)
        return _unsubscribe

    def close(self):
        # Closing a connection that is not up is a no-op
        if not self.sio.connected:
            return
        try:
            self.sio.disconnect()
        except Exception as exc:
            logger.warning(f"[channel-close] url={self.url} error={exc}")

    def _on_connect(self):
        # Rejoin every topic after a (re)connect
        for topic, handlers in list(self._handlers.items()):
            if handlers:
                self.sio.emit('subscribe', {'topic': topic}, namespace=self.namespace)

    def _on_message(self, data):
        data = data or {}
        topic = data.get('topic')
        for handler in list(self._handlers.get(topic, [])):
            handler(data.get('message'))
