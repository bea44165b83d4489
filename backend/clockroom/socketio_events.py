from flask import current_app, request
from flask_socketio import ConnectionRefusedError, emit, join_room, leave_room

from clockroom import socketio
from clockroom.exceptions import InvalidChannelToken
from clockroom.tokens import verify_token


def handle_connect(auth=None):
    if current_app.config.get('REQUIRE_CHANNEL_TOKEN'):
        try:
            client_id = verify_token(
                current_app.config['SECRET_KEY'],
                (auth or {}).get('token'),
                int(current_app.config.get('CHANNEL_TOKEN_TTL_SEC', 3600)),
            )
        except InvalidChannelToken as exc:
            current_app.logger.info(f"[relay-refused] sid={request.sid} reason={exc}")
            raise ConnectionRefusedError(str(exc))
        current_app.logger.info(f"[relay-connect] sid={request.sid} client={client_id}")
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    current_app.logger.info(f"[relay-disconnect] sid={request.sid}")


def handle_subscribe(data):
    topic = (data or {}).get('topic')
    if not topic or not isinstance(topic, str):
        emit('error', {'message': 'topic is required'})
        return
    join_room(topic)
    emit('subscribed', {'topic': topic})


def handle_unsubscribe(data):
    topic = (data or {}).get('topic')
    if not topic or not isinstance(topic, str):
        emit('error', {'message': 'topic is required'})
        return
    leave_room(topic)
    emit('unsubscribed', {'topic': topic})


def handle_publish(data):
    """Fan a message out to every subscriber of the topic, sender included.

    The relay keeps no room state; it never inspects the message.
    """
    data = data or {}
    topic = data.get('topic')
    message = data.get('message')
    if not topic or not isinstance(topic, str) or message is None:
        emit('error', {'message': 'topic and message are required'})
        return
    emit('message', {'topic': topic, 'message': message}, to=topic)


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register the relay's Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'subscribe': handle_subscribe,
        'unsubscribe': handle_unsubscribe,
        'publish': handle_publish,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
