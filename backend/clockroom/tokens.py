"""Short-lived channel credentials.

A token is a timed signature over a client id; the relay only checks that it
was issued by this backend and has not expired. It says nothing about who
the participant is.
"""
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from clockroom.exceptions import InvalidChannelToken
from clockroom.ids import generate_client_id

SALT = 'channel-token'


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=SALT)


def issue_token(secret_key: str, client_id: str = None) -> dict:
    client_id = client_id or generate_client_id()
    return {
        'clientId': client_id,
        'token': _serializer(secret_key).dumps({'clientId': client_id}),
    }


def verify_token(secret_key: str, token, max_age: int) -> str:
    """Return the client id carried by ``token`` or raise InvalidChannelToken."""
    if not token or not isinstance(token, str):
        raise InvalidChannelToken('missing channel token')
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        raise InvalidChannelToken('channel token expired')
    except BadSignature:
        raise InvalidChannelToken('bad channel token')
    client_id = data.get('clientId') if isinstance(data, dict) else None
    if not client_id:
        raise InvalidChannelToken('channel token has no client id')
    return client_id
