import random
import string

BASE36 = string.ascii_lowercase + string.digits


def generate_room_id(length=6):
    """Short opaque room identifier, e.g. ``k3x9qa``."""
    return ''.join(random.choices(BASE36, k=length))


def generate_client_id(length=6):
    return 'user-' + ''.join(random.choices(BASE36, k=length))


def topic_for(room_id):
    return f"room-{room_id}"
