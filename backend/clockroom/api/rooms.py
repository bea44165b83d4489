from flask import Blueprint, current_app, jsonify, request

from clockroom.exceptions import InvalidRoomConfig
from clockroom.ids import generate_room_id, topic_for
from clockroom.services.clock.state import RoomConfig
from clockroom.tokens import issue_token

rooms = Blueprint('rooms', __name__)


def _parse_int(value):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@rooms.route('/rooms/create', methods=['POST'])
def create_room():
    """
    Validates a room configuration and hands back a fresh room id.
    Nothing is stored: the creator's session is the room's owner.
    """
    data = request.get_json(silent=True) or {}
    players = data.get('numPlayers')
    minutes = data.get('minutesPerPlayer')
    if players is None or minutes is None:
        return jsonify({'error': 'numPlayers and minutesPerPlayer are required'}), 400

    num_players = _parse_int(players)
    minutes_per_player = _parse_int(minutes)
    if num_players is None or minutes_per_player is None:
        return jsonify({'error': 'Please enter valid numbers.'}), 400

    try:
        config = RoomConfig(num_players, minutes_per_player)
    except InvalidRoomConfig as exc:
        return jsonify({'error': str(exc)}), 400

    room_id = generate_room_id()
    current_app.logger.info(
        f"[room-create] room={room_id} players={config.num_players} minutes={config.minutes_per_player}"
    )
    return jsonify({
        'roomId': room_id,
        'topic': topic_for(room_id),
        'numPlayers': config.num_players,
        'minutesPerPlayer': config.minutes_per_player,
    }), 201


@rooms.route('/token', methods=['GET'])
def channel_token():
    """
    Issues a short-lived channel credential for a generated client id.
    """
    ttl = int(current_app.config.get('CHANNEL_TOKEN_TTL_SEC', 3600))
    issued = issue_token(current_app.config['SECRET_KEY'])
    return jsonify({
        'token': issued['token'],
        'clientId': issued['clientId'],
        'expiresIn': ttl,
    }), 200
