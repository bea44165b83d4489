from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from clockroom.main import main
    flask_app.register_blueprint(main)

    from clockroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    # Register the channel relay; importing here binds the handlers to the
    # initialized socketio instance
    from clockroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from clockroom.cli import new_room_command, join_room_command
    flask_app.cli.add_command(new_room_command)
    flask_app.cli.add_command(join_room_command)

    return flask_app
