import sys

import click
import requests
from flask import current_app
from flask.cli import with_appcontext

from clockroom.channel import SocketIOChannel
from clockroom.exceptions import ClockRoomError, InvalidRoomConfig
from clockroom.ids import generate_room_id, topic_for
from clockroom.services.clock import Role, RoomConfig, RoomSession, SessionSettings
from clockroom.services.clock.scheduling import BackgroundScheduler


def format_time(seconds):
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


def render(snapshot):
    lines = []
    for i, name in enumerate(snapshot['playerNames']):
        marker = '>' if snapshot.get('running') == i else ' '
        status = 'Ready' if snapshot['readyStates'][i] else 'Not Ready'
        lines.append(f"{marker} [{i}] {name:<16} {format_time(snapshot['timers'][i])}  {status}")
    if snapshot.get('reconciliation') == 'failed':
        lines.append('  (no answer from the room owner, showing defaults)')
    return '\n'.join(lines)


def _room_config(players, minutes):
    try:
        return RoomConfig(players, minutes)
    except InvalidRoomConfig as exc:
        raise click.BadParameter(str(exc))


@click.command('new-room')
@click.option('--players', type=int, default=2, show_default=True, help='Number of players (2-10).')
@click.option('--minutes', type=int, default=5, show_default=True, help='Minutes per player (1-60).')
def new_room_command(players, minutes):
    """Generate a room id and print how the owner joins it."""
    config = _room_config(players, minutes)
    room_id = generate_room_id()
    click.echo(f"room:  {room_id}")
    click.echo(f"topic: {topic_for(room_id)}")
    click.echo(f"owner: flask join-room {room_id} --players {config.num_players} --minutes {config.minutes_per_player}")
    click.echo(f"join:  flask join-room {room_id}")


def run_commands(session, lines, echo=click.echo):
    """Drive a session from text commands until 'quit' or end of input."""
    for line in lines:
        parts = line.strip().split(None, 2)
        if not parts:
            continue
        cmd = parts[0].lower()
        try:
            if cmd == 'quit':
                return
            elif cmd == 'ready' and len(parts) >= 2:
                session.toggle_ready(int(parts[1]))
            elif cmd == 'name' and len(parts) == 3:
                session.rename(int(parts[1]), parts[2])
            elif cmd == 'restart':
                session.restart()
            elif cmd != 'show':
                echo('commands: ready I | name I TEXT | restart | show | quit')
                continue
        except (ValueError, IndexError, ClockRoomError) as exc:
            echo(f"error: {exc}")
            continue
        echo(render(session.snapshot()))


@click.command('join-room')
@click.argument('room_id')
@click.option('--players', type=int, default=None, help='Owner only: number of players.')
@click.option('--minutes', type=int, default=None, help='Owner only: minutes per player.')
@click.option('--url', default=None, help='Relay URL (defaults to RELAY_URL).')
@with_appcontext
def join_room_command(room_id, players, minutes, url):
    """Take part in a room from the terminal.

    Passing both --players and --minutes makes this session the owner.
    """
    cfg = current_app.config
    url = (url or cfg['RELAY_URL']).rstrip('/')
    role = Role.OWNER if players is not None and minutes is not None else Role.JOINER
    config = _room_config(players, minutes) if role is Role.OWNER else None

    resp = requests.get(f"{url}/api/token", timeout=10)
    resp.raise_for_status()
    credentials = resp.json()

    channel = SocketIOChannel(url, token=credentials['token'])
    channel.connect()
    session = RoomSession(
        room_id, channel, BackgroundScheduler(channel.sio), role,
        config=config, client_id=credentials['clientId'],
        settings=SessionSettings.from_config(cfg),
    )
    session.join()
    click.echo(f"joined {room_id} as {role.value} ({session.client_id})")
    click.echo(render(session.snapshot()))
    try:
        run_commands(session, sys.stdin)
    finally:
        session.close()
        channel.close()
