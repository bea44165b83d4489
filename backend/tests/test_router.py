import logging

import pytest

from clockroom.services.clock import messages
from clockroom.services.clock.driver import ClockDriver
from clockroom.services.clock.router import MessageRouter
from clockroom.services.clock.state import RoomConfig, RoomState


def make_router(scheduler, is_owner=False, config=None, client_id='user-self'):
    state = RoomState(config or RoomConfig(3, 5))
    published = []
    driver = ClockDriver(scheduler, lambda index: None)
    router = MessageRouter(
        state, driver, messages.LamportClock(), client_id, is_owner,
        publish=lambda msg_type, payload: published.append((msg_type, payload)),
        room_id='abc123',
    )
    return router, state, driver, published


def msg(msg_type, payload=None, sender='user-peer', version=None):
    return messages.build(msg_type, payload, sender=sender, version=version)


def config_payload(players=3, minutes=5, names=None, timers=None, ready=None):
    return {
        'numPlayers': players,
        'minutesPerPlayer': minutes,
        'playerNames': names or [f"P{i}" for i in range(players)],
        'timers': timers or [minutes * 60] * players,
        'readyStates': ready or [False] * players,
    }


@pytest.mark.parametrize('raw', [
    None,
    'ready',
    {'payload': {}},
    {'type': 'explode'},
    {'type': 'ready', 'payload': 'nope'},
    {'type': 'ready', 'payload': {'readyStates': [True]}},
    {'type': 'ready', 'payload': {'readyStates': [1, 0, 1]}},
    {'type': 'update', 'payload': {'timers': [300, -1, 300]}},
    {'type': 'update', 'payload': {'timers': [300, '3', 300]}},
    {'type': 'update', 'version': 'seven', 'payload': {'timers': [1, 2, 3]}},
    {'type': 'name_update', 'payload': {'playerNames': ['a', 'b']}},
    {'type': 'reset', 'payload': {'timers': [1, 2]}},
])
def test_malformed_messages_are_ignored(scheduler, raw):
    router, state, driver, published = make_router(scheduler, is_owner=True)
    before = state.snapshot()
    assert router.handle(raw) is False
    assert state.snapshot() == before
    assert not driver.running
    assert published == []


@pytest.mark.parametrize('message', [
    msg('update', {'timers': [10, 20, 30]}, version=4),
    msg('update', {'timers': [10, 20, 30]}),
    msg('reset', {'timers': [5, 5, 5], 'readyStates': [True, False, False]}, version=2),
    msg('reset', {}),
    msg('name_update', {'playerNames': ['Al', 'Bo', 'Cy']}, version=9),
    msg('name_update', {'playerNames': ['Al', 'Bo', 'Cy']}),
])
def test_applying_twice_equals_applying_once(scheduler, message):
    router, state, _, _ = make_router(scheduler)
    router.handle(message)
    once = state.snapshot()
    router.handle(message)
    assert state.snapshot() == once


def test_stale_update_does_not_overwrite_newer(scheduler):
    router, state, _, _ = make_router(scheduler)
    assert router.handle(msg('update', {'timers': [300, 300, 290]}, sender='user-owner', version=12))
    assert not router.handle(msg('update', {'timers': [300, 300, 295]}, sender='user-owner', version=7))
    assert state.timers == [300, 300, 290]


def test_equal_versions_tie_break_on_sender(scheduler):
    router, state, _, _ = make_router(scheduler)
    router.handle(msg('name_update', {'playerNames': ['b', 'b', 'b']}, sender='user-b', version=3))
    router.handle(msg('name_update', {'playerNames': ['a', 'a', 'a']}, sender='user-a', version=3))
    assert state.player_names == ['b', 'b', 'b']


def test_update_timers_are_clamped_to_room_length(scheduler):
    router, state, _, _ = make_router(scheduler)
    router.handle(msg('update', {'timers': [9999, 0, 12]}))
    assert state.timers == [300, 0, 12]


def test_ready_with_one_not_ready_starts_owner_clock(scheduler):
    router, state, driver, _ = make_router(scheduler, is_owner=True)
    router.handle(msg('ready', {'readyStates': [True, True, False]}, version=1))
    assert state.ready_states == [True, True, False]
    assert driver.running and driver.active_index == 2


def test_joiner_never_starts_a_clock(scheduler):
    router, state, driver, _ = make_router(scheduler, is_owner=False)
    router.handle(msg('ready', {'readyStates': [True, False, True]}, version=1))
    assert state.ready_states == [True, False, True]
    assert not driver.running


def test_mixed_ready_stops_clock(scheduler):
    router, _, driver, _ = make_router(scheduler, is_owner=True)
    router.handle(msg('ready', {'readyStates': [True, True, False]}, version=1))
    router.handle(msg('ready', {'readyStates': [True, False, False]}, version=2))
    assert not driver.running


def test_all_ready_from_peer_resets_locally_without_broadcast(scheduler):
    router, state, driver, published = make_router(scheduler, is_owner=True)
    router.handle(msg('ready', {'readyStates': [True, True, False]}, version=1))
    router.handle(msg('ready', {'readyStates': [True, True, True]}, version=2))
    assert state.ready_states == [False, False, False]
    assert not driver.running
    assert published == []


def test_all_ready_from_self_broadcasts_reset(scheduler):
    router, state, _, published = make_router(scheduler, client_id='user-self')
    router.handle(msg('ready', {'readyStates': [True, True, True]}, sender='user-self', version=1))
    assert state.ready_states == [False, False, False]
    assert published == [('reset', {'readyStates': [False, False, False]})]


def test_unsigned_all_ready_is_broadcast_by_owner(scheduler):
    owner, _, _, owner_published = make_router(scheduler, is_owner=True)
    owner.handle({'type': 'ready', 'payload': {'readyStates': [True, True, True]}})
    assert owner_published == [('reset', {'readyStates': [False, False, False]})]

    joiner, state, _, joiner_published = make_router(scheduler, is_owner=False)
    joiner.handle({'type': 'ready', 'payload': {'readyStates': [True, True, True]}})
    assert state.ready_states == [False, False, False]
    assert joiner_published == []


def test_reset_defaults_ready_to_all_false_and_keeps_timers(scheduler):
    router, state, driver, _ = make_router(scheduler, is_owner=True)
    router.handle(msg('update', {'timers': [100, 200, 250]}, version=1))
    router.handle(msg('ready', {'readyStates': [True, False, True]}, version=2))
    assert driver.running
    router.handle(msg('reset', {}, version=3))
    assert not driver.running
    assert state.ready_states == [False, False, False]
    assert state.timers == [100, 200, 250]


def test_stale_reset_does_not_stop_newer_clock(scheduler):
    router, _, driver, _ = make_router(scheduler, is_owner=True)
    router.handle(msg('ready', {'readyStates': [True, False, True]}, version=5))
    assert not router.handle(msg('reset', {}, version=3))
    assert driver.running


def test_request_config_only_answered_by_owner(scheduler):
    router, state, _, published = make_router(scheduler, is_owner=True)
    router.handle(msg('name_update', {'playerNames': ['A', 'B', 'C']}, sender='user-peer', version=4))
    router.handle(msg('request_config', sender='user-new', version=5))
    expected = dict(state.snapshot(), versions={'names': [4, 'user-peer'], 'ready': None, 'timers': None})
    assert published == [('config', expected)]

    joiner, _, _, joiner_published = make_router(scheduler, is_owner=False)
    joiner.handle(msg('request_config', sender='user-new', version=1))
    assert joiner_published == []


@pytest.mark.parametrize('order', [(0, 1), (1, 0)])
def test_config_applies_at_most_once(scheduler, order):
    router, state, _, _ = make_router(scheduler, config=RoomConfig.provisional())
    configs = [
        msg('config', config_payload(3, 5, names=['A', 'B', 'C']), sender='user-owner', version=4),
        msg('config', config_payload(4, 2, names=['W', 'X', 'Y', 'Z']), sender='user-owner', version=6),
    ]
    for i in order:
        router.handle(configs[i])
    expected = configs[order[0]]['payload']
    assert state.snapshot() == expected
    assert router.configured


def test_config_replaces_whole_snapshot(scheduler):
    configured = []
    router, state, _, _ = make_router(scheduler, config=RoomConfig.provisional())
    router.on_configured = lambda: configured.append(True)
    payload = config_payload(3, 5, names=['Al', 'Bo', 'Cy'], timers=[300, 120, 300], ready=[True, False, False])
    assert router.handle(msg('config', payload, sender='user-owner', version=3))
    assert state.snapshot() == payload
    assert configured == [True]


def test_invalid_config_leaves_joiner_unconfigured(scheduler):
    router, state, _, _ = make_router(scheduler, config=RoomConfig.provisional())
    bad = config_payload(3, 5)
    bad['timers'] = [300, 300]
    assert not router.handle(msg('config', bad, version=1))
    assert not router.handle(msg('config', dict(config_payload(3, 5), numPlayers=12), version=2))
    assert not router.configured
    assert state.num_players == 2


def test_owner_ignores_foreign_config_and_warns(scheduler, caplog):
    router, state, _, _ = make_router(scheduler, is_owner=True)
    before = state.snapshot()
    with caplog.at_level(logging.WARNING, logger='clockroom'):
        router.handle(msg('config', config_payload(4, 1), sender='user-other', version=2))
    assert state.snapshot() == before
    assert any('[owner-conflict]' in r.getMessage() for r in caplog.records)


def test_handle_advances_lamport_clock(scheduler):
    router, _, _, _ = make_router(scheduler)
    router.handle(msg('name_update', {'playerNames': ['a', 'b', 'c']}, version=41))
    assert router.clock.value == 41
    assert router.clock.tick() == 42


def test_config_carries_data_stamps_not_reply_stamp(scheduler):
    router, state, _, _ = make_router(scheduler, config=RoomConfig.provisional())
    payload = config_payload(3, 5)
    payload['versions'] = {'names': [7, 'user-owner'], 'ready': None, 'timers': ['x', 'y']}
    router.handle(msg('config', payload, sender='user-owner', version=9))
    assert state.versions == {'names': (7, 'user-owner'), 'ready': None, 'timers': None}
    assert router.clock.value == 9

    # A toggle the owner applied after answering is not mistaken for stale
    assert router.handle(msg('ready', {'readyStates': [False, True, False]}, sender='user-j1', version=3))
    assert not router.handle(msg('name_update', {'playerNames': ['a', 'b', 'c']}, sender='user-owner', version=6))


def test_state_before_config_is_replayed_after_it(scheduler):
    router, state, _, _ = make_router(scheduler, config=RoomConfig.provisional())
    early_ready = msg('ready', {'readyStates': [False, True, False]}, sender='user-j1', version=3)
    early_names = msg('name_update', {'playerNames': ['Old', 'Old', 'Old']}, sender='user-owner', version=2)
    # Sized for the real room, so the provisional two-player replica drops them
    assert not router.handle(early_ready)
    assert not router.handle(early_names)

    payload = config_payload(3, 5, names=['Al', 'Bo', 'Cy'])
    payload['versions'] = {'names': [5, 'user-owner'], 'ready': None, 'timers': None}
    router.handle(msg('config', payload, sender='user-owner', version=8))
    assert state.ready_states == [False, True, False]
    assert state.player_names == ['Al', 'Bo', 'Cy']
