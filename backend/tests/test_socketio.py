import json

from hotseat import socketio
from hotseat.models import Player


def names(client):
    return [pkt['name'] for pkt in client.get_received('/ws')]


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.emit('join_room', {'room_code': 'abcdef'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined and joined[0]['args'][0]['room'] == 'room:ABCDEF'


def test_join_requires_room_code(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_room', {}, namespace='/ws')
    assert 'error' in names(sio_client)


def test_room_events_are_broadcast(flask_app, client, sio_client, make_room, chooser):
    room, (alice,) = make_room('Alice')
    sio_client.emit('join_room', {'room_code': room['room_code']}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/api/rooms/join', json={'room_code': room['room_code'], 'nickname': 'Bob'})
    received = names(sio_client)
    assert 'player_joined' in received
    assert 'state_update' in received

    chooser.script.append(alice['id'])
    client.post(f"/api/rooms/{room['id']}/start", json={'host_id': alice['id']})
    received = names(sio_client)
    assert 'turn_updated' in received
    assert 'state_update' in received


def test_slide_change_is_relayed_to_others(flask_app, sio_client):
    other = socketio.test_client(flask_app, namespace='/ws')
    sio_client.emit('join_room', {'room_code': 'SLIDES'}, namespace='/ws')
    other.emit('join_room', {'room_code': 'SLIDES'}, namespace='/ws')
    sio_client.get_received('/ws')
    other.get_received('/ws')

    sio_client.emit('slide_change', {'room_code': 'SLIDES', 'index': 3}, namespace='/ws')
    relayed = [pkt for pkt in other.get_received('/ws') if pkt['name'] == 'slide_change']
    assert relayed and relayed[0]['args'][0] == {'index': 3}
    assert 'slide_change' not in names(sio_client)
    other.disconnect(namespace='/ws')


def test_player_deleted_broadcast(client, sio_client, make_room):
    room, (alice, bob) = make_room('Alice', 'Bob')
    sio_client.emit('join_room', {'room_code': room['room_code']}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/delete-player', data=json.dumps({'playerId': bob['id']}), content_type='text/plain')
    deleted = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'player_deleted']
    assert deleted
    assert deleted[0]['args'][0] == {
        'playerId': bob['id'],
        'playerName': 'Bob',
        'wasHost': False,
        'wasDecider': False,
        'gameCompleted': False,
    }


def test_disconnect_removes_player(flask_app, sio_client, make_room):
    room, (alice, bob) = make_room('Alice', 'Bob')
    player_socket = socketio.test_client(flask_app, namespace='/ws')
    player_socket.emit('join_room', {'room_code': room['room_code'], 'player_id': bob['id']}, namespace='/ws')
    sio_client.emit('join_room', {'room_code': room['room_code']}, namespace='/ws')
    sio_client.get_received('/ws')

    player_socket.disconnect(namespace='/ws')
    assert Player.query.get(bob['id']) is None
    assert 'player_deleted' in names(sio_client)


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)
