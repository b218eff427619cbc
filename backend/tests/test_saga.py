import logging

import pytest

from hotseat.errors import PartialWriteError
from hotseat.models import Scenario, Turn
from hotseat.services.games import state_machine as sm
from hotseat.services.games.saga import Saga
from hotseat.services.games.transitions import apply_transition


def test_saga_undoes_applied_steps_in_reverse():
    undone = []
    saga = Saga('demo', rollback=lambda: undone.append('rollback'), logger=logging.getLogger('test'))
    saga.step('first', lambda: (lambda: undone.append('first')))
    saga.step('second', lambda: (lambda: undone.append('second')))
    saga.step('flag', lambda: None)

    def boom():
        raise RuntimeError('disk full')

    with pytest.raises(PartialWriteError) as info:
        saga.step('third', boom)
    assert undone == ['rollback', 'second', 'first']
    assert info.value.step == 'third'
    assert info.value.written == ['first', 'second', 'flag']
    assert info.value.message == 'Failed to third'
    assert isinstance(info.value.__cause__, RuntimeError)


def test_saga_reports_failed_compensation():
    saga = Saga('demo', rollback=lambda: None, logger=logging.getLogger('test'))

    def broken_undo():
        raise RuntimeError('gone')

    saga.step('first', lambda: broken_undo)
    with pytest.raises(PartialWriteError) as info:
        saga.step('second', lambda: 1 / 0)
    assert info.value.compensation_failures == ['first']


def test_failed_transition_removes_earlier_rows(client, make_room, chooser):
    room, (alice, bob) = make_room('Alice', 'Bob')
    chooser.script.append(alice['id'])
    turn_id = client.post(f"/api/rooms/{room['id']}/start", json={'host_id': alice['id']}).get_json()['turn_id']
    turn = Turn.query.get(turn_id)

    transition = sm.Transition(sm.NEXT_TURN, [
        sm.insert('scenario', alias='scenario', turn_id=turn.id, scenario_text='orphan'),
        sm.update('turn', turn.id, step='rename category', category='Technology'),
        # Duplicate (round, turn number) violates the uniqueness constraint
        sm.insert('turn', alias='turn', step='create turn', round_id=turn.round_id, turn_number=1,
                  decider_id=bob['id'], status='selecting_category'),
    ])
    with pytest.raises(PartialWriteError) as info:
        apply_transition(transition, 'advance turn')

    assert info.value.step == 'create turn'
    assert info.value.written == ['create scenario', 'rename category']
    assert Scenario.query.filter_by(scenario_text='orphan').count() == 0
    assert Turn.query.get(turn_id).category is None
    assert Turn.query.count() == 1


def test_partial_write_error_response_shape():
    err = PartialWriteError('start game', 'create turn', ['create round'])
    assert err.status_code == 500
    assert err.to_dict() == {'error': 'Failed to create turn', 'operation': 'start game'}
