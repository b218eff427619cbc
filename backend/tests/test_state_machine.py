import pytest

from hotseat.errors import InvariantViolation
from hotseat.services.games import state_machine as sm
from hotseat.services.games.selection import RandomChooser


class FirstChooser:
    def choose(self, options):
        return list(options)[0]

    def sample(self, options, k):
        return list(options)[:k]


def snapshot(players=(1, 2), room_status='in_progress', total_rounds=1, round_number=1, round_turn=1,
             is_complete=False, turn_number=1, decider=1, turn_status='completed', history=(1,), answers=(),
             host=1, room_round=None):
    room = sm.RoomView(id=10, status=room_status, total_rounds=total_rounds,
                       current_round=room_round or round_number, current_turn=round_turn, host_id=host)
    rnd = sm.RoundView(id=20, round_number=round_number, is_complete=is_complete, current_turn=round_turn)
    turn = sm.TurnView(id=30, round_id=20, turn_number=turn_number, decider_id=decider, status=turn_status,
                       category='Technology', scenario_id=40)
    return sm.Snapshot(
        room=room,
        players=tuple(sm.PlayerView(id=p, is_host=(p == host)) for p in players),
        round=rnd,
        turn=turn,
        decider_history=tuple(history),
        answers=tuple(answers),
    )


def steps(transition):
    return [m.step for m in transition.mutations]


def test_turn_flow_only_moves_forward():
    assert sm.next_status('selecting_category') == 'selecting_scenario'
    assert sm.next_status('answering') == 'voting'
    assert sm.next_status('completed') is None
    assert sm.has_reached('voting', 'answering')
    assert not sm.has_reached('answering', 'voting')


def test_expected_answer_count_floor():
    # Decider has not answered: everyone but the decider
    assert sm.expected_answer_count([1, 2], 1, [2]) == 1
    # Decider answered: everyone
    assert sm.expected_answer_count([1, 2], 1, [1]) == 2
    # Decider left the room: every remaining player
    assert sm.expected_answer_count([2, 3], 1, [2]) == 2


def test_answers_ready_needs_at_least_one_answer():
    snap = snapshot(turn_status='answering', answers=())
    assert not sm.answers_ready(snap)


def test_answers_ready_when_decider_answers_waits_for_everyone():
    snap = snapshot(turn_status='answering', answers=(sm.AnswerView(id=1, player_id=1),))
    assert not sm.answers_ready(snap)
    snap = snapshot(turn_status='answering', answers=(sm.AnswerView(id=1, player_id=1), sm.AnswerView(id=2, player_id=2)))
    assert sm.answers_ready(snap)


def test_answers_ready_without_decider_answer():
    snap = snapshot(turn_status='answering', answers=(sm.AnswerView(id=2, player_id=2),))
    assert sm.answers_ready(snap)


def test_answers_from_departed_players_do_not_count():
    snap = snapshot(players=(1, 2, 3), turn_status='answering', answers=(sm.AnswerView(id=9, player_id=7),))
    assert not sm.answers_ready(snap)


def test_start_requires_min_players():
    snap = sm.Snapshot(room=sm.RoomView(id=1, status='waiting', total_rounds=1), players=(sm.PlayerView(id=1),))
    transition = sm.decide_start(snap, FirstChooser(), min_players=2)
    assert transition.kind == sm.BLOCKED
    assert transition.reason == 'not_enough_players'
    assert not transition.accepted


def test_start_writes_in_order():
    snap = sm.Snapshot(room=sm.RoomView(id=1, status='waiting', total_rounds=2),
                       players=(sm.PlayerView(id=4), sm.PlayerView(id=3)))
    transition = sm.decide_start(snap, FirstChooser())
    assert transition.kind == sm.GAME_STARTED
    assert transition.decider_id == 3
    assert steps(transition) == [
        'update room status', 'create round', 'create turn', 'add decider history', 'mark decider',
    ]
    turn = transition.mutations[2]
    assert turn.values['round_id'] == sm.Ref('round')


def test_start_when_already_started_is_unchanged():
    snap = sm.Snapshot(room=sm.RoomView(id=1, status='in_progress', total_rounds=1))
    transition = sm.decide_start(snap, FirstChooser())
    assert transition.kind == sm.UNCHANGED
    assert not transition.changed


def test_category_is_idempotent_once_selected():
    snap = snapshot(turn_status='selecting_scenario')
    assert sm.decide_category(snap, 'Technology').kind == sm.UNCHANGED
    snap = snapshot(turn_status='answering')
    assert sm.decide_category(snap, 'Technology').kind == sm.BLOCKED


def test_custom_scenario_inserts_before_linking():
    snap = snapshot(turn_status='selecting_scenario')
    transition = sm.decide_scenario(snap, custom_text='My own scenario', context='at work')
    assert steps(transition)[0] == 'create custom scenario'
    assert transition.mutations[1].values['scenario_id'] == sm.Ref('scenario')
    assert transition.mutations[1].values['status'] == 'answering'


def test_voting_waits_for_scores():
    answers = (sm.AnswerView(id=1, player_id=2, ai_score=None),)
    assert sm.decide_voting(snapshot(turn_status='answering', answers=answers)).reason == 'answers_not_scored'
    answers = (sm.AnswerView(id=1, player_id=2, ai_score=6),)
    transition = sm.decide_voting(snapshot(turn_status='answering', answers=answers))
    assert transition.kind == sm.VOTING_OPENED


def test_voting_never_skips_answering():
    transition = sm.decide_voting(snapshot(turn_status='selecting_scenario'))
    assert transition.kind == sm.BLOCKED


def test_finish_voting_awards_ai_scores():
    answers = (sm.AnswerView(id=1, player_id=1, ai_score=4), sm.AnswerView(id=2, player_id=2, ai_score=9))
    transition = sm.decide_finish_voting(snapshot(turn_status='voting', answers=answers))
    awards = [(m.key, m.values['total_points']) for m in transition.mutations if m.step == 'award answer points']
    assert awards == [(1, 4), (2, 9)]


def test_advance_blocked_until_turn_completed():
    transition = sm.decide_advance(snapshot(turn_status='voting'), FirstChooser())
    assert transition.kind == sm.BLOCKED
    assert transition.reason == 'turn_not_completed'


def test_advance_picks_only_eligible_decider():
    transition = sm.decide_advance(snapshot(players=(1, 2, 3), history=(1, 3)), FirstChooser())
    assert transition.kind == sm.NEXT_TURN
    assert transition.decider_id == 2
    assert steps(transition) == [
        'create turn', 'add decider history', 'update round turn', 'update room turn', 'mark decider',
    ]


def test_advance_stale_turn_is_unchanged():
    transition = sm.decide_advance(snapshot(round_turn=2, turn_number=1), FirstChooser())
    assert transition.kind == sm.UNCHANGED
    assert transition.reason == 'already_advanced'


def test_advance_last_round_completes_game():
    transition = sm.decide_advance(snapshot(history=(1, 2), total_rounds=1), FirstChooser())
    assert transition.kind == sm.GAME_COMPLETED
    assert transition.game_over
    updates = {m.table: m.values for m in transition.mutations}
    assert updates['room']['status'] == 'completed'
    assert updates['round']['is_complete'] is True
    assert not any(m.op == 'insert' for m in transition.mutations)


def test_advance_opens_next_round_and_resets_flags():
    snap = snapshot(players=(1, 2, 3), history=(1, 2, 3), total_rounds=2)
    transition = sm.decide_advance(snap, FirstChooser())
    assert transition.kind == sm.NEXT_ROUND
    assert transition.decider_id == 1
    reset = next(m for m in transition.mutations if m.step == 'reset decider flags')
    assert reset.key == (2, 3)
    assert reset.values == {'has_been_decider': False}
    complete = next(m for m in transition.mutations if m.step == 'complete round')
    assert complete.reversible is False


def test_single_remaining_player_completes_game():
    transition = sm.decide_advance(snapshot(players=(2,), history=(1,), total_rounds=3), FirstChooser())
    assert transition.kind == sm.GAME_COMPLETED
    assert transition.reason == 'not_enough_players'


def test_completed_room_reports_game_over():
    transition = sm.decide_advance(snapshot(room_status='completed'), FirstChooser())
    assert transition.kind == sm.UNCHANGED
    assert transition.game_over


def test_departure_promotes_longest_present_player():
    snap = snapshot(players=(1, 2, 3), host=1, turn_status='answering')
    transition = sm.decide_departure(snap, 1)
    assert transition.kind == sm.PLAYER_LEFT
    promote = [m for m in transition.mutations if m.step == 'promote host']
    assert promote[0].key == 2
    assert not transition.game_over


def test_departure_ends_game_with_one_player_left():
    transition = sm.decide_departure(snapshot(players=(1, 2), host=1, turn_status='answering'), 2)
    assert transition.game_over
    assert transition.reason == 'not_enough_players'


def test_departure_of_unknown_player_is_an_invariant_violation():
    with pytest.raises(InvariantViolation):
        sm.decide_departure(snapshot(players=(1, 2)), 99)


def test_random_chooser_is_reproducible_with_seed():
    a, b = RandomChooser(7), RandomChooser(7)
    options = [1, 2, 3, 4, 5]
    assert [a.choose(options) for _ in range(5)] == [b.choose(options) for _ in range(5)]
    with pytest.raises(ValueError):
        a.choose([])
