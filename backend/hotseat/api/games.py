from flask import Blueprint, jsonify, request

from hotseat.errors import GameError, ValidationError
from hotseat.services.games import orchestrator, rooms, scenario_bank, statistics
from hotseat.services.games.scoring import score_pending_answers


games = Blueprint('games', __name__)


@games.errorhandler(GameError)
def handle_game_error(exc: GameError):
    return jsonify(exc.to_dict()), exc.status_code


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _player_id(data: dict, key: str = 'player_id'):
    value = data.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{key} must be an integer')


def _outcome(outcome):
    return jsonify(outcome.to_dict())


# ---- Rooms ----

@games.route('/rooms', methods=['POST'])
def create_room():
    data = _body()
    payload = rooms.create_room(data.get('nickname'), data.get('total_rounds'), data.get('time_limit'))
    return jsonify(payload), 201


@games.route('/rooms/join', methods=['POST'])
def join_room():
    data = _body()
    payload = rooms.join_room(data.get('room_code'), data.get('nickname'))
    return jsonify(payload), 201


@games.route('/rooms/<int:room_id>', methods=['GET'])
def get_room(room_id):
    return jsonify(rooms.get_room(room_id))


@games.route('/rooms/<int:room_id>/state', methods=['GET'])
def get_game_state(room_id):
    return jsonify(orchestrator.get_game_state(room_id))


@games.route('/rooms/<int:room_id>/start', methods=['POST'])
def start_game(room_id):
    data = _body()
    return _outcome(orchestrator.start_game(room_id, _player_id(data, 'host_id')))


@games.route('/rooms/<int:room_id>/finish-voting', methods=['POST'])
def finish_voting(room_id):
    return _outcome(orchestrator.finish_voting(room_id))


@games.route('/statistics', methods=['GET'])
def get_statistics():
    return jsonify({'success': True, 'data': statistics.get_statistics()})


# ---- Turns ----

@games.route('/categories', methods=['GET'])
def list_categories():
    return jsonify({'categories': scenario_bank.categories()})


@games.route('/turns/<int:turn_id>/category', methods=['POST'])
def select_category(turn_id):
    data = _body()
    outcome = orchestrator.select_category(
        turn_id, data.get('category'), _player_id(data), timed_out=bool(data.get('timed_out')),
    )
    return _outcome(outcome)


@games.route('/turns/<int:turn_id>/scenarios', methods=['POST'])
def generate_scenarios(turn_id):
    scenarios = orchestrator.generate_scenarios(turn_id)
    return jsonify({'scenarios': [s.to_dict() for s in scenarios]})


@games.route('/turns/<int:turn_id>/scenario', methods=['POST'])
def select_scenario(turn_id):
    data = _body()
    outcome = orchestrator.select_scenario(
        turn_id,
        scenario_id=_player_id(data, 'scenario_id'),
        custom_text=data.get('custom_text'),
        context=data.get('context'),
        player_id=_player_id(data),
        timed_out=bool(data.get('timed_out')),
    )
    return _outcome(outcome)


@games.route('/turns/<int:turn_id>/answers', methods=['POST'])
def submit_answer(turn_id):
    data = _body()
    outcome = orchestrator.submit_answer(turn_id, _player_id(data), data.get('answer_text'))
    return _outcome(outcome), 201


@games.route('/turns/<int:turn_id>/process-answers', methods=['POST'])
def process_answers(turn_id):
    return _outcome(score_pending_answers(turn_id))


@games.route('/turns/<int:turn_id>/advance', methods=['POST'])
def advance_turn(turn_id):
    return _outcome(orchestrator.advance_turn(turn_id))


@games.route('/answers/<int:answer_id>/votes', methods=['POST'])
def submit_vote(answer_id):
    data = _body()
    outcome = orchestrator.submit_vote(answer_id, _player_id(data, 'voter_id'), data.get('vote_type') or 'up')
    return _outcome(outcome), 201 if outcome.changed else 200
