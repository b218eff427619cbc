import json

from flask import Blueprint, request, jsonify, current_app

from hotseat.errors import GameError
from hotseat.services.games.rooms import delete_player

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'hotseat', 'status': 'ok'})


@main.route('/delete-player', methods=['POST', 'OPTIONS'])
def delete_player_beacon():
    """Best-effort removal sent by the browser as the tab closes.

    Beacons arrive as ``text/plain``, so the body is parsed by hand.
    """
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    raw = request.get_data(as_text=True)
    if not raw:
        return jsonify({'error': 'Empty request body'}), 400
    try:
        data = json.loads(raw)
    except ValueError:
        return jsonify({'error': 'Invalid JSON'}), 400
    player_id = data.get('playerId') if isinstance(data, dict) else None
    try:
        player_id = int(player_id)
    except (TypeError, ValueError):
        return jsonify({'error': 'playerId is required'}), 400

    try:
        info = delete_player(player_id)
    except GameError as exc:
        current_app.logger.info(f"[beacon] player={player_id} error={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
    return jsonify({'success': True, **info})
