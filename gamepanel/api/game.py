from flask import Blueprint, jsonify, request, current_app
from gamepanel import socketio
from gamepanel.errors import ValidationError
from gamepanel.models import GameState
from gamepanel.services import engine
from gamepanel.socketio_events import PANEL_ROOM


game = Blueprint('game', __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(message='Request body must be a JSON object')
    return data


def _broadcast(state: GameState) -> None:
    socketio.emit(
        'state_update',
        {'gameStatus': state.game_status, 'currentRound': state.current_round},
        to=PANEL_ROOM,
        namespace='/ws',
    )


def _settled_state():
    """Observe (and possibly advance) the live state before rendering it."""
    obs = engine.observe()
    if obs.changed:
        _broadcast(obs.state)
    return obs


@game.route('/game-settings', methods=['GET'])
def get_game_settings():
    return jsonify(_settled_state().state.to_dict())


@game.route('/game-settings', methods=['PUT'])
def put_game_settings():
    state = engine.update_settings(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/round-info', methods=['PUT'])
def put_round_info():
    state = engine.update_round_info(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/update-current-round', methods=['PUT'])
def put_current_round():
    state = engine.update_current_round(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/next-round', methods=['PUT'])
def put_next_round():
    state = engine.update_next_round(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/timers', methods=['PUT'])
def put_timers():
    state = engine.set_timers(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/countdown', methods=['PUT'])
def put_countdown():
    state = engine.set_countdown(_payload())
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/countdown-action', methods=['POST'])
def post_countdown_action():
    data = _payload()
    state = engine.countdown_action(data.get('action'), data.get('details'))
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/game-action', methods=['POST'])
def post_game_action():
    data = _payload()
    state = engine.game_action(data.get('action'), data.get('details'))
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/start-next-round', methods=['POST'])
def post_start_next_round():
    state = engine.start_next_round(early=False)
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/start-next-round-early', methods=['POST'])
def post_start_next_round_early():
    state = engine.start_next_round(early=True)
    _broadcast(state)
    return jsonify(state.to_dict())


@game.route('/round-history', methods=['GET'])
def get_round_history():
    limit = int(current_app.config.get('ROUND_HISTORY_LIMIT', 20))
    return jsonify([h.to_dict() for h in engine.round_history(limit)])


@game.route('/admin-actions', methods=['GET'])
def get_admin_actions():
    limit = int(current_app.config.get('ADMIN_ACTIONS_LIMIT', 50))
    return jsonify([a.to_dict() for a in engine.admin_actions(limit)])


@game.route('/countdown-status', methods=['GET'])
def get_countdown_status():
    return jsonify(_settled_state().countdown_to_dict())


@game.route('/timer-status', methods=['GET'])
def get_timer_status():
    obs = _settled_state()
    state = obs.state
    stored = state.to_dict()
    payload = obs.round_timer.to_dict()
    payload.update({
        'gameStatus': state.game_status,
        'isActive': state.is_active,
        'isRoundActive': obs.round_running,
        'roundStartTime': stored['roundStartTime'],
        'cooldownEndTime': stored['cooldownEndTime'],
        'currentRound': state.current_round,
        'totalRounds': state.total_rounds,
        'roundName': state.round_name,
        'roundDetails': state.round_details,
        'attachments': state.attachments,
    })
    return jsonify(payload)


@game.route('/game-state', methods=['GET'])
def get_game_state():
    obs = _settled_state()
    payload = obs.state.to_dict()
    payload['countdownStatus'] = obs.countdown_to_dict()
    payload['roundTimer'] = obs.round_timer_to_dict()
    return jsonify(payload)
