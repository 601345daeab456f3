from flask import Blueprint, jsonify, request
from gamepanel import socketio
from gamepanel.errors import ValidationError
from gamepanel.services import roster
from gamepanel.socketio_events import PANEL_ROOM


participants = Blueprint('participants', __name__)


def _payload() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError(message='Request body must be a JSON object')
    return data


def _broadcast(reason: str) -> None:
    socketio.emit('participants_update', {'reason': reason}, to=PANEL_ROOM, namespace='/ws')


@participants.route('', methods=['GET'])
def list_participants():
    rows = roster.list_participants(
        status=request.args.get('status'),
        team=request.args.get('team'),
        college=request.args.get('college'),
        search=request.args.get('q'),
    )
    return jsonify([p.to_dict() for p in rows])


@participants.route('/stats', methods=['GET'])
def participant_stats():
    return jsonify(roster.participant_stats())


@participants.route('', methods=['POST'])
def create_participant():
    participant = roster.create_participant(_payload())
    _broadcast('created')
    return jsonify(participant.to_dict()), 201


@participants.route('/<string:roll_number>', methods=['GET'])
def get_participant(roll_number):
    return jsonify(roster.get_participant(roll_number).to_dict())


@participants.route('/<string:roll_number>', methods=['PUT'])
def update_participant(roll_number):
    participant = roster.update_participant(roll_number, _payload())
    _broadcast('updated')
    return jsonify(participant.to_dict())


@participants.route('/<string:roll_number>', methods=['DELETE'])
def delete_participant(roll_number):
    roster.delete_participant(roll_number)
    _broadcast('deleted')
    return jsonify({'ok': True})


@participants.route('/eliminate', methods=['POST'])
def eliminate_participants():
    data = _payload()
    result = roster.eliminate_by_roll_numbers(data.get('rollNumbers'))
    _broadcast('eliminated')
    return jsonify(result)


@participants.route('/eliminate-team', methods=['POST'])
def eliminate_team():
    data = _payload()
    result = roster.eliminate_team(data.get('team'))
    _broadcast('eliminated')
    return jsonify(result)


@participants.route('/reset', methods=['POST'])
def reset_participants():
    result = roster.reset_participants()
    _broadcast('reset')
    return jsonify(result)
